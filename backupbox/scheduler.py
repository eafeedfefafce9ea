"""Background scheduler that re-arms backup runs on a timer.

One :class:`BackupScheduler` lives for the lifetime of the background
process. It owns a one-shot backup timer and an optional periodic file-count
watch, and reports everything it does as events on an
:class:`~backupbox.channel.EventChannel`.

State machine::

    IDLE  --schedule_next-->  ARMED
    ARMED --schedule_next-->  ARMED   (previous timer replaced)
    ARMED --timer fires---->  IDLE    (broadcast triggerBackup)
    ARMED --cancel--------->  IDLE    (broadcast stopped)

``RUNNING`` is reported while an observer signals that a backup run is in
progress; the scheduler does not own the run itself.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timedelta, timezone
from enum import Enum
from pathlib import Path
from typing import Any

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.date import DateTrigger
from apscheduler.triggers.interval import IntervalTrigger

from .channel import EventChannel, Port
from .exceptions import BackupBoxError
from .messages import (
    Command,
    Count,
    Done,
    Error,
    ScheduleNextBackup,
    Started,
    StartWatch,
    StopBackup,
    Stopped,
    StopWatch,
    TriggerBackup,
    WatchStarted,
    WatchStopped,
    parse_command,
)
from .sync.scanner import DirectoryScanner
from .utils import WATCH_INTERVAL

logger = logging.getLogger(__name__)

TIMER_JOB_ID = "backup-timer"
WATCH_JOB_ID = "file-count-watch"


class SchedulerState(str, Enum):
    """Observable state of the backup timer."""

    IDLE = "idle"
    ARMED = "armed"
    RUNNING = "running"


class BackupScheduler:
    """Owns the backup timer and broadcasts lifecycle events.

    Any observer connected to the channel may arm or disarm the timer;
    there is no notion of an owning observer.
    """

    def __init__(
        self,
        channel: EventChannel,
        scanner: DirectoryScanner | None = None,
        watch_interval: float = WATCH_INTERVAL,
        scheduler: BackgroundScheduler | None = None,
    ) -> None:
        """Initialize the scheduler.

        Args:
            channel: Channel used to broadcast events
            scanner: Directory scanner used for file counts
            watch_interval: Seconds between two counts of the watch
            scheduler: APScheduler instance (a background one is created
                if omitted)
        """
        self.channel = channel
        self.scanner = scanner or DirectoryScanner()
        self.watch_interval = watch_interval
        self._scheduler = scheduler or BackgroundScheduler()
        self._lock = threading.RLock()
        self._armed = False
        self._running = False
        self._generation = 0
        self._watch_dirs: list[Path] = []
        self._watching = False

    # =========================
    # Lifecycle
    # =========================

    def start(self) -> None:
        """Start the underlying APScheduler thread."""
        if not self._scheduler.running:
            self._scheduler.start()
            logger.info("Backup scheduler started")

    def shutdown(self) -> None:
        """Stop all jobs and the APScheduler thread."""
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
            logger.info("Backup scheduler stopped")

    @property
    def state(self) -> SchedulerState:
        with self._lock:
            if self._running:
                return SchedulerState.RUNNING
            if self._armed:
                return SchedulerState.ARMED
            return SchedulerState.IDLE

    @property
    def watching(self) -> bool:
        return self._watching

    def mark_running(self) -> None:
        """Record that an observer started a backup run."""
        with self._lock:
            self._running = True

    def mark_finished(self) -> None:
        """Record that the current backup run ended."""
        with self._lock:
            self._running = False

    # =========================
    # Backup timer
    # =========================

    def _remove_job(self, job_id: str) -> None:
        try:
            self._scheduler.remove_job(job_id)
        except JobLookupError:
            pass

    def schedule_next(self, delay: float) -> None:
        """Arm the timer, replacing any pending one.

        Args:
            delay: Seconds until the timer fires
        """
        with self._lock:
            self._remove_job(TIMER_JOB_ID)
            self._generation += 1
            run_date = datetime.now(timezone.utc) + timedelta(seconds=max(delay, 0))
            self._scheduler.add_job(
                self._fire,
                trigger=DateTrigger(run_date=run_date),
                args=[self._generation],
                id=TIMER_JOB_ID,
                replace_existing=True,
                misfire_grace_time=None,
            )
            self._armed = True
        logger.info(f"Next backup scheduled in {delay:.0f}s")

    def _fire(self, generation: int) -> None:
        """Timer callback: announce that it is time to back up."""
        with self._lock:
            if generation != self._generation or not self._armed:
                # Replaced or cancelled while firing
                return
            self._armed = False
        logger.info("Backup timer fired")
        self.channel.broadcast(TriggerBackup())

    def cancel(self) -> bool:
        """Disarm the pending timer.

        A backup run already in progress is not interrupted.

        Returns:
            True if a timer was pending
        """
        with self._lock:
            if not self._armed:
                return False
            self._remove_job(TIMER_JOB_ID)
            self._generation += 1
            self._armed = False
        logger.info("Scheduled backup cancelled")
        self.channel.broadcast(Stopped())
        return True

    # =========================
    # File count watch
    # =========================

    def count(self, directories: list[Path]) -> int:
        """Count the files below several directories."""
        total = self.scanner.count_all(directories)
        logger.debug(f"Counted {total} files in {len(directories)} folders")
        return total

    def _watch_tick(self) -> None:
        with self._lock:
            directories = list(self._watch_dirs)
        try:
            total = self.count(directories)
        except Exception as e:
            logger.exception("Periodic file count failed")
            self.channel.broadcast(Error(str(e)))
            return
        self.channel.broadcast(Done({"count": total}))

    def start_watch(self, directories: list[Path] | None = None) -> bool:
        """Start counting files periodically.

        Args:
            directories: Directories to watch (keeps the previous ones if None)

        Returns:
            True if the watch was started by this call

        Raises:
            BackupBoxError: If no directories are known
        """
        with self._lock:
            if directories:
                self._watch_dirs = list(directories)
            if not self._watch_dirs:
                raise BackupBoxError("No directory provided for watch.")
            if self._watching:
                return False
            self._scheduler.add_job(
                self._watch_tick,
                trigger=IntervalTrigger(seconds=self.watch_interval),
                id=WATCH_JOB_ID,
                replace_existing=True,
                next_run_time=datetime.now(timezone.utc),
            )
            self._watching = True
        logger.info(f"Watching {len(self._watch_dirs)} folders")
        self.channel.broadcast(WatchStarted())
        return True

    def stop_watch(self) -> bool:
        """Stop the periodic count.

        Returns:
            True if a watch was running
        """
        with self._lock:
            if not self._watching:
                return False
            self._remove_job(WATCH_JOB_ID)
            self._watching = False
        self.channel.broadcast(WatchStopped())
        return True

    # =========================
    # Command handling
    # =========================

    def handle(self, command: Command, port: Port | None = None) -> None:
        """Execute a command sent by an observer.

        Replies meant for the sender go to ``port``; failures are broadcast
        as error events and never propagate.

        Args:
            command: Decoded command
            port: Port of the observer that sent the command
        """
        try:
            self._dispatch(command, port)
        except Exception as e:
            logger.exception(f"Command {command.TAG} failed")
            self.channel.broadcast(Error(str(e)))

    def handle_message(self, data: Any, port: Port | None = None) -> None:
        """Decode and execute a raw command dictionary."""
        try:
            command = parse_command(data)
        except BackupBoxError as e:
            logger.warning(f"Ignoring invalid command: {e}")
            self._reply(port, Error(str(e)))
            return
        self.handle(command, port)

    def _reply(self, port: Port | None, event: Any) -> None:
        if port is not None:
            port.post(event)

    def _dispatch(self, command: Command, port: Port | None) -> None:
        if isinstance(command, ScheduleNextBackup):
            self.schedule_next(command.delay_ms / 1000)
        elif isinstance(command, StopBackup):
            if not self.cancel():
                self._reply(port, Stopped())
        elif isinstance(command, Count):
            directories = list(command.dir_paths)
            if not directories:
                self._reply(port, Error("No directory handles provided for count."))
                return
            self._reply(port, Done({"count": self.count(directories)}))
        elif isinstance(command, StartWatch):
            try:
                self.start_watch(list(command.dir_paths))
            except BackupBoxError as e:
                self._reply(port, Error(str(e)))
                return
            self._reply(port, Started())
        elif isinstance(command, StopWatch):
            self.stop_watch()
            self._reply(port, Stopped())
        else:
            raise BackupBoxError(f"Unsupported command: {command!r}")
