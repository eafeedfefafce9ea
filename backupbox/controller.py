"""Observer that runs backups when asked and re-arms the scheduler."""

import logging
import os
import threading
from typing import Optional

from .channel import EventChannel, Port
from .exceptions import BackupBoxConfigError
from .folders import FolderConfig
from .messages import Done, Error, Event, Progress, Started, TriggerBackup
from .scheduler import BackupScheduler
from .sync.engine import SyncEngine
from .sync.models import SyncResult
from .utils import DEFAULT_BACKUP_INTERVAL

logger = logging.getLogger(__name__)


class BackupController:
    """Runs backup runs on behalf of one observer.

    A run is started explicitly with :meth:`start_backup` or in response to
    a ``triggerBackup`` event. Progress and the final summary are broadcast
    on the channel, and after a successful run the scheduler is asked to
    arm the next timer.
    """

    def __init__(
        self,
        engine: SyncEngine,
        scheduler: BackupScheduler,
        channel: EventChannel,
        folders: list[FolderConfig],
        interval: float = DEFAULT_BACKUP_INTERVAL,
    ):
        """Initialize backup controller.

        Args:
            engine: Backup engine used for runs
            scheduler: Scheduler of the background process
            channel: Channel events are broadcast on
            folders: Folders to back up, in order
            interval: Seconds until the next run after a completed one
        """
        self.engine = engine
        self.scheduler = scheduler
        self.channel = channel
        self.folders = folders
        self.interval = interval
        self._working = threading.Event()

    @property
    def is_working(self) -> bool:
        return self._working.is_set()

    def check_folders(self) -> None:
        """Verify there is something to back up and every folder is readable.

        Raises:
            BackupBoxConfigError: If no folders are selected or any of them
                cannot be read
        """
        if not self.folders:
            raise BackupBoxConfigError("No folders selected.")

        missing = [
            folder.remote_name
            for folder in self.folders
            if not folder.local_path.is_dir()
            or not os.access(folder.local_path, os.R_OK | os.X_OK)
        ]
        if missing:
            raise BackupBoxConfigError(
                f"Please authorize all folders before starting: {', '.join(missing)}"
            )

    def _on_progress(self, done: int, total: int, current_file: str) -> None:
        self.channel.broadcast(Progress(done, total, current_file))

    def start_backup(self) -> Optional[SyncResult]:
        """Run one backup of all folders.

        Returns:
            The combined result, or None if the run could not start or failed
        """
        try:
            self.check_folders()
        except BackupBoxConfigError as e:
            logger.warning(str(e))
            self.channel.broadcast(Error(str(e)))
            if self.folders:
                # Retry once the folders are readable again
                self.scheduler.schedule_next(self.interval)
            return None

        self._working.set()
        self.scheduler.mark_running()
        self.channel.broadcast(Started())
        logger.info(
            "Starting backup for: "
            + ", ".join(f"{f.local_path} -> {f.remote_name}" for f in self.folders)
        )

        try:
            result = self.engine.sync_all(self.folders, self._on_progress)
            self.channel.broadcast(Done(result.to_dict()))
            logger.info(
                f"Backup complete: {result.uploaded} uploaded, "
                f"{result.skipped} unchanged, {result.failed} failed"
            )
            self.scheduler.schedule_next(self.interval)
            return result
        except Exception as e:
            logger.exception("Backup failed")
            self.channel.broadcast(Error(str(e)))
            return None
        finally:
            self._working.clear()
            self.scheduler.mark_finished()

    def stop_backup(self) -> None:
        """Cancel the next scheduled run; a run in progress continues."""
        self.scheduler.cancel()

    def on_event(self, event: Event) -> None:
        """React to an event received on the channel."""
        if isinstance(event, TriggerBackup):
            logger.debug("Received triggerBackup")
            if not self.is_working:
                self.start_backup()

    def run_forever(self, port: Port, stop: Optional[threading.Event] = None) -> None:
        """Process events from ``port`` until ``stop`` is set or the port closes.

        Args:
            port: Port this controller listens on
            stop: Event that ends the loop when set
        """
        stop = stop or threading.Event()
        while not stop.is_set() and not port.closed:
            event = port.get(timeout=0.5)
            if event is not None:
                self.on_event(event)
