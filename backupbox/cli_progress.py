"""CLI progress display for backup runs.

This module provides a Rich-based progress display that listens to the
events broadcast during a backup run.
"""

from typing import Optional

from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TaskProgressColumn,
    TextColumn,
    TimeElapsedColumn,
)

from .folders import FolderConfig
from .messages import Done, Error, Event
from .messages import Progress as ProgressEvent
from .sync.engine import SyncEngine
from .sync.models import SyncResult


class BackupProgressDisplay:
    """Rich-based progress display for backup runs.

    Use it as a context manager and pass :meth:`handle_event` as a channel
    listener, or :meth:`on_progress` as an engine progress callback.
    """

    def __init__(self) -> None:
        """Initialize the progress display."""
        self._progress: Optional[Progress] = None
        self._upload_task: Optional[TaskID] = None

    def on_progress(self, done: int, total: int, current_file: str) -> None:
        """Engine progress callback."""
        self.handle_event(ProgressEvent(done, total, current_file))

    def handle_event(self, event: Event) -> None:
        """Update the display from a channel event.

        Args:
            event: Event received on the channel
        """
        if self._progress is None or self._upload_task is None:
            return

        if isinstance(event, ProgressEvent):
            self._progress.update(
                self._upload_task,
                description="Uploading",
                total=event.total,
                completed=event.done,
                current_file=event.current_file,
            )
        elif isinstance(event, Done):
            self._progress.update(
                self._upload_task,
                description="Backup complete",
                current_file="",
            )
        elif isinstance(event, Error):
            self._progress.update(
                self._upload_task,
                description="[red]Backup failed",
                current_file=event.message,
            )

    def __enter__(self) -> "BackupProgressDisplay":
        """Enter context manager - start progress display."""
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold blue]{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            TextColumn("[cyan]{task.fields[current_file]}"),
            TimeElapsedColumn(),
            refresh_per_second=4,
        )
        self._progress.__enter__()

        self._upload_task = self._progress.add_task(
            "Scanning folders...",
            total=None,
            current_file="",
        )

        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit context manager - stop progress display."""
        if self._progress is not None:
            self._progress.__exit__(exc_type, exc_val, exc_tb)
            self._progress = None
            self._upload_task = None


def run_backup_with_progress(
    engine: SyncEngine, folders: list[FolderConfig]
) -> SyncResult:
    """Run a backup of all folders with a Rich progress display.

    Args:
        engine: SyncEngine instance
        folders: Folders to back up

    Returns:
        Combined SyncResult
    """
    with BackupProgressDisplay() as display:
        return engine.sync_all(folders, display.on_progress)
