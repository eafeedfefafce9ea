"""Result types returned by the backup engine."""

from dataclasses import dataclass
from typing import Callable

ProgressCallback = Callable[[int, int, str], None]
"""Called as ``(done_so_far, batch_total, current_path)`` before each upload."""


def no_progress(done: int, total: int, current_path: str) -> None:
    """Progress callback that ignores all updates."""


@dataclass
class BatchResult:
    """Outcome of one upload batch."""

    uploaded: int = 0
    failed: int = 0
    total_bytes: int = 0
    """Bytes transferred by this batch"""


@dataclass
class SyncResult:
    """Outcome of synchronizing one folder, or several folders combined.

    ``uploaded``, ``skipped`` and ``failed`` describe this run only, while
    ``total_files`` and ``total_bytes`` describe what the remote side holds
    after the run.
    """

    uploaded: int = 0
    skipped: int = 0
    failed: int = 0
    total_bytes: int = 0
    total_files: int = 0

    def add(self, other: "SyncResult") -> None:
        """Accumulate another result into this one."""
        self.uploaded += other.uploaded
        self.skipped += other.skipped
        self.failed += other.failed
        self.total_bytes += other.total_bytes
        self.total_files += other.total_files

    def to_dict(self) -> dict:
        """Convert to the JSON representation used in events."""
        return {
            "uploaded": self.uploaded,
            "skipped": self.skipped,
            "failed": self.failed,
            "totalBytes": self.total_bytes,
            "totalFiles": self.total_files,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SyncResult":
        """Create SyncResult from its JSON representation."""
        return cls(
            uploaded=data.get("uploaded", 0),
            skipped=data.get("skipped", 0),
            failed=data.get("failed", 0),
            total_bytes=data.get("totalBytes", 0),
            total_files=data.get("totalFiles", 0),
        )
