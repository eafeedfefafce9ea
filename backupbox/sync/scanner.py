"""Directory scanning utilities for backup operations."""

import logging
import mimetypes
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable, Optional

from ..utils import DEFAULT_MAX_DEPTH

logger = logging.getLogger(__name__)

DEFAULT_MIME_TYPE = "application/octet-stream"

PermissionHandler = Callable[[Path], bool]
"""Called once for an unreadable directory; returns True if access was granted."""


def detect_mime_type(file_path: Path) -> str:
    """Guess the MIME type of a file from its name.

    Args:
        file_path: Path to the file

    Returns:
        MIME type string (defaults to 'application/octet-stream')
    """
    mime_type, _ = mimetypes.guess_type(file_path.name)
    return mime_type or DEFAULT_MIME_TYPE


def _is_encodable(relative_path: str) -> bool:
    # Undecodable bytes in names come back as lone surrogates
    try:
        relative_path.encode("utf-8")
    except UnicodeEncodeError:
        return False
    return True


@dataclass
class LocalFile:
    """Represents a local file with metadata."""

    path: Path
    """Absolute path to the file, used to read its content"""

    relative_path: str
    """Relative path (using forward slashes for cross-platform compatibility)"""

    size: int
    """File size in bytes"""

    mtime: int
    """Last modification time (epoch milliseconds)"""

    mime_type: str = DEFAULT_MIME_TYPE
    """MIME type guessed from the file name"""

    @classmethod
    def from_path(cls, file_path: Path, base_path: Path) -> "LocalFile":
        """Create LocalFile from a path.

        Args:
            file_path: Absolute path to the file
            base_path: Base path for calculating relative paths

        Returns:
            LocalFile instance

        Raises:
            OSError: If the file vanished or cannot be stat'ed
        """
        stat = file_path.stat()
        # Use as_posix() to ensure forward slashes on all platforms
        relative_path = file_path.relative_to(base_path).as_posix()

        return cls(
            path=file_path,
            relative_path=relative_path,
            size=stat.st_size,
            mtime=stat.st_mtime_ns // 1_000_000,
            mime_type=detect_mime_type(file_path),
        )

    def read_bytes(self) -> bytes:
        """Read the file content."""
        return self.path.read_bytes()


class DirectoryScanner:
    """Scans directories and builds file lists.

    Unreadable directories are skipped instead of aborting the scan. When a
    ``permission_handler`` is given it gets one chance per directory to
    restore access (for example by asking the user) before the subtree is
    given up.

    Examples:
        >>> scanner = DirectoryScanner()
        >>> files = scanner.scan_local(Path("/backup/folder"))
        >>> count = scanner.count_all([Path("/a"), Path("/b")])
    """

    def __init__(
        self,
        permission_handler: Optional[PermissionHandler] = None,
        max_depth: int = DEFAULT_MAX_DEPTH,
    ):
        """Initialize directory scanner.

        Args:
            permission_handler: Optional callback asked to grant read access
                to a directory that is not readable
            max_depth: Deepest directory level to descend into
        """
        self.permission_handler = permission_handler
        self.max_depth = max_depth

    def ensure_readable(self, directory: Path) -> bool:
        """Check read access to a directory, requesting it once if missing.

        Args:
            directory: Directory to check

        Returns:
            True if the directory can be listed
        """
        if os.access(directory, os.R_OK | os.X_OK):
            return True

        if self.permission_handler is not None:
            try:
                granted = self.permission_handler(directory)
            except Exception as e:
                logger.warning(f"Permission request failed for {directory}: {e}")
                granted = False
            if granted and os.access(directory, os.R_OK | os.X_OK):
                return True

        logger.warning(f"Permission denied, skipping directory: {directory}")
        return False

    def scan_local(
        self, directory: Path, base_path: Optional[Path] = None, depth: int = 0
    ) -> list[LocalFile]:
        """Recursively scan a local directory.

        Directories are visited depth-first in pre-order. Within a directory
        files come in the order the filesystem lists them.

        Args:
            directory: Directory to scan
            base_path: Base path for calculating relative paths (defaults to directory)
            depth: Current recursion depth

        Returns:
            List of LocalFile objects

        Examples:
            >>> scanner = DirectoryScanner()
            >>> files = scanner.scan_local(Path("/home/user/documents"))
            >>> for f in files:
            ...     print(f.relative_path)
        """
        if base_path is None:
            base_path = directory

        files: list[LocalFile] = []

        if depth > self.max_depth:
            logger.warning(f"Maximum depth {self.max_depth} reached at {directory}")
            return files

        if not self.ensure_readable(directory):
            return files

        try:
            with os.scandir(directory) as it:
                entries = list(it)
        except OSError as e:
            logger.warning(f"Cannot list directory {directory}: {e}")
            return files

        for entry in entries:
            item = Path(entry.path)
            try:
                if entry.is_file():
                    local_file = LocalFile.from_path(item, base_path)
                    if not _is_encodable(local_file.relative_path):
                        logger.warning(f"Skipping {item!r}: name is not valid UTF-8")
                        continue
                    files.append(local_file)
                elif entry.is_dir(follow_symlinks=False):
                    files.extend(self.scan_local(item, base_path, depth + 1))
            except OSError as e:
                # Skip entries that vanished or can't be read
                logger.warning(f"Skipping {item}: {e}")
                continue

        return files

    def count_local(self, directory: Path) -> int:
        """Count the files below a directory.

        Args:
            directory: Directory to count

        Returns:
            Number of readable files in the tree
        """
        return len(self.scan_local(directory))

    def count_all(self, directories: Iterable[Path]) -> int:
        """Count the files below several directories.

        Args:
            directories: Directories to count

        Returns:
            Total number of readable files
        """
        return sum(self.count_local(directory) for directory in directories)
