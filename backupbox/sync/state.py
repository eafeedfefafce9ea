"""Remote metadata tracking for incremental backups.

Each remote backup folder carries a ``metadata.json`` document that records
the size and modification time of every file uploaded so far. The document
is fetched fresh at the start of a run, mutated in place while files are
uploaded, and written back once at the end.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from ..api import FleaboxClient
from ..exceptions import BackupBoxError

logger = logging.getLogger(__name__)


@dataclass
class FileMeta:
    """State of one file as it was last uploaded."""

    size: int
    """File size in bytes"""

    mtime: int
    """Modification time at upload (epoch milliseconds)"""

    type: str
    """MIME type the file was uploaded with"""

    uploaded_at: int
    """When the upload finished (epoch milliseconds)"""

    def to_dict(self) -> dict:
        """Convert to the JSON representation."""
        return {
            "size": self.size,
            "mtime": self.mtime,
            "type": self.type,
            "uploadedAt": self.uploaded_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "FileMeta":
        """Create FileMeta from its JSON representation."""
        return cls(
            size=int(data.get("size", 0)),
            mtime=int(data.get("mtime", 0)),
            type=data.get("type", ""),
            uploaded_at=int(data.get("uploadedAt", 0)),
        )


@dataclass
class RemoteMetadata:
    """Last known remote state of one backup folder."""

    files: dict[str, FileMeta] = field(default_factory=dict)
    """Uploaded files keyed by relative path"""

    last_backup: Optional[int] = None
    """Epoch milliseconds of the last completed run"""

    total_files: int = 0
    """Number of entries in ``files`` at last save"""

    total_bytes: int = 0
    """Sum of the sizes in ``files`` at last save"""

    def recompute_totals(self) -> None:
        """Derive ``total_files`` and ``total_bytes`` from ``files``."""
        self.total_files = len(self.files)
        self.total_bytes = sum(meta.size for meta in self.files.values())

    def to_dict(self) -> dict:
        """Convert metadata to dictionary for JSON serialization."""
        return {
            "files": {path: meta.to_dict() for path, meta in self.files.items()},
            "lastBackup": self.last_backup,
            "totalFiles": self.total_files,
            "totalBytes": self.total_bytes,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "RemoteMetadata":
        """Create RemoteMetadata from dictionary.

        Raises:
            TypeError: If ``files`` is not a JSON object
            ValueError: If a numeric field cannot be converted
        """
        raw_files = data.get("files") or {}
        if not isinstance(raw_files, dict):
            raise TypeError(f"files must be an object, got {type(raw_files).__name__}")
        files = {
            path: FileMeta.from_dict(meta)
            for path, meta in raw_files.items()
            if isinstance(meta, dict)
        }
        return cls(
            files=files,
            last_backup=data.get("lastBackup"),
            total_files=int(data.get("totalFiles", len(files))),
            total_bytes=int(data.get("totalBytes", 0)),
        )


class MetadataStore:
    """Reads and writes the metadata document of remote backup folders."""

    def __init__(self, client: FleaboxClient):
        """Initialize metadata store.

        Args:
            client: API client for the remote store
        """
        self.client = client

    def load(self, remote_name: str) -> RemoteMetadata:
        """Fetch metadata for a remote folder.

        A missing document or an unreachable server yields a fresh empty
        document; loading never fails.

        Args:
            remote_name: Remote folder name

        Returns:
            RemoteMetadata instance
        """
        try:
            data = self.client.get_metadata(remote_name)
        except BackupBoxError as e:
            logger.info(f"No usable metadata for {remote_name} ({e}), starting fresh")
            return RemoteMetadata()

        try:
            metadata = RemoteMetadata.from_dict(data)
        except (TypeError, ValueError) as e:
            logger.warning(f"Malformed metadata for {remote_name}: {e}")
            return RemoteMetadata()

        logger.debug(
            f"Loaded metadata for {remote_name} with {len(metadata.files)} files "
            f"(last backup: {metadata.last_backup})"
        )
        return metadata

    def save(self, remote_name: str, metadata: RemoteMetadata) -> None:
        """Store metadata for a remote folder.

        Args:
            remote_name: Remote folder name
            metadata: Metadata to save

        Raises:
            BackupBoxAPIError: If the server rejects the document
        """
        self.client.put_metadata(remote_name, metadata.to_dict())
        logger.debug(
            f"Saved metadata for {remote_name} with {metadata.total_files} files"
        )
