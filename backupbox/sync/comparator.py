"""File comparison logic for incremental backups."""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ..utils import MAX_FILE_SIZE, METADATA_FILE_NAME
from .scanner import LocalFile
from .state import FileMeta, RemoteMetadata

logger = logging.getLogger(__name__)


class SyncAction(str, Enum):
    """Actions that can be taken for a local file."""

    UPLOAD = "upload"
    """Upload local file to remote"""

    SKIP = "skip"
    """Skip file (unchanged since last upload)"""

    TOO_LARGE = "too_large"
    """File exceeds the upload size limit"""

    RESERVED = "reserved"
    """Path collides with the folder's metadata document"""


@dataclass
class SyncDecision:
    """Represents a decision about how to handle a file."""

    action: SyncAction
    """Action to take"""

    reason: str
    """Human-readable reason for this decision"""

    local_file: LocalFile
    """Local file the decision is about"""

    remote_meta: Optional[FileMeta]
    """Metadata of the last upload (if any)"""

    relative_path: str
    """Relative path of the file"""


class FileComparator:
    """Compares local files against remote metadata.

    Change detection is by modification time only: a file is uploaded when
    it is unknown remotely or its mtime is strictly greater than the one
    recorded at its last upload.
    """

    def __init__(self, max_file_size: int = MAX_FILE_SIZE):
        """Initialize file comparator.

        Args:
            max_file_size: Largest file size (bytes) eligible for upload
        """
        self.max_file_size = max_file_size

    def compare(
        self, local_files: list[LocalFile], metadata: RemoteMetadata
    ) -> list[SyncDecision]:
        """Decide for each local file whether it needs uploading.

        Args:
            local_files: Files in walk order
            metadata: Remote metadata of the target folder

        Returns:
            One SyncDecision per file, in the same order
        """
        return [self._compare_single_file(f, metadata) for f in local_files]

    def _compare_single_file(
        self, local_file: LocalFile, metadata: RemoteMetadata
    ) -> SyncDecision:
        path = local_file.relative_path
        existing = metadata.files.get(path)

        if path == METADATA_FILE_NAME:
            return SyncDecision(
                action=SyncAction.RESERVED,
                reason="Name is reserved for the backup metadata",
                local_file=local_file,
                remote_meta=existing,
                relative_path=path,
            )

        if local_file.size > self.max_file_size:
            return SyncDecision(
                action=SyncAction.TOO_LARGE,
                reason=(
                    f"Exceeds {self.max_file_size} byte limit "
                    f"({local_file.size} bytes)"
                ),
                local_file=local_file,
                remote_meta=existing,
                relative_path=path,
            )

        if existing is None:
            return SyncDecision(
                action=SyncAction.UPLOAD,
                reason="New local file",
                local_file=local_file,
                remote_meta=None,
                relative_path=path,
            )

        if local_file.mtime > existing.mtime:
            return SyncDecision(
                action=SyncAction.UPLOAD,
                reason=(
                    f"Modified (local: {local_file.mtime}, remote: {existing.mtime})"
                ),
                local_file=local_file,
                remote_meta=existing,
                relative_path=path,
            )

        return SyncDecision(
            action=SyncAction.SKIP,
            reason="Unchanged",
            local_file=local_file,
            remote_meta=existing,
            relative_path=path,
        )


def filter_needing_upload(
    local_files: list[LocalFile],
    metadata: RemoteMetadata,
    max_file_size: int = MAX_FILE_SIZE,
) -> list[LocalFile]:
    """Select the files that are new or modified since their last upload.

    Files over the size limit and a root-level file named like the metadata
    document are dropped. The result keeps walk order,
    which is the order files get uploaded in.

    Args:
        local_files: Files in walk order
        metadata: Remote metadata of the target folder
        max_file_size: Largest file size (bytes) eligible for upload

    Returns:
        Files to upload
    """
    comparator = FileComparator(max_file_size=max_file_size)
    to_upload: list[LocalFile] = []
    unchanged = 0

    for decision in comparator.compare(local_files, metadata):
        if decision.action == SyncAction.UPLOAD:
            logger.debug(f"{decision.relative_path} - {decision.reason}")
            to_upload.append(decision.local_file)
        elif decision.action in (SyncAction.TOO_LARGE, SyncAction.RESERVED):
            logger.warning(f"Skipping {decision.relative_path} - {decision.reason}")
        else:
            unchanged += 1

    logger.debug(
        f"Filtering complete: {len(to_upload)} need upload, {unchanged} unchanged"
    )
    return to_upload
