"""Core backup engine: folder synchronization and multi-folder orchestration."""

import logging
import time
from pathlib import Path
from typing import Callable, Optional

from ..api import FleaboxClient
from ..exceptions import BackupBoxConfigError, BackupBoxError
from ..folders import FolderConfig
from ..utils import MAX_FILE_SIZE, UPLOAD_DELAY, now_ms
from .comparator import filter_needing_upload
from .models import ProgressCallback, SyncResult, no_progress
from .operations import UploadPipeline
from .scanner import DirectoryScanner
from .state import MetadataStore

logger = logging.getLogger(__name__)


class SyncEngine:
    """Core backup engine that mirrors local folders to the remote store."""

    def __init__(
        self,
        client: FleaboxClient,
        scanner: Optional[DirectoryScanner] = None,
        upload_delay: float = UPLOAD_DELAY,
        max_file_size: int = MAX_FILE_SIZE,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """Initialize backup engine.

        Args:
            client: API client for the remote store
            scanner: Directory scanner (a default one is created if omitted)
            upload_delay: Pause between two consecutive uploads (seconds)
            max_file_size: Largest file size (bytes) eligible for upload
            sleep: Function used for the pause between uploads
        """
        self.client = client
        self.scanner = scanner or DirectoryScanner()
        self.metadata_store = MetadataStore(client)
        self.pipeline = UploadPipeline(client, upload_delay=upload_delay, sleep=sleep)
        self.max_file_size = max_file_size

    def sync_folder(
        self,
        local_path: Path,
        remote_name: str,
        on_progress: ProgressCallback = no_progress,
    ) -> SyncResult:
        """Back up one local folder.

        Args:
            local_path: Local directory to back up
            remote_name: Remote folder name
            on_progress: Called as (done, total, path) before each upload

        Returns:
            SyncResult for this folder

        Raises:
            BackupBoxConfigError: If the local directory does not exist

        Examples:
            >>> engine = SyncEngine(client)
            >>> result = engine.sync_folder(Path("/home/user/notes"), "notes")
            >>> print(f"Uploaded {result.uploaded} files")
        """
        if not local_path.is_dir():
            raise BackupBoxConfigError(f"Local directory does not exist: {local_path}")

        logger.info(f"Starting backup of {local_path} -> {remote_name}")
        start_time = time.time()

        # Step 1: Load what the remote side already has
        metadata = self.metadata_store.load(remote_name)

        # Step 2: Scan local files
        all_files = self.scanner.scan_local(local_path)
        logger.debug(f"Found {len(all_files)} local files in {local_path}")

        # Step 3: Determine new and modified files
        to_upload = filter_needing_upload(all_files, metadata, self.max_file_size)
        logger.debug(f"{len(to_upload)} files need upload")

        # Step 4: Upload one by one
        batch = self.pipeline.upload_batch(
            remote_name, to_upload, metadata, on_progress
        )

        # Step 5: Refresh the summary fields
        metadata.last_backup = now_ms()
        metadata.recompute_totals()

        # Step 6: Save; the uploads stand even if this fails
        try:
            self.metadata_store.save(remote_name, metadata)
        except BackupBoxError as e:
            logger.error(f"Failed to save metadata for {remote_name}: {e}")

        logger.info(
            f"Backup of {remote_name} finished in {time.time() - start_time:.2f}s: "
            f"{batch.uploaded} uploaded ({batch.total_bytes} bytes), "
            f"{batch.failed} failed"
        )

        return SyncResult(
            uploaded=batch.uploaded,
            skipped=len(all_files) - len(to_upload),
            failed=batch.failed,
            total_bytes=metadata.total_bytes,
            total_files=metadata.total_files,
        )

    def sync_all(
        self,
        folders: list[FolderConfig],
        on_progress: ProgressCallback = no_progress,
    ) -> SyncResult:
        """Back up several folders one after another.

        A folder that fails as a whole counts as a single failure and does
        not stop the remaining folders. ``total_files`` and ``total_bytes``
        are summed over the folders that completed.

        Args:
            folders: Folders in the order they should be processed
            on_progress: Called as (done, total, path) before each upload

        Returns:
            Combined SyncResult
        """
        results = SyncResult()

        for folder in folders:
            try:
                result = self.sync_folder(
                    folder.local_path, folder.remote_name, on_progress
                )
            except Exception as e:
                logger.error(f"Failed to back up {folder.remote_name}: {e}")
                results.failed += 1
                continue
            results.add(result)

        return results
