"""Sequential upload pipeline for backup batches."""

import base64
import json
import logging
import time
from typing import Callable

from ..api import FleaboxClient
from ..exceptions import BackupBoxError
from ..utils import UPLOAD_DELAY, is_text_type, now_ms
from .models import BatchResult, ProgressCallback, no_progress
from .scanner import LocalFile
from .state import FileMeta, RemoteMetadata

logger = logging.getLogger(__name__)


def encode_upload_body(local_file: LocalFile, content: bytes) -> tuple[str, str]:
    """Encode file content for the data API.

    The data API only accepts text or JSON bodies. Text content is sent as
    is; anything else is base64 encoded inside a JSON envelope.

    Args:
        local_file: File being uploaded
        content: Raw file content

    Returns:
        Tuple of (body, content_type)

    Examples:
        >>> f = LocalFile(Path("/x/a.png"), "a.png", 3, 0, "image/png")
        >>> body, content_type = encode_upload_body(f, b"abc")
        >>> content_type
        'application/json'
        >>> json.loads(body)["data"]
        'YWJj'
    """
    if is_text_type(local_file.mime_type):
        return content.decode("utf-8", errors="replace"), "text/plain"

    envelope = {
        "_binary": True,
        "data": base64.b64encode(content).decode("ascii"),
        "type": local_file.mime_type,
        "name": local_file.path.name,
    }
    return json.dumps(envelope), "application/json"


class UploadPipeline:
    """Uploads files one at a time with a fixed pause between transfers."""

    def __init__(
        self,
        client: FleaboxClient,
        upload_delay: float = UPLOAD_DELAY,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """Initialize upload pipeline.

        Args:
            client: API client for the remote store
            upload_delay: Pause between two consecutive uploads (seconds)
            sleep: Function used to pause
        """
        self.client = client
        self.upload_delay = upload_delay
        self.sleep = sleep

    def upload_file(self, remote_name: str, local_file: LocalFile) -> None:
        """Read, encode and upload a single file.

        Raises:
            BackupBoxError: If the server rejects the transfer
            OSError: If the file can no longer be read
        """
        content = local_file.read_bytes()
        body, content_type = encode_upload_body(local_file, content)
        self.client.upload_file(
            remote_name, local_file.relative_path, body, content_type
        )

    def upload_batch(
        self,
        remote_name: str,
        files: list[LocalFile],
        metadata: RemoteMetadata,
        on_progress: ProgressCallback = no_progress,
    ) -> BatchResult:
        """Upload a batch of files, recording each success in ``metadata``.

        A failed file is counted and left out of ``metadata`` so the next
        run retries it; it never stops the rest of the batch.

        Args:
            remote_name: Remote folder name
            files: Files to upload, in upload order
            metadata: Metadata document, mutated in place
            on_progress: Called as (done, total, path) before each upload

        Returns:
            BatchResult with upload counters
        """
        result = BatchResult()
        total = len(files)

        for index, local_file in enumerate(files):
            path = local_file.relative_path
            on_progress(index, total, path)

            try:
                self.upload_file(remote_name, local_file)
            except (BackupBoxError, OSError, UnicodeError) as e:
                logger.error(f"Failed to upload {path!r}: {e}")
                result.failed += 1
            else:
                metadata.files[path] = FileMeta(
                    size=local_file.size,
                    mtime=local_file.mtime,
                    type=local_file.mime_type,
                    uploaded_at=now_ms(),
                )
                result.uploaded += 1
                result.total_bytes += local_file.size
                logger.debug(f"Uploaded {path} ({local_file.size} bytes)")

            if index < total - 1:
                self.sleep(self.upload_delay)

        return result
