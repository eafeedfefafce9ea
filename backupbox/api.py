"""API client for the Fleabox data store used by BackupBox."""

from __future__ import annotations

import random
import time
from typing import Any
from urllib.parse import quote

import httpx

from .config import config
from .exceptions import (
    BackupBoxAPIError,
    BackupBoxAuthenticationError,
    BackupBoxInvalidResponseError,
    BackupBoxNetworkError,
    BackupBoxNotFoundError,
    BackupBoxPermissionError,
    BackupBoxRateLimitError,
    BackupBoxUploadError,
)
from .utils import (
    DEFAULT_MAX_RETRIES,
    DEFAULT_RETRY_DELAY,
    METADATA_FILE_NAME,
    encode_remote_path,
)


class FleaboxClient:
    """Client for the per-app data API of a Fleabox server.

    Every backed-up folder lives under
    ``/api/{app_id}/data/backups/{remote_name}/``, next to a
    ``metadata.json`` document describing what was uploaded.
    """

    def __init__(
        self,
        api_url: str | None = None,
        api_token: str | None = None,
        app_id: str | None = None,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_delay: float = DEFAULT_RETRY_DELAY,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ):
        """Initialize the API client.

        Args:
            api_url: Base URL of the server (uses config if not provided)
            api_token: Optional bearer token (uses config if not provided)
            app_id: Application id in the data path (uses config if not provided)
            max_retries: Maximum number of retry attempts (default: 3)
            retry_delay: Initial delay between retries in seconds (default: 1.0)
            timeout: Request timeout in seconds (default: 30.0)
            transport: Optional httpx transport, mainly for tests
        """
        self.api_url = (api_url or config.api_url).rstrip("/")
        self.api_token = api_token if api_token is not None else config.api_token
        self.app_id = app_id or config.app_id
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.timeout = timeout
        self._transport = transport

        self._client: httpx.Client | None = None

    def _get_client(self) -> httpx.Client:
        """Get or create the httpx client."""
        if self._client is None or self._client.is_closed:
            headers = {}
            if self.api_token:
                headers["Authorization"] = f"Bearer {self.api_token}"
            self._client = httpx.Client(
                headers=headers,
                timeout=httpx.Timeout(self.timeout),
                follow_redirects=True,
                transport=self._transport,
            )
        return self._client

    def close(self) -> None:
        """Close the client and release connections."""
        if self._client is not None and not self._client.is_closed:
            self._client.close()
            self._client = None

    def __enter__(self) -> FleaboxClient:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def _calculate_retry_delay(self, attempt: int) -> float:
        """Calculate delay before next retry using exponential backoff.

        Args:
            attempt: Current attempt number (0-based)

        Returns:
            Delay in seconds
        """
        base_delay = self.retry_delay * (2**attempt)
        # Add jitter: +/- 25% of base delay
        jitter = base_delay * 0.25 * (2 * random.random() - 1)
        return base_delay + jitter

    def _handle_http_error(
        self, e: httpx.HTTPStatusError, attempt: int
    ) -> tuple[BackupBoxAPIError, bool]:
        """Map an HTTP error to an exception and decide whether to retry.

        Args:
            e: The HTTP error exception
            attempt: Current attempt number

        Returns:
            Tuple of (exception to raise, should_retry)
        """
        status_code = e.response.status_code

        if status_code == 401:
            return (
                BackupBoxAuthenticationError(
                    "Invalid token or unauthorized access", status_code
                ),
                False,
            )
        if status_code == 403:
            return (
                BackupBoxPermissionError(
                    "Access forbidden - check your permissions", status_code
                ),
                False,
            )
        if status_code == 404:
            return BackupBoxNotFoundError("Resource not found", status_code), False
        if status_code == 429:
            error = BackupBoxRateLimitError(
                "Rate limit exceeded - please try again later", status_code
            )
            return error, attempt < self.max_retries

        error_msg = f"API request failed with status {status_code}"
        reason = e.response.reason_phrase
        if reason:
            error_msg = f"{error_msg}: {reason}"
        should_retry = 500 <= status_code < 600 and attempt < self.max_retries
        return BackupBoxAPIError(error_msg, status_code), should_retry

    def _request(self, method: str, endpoint: str, **kwargs: Any) -> httpx.Response:
        """Make an API request with retry logic.

        Args:
            method: HTTP method
            endpoint: API endpoint path
            **kwargs: Additional arguments passed to httpx

        Returns:
            The successful response

        Raises:
            BackupBoxAPIError: If the request fails after all retries
        """
        url = f"{self.api_url}/{endpoint.lstrip('/')}"
        last_exception: BackupBoxAPIError | None = None
        client = self._get_client()

        for attempt in range(self.max_retries + 1):
            try:
                response = client.request(method, url, **kwargs)
                response.raise_for_status()
                return response
            except httpx.HTTPStatusError as e:
                error, should_retry = self._handle_http_error(e, attempt)
                last_exception = error

                if should_retry:
                    # Rate limits may tell us how long to wait
                    retry_after = e.response.headers.get("Retry-After")
                    if isinstance(error, BackupBoxRateLimitError) and (
                        retry_after and retry_after.isdigit()
                    ):
                        delay = float(retry_after)
                    else:
                        delay = self._calculate_retry_delay(attempt)
                    time.sleep(delay)
                    continue
                raise error from e
            except httpx.RequestError as e:
                error = BackupBoxNetworkError(f"Network error: {e}")
                last_exception = error
                if attempt < self.max_retries:
                    time.sleep(self._calculate_retry_delay(attempt))
                    continue
                raise error from e

        # If we get here, we've exhausted all retries
        if last_exception:
            raise last_exception
        raise BackupBoxAPIError("Request failed after all retry attempts")

    # =========================
    # Backup folder operations
    # =========================

    def _backup_path(self, remote_name: str, relative_path: str) -> str:
        """Build the data API path for a file inside a backup folder."""
        return (
            f"/api/{self.app_id}/data/backups/"
            f"{quote(remote_name, safe='')}/{encode_remote_path(relative_path)}"
        )

    def get_metadata(self, remote_name: str) -> dict[str, Any]:
        """Fetch the metadata document of a backup folder.

        Args:
            remote_name: Remote folder name

        Returns:
            Decoded JSON document

        Raises:
            BackupBoxNotFoundError: If no metadata was saved yet
            BackupBoxInvalidResponseError: If the body is not a JSON object
        """
        response = self._request(
            "GET", self._backup_path(remote_name, METADATA_FILE_NAME)
        )
        try:
            data = response.json()
        except ValueError as e:
            raise BackupBoxInvalidResponseError(
                f"Invalid JSON metadata for {remote_name}"
            ) from e
        if not isinstance(data, dict):
            raise BackupBoxInvalidResponseError(
                f"Metadata for {remote_name} is not a JSON object"
            )
        return data

    def put_metadata(self, remote_name: str, metadata: dict[str, Any]) -> None:
        """Store the metadata document of a backup folder.

        Args:
            remote_name: Remote folder name
            metadata: JSON-serializable metadata document
        """
        self._request(
            "PUT",
            self._backup_path(remote_name, METADATA_FILE_NAME),
            json=metadata,
        )

    def upload_file(
        self,
        remote_name: str,
        relative_path: str,
        body: str,
        content_type: str,
    ) -> None:
        """Upload one encoded file body into a backup folder.

        Args:
            remote_name: Remote folder name
            relative_path: Posix-style path of the file inside the folder
            body: Raw text or a JSON binary envelope
            content_type: "text/plain" or "application/json"

        Raises:
            BackupBoxUploadError: If the transfer fails
        """
        try:
            self._request(
                "PUT",
                self._backup_path(remote_name, relative_path),
                content=body.encode("utf-8"),
                headers={"Content-Type": content_type},
            )
        except BackupBoxAPIError as e:
            raise BackupBoxUploadError(
                f"Upload of {relative_path} failed: {e}", e.status_code
            ) from e
