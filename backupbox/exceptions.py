"""Custom exceptions for BackupBox."""

from typing import Optional


class BackupBoxError(Exception):
    """Base exception for all BackupBox errors."""


class BackupBoxAPIError(BackupBoxError):
    """Raised when a request to the remote store fails."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class BackupBoxAuthenticationError(BackupBoxAPIError):
    """Raised when the remote store rejects the credentials (401)."""


class BackupBoxPermissionError(BackupBoxAPIError):
    """Raised when access to a remote resource is forbidden (403)."""


class BackupBoxNotFoundError(BackupBoxAPIError):
    """Raised when a remote resource does not exist (404)."""


class BackupBoxRateLimitError(BackupBoxAPIError):
    """Raised when the remote store throttles requests (429)."""


class BackupBoxNetworkError(BackupBoxAPIError):
    """Raised on transport-level failures (DNS, connection, timeout)."""


class BackupBoxInvalidResponseError(BackupBoxAPIError):
    """Raised when the remote store returns a body that cannot be parsed."""


class BackupBoxUploadError(BackupBoxAPIError):
    """Raised when a single file transfer fails."""


class BackupBoxConfigError(BackupBoxError):
    """Raised when there is nothing valid to synchronize.

    Covers missing configuration, no folders selected, and folders whose
    local directory is missing or unreadable.
    """


class BackupBoxMessageError(BackupBoxError):
    """Raised when a command or event cannot be decoded."""
