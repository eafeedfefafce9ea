"""BackupBox - incremental folder backups to a Fleabox server."""

from .api import FleaboxClient
from .exceptions import (
    BackupBoxAPIError,
    BackupBoxAuthenticationError,
    BackupBoxConfigError,
    BackupBoxError,
    BackupBoxInvalidResponseError,
    BackupBoxMessageError,
    BackupBoxNetworkError,
    BackupBoxNotFoundError,
    BackupBoxPermissionError,
    BackupBoxRateLimitError,
    BackupBoxUploadError,
)
from .utils import format_size, sanitize_remote_name

__all__ = [
    "FleaboxClient",
    "BackupBoxError",
    "BackupBoxAPIError",
    "BackupBoxAuthenticationError",
    "BackupBoxConfigError",
    "BackupBoxInvalidResponseError",
    "BackupBoxMessageError",
    "BackupBoxNetworkError",
    "BackupBoxNotFoundError",
    "BackupBoxPermissionError",
    "BackupBoxRateLimitError",
    "BackupBoxUploadError",
    "format_size",
    "sanitize_remote_name",
]
