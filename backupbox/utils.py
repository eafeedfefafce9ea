"""Utility functions and constants for BackupBox."""

import re
import time
from urllib.parse import quote

# =============================================================================
# Constants for backup operations
# =============================================================================

# Largest file the remote store accepts (10 MiB)
MAX_FILE_SIZE: int = 10 * 1024 * 1024

# Pause between two consecutive uploads (seconds)
UPLOAD_DELAY: float = 1.0

# Delay before the next scheduled backup run (seconds)
DEFAULT_BACKUP_INTERVAL: float = 5 * 60

# Period of the background file-count watch (seconds)
WATCH_INTERVAL: float = 30.0

# Deepest directory level the scanner descends into
DEFAULT_MAX_DEPTH: int = 64

# Name of the per-folder metadata document, reserved at the folder root
METADATA_FILE_NAME = "metadata.json"

# Retry configuration for transient errors
DEFAULT_MAX_RETRIES: int = 3
DEFAULT_RETRY_DELAY: float = 1.0  # seconds

TEXT_MIME_TYPES = frozenset({"application/json", "application/javascript"})

_INVALID_REMOTE_CHARS = re.compile(r'[/\\:*?"<>|]')


# =============================================================================
# Time utilities
# =============================================================================


def now_ms() -> int:
    """Return the current time as integer epoch milliseconds."""
    return int(time.time() * 1000)


# =============================================================================
# Path and name utilities
# =============================================================================


def encode_remote_path(relative_path: str) -> str:
    """Percent-escape every segment of a relative path independently.

    Args:
        relative_path: Posix-style relative path (e.g. "docs/a b.txt")

    Returns:
        Escaped path that keeps the "/" separators

    Examples:
        >>> encode_remote_path("docs/a b.txt")
        'docs/a%20b.txt'
        >>> encode_remote_path("x#1/y?.md")
        'x%231/y%3F.md'
    """
    return "/".join(quote(segment, safe="") for segment in relative_path.split("/"))


def sanitize_remote_name(name: str) -> str:
    """Make a user supplied remote folder name safe for the data API.

    Surrounding whitespace is trimmed and path or wildcard characters are
    replaced with underscores.

    Examples:
        >>> sanitize_remote_name("  Photos/2024 ")
        'Photos_2024'
        >>> sanitize_remote_name('a:b*c?d')
        'a_b_c_d'
    """
    return _INVALID_REMOTE_CHARS.sub("_", name.strip())


def is_text_type(mime_type: str) -> bool:
    """Check whether content of this MIME type is sent as raw text."""
    return mime_type.startswith("text/") or mime_type in TEXT_MIME_TYPES


# =============================================================================
# Size formatting utilities
# =============================================================================


def format_size(size_bytes: int) -> str:
    """Format file size in human-readable format.

    Args:
        size_bytes: Size in bytes

    Returns:
        Formatted size string (e.g., "1.5 MB", "256 B")
    """
    if size_bytes < 1024:
        return f"{size_bytes} B"
    elif size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"
    elif size_bytes < 1024 * 1024 * 1024:
        return f"{size_bytes / 1024 / 1024:.1f} MB"
    else:
        return f"{size_bytes / 1024 / 1024 / 1024:.1f} GB"
