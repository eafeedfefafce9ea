"""Configuration management for BackupBox.

Settings are resolved from environment variables first, then from the
config file at ``~/.config/backupbox/config`` (``KEY=VALUE`` lines), and
finally from built-in defaults.
"""

import logging
import os
from pathlib import Path
from typing import Optional

from .utils import DEFAULT_BACKUP_INTERVAL

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "http://localhost:3000"
DEFAULT_APP_ID = "backupbox"

ENV_API_URL = "BACKUPBOX_API_URL"
ENV_API_TOKEN = "BACKUPBOX_API_TOKEN"
ENV_APP_ID = "BACKUPBOX_APP_ID"
ENV_INTERVAL = "BACKUPBOX_INTERVAL"


class Config:
    """Configuration manager for BackupBox."""

    def __init__(self, config_dir: Optional[Path] = None):
        """Initialize configuration.

        Args:
            config_dir: Directory holding the config file. Defaults to
                ~/.config/backupbox
        """
        self.config_dir = config_dir or Path.home() / ".config" / "backupbox"
        self.config_file = self.config_dir / "config"
        self._file_values = self._load_config_file()

    def _load_config_file(self) -> dict[str, str]:
        """Read KEY=VALUE pairs from the config file.

        Returns:
            Dictionary of values, empty if the file does not exist
        """
        values: dict[str, str] = {}
        if not self.config_file.exists():
            return values

        try:
            with open(self.config_file, encoding="utf-8") as f:
                for line in f:
                    line = line.strip()
                    if not line or line.startswith("#") or "=" not in line:
                        continue
                    key, value = line.split("=", 1)
                    values[key.strip()] = value.strip()
        except OSError as e:
            logger.warning(f"Could not read config file {self.config_file}: {e}")
        return values

    def _get(self, env_name: str) -> Optional[str]:
        return os.environ.get(env_name) or self._file_values.get(env_name)

    @property
    def api_url(self) -> str:
        """Base URL of the remote data API."""
        return (self._get(ENV_API_URL) or DEFAULT_API_URL).rstrip("/")

    @property
    def api_token(self) -> Optional[str]:
        """Optional bearer token sent with every request."""
        return self._get(ENV_API_TOKEN)

    @property
    def app_id(self) -> str:
        """Application id used in the data API path."""
        return self._get(ENV_APP_ID) or DEFAULT_APP_ID

    @property
    def backup_interval(self) -> float:
        """Seconds between two scheduled backup runs."""
        raw = self._get(ENV_INTERVAL)
        if not raw:
            return DEFAULT_BACKUP_INTERVAL
        try:
            return float(raw)
        except ValueError:
            logger.warning(f"Invalid {ENV_INTERVAL} value {raw!r}, using default")
            return DEFAULT_BACKUP_INTERVAL

    @property
    def folders_file(self) -> Path:
        """Location of the persisted folder selection."""
        return self.config_dir / "folders.json"

    def is_configured(self) -> bool:
        """Check whether an API URL was set explicitly."""
        return self._get(ENV_API_URL) is not None

    def get_config_path(self) -> Path:
        """Get the path to the config file."""
        return self.config_file

    def save(self, api_url: str, api_token: Optional[str] = None) -> None:
        """Persist the API URL and token to the config file.

        Args:
            api_url: Base URL of the remote data API
            api_token: Optional bearer token
        """
        self.config_dir.mkdir(parents=True, exist_ok=True)
        self._file_values[ENV_API_URL] = api_url.rstrip("/")
        if api_token:
            self._file_values[ENV_API_TOKEN] = api_token
        else:
            self._file_values.pop(ENV_API_TOKEN, None)

        with open(self.config_file, "w", encoding="utf-8") as f:
            for key, value in self._file_values.items():
                f.write(f"{key}={value}\n")

        # The file may contain a token
        self.config_file.chmod(0o600)


config = Config()
