"""Persisted selection of folders to back up."""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .config import config
from .exceptions import BackupBoxConfigError
from .utils import sanitize_remote_name

logger = logging.getLogger(__name__)

STORAGE_KEY = "folderConfigs"


@dataclass
class FolderConfig:
    """A local directory and the remote folder it is backed up to."""

    local_path: Path
    """Local directory to back up"""

    remote_name: str
    """Name of the remote backup folder"""

    def to_dict(self) -> dict:
        return {"localPath": str(self.local_path), "remoteName": self.remote_name}

    @classmethod
    def from_dict(cls, data: dict) -> "FolderConfig":
        return cls(local_path=Path(data["localPath"]), remote_name=data["remoteName"])


class FolderConfigStore:
    """Ordered list of FolderConfig entries stored as JSON.

    The list is read once at construction and rewritten after every
    add or remove.
    """

    def __init__(self, path: Optional[Path] = None):
        """Initialize folder store.

        Args:
            path: JSON file to use. Defaults to ~/.config/backupbox/folders.json
        """
        self.path = path or config.folders_file
        self.folders: list[FolderConfig] = self._load()

    def _load(self) -> list[FolderConfig]:
        if not self.path.exists():
            return []

        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
            folders = [FolderConfig.from_dict(item) for item in data[STORAGE_KEY]]
        except (OSError, json.JSONDecodeError, KeyError, TypeError) as e:
            logger.warning(f"Failed to load folder selection from {self.path}: {e}")
            return []

        logger.debug(f"Restored {len(folders)} folders from {self.path}")
        return folders

    def save(self) -> None:
        """Write the folder list to disk."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(
                {STORAGE_KEY: [folder.to_dict() for folder in self.folders]},
                f,
                indent=2,
            )

    def get(self, remote_name: str) -> Optional[FolderConfig]:
        """Find a folder by its remote name."""
        for folder in self.folders:
            if folder.remote_name == remote_name:
                return folder
        return None

    def add(self, local_path: Path, remote_name: Optional[str] = None) -> FolderConfig:
        """Add a folder to the selection.

        Args:
            local_path: Local directory to back up
            remote_name: Remote folder name (defaults to the directory name)

        Returns:
            The stored FolderConfig

        Raises:
            BackupBoxConfigError: If the directory is missing, already
                selected, or the remote name is empty or in use
        """
        local_path = local_path.expanduser().resolve()
        if not local_path.is_dir():
            raise BackupBoxConfigError(f"Not a directory: {local_path}")

        if any(folder.local_path == local_path for folder in self.folders):
            raise BackupBoxConfigError(f'Folder "{local_path}" is already in the list.')

        name = sanitize_remote_name(remote_name or local_path.name)
        if not name:
            raise BackupBoxConfigError("Remote name must not be empty.")
        if self.get(name) is not None:
            raise BackupBoxConfigError(
                f'Remote name "{name}" is already in use. '
                "Please choose a different name."
            )

        folder = FolderConfig(local_path=local_path, remote_name=name)
        self.folders.append(folder)
        self.save()
        logger.info(f"Added folder: {local_path} -> {name}")
        return folder

    def remove(self, remote_name: str) -> FolderConfig:
        """Remove a folder from the selection.

        Raises:
            BackupBoxConfigError: If no folder uses this remote name
        """
        folder = self.get(remote_name)
        if folder is None:
            raise BackupBoxConfigError(f'No folder with remote name "{remote_name}".')
        self.folders.remove(folder)
        self.save()
        logger.info(f"Removed: {folder.local_path} ({remote_name})")
        return folder
