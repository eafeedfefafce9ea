"""Commands and events exchanged with the background scheduler.

Commands are sent by observers to the scheduler (tagged by ``cmd``), events
are sent by the scheduler and the backup controller to observers (tagged by
``type``). Both are closed sets of frozen dataclasses that convert to and
from plain dictionaries.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, ClassVar, Union

from .exceptions import BackupBoxMessageError

# =========================
# Commands
# =========================


def _paths(data: dict) -> tuple[Path, ...]:
    raw = data.get("dirHandles")
    if raw is None:
        return ()
    if not isinstance(raw, (list, tuple)):
        raise BackupBoxMessageError("dirHandles must be a list of paths")
    return tuple(Path(p) for p in raw)


@dataclass(frozen=True)
class ScheduleNextBackup:
    """Arm the timer for the next backup run."""

    TAG: ClassVar[str] = "scheduleNextBackup"

    delay_ms: int

    def to_dict(self) -> dict:
        return {"cmd": self.TAG, "delayMs": self.delay_ms}

    @classmethod
    def from_dict(cls, data: dict) -> "ScheduleNextBackup":
        try:
            return cls(delay_ms=int(data["delayMs"]))
        except (KeyError, TypeError, ValueError) as e:
            raise BackupBoxMessageError(f"Invalid delayMs in {data!r}") from e


@dataclass(frozen=True)
class StopBackup:
    """Disarm the pending backup timer."""

    TAG: ClassVar[str] = "stopBackup"

    def to_dict(self) -> dict:
        return {"cmd": self.TAG}

    @classmethod
    def from_dict(cls, data: dict) -> "StopBackup":
        return cls()


@dataclass(frozen=True)
class StartWatch:
    """Start periodically counting the files of some directories."""

    TAG: ClassVar[str] = "startWatch"

    dir_paths: tuple[Path, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict:
        return {"cmd": self.TAG, "dirHandles": [str(p) for p in self.dir_paths]}

    @classmethod
    def from_dict(cls, data: dict) -> "StartWatch":
        return cls(dir_paths=_paths(data))


@dataclass(frozen=True)
class StopWatch:
    """Stop the periodic file count."""

    TAG: ClassVar[str] = "stopWatch"

    def to_dict(self) -> dict:
        return {"cmd": self.TAG}

    @classmethod
    def from_dict(cls, data: dict) -> "StopWatch":
        return cls()


@dataclass(frozen=True)
class Count:
    """Count the files of some directories once."""

    TAG: ClassVar[str] = "count"

    dir_paths: tuple[Path, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict:
        return {"cmd": self.TAG, "dirHandles": [str(p) for p in self.dir_paths]}

    @classmethod
    def from_dict(cls, data: dict) -> "Count":
        return cls(dir_paths=_paths(data))


Command = Union[ScheduleNextBackup, StopBackup, StartWatch, StopWatch, Count]

COMMANDS: dict[str, Any] = {
    cls.TAG: cls
    for cls in (ScheduleNextBackup, StopBackup, StartWatch, StopWatch, Count)
}


# =========================
# Events
# =========================


@dataclass(frozen=True)
class TriggerBackup:
    """The backup timer fired; a live observer should start a run."""

    TAG: ClassVar[str] = "triggerBackup"

    def to_dict(self) -> dict:
        return {"type": self.TAG}

    @classmethod
    def from_dict(cls, data: dict) -> "TriggerBackup":
        return cls()


@dataclass(frozen=True)
class Started:
    TAG: ClassVar[str] = "started"

    def to_dict(self) -> dict:
        return {"type": self.TAG}

    @classmethod
    def from_dict(cls, data: dict) -> "Started":
        return cls()


@dataclass(frozen=True)
class Stopped:
    TAG: ClassVar[str] = "stopped"

    def to_dict(self) -> dict:
        return {"type": self.TAG}

    @classmethod
    def from_dict(cls, data: dict) -> "Stopped":
        return cls()


@dataclass(frozen=True)
class Progress:
    """Upload progress within the current batch."""

    TAG: ClassVar[str] = "progress"

    done: int
    total: int
    current_file: str = ""

    def to_dict(self) -> dict:
        return {
            "type": self.TAG,
            "done": self.done,
            "total": self.total,
            "currentFile": self.current_file,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Progress":
        try:
            return cls(
                done=int(data["done"]),
                total=int(data["total"]),
                current_file=data.get("currentFile") or "",
            )
        except (KeyError, TypeError, ValueError) as e:
            raise BackupBoxMessageError(f"Invalid progress event {data!r}") from e


@dataclass(frozen=True)
class Done:
    """A run or a count finished; ``result`` holds its summary."""

    TAG: ClassVar[str] = "done"

    result: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {"type": self.TAG, "result": dict(self.result)}

    @classmethod
    def from_dict(cls, data: dict) -> "Done":
        result = data.get("result") or {}
        if not isinstance(result, dict):
            raise BackupBoxMessageError(f"Invalid done result {result!r}")
        return cls(result=result)


@dataclass(frozen=True)
class Error:
    TAG: ClassVar[str] = "error"

    message: str

    def to_dict(self) -> dict:
        return {"type": self.TAG, "message": self.message}

    @classmethod
    def from_dict(cls, data: dict) -> "Error":
        return cls(message=str(data.get("message", "")))


@dataclass(frozen=True)
class WatchStarted:
    TAG: ClassVar[str] = "watchStarted"

    def to_dict(self) -> dict:
        return {"type": self.TAG}

    @classmethod
    def from_dict(cls, data: dict) -> "WatchStarted":
        return cls()


@dataclass(frozen=True)
class WatchStopped:
    TAG: ClassVar[str] = "watchStopped"

    def to_dict(self) -> dict:
        return {"type": self.TAG}

    @classmethod
    def from_dict(cls, data: dict) -> "WatchStopped":
        return cls()


Event = Union[
    TriggerBackup,
    Started,
    Stopped,
    Progress,
    Done,
    Error,
    WatchStarted,
    WatchStopped,
]

EVENTS: dict[str, Any] = {
    cls.TAG: cls
    for cls in (
        TriggerBackup,
        Started,
        Stopped,
        Progress,
        Done,
        Error,
        WatchStarted,
        WatchStopped,
    )
}


def parse_command(data: Any) -> Command:
    """Decode a command dictionary.

    Raises:
        BackupBoxMessageError: If the tag is unknown or fields are invalid
    """
    if not isinstance(data, dict) or not data.get("cmd"):
        raise BackupBoxMessageError(f"Not a command: {data!r}")
    cls = COMMANDS.get(data["cmd"])
    if cls is None:
        raise BackupBoxMessageError(f"Unknown command: {data['cmd']}")
    command: Command = cls.from_dict(data)
    return command


def parse_event(data: Any) -> Event:
    """Decode an event dictionary.

    Raises:
        BackupBoxMessageError: If the tag is unknown or fields are invalid
    """
    if not isinstance(data, dict) or not data.get("type"):
        raise BackupBoxMessageError(f"Not an event: {data!r}")
    cls = EVENTS.get(data["type"])
    if cls is None:
        raise BackupBoxMessageError(f"Unknown event: {data['type']}")
    event: Event = cls.from_dict(data)
    return event
