import base64
import binascii
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Union
from pydantic import BaseModel


class ItemState(str, Enum):
    QUEUED = "QUEUED"
    RESOLVED = "RESOLVED"
    PLAYING = "PLAYING"


class QueueItem(BaseModel):
    path: Path
    display_name: str
    metadata: Optional[Dict[str, Any]] = None
    state: ItemState = ItemState.QUEUED
    failures: int = 0

    @classmethod
    def from_path(cls, path: Path) -> "QueueItem":
        return cls(path=path, display_name=path.name)


class QueueFullError(Exception):
    pass


class ReplayQueue:
    """Ordered, fixed-capacity queue of replays. Head is playing or next to play.

    Paths are unique: appending an already queued path is rejected.
    """

    def __init__(self, capacity: int = 5):
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self.capacity = capacity
        self._items: List[QueueItem] = []

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[QueueItem]:
        return iter(list(self._items))

    def __contains__(self, path: object) -> bool:
        return any(item.path == path for item in self._items)

    @property
    def free_slots(self) -> int:
        return self.capacity - len(self._items)

    @property
    def head(self) -> Optional[QueueItem]:
        return self._items[0] if self._items else None

    def paths(self) -> List[Path]:
        return [item.path for item in self._items]

    def append(self, item: QueueItem) -> None:
        if item.path in self:
            raise ValueError(f"{item.path} is already queued")
        if self.free_slots <= 0:
            raise QueueFullError(f"queue is full ({self.capacity} items)")
        self._items.append(item)

    def pop_head(self) -> QueueItem:
        if not self._items:
            raise IndexError("pop from empty queue")
        return self._items.pop(0)

    def remove(self, path: Path) -> Optional[QueueItem]:
        for idx, item in enumerate(self._items):
            if item.path == path:
                return self._items.pop(idx)
        return None


class PlayableNameError(ValueError):
    """Filename is neither a recording nor a decodable identifier."""


@dataclass(frozen=True)
class DirectPath:
    """A recording stored under its own name."""
    path: Path

    @property
    def display_name(self) -> str:
        return self.path.name


@dataclass(frozen=True)
class EncodedIdentifier:
    """A recording stored under a base64-encoded identifier (URL-safe alphabet, padding optional)."""
    path: Path
    raw: bytes

    @property
    def display_name(self) -> str:
        return self.raw.decode("utf-8")


PlayableName = Union[DirectPath, EncodedIdentifier]


def parse_playable_name(path: Path, recording_extension: str) -> PlayableName:
    """Classify a queued file by its name.

    Names ending in the recording extension are played as they are. Any other
    name must be a base64 token; it decodes to the identifier published to
    subscribers.
    """
    name = path.name
    if name.lower().endswith(recording_extension.lower()):
        return DirectPath(path)

    token = name.replace("+", "-")
    token += "=" * (-len(token) % 4)
    try:
        raw = base64.b64decode(token.encode("ascii"), altchars=b"-_", validate=True)
        raw.decode("utf-8")
    except (binascii.Error, UnicodeError) as e:
        raise PlayableNameError(f"{name!r} is not a {recording_extension} file nor a base64 identifier") from e
    if not raw.strip():
        raise PlayableNameError(f"{name!r} decodes to an empty identifier")
    return EncodedIdentifier(path, raw)
