"""Domain events for the replay playback loop.

Events flow from the orchestrator through the EventBus to independent
consumers (the browser relay, the chat relay). They are frozen once built and
shared by reference between subscribers.

Each event has a tagged JSON wire form understood by the browser page:

    {"GameCompleted": null}
    {"StartedReplay": [<playable id>, <metadata>]}
    {"Next5Games": [<summary>, ...]}

See `infrastructure/event_bus.py` for the pub/sub mechanism.
"""

import json
from typing import Any, ClassVar, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field


class Event(BaseModel):
    """Base class for all domain events."""

    model_config = ConfigDict(frozen=True)

    wire_tag: ClassVar[str] = ""

    def wire_payload(self) -> Any:
        return None

    def to_wire(self) -> Dict[str, Any]:
        return {self.wire_tag: self.wire_payload()}

    def to_json(self) -> str:
        return json.dumps(self.to_wire())


class ItemSummary(BaseModel):
    """Queue entry as shown in the "coming up next" list."""

    model_config = ConfigDict(frozen=True)

    name: str
    metadata: Optional[Dict[str, Any]] = None


class QueueUpdated(Event):
    """Emitted every cycle after the queue was refilled."""

    wire_tag: ClassVar[str] = "Next5Games"

    items: List[ItemSummary] = Field(default_factory=list)

    def wire_payload(self) -> Any:
        return [item.model_dump() for item in self.items]


class PlaybackStarted(Event):
    """Emitted right before the viewer is launched for the queue head."""

    wire_tag: ClassVar[str] = "StartedReplay"

    playable_id: str
    metadata: Dict[str, Any] = Field(default_factory=dict)

    def wire_payload(self) -> Any:
        return [self.playable_id, self.metadata]


class PlaybackCompleted(Event):
    """Emitted after the viewer exited (on its own or forced) and the file is gone."""

    wire_tag: ClassVar[str] = "GameCompleted"
