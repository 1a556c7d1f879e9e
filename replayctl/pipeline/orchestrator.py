"""Replay playback loop.

Each cycle scans the watch directory, tops the queue up to capacity, resolves
metadata for the whole queue, then plays the head through the viewer and
deletes it. Lifecycle events go out on the EventBus; consumers never hold the
loop up.

Cycle states: scanning -> selecting -> resolving -> idle | playing -> completing.

The loop is the only writer of the queue and of the watch directory, so no
locking is needed around either.
"""

import logging
import os
import random
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Optional, Set
from urllib.parse import quote

from replayctl.config.models import AppConfig
from replayctl.domain.events import ItemSummary, PlaybackCompleted, PlaybackStarted, QueueUpdated
from replayctl.domain.models import (
    EncodedIdentifier,
    ItemState,
    PlayableNameError,
    QueueItem,
    ReplayQueue,
    parse_playable_name,
)
from replayctl.infrastructure.event_bus import EventBus
from replayctl.infrastructure.file_scanner import DirectoryScanner
from replayctl.infrastructure.viewer import PlaybackResult, ViewerSpawnError, ViewerSupervisor
from replayctl.pipeline.queue_selection import select_new_items
from replayctl.pipeline.resolver import BatchResolutionError, MetadataResolver


class CycleOutcome(str, Enum):
    IDLE = "IDLE"
    RESOLUTION_FAILED = "RESOLUTION_FAILED"
    PREPARE_FAILED = "PREPARE_FAILED"
    SPAWN_FAILED = "SPAWN_FAILED"
    PLAYED = "PLAYED"


@dataclass
class CycleResult:
    outcome: CycleOutcome
    backoff_s: float = 0.0
    item: Optional[QueueItem] = None
    playback: Optional[PlaybackResult] = None


def build_playable_id(base_url: str, name: str) -> str:
    """Identifier published to subscribers for the replay being played."""
    if name.startswith(("http://", "https://")):
        return name
    return f"{base_url}{quote(name)}"


class Orchestrator:
    """Replay playback orchestrator.

    Owns the replay queue and drives one playback at a time. Items that keep
    failing (metadata or name decoding) are dropped from the queue after
    `loop.max_item_failures` attempts and ignored for the rest of the run;
    their files stay on disk for inspection.

    Args:
        config: AppConfig with watch, loop and base_url settings.
        event_bus: EventBus the lifecycle events are published on.
        scanner: DirectoryScanner over the watch directory.
        resolver: MetadataResolver for the queued replays.
        viewer: ViewerSupervisor that plays one replay.
        rng: Random source for queue selection (seeded from config when omitted).
        sleep: Called with the backoff in seconds between cycles.
    """

    def __init__(
        self,
        config: AppConfig,
        event_bus: EventBus,
        scanner: DirectoryScanner,
        resolver: MetadataResolver,
        viewer: ViewerSupervisor,
        rng: Optional[random.Random] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.config = config
        self.event_bus = event_bus
        self.scanner = scanner
        self.resolver = resolver
        self.viewer = viewer
        self.rng = rng or random.Random(config.loop.seed)
        self._sleep = sleep
        self.logger = logging.getLogger(__name__)

        self.queue = ReplayQueue(config.watch.capacity)
        self._quarantined: Set[Path] = set()

    @property
    def quarantined(self) -> Set[Path]:
        return set(self._quarantined)

    @property
    def watch_dir(self) -> Path:
        return self.scanner.directory

    def _publish_queue(self) -> None:
        summaries = [
            ItemSummary(name=self._summary_name(item), metadata=item.metadata)
            for item in self.queue
        ]
        self.event_bus.publish(QueueUpdated(items=summaries))

    def _register_failure(self, item: QueueItem, reason: str, permanent: bool = False) -> None:
        item.failures += 1
        limit = self.config.loop.max_item_failures
        if permanent or item.failures >= limit:
            self.queue.remove(item.path)
            self._quarantined.add(item.path)
            self.logger.error(
                f"Dropping {item.path.name} from the queue after {item.failures} failure(s): {reason}. "
                f"The file is left in '{self.watch_dir}' for inspection; fix or remove it."
            )
        else:
            self.logger.warning(f"{item.path.name}: {reason} (attempt {item.failures}/{limit})")

    def _fill_queue(self) -> int:
        candidates = self.scanner.scan()
        added = select_new_items(candidates, self.queue, self.rng, excluded=self._quarantined)
        if added:
            self.logger.info(f"Queued {len(added)} replay(s): {', '.join(i.path.name for i in added)}")
        if not self.queue:
            if candidates:
                self.logger.warning(
                    f"All {len(candidates)} file(s) in '{self.watch_dir}' were dropped after repeated "
                    f"failures (retrying in {self.config.loop.idle_backoff_s:.0f} seconds). "
                    f"Fix or remove them, or copy new replays in."
                )
            else:
                self.logger.info(
                    f"No replays found (retrying in {self.config.loop.idle_backoff_s:.0f} seconds). "
                    f"Copy some into '{self.watch_dir}'."
                )
        return len(added)

    def _set_aside(self, path: Path) -> Path:
        """Moves a file occupying the canonical name to a free name next to it.

        Queue and quarantine entries follow the file, so it is still played
        (or still ignored) under its new name.
        """
        n = 1
        moved = path.with_name(f"{path.stem}-{n}{path.suffix}")
        while moved.exists():
            n += 1
            moved = path.with_name(f"{path.stem}-{n}{path.suffix}")
        os.replace(path, moved)
        self.logger.warning(f"{path.name} was already present; moved it to {moved.name}")

        for queued in self.queue:
            if queued.path == path:
                queued.path = moved
                queued.display_name = moved.name
        if path in self._quarantined:
            self._quarantined.discard(path)
            self._quarantined.add(moved)
        return moved

    def _summary_name(self, item: QueueItem) -> str:
        if item.state is ItemState.PLAYING:
            return item.display_name
        try:
            return parse_playable_name(item.path, self.config.watch.recording_extension).display_name
        except PlayableNameError:
            return item.display_name

    def _prepare_head(self, item: QueueItem) -> str:
        """Decides what to play for the head item and returns its playable id.

        Encoded names are decoded once; the file is then renamed to the
        canonical name and the item follows it.
        """
        if item.state is ItemState.PLAYING:
            return build_playable_id(self.config.base_url, item.display_name)

        playable = parse_playable_name(item.path, self.config.watch.recording_extension)
        if isinstance(playable, EncodedIdentifier):
            target = self.watch_dir / self.config.watch.canonical_name
            if target != item.path:
                if target.exists():
                    self._set_aside(target)
                os.replace(item.path, target)
                self.logger.debug(f"Renamed {item.path.name} -> {target.name} ({playable.display_name})")
                item.path = target
        item.display_name = playable.display_name
        item.state = ItemState.PLAYING
        return build_playable_id(self.config.base_url, item.display_name)

    def _complete(self, item: QueueItem, playback: PlaybackResult) -> None:
        try:
            item.path.unlink(missing_ok=True)
        except OSError as e:
            self.logger.error(f"Could not delete {item.path}: {e}. Remove it by hand or it will be played again.")
        popped = self.queue.pop_head()
        if popped is not item:
            self.logger.error(f"Queue head changed during playback of {item.path.name}")
        if playback.forced:
            self.logger.warning(f"Playback of {item.display_name} was stopped after the time limit")
        self.event_bus.publish(PlaybackCompleted())

    def run_cycle(self) -> CycleResult:
        """Runs one scan/select/resolve/play cycle and reports what happened."""
        loop_cfg = self.config.loop

        self._fill_queue()
        self._publish_queue()

        head = self.queue.head
        if head is None:
            return CycleResult(CycleOutcome.IDLE, backoff_s=loop_cfg.idle_backoff_s)

        try:
            self.resolver.resolve_queue(list(self.queue))
        except BatchResolutionError as e:
            for failure in e.failures:
                item = next((i for i in self.queue if i.path == failure.path), None)
                if item is not None:
                    self._register_failure(item, f"metadata extraction failed: {failure.error}")
            self.logger.warning(
                f"{e}. Retrying in {loop_cfg.error_backoff_s:.0f} seconds; "
                f"check that {self.config.extractor.command[0]} is installed and the replays are valid."
            )
            return CycleResult(CycleOutcome.RESOLUTION_FAILED, backoff_s=loop_cfg.error_backoff_s)

        try:
            playable_id = self._prepare_head(head)
        except PlayableNameError as e:
            self._register_failure(head, str(e), permanent=True)
            return CycleResult(CycleOutcome.PREPARE_FAILED, item=head)
        except OSError as e:
            self._register_failure(head, f"could not rename to {self.config.watch.canonical_name}: {e}")
            return CycleResult(CycleOutcome.PREPARE_FAILED, backoff_s=loop_cfg.error_backoff_s, item=head)

        metadata = head.metadata or {}
        self.logger.info(f"Playing {head.display_name} ({playable_id})")
        try:
            playback = self.viewer.play(
                head.path,
                on_started=lambda: self.event_bus.publish(
                    PlaybackStarted(playable_id=playable_id, metadata=metadata)
                ),
            )
        except ViewerSpawnError as e:
            self.logger.error(
                f"{e}. Retrying {head.display_name} in {loop_cfg.error_backoff_s:.0f} seconds; "
                f"check viewer.command in the config."
            )
            return CycleResult(CycleOutcome.SPAWN_FAILED, backoff_s=loop_cfg.error_backoff_s, item=head)

        self._complete(head, playback)
        return CycleResult(CycleOutcome.PLAYED, item=head, playback=playback)

    def run(self, max_cycles: Optional[int] = None) -> None:
        """Runs cycles forever (or `max_cycles` times), sleeping the backoff each cycle asks for."""
        self.logger.info(
            f"Replay loop started: dir={self.watch_dir}, capacity={self.queue.capacity}, "
            f"timeout={self.config.viewer.timeout_s:.0f}s"
        )
        cycles = 0
        while max_cycles is None or cycles < max_cycles:
            result = self.run_cycle()
            cycles += 1
            self.logger.debug(f"Cycle {cycles}: {result.outcome.value} backoff={result.backoff_s}s")
            if result.backoff_s > 0:
                self._sleep(result.backoff_s)
