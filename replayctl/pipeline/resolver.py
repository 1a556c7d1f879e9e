"""Concurrent metadata resolution for every queued replay.

The whole queue is resolved, not only the head, because the browser shows a
"coming up next" list with metadata for each entry. A batch is all or nothing:
one failing item fails the cycle.
"""

import concurrent.futures
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from replayctl.domain.models import ItemState, QueueItem
from replayctl.infrastructure.extractor import ExtractorAdapter


@dataclass
class Resolution:
    path: Path
    metadata: Optional[Dict[str, Any]] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class BatchResolutionError(Exception):
    """At least one queued item could not be resolved."""

    def __init__(self, failures: List[Resolution]):
        self.failures = failures
        names = ", ".join(r.path.name for r in failures)
        super().__init__(f"metadata resolution failed for {len(failures)} item(s): {names}")


class MetadataResolver:
    def __init__(self, extractor: ExtractorAdapter):
        self.extractor = extractor
        self.logger = logging.getLogger(__name__)

    def _resolve_one(self, path: Path) -> Resolution:
        try:
            return Resolution(path=path, metadata=self.extractor.get_metadata(path))
        except Exception as e:
            return Resolution(path=path, error=str(e))

    def resolve(self, items: Sequence[QueueItem]) -> List[Resolution]:
        """Runs the extractor for all items in parallel; results keep queue order."""
        if not items:
            return []
        paths = [item.path for item in items]
        with concurrent.futures.ThreadPoolExecutor(
            max_workers=len(paths), thread_name_prefix="resolver"
        ) as executor:
            return list(executor.map(self._resolve_one, paths))

    def resolve_queue(self, items: Sequence[QueueItem]) -> List[Resolution]:
        """Resolves and stores metadata on every item, or raises BatchResolutionError.

        Items are only updated when the whole batch succeeded.
        """
        results = self.resolve(items)
        failures = [r for r in results if not r.ok]
        if failures:
            for failure in failures:
                self.logger.warning(f"Failed to extract metadata for {failure.path.name}: {failure.error}")
            raise BatchResolutionError(failures)

        for item, result in zip(items, results):
            item.metadata = result.metadata
            if item.state is ItemState.QUEUED:
                item.state = ItemState.RESOLVED
        return results
