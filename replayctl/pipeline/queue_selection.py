import random
from pathlib import Path
from typing import Iterable, List, Optional, Set

from replayctl.domain.models import QueueItem, ReplayQueue


def select_new_items(
    candidates: Iterable[Path],
    queue: ReplayQueue,
    rng: random.Random,
    excluded: Optional[Set[Path]] = None,
) -> List[QueueItem]:
    """Fills the free slots of `queue` with randomly drawn candidates.

    Candidates already queued (or excluded) are skipped. The draw is uniform
    and without replacement; drawn items are appended in draw order. Returns
    the newly queued items.
    """
    need = queue.free_slots
    if need <= 0:
        return []

    excluded = excluded or set()
    queued = set(queue.paths())
    # Sorted so a seeded rng picks the same files regardless of listing order
    available = sorted(
        {path for path in candidates if path not in queued and path not in excluded},
        key=lambda p: (p.name, str(p)),
    )
    if not available:
        return []

    drawn = rng.sample(available, min(need, len(available)))
    added = []
    for path in drawn:
        item = QueueItem.from_path(path)
        queue.append(item)
        added.append(item)
    return added
