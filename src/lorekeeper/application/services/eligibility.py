from __future__ import annotations

from collections.abc import Collection

from lorekeeper.domain.models.progress import ProgressRecord
from lorekeeper.domain.models.story import StoryArc
from lorekeeper.domain.services.story_catalog import StoryCatalog


def evaluate_unlocks(
    catalog: StoryCatalog,
    level: int,
    achievements: Collection[str],
    completed_quests: Collection[str],
    progress: ProgressRecord,
) -> list[StoryArc]:
    """Arcs that become unlocked for the given player inputs, in catalog order.

    Already-unlocked arcs are never returned, so merging the result into the
    progress record is monotonic. Prerequisites may name achievements,
    completed quests or completed stories.
    """
    satisfied = {str(item) for item in achievements}
    satisfied.update(str(item) for item in completed_quests)
    satisfied.update(progress.completed)
    player_level = int(level)

    newly_unlocked: list[StoryArc] = []
    for arc in catalog.stories():
        if progress.is_unlocked(arc.id):
            continue
        if player_level < arc.unlock_level:
            continue
        if all(prerequisite in satisfied for prerequisite in arc.prerequisites):
            newly_unlocked.append(arc)
    return newly_unlocked
