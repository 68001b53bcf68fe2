from __future__ import annotations

import random
from collections.abc import Mapping, Sequence

from lorekeeper.domain.events import GameEventKind
from lorekeeper.domain.models.character import Character, CharacterRole, LineCategory
from lorekeeper.domain.models.story import DialogueNode
from lorekeeper.domain.services.unlock_rules import UnlockContext, unlocked_characters


TRIGGER_LINE_CATEGORY: dict[GameEventKind, LineCategory] = {
    GameEventKind.GAME_START: LineCategory.GREETING,
    GameEventKind.LEVEL_COMPLETE: LineCategory.LEVEL_UP,
    GameEventKind.ACHIEVEMENT: LineCategory.ACHIEVEMENT,
    GameEventKind.HIGH_SCORE: LineCategory.VICTORY,
    GameEventKind.VICTORY: LineCategory.VICTORY,
    GameEventKind.DEFEAT: LineCategory.DEFEAT,
    GameEventKind.QUEST_COMPLETE: LineCategory.QUEST_COMPLETE,
    GameEventKind.REACTIVE: LineCategory.RANDOM,
}

_FRIENDSHIP_TRIGGERS = {GameEventKind.ACHIEVEMENT, GameEventKind.VICTORY, GameEventKind.HIGH_SCORE}
FRIENDSHIP_THRESHOLD = 50
WEIGHT_OFFSET = 50


def selection_weight(relationship: int) -> int:
    return max(1, int(relationship) + WEIGHT_OFFSET)


def narrow_for_trigger(
    trigger: GameEventKind,
    pool: Sequence[Character],
    relationships: Mapping[str, int],
) -> list[Character]:
    """Preferred subset for the trigger, or the whole pool when nothing matches."""
    if trigger == GameEventKind.DEFEAT:
        preferred = [row for row in pool if row.has_trait("Wise", "Patient")]
    elif trigger in _FRIENDSHIP_TRIGGERS:
        preferred = [row for row in pool if int(relationships.get(row.id, 0)) > FRIENDSHIP_THRESHOLD]
    elif trigger == GameEventKind.LEVEL_COMPLETE:
        preferred = [
            row for row in pool if row.role == CharacterRole.SUPPORT or row.has_trait("Encouraging")
        ]
    else:
        preferred = []
    return preferred or list(pool)


def weighted_pick(
    pool: Sequence[Character],
    relationships: Mapping[str, int],
    rng: random.Random,
) -> Character | None:
    if not pool:
        return None
    if len(pool) == 1:
        return pool[0]
    weights = [selection_weight(relationships.get(row.id, 0)) for row in pool]
    total = sum(weights)
    draw = rng.random() * total
    cumulative = 0
    for character, weight in zip(pool, weights):
        cumulative += weight
        if cumulative > draw:
            return character
    return pool[-1]


def select(
    trigger: GameEventKind,
    candidates: Sequence[Character],
    relationships: Mapping[str, int],
    context: UnlockContext,
    rng: random.Random,
) -> Character | None:
    """Pick the character that voices ``trigger``.

    Candidates are filtered to those currently unlocked, narrowed by the
    trigger's preference rule, then drawn with weight
    ``max(1, relationship + 50)``. Returns ``None`` for an empty pool.
    """
    eligible = unlocked_characters(candidates, context)
    if not eligible:
        return None
    pool = narrow_for_trigger(trigger, eligible, relationships)
    return weighted_pick(pool, relationships, rng)


def pick_line(character: Character, trigger: GameEventKind, rng: random.Random) -> DialogueNode | None:
    category = TRIGGER_LINE_CATEGORY.get(trigger, LineCategory.RANDOM)
    lines = character.lines_for(category) or character.lines_for(LineCategory.RANDOM)
    if not lines:
        return None
    return lines[rng.randrange(len(lines))]
