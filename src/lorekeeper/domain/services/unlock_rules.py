from __future__ import annotations

from collections.abc import Callable, Collection
from dataclasses import dataclass, field

from lorekeeper.domain.models.character import Character, RequirementKind, UnlockRequirement


@dataclass(frozen=True)
class UnlockContext:
    level: int = 1
    achievements: frozenset[str] = field(default_factory=frozenset)
    completed_quests: frozenset[str] = field(default_factory=frozenset)

    @classmethod
    def build(
        cls,
        level: int,
        achievements: Collection[str] = (),
        completed_quests: Collection[str] = (),
    ) -> "UnlockContext":
        return cls(
            level=int(level),
            achievements=frozenset(str(item) for item in achievements),
            completed_quests=frozenset(str(item) for item in completed_quests),
        )


def requirement_met(
    requirement: UnlockRequirement,
    context: UnlockContext,
    *,
    character_unlocked: Callable[[str], bool] | None = None,
) -> bool:
    if requirement.kind == RequirementKind.LEVEL:
        try:
            return context.level >= int(requirement.value)
        except (TypeError, ValueError):
            return False
    if requirement.kind == RequirementKind.ACHIEVEMENT:
        return str(requirement.value) in context.achievements
    if requirement.kind == RequirementKind.QUEST:
        return str(requirement.value) in context.completed_quests
    if requirement.kind == RequirementKind.CHARACTER:
        if character_unlocked is None:
            return False
        return character_unlocked(str(requirement.value))
    return True


def unlocked_characters(characters: Collection[Character], context: UnlockContext) -> list[Character]:
    """Characters whose every unlock requirement holds, in catalog order.

    ``character`` requirements recurse into the referenced character; a
    requirement cycle counts as unmet.
    """
    by_id = {row.id: row for row in characters}
    memo: dict[str, bool] = {}
    visiting: set[str] = set()

    def _is_unlocked(character_id: str) -> bool:
        if character_id in memo:
            return memo[character_id]
        character = by_id.get(character_id)
        if character is None or character_id in visiting:
            return False
        visiting.add(character_id)
        result = all(
            requirement_met(row, context, character_unlocked=_is_unlocked)
            for row in character.unlock_requirements
        )
        visiting.discard(character_id)
        memo[character_id] = result
        return result

    return [row for row in characters if _is_unlocked(row.id)]
