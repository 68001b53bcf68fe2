from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Mapping

from lorekeeper.domain.models.story import DialogueNode, StoryArc


NARRATOR = "narrator"


class RarityTier(str, Enum):
    COMMON = "Common"
    RARE = "Rare"
    EPIC = "Epic"
    LEGENDARY = "Legendary"
    MYTHIC = "Mythic"

    @property
    def rank(self) -> int:
        return _RARITY_ORDER.index(self)

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, RarityTier):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other: object) -> bool:
        if not isinstance(other, RarityTier):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other: object) -> bool:
        if not isinstance(other, RarityTier):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other: object) -> bool:
        if not isinstance(other, RarityTier):
            return NotImplemented
        return self.rank >= other.rank


_RARITY_ORDER: tuple[RarityTier, ...] = (
    RarityTier.COMMON,
    RarityTier.RARE,
    RarityTier.EPIC,
    RarityTier.LEGENDARY,
    RarityTier.MYTHIC,
)


class CharacterRole(str, Enum):
    WARRIOR = "Warrior"
    MAGE = "Mage"
    RANGER = "Ranger"
    TANK = "Tank"
    SUPPORT = "Support"
    ASSASSIN = "Assassin"
    GUARDIAN = "Guardian"
    SHAMAN = "Shaman"


class RequirementKind(str, Enum):
    LEVEL = "level"
    ACHIEVEMENT = "achievement"
    QUEST = "quest"
    CHARACTER = "character"


class LineCategory(str, Enum):
    GREETING = "greeting"
    VICTORY = "victory"
    DEFEAT = "defeat"
    LEVEL_UP = "level_up"
    QUEST_START = "quest_start"
    QUEST_COMPLETE = "quest_complete"
    ACHIEVEMENT = "achievement"
    RANDOM = "random"


@dataclass(frozen=True)
class UnlockRequirement:
    kind: RequirementKind
    value: str | int
    description: str = ""


@dataclass(frozen=True)
class Character:
    id: str
    name: str
    title: str = ""
    faction: str = ""
    rarity: RarityTier = RarityTier.COMMON
    role: CharacterRole = CharacterRole.SUPPORT
    personality: frozenset[str] = frozenset()
    unlock_requirements: tuple[UnlockRequirement, ...] = ()
    dialogue_lines: Mapping[LineCategory, tuple[DialogueNode, ...]] = field(default_factory=dict)
    story_arcs: tuple[StoryArc, ...] = ()

    def has_trait(self, *traits: str) -> bool:
        return any(trait in self.personality for trait in traits)

    def lines_for(self, category: LineCategory) -> tuple[DialogueNode, ...]:
        return tuple(self.dialogue_lines.get(category, ()))
