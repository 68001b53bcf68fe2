from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Set


RELATIONSHIP_FLOOR = -100
RELATIONSHIP_CEILING = 100


class RelationshipTier(str, Enum):
    HOSTILE = "Hostile"
    DISLIKE = "Dislike"
    NEUTRAL = "Neutral"
    ACQUAINTANCE = "Acquaintance"
    FRIEND = "Friend"
    CLOSE_FRIEND = "Close Friend"
    BEST_FRIEND = "Best Friend"


def clamp_relationship(score: int) -> int:
    return max(RELATIONSHIP_FLOOR, min(RELATIONSHIP_CEILING, int(score)))


def relationship_tier(score: int) -> RelationshipTier:
    value = clamp_relationship(score)
    if value >= 80:
        return RelationshipTier.BEST_FRIEND
    if value >= 60:
        return RelationshipTier.CLOSE_FRIEND
    if value >= 40:
        return RelationshipTier.FRIEND
    if value >= 20:
        return RelationshipTier.ACQUAINTANCE
    if value >= 0:
        return RelationshipTier.NEUTRAL
    if value >= -20:
        return RelationshipTier.DISLIKE
    return RelationshipTier.HOSTILE


@dataclass
class ProgressRecord:
    unlocked: Set[str] = field(default_factory=set)
    completed: Set[str] = field(default_factory=set)
    story_percent: Dict[str, int] = field(default_factory=dict)
    relationships: Dict[str, int] = field(default_factory=dict)

    def relationship(self, character_id: str) -> int:
        return int(self.relationships.get(character_id, 0))

    def is_unlocked(self, story_id: str) -> bool:
        return story_id in self.unlocked

    def is_completed(self, story_id: str) -> bool:
        return story_id in self.completed
