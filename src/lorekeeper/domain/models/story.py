from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Emotion(str, Enum):
    HAPPY = "happy"
    SAD = "sad"
    ANGRY = "angry"
    EXCITED = "excited"
    MYSTERIOUS = "mysterious"
    DETERMINED = "determined"
    NEUTRAL = "neutral"


@dataclass(frozen=True)
class DialogueNode:
    speaker: str
    text: str
    emotion: Emotion = Emotion.NEUTRAL
    voice_effect: str | None = None


@dataclass(frozen=True)
class RelationshipDelta:
    character_id: str
    change: int


@dataclass(frozen=True)
class StoryChoice:
    id: str
    text: str
    consequence: str = ""
    relationship_delta: RelationshipDelta | None = None
    unlocks: tuple[str, ...] = ()
    blocks: tuple[str, ...] = ()


@dataclass(frozen=True)
class StoryScene:
    id: str
    setting: str
    description: str
    dialogue: tuple[DialogueNode, ...]
    choices: tuple[StoryChoice, ...] = ()
    title: str = ""
    outcome: str = ""
    unlocks: tuple[str, ...] = ()

    @property
    def has_choices(self) -> bool:
        return len(self.choices) > 0

    def choice(self, choice_id: str) -> StoryChoice | None:
        for row in self.choices:
            if row.id == choice_id:
                return row
        return None


@dataclass(frozen=True)
class StoryReward:
    """Opaque reward descriptor handed to the host when an arc completes."""

    kind: str
    amount: int | None = None
    item: str | None = None
    description: str = ""


@dataclass(frozen=True)
class StoryArc:
    id: str
    title: str
    description: str
    chapter: int
    unlock_level: int
    scenes: tuple[StoryScene, ...]
    prerequisites: tuple[str, ...] = ()
    rewards: tuple[StoryReward, ...] = ()

    @property
    def scene_count(self) -> int:
        return len(self.scenes)
