from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping

from lorekeeper.domain.models.story import RelationshipDelta, StoryReward


class GameEventKind(str, Enum):
    GAME_START = "game_start"
    LEVEL_COMPLETE = "level_complete"
    ACHIEVEMENT = "achievement"
    HIGH_SCORE = "high_score"
    DEFEAT = "defeat"
    VICTORY = "victory"
    QUEST_COMPLETE = "quest_complete"
    REACTIVE = "reactive"


@dataclass(frozen=True)
class GameEvent:
    kind: GameEventKind
    payload: Mapping[str, Any] = field(default_factory=dict)
    character_hint: str | None = None

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> "GameEvent":
        if not isinstance(raw, Mapping):
            raise ValueError("Game event must be an object")
        kind_raw = str(raw.get("type", raw.get("kind", ""))).strip().lower()
        try:
            kind = GameEventKind(kind_raw)
        except ValueError:
            raise ValueError(f"Unsupported game event type: {kind_raw or '<missing>'}") from None
        payload = raw.get("payload") or {}
        if not isinstance(payload, Mapping):
            raise ValueError("Game event payload must be an object")
        hint = raw.get("character_hint", payload.get("character_id") if kind == GameEventKind.REACTIVE else None)
        hint_text = str(hint).strip() if hint is not None else ""
        return cls(kind=kind, payload=dict(payload), character_hint=hint_text or None)


@dataclass(frozen=True)
class ConsequenceDescriptor:
    choice_id: str
    consequence_text: str
    relationship_change: RelationshipDelta | None = None
    unlocks: tuple[str, ...] = ()
    blocks: tuple[str, ...] = ()


@dataclass
class StoryUnlocked:
    story_id: str
    title: str
    character_id: str | None


@dataclass
class StoryCompleted:
    story_id: str
    title: str
    rewards: tuple[StoryReward, ...]
    skipped: bool = False


@dataclass
class SceneCompleted:
    story_id: str
    scene_id: str
    outcome: str
    unlocks: tuple[str, ...]
    percent_complete: int


@dataclass
class ChoiceResolved:
    choice_id: str
    descriptor: ConsequenceDescriptor
    character_id: str | None


@dataclass
class RelationshipChanged:
    character_id: str
    delta: int
    score_before: int
    score_after: int
    # before clamping; equals delta unless the score hit a bound
    requested_delta: int | None = None


@dataclass
class VoiceCue:
    speaker: str
    voice_effect: str | None
