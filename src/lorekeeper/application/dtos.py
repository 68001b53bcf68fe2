from dataclasses import dataclass, field
from typing import List, Tuple, Union

from lorekeeper.domain.events import ConsequenceDescriptor, GameEventKind
from lorekeeper.domain.models.story import StoryReward


@dataclass
class ChoiceView:
    id: str
    text: str
    relationship_change: int | None = None


@dataclass
class DialogueView:
    state: str
    story_id: str | None = None
    story_title: str = ""
    is_interjection: bool = False
    character_id: str | None = None
    speaker: str = ""
    speaker_name: str = ""
    emotion: str = ""
    full_text: str = ""
    revealed_text: str = ""
    scene_id: str = ""
    scene_title: str = ""
    setting: str = ""
    scene_number: int = 0
    scene_count: int = 0
    dialogue_number: int = 0
    dialogue_count: int = 0
    choices: List[ChoiceView] = field(default_factory=list)
    autoplay: bool = True
    speed: float = 1.0


@dataclass
class NotificationView:
    id: str
    category: str
    title: str
    description: str
    character_id: str | None = None


@dataclass
class StorySummaryView:
    id: str
    title: str
    character_id: str
    character_name: str
    chapter: int
    unlock_level: int
    unlocked: bool
    completed: bool
    percent_complete: int


@dataclass
class RelationshipView:
    character_id: str
    name: str
    score: int
    tier: str


@dataclass
class DialogueTrigger:
    event_kind: GameEventKind
    character_id: str
    text: str
    reply_ids: Tuple[str, ...] = ()


@dataclass(frozen=True)
class StoryCompletedEffect:
    story_id: str
    rewards: Tuple[StoryReward, ...]


@dataclass(frozen=True)
class SceneCompletedEffect:
    story_id: str
    scene_id: str
    outcome: str
    unlocks: Tuple[str, ...] = ()
    percent_complete: int = 0


@dataclass(frozen=True)
class ChoiceMadeEffect:
    choice_id: str
    descriptor: ConsequenceDescriptor


@dataclass(frozen=True)
class RelationshipChangedEffect:
    character_id: str
    delta: int


@dataclass(frozen=True)
class VoiceCueEffect:
    speaker: str
    voice_effect: str


EngineEffect = Union[
    StoryCompletedEffect,
    SceneCompletedEffect,
    ChoiceMadeEffect,
    RelationshipChangedEffect,
    VoiceCueEffect,
]
