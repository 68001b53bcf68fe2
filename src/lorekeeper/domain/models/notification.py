from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class NotificationCategory(str, Enum):
    STORY_UNLOCK = "story_unlock"
    STORY_COMPLETE = "story_complete"
    RELATIONSHIP_CHANGE = "relationship_change"
    CHOICE_CONSEQUENCE = "choice_consequence"
    NARRATION = "narration"


@dataclass(frozen=True)
class Notification:
    id: str
    category: NotificationCategory
    title: str
    description: str
    created_at_ms: int
    character_id: str | None = None
