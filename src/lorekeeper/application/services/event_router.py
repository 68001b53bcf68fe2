from __future__ import annotations

import logging
import random
from collections import deque
from dataclasses import dataclass
from itertools import count
from typing import Any, Deque, Mapping

from lorekeeper.application.dtos import DialogueTrigger
from lorekeeper.application.services import character_selector
from lorekeeper.application.services.choice_resolver import reply_choices
from lorekeeper.application.services.dialogue_player import DialoguePlayer
from lorekeeper.application.services.eligibility import evaluate_unlocks
from lorekeeper.application.services.event_bus import EventBus
from lorekeeper.application.services.notification_queue import NotificationQueue
from lorekeeper.application.services.progress_store import ProgressStore
from lorekeeper.application.services.scheduler import Scheduler
from lorekeeper.domain.events import GameEvent, GameEventKind, StoryUnlocked
from lorekeeper.domain.models.character import Character
from lorekeeper.domain.models.notification import NotificationCategory
from lorekeeper.domain.models.story import StoryArc
from lorekeeper.domain.services.story_catalog import StoryCatalog
from lorekeeper.domain.services.unlock_rules import UnlockContext, unlocked_characters


EVENT_HISTORY_LIMIT = 50
INTERACTION_HISTORY_LIMIT = 10
MILESTONE_LEVEL_INTERVAL = 5

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RecordedEvent:
    kind: GameEventKind
    payload: Mapping[str, Any]
    at_ms: int


@dataclass(frozen=True)
class Interaction:
    event_kind: GameEventKind
    character_id: str
    text: str
    at_ms: int


def narration_for(event: GameEvent) -> str | None:
    kind = event.kind
    if kind == GameEventKind.GAME_START:
        return "Your companion appears, ready to guide you on your journey..."
    if kind == GameEventKind.LEVEL_COMPLETE:
        level = _int_or_none(event.payload.get("level"))
        if level is not None and level > 0 and level % MILESTONE_LEVEL_INTERVAL == 0:
            return f"Congratulations on reaching level {level}! Your companion is impressed by your progress."
        return None
    if kind == GameEventKind.ACHIEVEMENT:
        achievement = str(event.payload.get("achievement", "")).strip()
        if achievement:
            return f"Your companion celebrates your achievement: {achievement}"
        return "Your companion celebrates your achievement."
    if kind == GameEventKind.HIGH_SCORE:
        return "A new personal best! Your companion is proud of your improvement."
    if kind == GameEventKind.DEFEAT:
        return "Your companion offers words of encouragement after the setback."
    if kind == GameEventKind.VICTORY:
        return "Victory! Your companion cheers you on."
    if kind == GameEventKind.QUEST_COMPLETE:
        return "Quest completed! Your companion acknowledges your dedication."
    return None


def _int_or_none(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


class EventRouter:
    """Turns host game events into unlock refreshes, narration and character interjections."""

    def __init__(
        self,
        catalog: StoryCatalog,
        progress: ProgressStore,
        player: DialoguePlayer,
        queue: NotificationQueue,
        event_bus: EventBus,
        scheduler: Scheduler,
        rng: random.Random | None = None,
    ) -> None:
        self._catalog = catalog
        self._progress = progress
        self._player = player
        self._queue = queue
        self._event_bus = event_bus
        self._scheduler = scheduler
        self._rng = rng or random.Random()
        self._level = 1
        self._achievements: set[str] = set()
        self._completed_quests: set[str] = set()
        self._companion_id: str | None = None
        self._events: Deque[RecordedEvent] = deque(maxlen=EVENT_HISTORY_LIMIT)
        self._interactions: Deque[Interaction] = deque(maxlen=INTERACTION_HISTORY_LIMIT)
        self._narration_seq = count(1)

    @property
    def level(self) -> int:
        return self._level

    @property
    def companion_id(self) -> str | None:
        return self._companion_id

    def context(self) -> UnlockContext:
        return UnlockContext.build(self._level, self._achievements, self._completed_quests)

    def recent_events(self) -> list[RecordedEvent]:
        """Newest first."""
        return list(reversed(self._events))

    def recent_interactions(self) -> list[Interaction]:
        """Newest first."""
        return list(reversed(self._interactions))

    def update_player(
        self,
        level: int | None = None,
        achievements: set[str] | frozenset[str] | None = None,
        completed_quests: set[str] | frozenset[str] | None = None,
    ) -> list[StoryArc]:
        if level is not None:
            self._level = int(level)
        if achievements is not None:
            self._achievements = {str(item) for item in achievements}
        if completed_quests is not None:
            self._completed_quests = {str(item) for item in completed_quests}
        return self.refresh_unlocks()

    def refresh_unlocks(self) -> list[StoryArc]:
        """Merge newly eligible arcs into progress and announce each one."""
        arcs = evaluate_unlocks(
            self._catalog,
            self._level,
            self._achievements,
            self._completed_quests,
            self._progress.record,
        )
        if not arcs:
            return []
        self._progress.mark_unlocked(arc.id for arc in arcs)
        for arc in arcs:
            owner = self._catalog.owner_of(arc.id)
            self._event_bus.publish(
                StoryUnlocked(story_id=arc.id, title=arc.title, character_id=owner.id if owner else None)
            )
        return arcs

    def select_companion(self, character_id: str | None) -> bool:
        if character_id is None:
            self._companion_id = None
            return True
        if self._catalog.character(character_id) is None:
            _logger.debug("Unknown companion ignored", extra={"character_id": character_id})
            return False
        self._companion_id = character_id
        return True

    def on_game_event(self, event: GameEvent) -> DialogueTrigger | None:
        now = self._scheduler.now_ms()
        self._events.append(RecordedEvent(kind=event.kind, payload=dict(event.payload), at_ms=now))
        self._apply_payload(event)
        self.refresh_unlocks()

        narration = narration_for(event)
        if narration:
            self._queue.notify(
                f"narration_{event.kind.value}_{now}_{next(self._narration_seq)}",
                NotificationCategory.NARRATION,
                "Narration",
                narration,
                character_id=self._companion_id,
            )

        if self._player.active:
            return None

        character = self._speaker_for(event)
        if character is None:
            return None
        node = character_selector.pick_line(character, event.kind, self._rng)
        if node is None:
            _logger.debug(
                "Character has no line for event",
                extra={"character_id": character.id, "event_kind": event.kind.value},
            )
            return None

        replies = reply_choices(character)
        self._player.start_interjection(node, character.id, replies)
        self._interactions.append(
            Interaction(event_kind=event.kind, character_id=character.id, text=node.text, at_ms=now)
        )
        return DialogueTrigger(
            event_kind=event.kind,
            character_id=character.id,
            text=node.text,
            reply_ids=tuple(row.id for row in replies),
        )

    def _apply_payload(self, event: GameEvent) -> None:
        payload = event.payload
        if event.kind == GameEventKind.LEVEL_COMPLETE:
            level = _int_or_none(payload.get("level"))
            if level is not None:
                self._level = max(self._level, level)
        elif event.kind == GameEventKind.ACHIEVEMENT:
            achievement = str(payload.get("achievement", "")).strip()
            if achievement:
                self._achievements.add(achievement)
        elif event.kind == GameEventKind.QUEST_COMPLETE:
            quest_id = str(payload.get("quest_id", "")).strip()
            if quest_id:
                self._completed_quests.add(quest_id)

    def _is_unlocked(self, character: Character) -> bool:
        unlocked = unlocked_characters(self._catalog.characters(), self.context())
        return any(row.id == character.id for row in unlocked)

    def _speaker_for(self, event: GameEvent) -> Character | None:
        if event.kind == GameEventKind.REACTIVE and event.character_hint:
            hinted = self._catalog.character(event.character_hint)
            if hinted is None or not self._is_unlocked(hinted):
                _logger.debug(
                    "Reactive event skipped",
                    extra={"character_hint": event.character_hint},
                )
                return None
            return hinted

        if event.kind != GameEventKind.REACTIVE and self._companion_id:
            companion = self._catalog.character(self._companion_id)
            if companion is not None and self._is_unlocked(companion):
                return companion

        return character_selector.select(
            event.kind,
            self._catalog.characters(),
            self._progress.relationships(),
            self.context(),
            self._rng,
        )
