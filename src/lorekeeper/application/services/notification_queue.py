from __future__ import annotations

import logging
from collections import OrderedDict
from itertools import count
from typing import List

from lorekeeper.application.services.event_bus import EventBus
from lorekeeper.application.services.scheduler import Scheduler, TimerHandle
from lorekeeper.domain.events import ChoiceResolved, RelationshipChanged, StoryCompleted, StoryUnlocked
from lorekeeper.domain.models.notification import Notification, NotificationCategory
from lorekeeper.domain.services.story_catalog import StoryCatalog


NOTIFICATION_PRIORITY = 10

_logger = logging.getLogger(__name__)


class NotificationQueue:
    """Bounded FIFO of self-expiring notifications.

    Entries leave the queue either by capacity eviction (oldest first) or by
    their expiry timer; both paths go through ``remove`` so an entry is never
    removed twice.
    """

    def __init__(self, scheduler: Scheduler, *, capacity: int = 10, ttl_ms: int = 5000) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self._scheduler = scheduler
        self._capacity = int(capacity)
        self._ttl_ms = int(ttl_ms)
        self._entries: "OrderedDict[str, Notification]" = OrderedDict()
        self._timers: dict[str, TimerHandle] = {}

    def push(self, notification: Notification) -> bool:
        if notification.id in self._entries:
            _logger.debug("Duplicate notification rejected", extra={"notification_id": notification.id})
            return False
        self._entries[notification.id] = notification
        notification_id = notification.id
        self._timers[notification_id] = self._scheduler.call_later(
            self._ttl_ms,
            lambda: self.remove(notification_id),
        )
        while len(self._entries) > self._capacity:
            oldest_id = next(iter(self._entries))
            self.remove(oldest_id)
        return True

    def notify(
        self,
        notification_id: str,
        category: NotificationCategory,
        title: str,
        description: str,
        *,
        character_id: str | None = None,
    ) -> bool:
        return self.push(
            Notification(
                id=notification_id,
                category=category,
                title=title,
                description=description,
                created_at_ms=self._scheduler.now_ms(),
                character_id=character_id,
            )
        )

    def remove(self, notification_id: str) -> bool:
        removed = self._entries.pop(notification_id, None)
        timer = self._timers.pop(notification_id, None)
        if timer is not None:
            timer.cancel()
        return removed is not None

    def clear(self) -> None:
        for timer in self._timers.values():
            timer.cancel()
        self._timers.clear()
        self._entries.clear()

    def snapshot(self) -> List[Notification]:
        """Oldest first."""
        return list(self._entries.values())

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, notification_id: object) -> bool:
        return notification_id in self._entries


def register_notification_handlers(
    event_bus: EventBus,
    queue: NotificationQueue,
    catalog: StoryCatalog,
    scheduler: Scheduler,
) -> None:
    relationship_seq = count(1)
    consequence_seq = count(1)

    def _on_story_unlocked(event: StoryUnlocked) -> None:
        owner = catalog.character(event.character_id) if event.character_id else None
        description = f"{owner.name}'s story is now available." if owner else "A new story is now available."
        queue.notify(
            f"story_unlock_{event.story_id}",
            NotificationCategory.STORY_UNLOCK,
            f"New Story Unlocked: {event.title}",
            description,
            character_id=event.character_id,
        )

    def _on_story_completed(event: StoryCompleted) -> None:
        queue.notify(
            f"story_complete_{event.story_id}",
            NotificationCategory.STORY_COMPLETE,
            f"Story Complete: {event.title}",
            "You've completed this chapter of the story.",
        )

    def _on_relationship_changed(event: RelationshipChanged) -> None:
        if event.delta == 0:
            return
        character = catalog.character(event.character_id)
        name = character.name if character else event.character_id
        direction = "improved" if event.delta > 0 else "worsened"
        queue.notify(
            f"relationship_{event.character_id}_{scheduler.now_ms()}_{next(relationship_seq)}",
            NotificationCategory.RELATIONSHIP_CHANGE,
            "Relationship Changed",
            f"Your relationship with {name} has {direction} by {abs(event.delta)}.",
            character_id=event.character_id,
        )

    def _on_choice_resolved(event: ChoiceResolved) -> None:
        text = event.descriptor.consequence_text.strip()
        if not text:
            return
        queue.notify(
            f"choice_consequence_{event.choice_id}_{scheduler.now_ms()}_{next(consequence_seq)}",
            NotificationCategory.CHOICE_CONSEQUENCE,
            "Choice Made",
            text,
            character_id=event.character_id,
        )

    event_bus.subscribe(StoryUnlocked, _on_story_unlocked, priority=NOTIFICATION_PRIORITY)
    event_bus.subscribe(StoryCompleted, _on_story_completed, priority=NOTIFICATION_PRIORITY)
    event_bus.subscribe(RelationshipChanged, _on_relationship_changed, priority=NOTIFICATION_PRIORITY)
    event_bus.subscribe(ChoiceResolved, _on_choice_resolved, priority=NOTIFICATION_PRIORITY)
