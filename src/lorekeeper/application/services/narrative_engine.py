from __future__ import annotations

import logging
import random
from collections.abc import Callable, Iterable, Mapping
from typing import Any, List

from lorekeeper.application.dtos import (
    ChoiceMadeEffect,
    ChoiceView,
    DialogueTrigger,
    DialogueView,
    EngineEffect,
    NotificationView,
    RelationshipChangedEffect,
    RelationshipView,
    SceneCompletedEffect,
    StoryCompletedEffect,
    StorySummaryView,
    VoiceCueEffect,
)
from lorekeeper.application.services.choice_resolver import ChoiceResolver
from lorekeeper.application.services.dialogue_player import DialoguePlayer, PlaybackActiveError
from lorekeeper.application.services.event_bus import EventBus
from lorekeeper.application.services.event_router import EventRouter
from lorekeeper.application.services.notification_queue import NotificationQueue, register_notification_handlers
from lorekeeper.application.services.progress_store import ProgressStore
from lorekeeper.application.services.scheduler import Scheduler
from lorekeeper.application.settings import EngineSettings
from lorekeeper.domain.events import (
    ChoiceResolved,
    ConsequenceDescriptor,
    GameEvent,
    RelationshipChanged,
    SceneCompleted,
    StoryCompleted,
    VoiceCue,
)
from lorekeeper.domain.models.progress import relationship_tier
from lorekeeper.domain.models.story import StoryReward
from lorekeeper.domain.repositories import KeyValueStateRepository
from lorekeeper.domain.services.story_catalog import StoryCatalog


EFFECT_PRIORITY = 50
HOST_CALLBACK_PRIORITY = 100

_logger = logging.getLogger(__name__)


class NarrativeEngine:
    """Per-session facade over the narrative components.

    Engine state always commits before events are published. Outcomes reach
    the host both as queued effect values (``drain_effects``) and through
    optional callbacks; a failing callback is isolated and reported by
    ``last_callback_errors``.
    """

    def __init__(
        self,
        catalog: StoryCatalog,
        repository: KeyValueStateRepository,
        scheduler: Scheduler,
        settings: EngineSettings | None = None,
        *,
        event_bus: EventBus | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.settings = settings or EngineSettings()
        self.catalog = catalog
        self.scheduler = scheduler
        self.event_bus = event_bus or EventBus()
        self._rng = rng or random.Random(self.settings.rng_seed)
        self.progress = ProgressStore(repository, player_id=self.settings.player_id)
        self.notification_queue = NotificationQueue(
            scheduler,
            capacity=self.settings.notification_capacity,
            ttl_ms=self.settings.notification_ttl_ms,
        )
        register_notification_handlers(self.event_bus, self.notification_queue, catalog, scheduler)
        self.resolver = ChoiceResolver(self.progress, self.event_bus)
        self.player = DialoguePlayer(scheduler, self.event_bus, self.progress, self.resolver, self.settings)
        self.router = EventRouter(
            catalog,
            self.progress,
            self.player,
            self.notification_queue,
            self.event_bus,
            scheduler,
            rng=self._rng,
        )
        self._effects: List[EngineEffect] = []
        self._register_effect_handlers()

    def _register_effect_handlers(self) -> None:
        def _on_story_completed(event: StoryCompleted) -> None:
            self._effects.append(StoryCompletedEffect(story_id=event.story_id, rewards=tuple(event.rewards)))

        def _on_scene_completed(event: SceneCompleted) -> None:
            self._effects.append(
                SceneCompletedEffect(
                    story_id=event.story_id,
                    scene_id=event.scene_id,
                    outcome=event.outcome,
                    unlocks=tuple(event.unlocks),
                    percent_complete=event.percent_complete,
                )
            )

        def _on_choice_resolved(event: ChoiceResolved) -> None:
            self._effects.append(ChoiceMadeEffect(choice_id=event.choice_id, descriptor=event.descriptor))

        def _on_relationship_changed(event: RelationshipChanged) -> None:
            self._effects.append(RelationshipChangedEffect(character_id=event.character_id, delta=event.delta))

        def _on_voice_cue(event: VoiceCue) -> None:
            if event.voice_effect:
                self._effects.append(VoiceCueEffect(speaker=event.speaker, voice_effect=event.voice_effect))

        self.event_bus.subscribe(StoryCompleted, _on_story_completed, priority=EFFECT_PRIORITY)
        self.event_bus.subscribe(SceneCompleted, _on_scene_completed, priority=EFFECT_PRIORITY)
        self.event_bus.subscribe(ChoiceResolved, _on_choice_resolved, priority=EFFECT_PRIORITY)
        self.event_bus.subscribe(RelationshipChanged, _on_relationship_changed, priority=EFFECT_PRIORITY)
        self.event_bus.subscribe(VoiceCue, _on_voice_cue, priority=EFFECT_PRIORITY)

    # -- host callbacks ------------------------------------------------------------

    def on_story_complete(self, callback: Callable[[str, tuple[StoryReward, ...]], Any]) -> None:
        self.event_bus.subscribe(
            StoryCompleted,
            lambda event: callback(event.story_id, tuple(event.rewards)),
            priority=HOST_CALLBACK_PRIORITY,
        )

    def on_choice_made(self, callback: Callable[[str, ConsequenceDescriptor], Any]) -> None:
        self.event_bus.subscribe(
            ChoiceResolved,
            lambda event: callback(event.choice_id, event.descriptor),
            priority=HOST_CALLBACK_PRIORITY,
        )

    def on_relationship_change(self, callback: Callable[[str, int], Any]) -> None:
        self.event_bus.subscribe(
            RelationshipChanged,
            lambda event: callback(event.character_id, event.delta),
            priority=HOST_CALLBACK_PRIORITY,
        )

    # -- commands -----------------------------------------------------------------

    def update_player(
        self,
        level: int | None = None,
        achievements: Iterable[str] | None = None,
        completed_quests: Iterable[str] | None = None,
    ) -> list[str]:
        arcs = self.router.update_player(
            level=level,
            achievements=set(achievements) if achievements is not None else None,
            completed_quests=set(completed_quests) if completed_quests is not None else None,
        )
        return [arc.id for arc in arcs]

    def handle_game_event(self, event: GameEvent | Mapping[str, Any]) -> DialogueTrigger | None:
        if isinstance(event, GameEvent):
            game_event = event
        else:
            try:
                game_event = GameEvent.from_mapping(event)
            except ValueError as exc:
                _logger.warning("Ignoring malformed game event", extra={"reason": str(exc)})
                return None
        return self.router.on_game_event(game_event)

    def start_story(self, story_id: str) -> bool:
        story = self.catalog.story(story_id)
        if story is None:
            _logger.debug("Unknown story ignored", extra={"story_id": story_id})
            return False
        if not self.progress.record.is_unlocked(story.id):
            _logger.debug("Locked story ignored", extra={"story_id": story_id})
            return False
        owner = self.catalog.owner_of(story.id)
        try:
            self.player.start_story(story, owner.id if owner else None)
        except PlaybackActiveError as exc:
            _logger.info(
                "Story start rejected while playback active",
                extra={"story_id": story_id, "active_story_id": exc.active_story_id},
            )
            return False
        return True

    def advance(self) -> bool:
        return self.player.advance()

    def complete_reveal(self) -> bool:
        return self.player.complete_reveal()

    def select_choice(self, choice_id: str) -> ConsequenceDescriptor | None:
        return self.player.select_choice(choice_id)

    def skip(self) -> bool:
        return self.player.skip()

    def close(self) -> bool:
        return self.player.close()

    def select_companion(self, character_id: str | None) -> bool:
        return self.router.select_companion(character_id)

    def set_autoplay(self, enabled: bool) -> None:
        self.player.set_autoplay(enabled)

    def set_speed(self, speed: float) -> None:
        self.player.set_speed(speed)

    def reset_progress(self) -> None:
        self.player.close()
        self.progress.reset()
        self.router.refresh_unlocks()

    # -- queries ------------------------------------------------------------------

    def view(self) -> DialogueView:
        player = self.player
        story = player.story
        if story is None:
            return DialogueView(state=player.state.value, autoplay=player.autoplay, speed=player.speed)
        scene = player.current_scene()
        node = player.current_node()
        speaker_name = ""
        if node is not None:
            speaker = self.catalog.resolve_speaker(node.speaker)
            speaker_name = speaker.name if speaker is not None else node.speaker.capitalize()
        return DialogueView(
            state=player.state.value,
            story_id=None if player.is_interjection else story.id,
            story_title=story.title,
            is_interjection=player.is_interjection,
            character_id=player.character_id,
            speaker=node.speaker if node else "",
            speaker_name=speaker_name,
            emotion=node.emotion.value if node else "",
            full_text=node.text if node else "",
            revealed_text=player.revealed_text(),
            scene_id=scene.id if scene else "",
            scene_title=scene.title if scene else "",
            setting=scene.setting if scene else "",
            scene_number=player.scene_index + 1,
            scene_count=story.scene_count,
            dialogue_number=player.dialogue_index + 1,
            dialogue_count=len(scene.dialogue) if scene else 0,
            choices=[
                ChoiceView(
                    id=choice.id,
                    text=choice.text,
                    relationship_change=choice.relationship_delta.change if choice.relationship_delta else None,
                )
                for choice in player.available_choices()
            ],
            autoplay=player.autoplay,
            speed=player.speed,
        )

    def notifications(self) -> list[NotificationView]:
        """Newest first."""
        return [
            NotificationView(
                id=row.id,
                category=row.category.value,
                title=row.title,
                description=row.description,
                character_id=row.character_id,
            )
            for row in reversed(self.notification_queue.snapshot())
        ]

    def list_stories(self) -> list[StorySummaryView]:
        record = self.progress.record
        rows: list[StorySummaryView] = []
        for story in self.catalog.stories():
            owner = self.catalog.owner_of(story.id)
            rows.append(
                StorySummaryView(
                    id=story.id,
                    title=story.title,
                    character_id=owner.id if owner else "",
                    character_name=owner.name if owner else "",
                    chapter=story.chapter,
                    unlock_level=story.unlock_level,
                    unlocked=record.is_unlocked(story.id),
                    completed=record.is_completed(story.id),
                    percent_complete=int(record.story_percent.get(story.id, 0)),
                )
            )
        return rows

    def relationship_views(self) -> list[RelationshipView]:
        return [
            RelationshipView(
                character_id=character.id,
                name=character.name,
                score=self.progress.relationship(character.id),
                tier=relationship_tier(self.progress.relationship(character.id)).value,
            )
            for character in self.catalog.characters()
        ]

    def drain_effects(self) -> list[EngineEffect]:
        effects = self._effects
        self._effects = []
        return effects

    def last_callback_errors(self) -> list[Exception]:
        """Errors raised by isolated subscribers since the previous call, oldest first."""
        return self.event_bus.drain_errors()
