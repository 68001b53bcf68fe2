from __future__ import annotations

import logging
from enum import Enum
from typing import Callable

from lorekeeper.application.services.choice_resolver import ChoiceResolver
from lorekeeper.application.services.event_bus import EventBus
from lorekeeper.application.services.progress_store import ProgressStore
from lorekeeper.application.services.scheduler import Scheduler, TimerHandle
from lorekeeper.application.services.typewriter import reveal_duration_ms, revealed_text
from lorekeeper.application.settings import ACTIVE_POLICY_FORCE_COMPLETE, EngineSettings
from lorekeeper.domain.events import ConsequenceDescriptor, SceneCompleted, StoryCompleted, VoiceCue
from lorekeeper.domain.models.story import DialogueNode, StoryArc, StoryChoice, StoryScene


_logger = logging.getLogger(__name__)

INTERJECTION_SCENE_ID = "interjection"


class PlayerState(str, Enum):
    IDLE = "idle"
    TYPING = "typing"
    AWAITING_CONTINUE = "awaiting_continue"
    AWAITING_CHOICE = "awaiting_choice"
    SCENE_ADVANCE = "scene_advance"
    STORY_COMPLETE = "story_complete"


class PlaybackActiveError(RuntimeError):
    def __init__(self, active_story_id: str) -> None:
        self.active_story_id = active_story_id
        super().__init__(f"Playback already active: {active_story_id}")


class DialoguePlayer:
    """Turn-by-turn playback of one story arc or interjection at a time.

    All waiting goes through a single scheduler handle: scheduling a new
    timer cancels whatever was pending, and ``close``/``skip`` clear it, so a
    stale callback can never mutate a later playback.
    """

    def __init__(
        self,
        scheduler: Scheduler,
        event_bus: EventBus,
        progress: ProgressStore,
        resolver: ChoiceResolver,
        settings: EngineSettings | None = None,
    ) -> None:
        settings = settings or EngineSettings()
        self._scheduler = scheduler
        self._event_bus = event_bus
        self._progress = progress
        self._resolver = resolver
        self._typing_interval_ms = int(settings.typing_interval_ms)
        self._autoplay = bool(settings.autoplay)
        self._autoplay_base_ms = int(settings.autoplay_base_ms)
        self._speed = float(settings.playback_speed)
        self._active_policy = settings.active_policy

        self._state = PlayerState.IDLE
        self._story: StoryArc | None = None
        self._character_id: str | None = None
        self._interjection = False
        self._scene_index = 0
        self._dialogue_index = 0
        self._reveal_started_ms = 0
        self._timer: TimerHandle | None = None

    @property
    def state(self) -> PlayerState:
        return self._state

    @property
    def active(self) -> bool:
        return self._story is not None

    @property
    def story(self) -> StoryArc | None:
        return self._story

    @property
    def character_id(self) -> str | None:
        return self._character_id

    @property
    def is_interjection(self) -> bool:
        return self._interjection

    @property
    def scene_index(self) -> int:
        return self._scene_index

    @property
    def dialogue_index(self) -> int:
        return self._dialogue_index

    @property
    def autoplay(self) -> bool:
        return self._autoplay

    @property
    def speed(self) -> float:
        return self._speed

    @property
    def autoplay_delay_ms(self) -> float:
        return self._autoplay_base_ms / self._speed

    def current_scene(self) -> StoryScene | None:
        if self._story is None or self._scene_index >= len(self._story.scenes):
            return None
        return self._story.scenes[self._scene_index]

    def current_node(self) -> DialogueNode | None:
        scene = self.current_scene()
        if scene is None or self._dialogue_index >= len(scene.dialogue):
            return None
        return scene.dialogue[self._dialogue_index]

    def available_choices(self) -> tuple[StoryChoice, ...]:
        if self._state != PlayerState.AWAITING_CHOICE:
            return ()
        scene = self.current_scene()
        return scene.choices if scene is not None else ()

    def revealed_text(self) -> str:
        node = self.current_node()
        if node is None:
            return ""
        if self._state == PlayerState.TYPING:
            elapsed = self._scheduler.now_ms() - self._reveal_started_ms
            return revealed_text(node.text, elapsed, self._typing_interval_ms)
        return node.text

    # -- starting -----------------------------------------------------------------

    def start_story(self, story: StoryArc, character_id: str | None = None) -> None:
        self._begin(story, character_id, interjection=False)

    def start_interjection(
        self,
        node: DialogueNode,
        character_id: str,
        replies: tuple[StoryChoice, ...] = (),
    ) -> None:
        scene = StoryScene(
            id=INTERJECTION_SCENE_ID,
            setting="",
            description="",
            dialogue=(node,),
            choices=tuple(replies),
        )
        arc = StoryArc(
            id=f"{INTERJECTION_SCENE_ID}_{character_id}",
            title="",
            description="",
            chapter=0,
            unlock_level=0,
            scenes=(scene,),
        )
        self._begin(arc, character_id, interjection=True)

    def _begin(self, story: StoryArc, character_id: str | None, *, interjection: bool) -> None:
        if self._story is not None:
            if self._interjection and not interjection:
                # a pending interjection never blocks a story
                self.close()
            elif self._active_policy == ACTIVE_POLICY_FORCE_COMPLETE:
                _logger.info(
                    "Force-completing active playback",
                    extra={"active_story_id": self._story.id, "next_story_id": story.id},
                )
                self._complete(skipped=True)
            else:
                raise PlaybackActiveError(self._story.id)

        self._story = story
        self._character_id = character_id
        self._interjection = interjection
        self._scene_index = 0
        self._dialogue_index = 0
        self._enter_typing()

    # -- commands -----------------------------------------------------------------

    def complete_reveal(self) -> bool:
        if self._state != PlayerState.TYPING:
            return False
        self._finish_reveal()
        return True

    def advance(self) -> bool:
        if self._state != PlayerState.AWAITING_CONTINUE:
            return False
        self._cancel_timer()
        self._dialogue_index += 1
        scene = self.current_scene()
        if scene is not None and self._dialogue_index < len(scene.dialogue):
            self._enter_typing()
        else:
            self._advance_scene()
        return True

    def select_choice(self, choice_id: str) -> ConsequenceDescriptor | None:
        if self._state != PlayerState.AWAITING_CHOICE:
            return None
        scene = self.current_scene()
        choice = scene.choice(choice_id) if scene is not None else None
        if choice is None:
            _logger.debug("Unknown choice ignored", extra={"choice_id": choice_id})
            return None
        # leave AWAITING_CHOICE before resolving so a repeated selection is a no-op
        story = self._story
        self._state = PlayerState.SCENE_ADVANCE
        self._cancel_timer()
        descriptor = self._resolver.resolve(choice, self._character_id)
        if self._story is story and self._state == PlayerState.SCENE_ADVANCE:
            self._advance_scene()
        return descriptor

    def skip(self) -> bool:
        if self._story is None:
            return False
        self._complete(skipped=True)
        return True

    def close(self) -> bool:
        """Dispose the playback without completing it."""
        if self._story is None:
            return False
        self._cancel_timer()
        self._reset()
        return True

    def set_autoplay(self, enabled: bool) -> None:
        self._autoplay = bool(enabled)
        if self._state != PlayerState.AWAITING_CONTINUE:
            return
        if self._autoplay:
            self._schedule(self.autoplay_delay_ms, self._on_autoplay)
        else:
            self._cancel_timer()

    def set_speed(self, speed: float) -> None:
        if speed <= 0:
            raise ValueError("speed must be positive")
        self._speed = float(speed)
        if self._state == PlayerState.AWAITING_CONTINUE and self._autoplay:
            self._schedule(self.autoplay_delay_ms, self._on_autoplay)

    # -- transitions --------------------------------------------------------------

    def _enter_typing(self) -> None:
        node = self.current_node()
        if node is None:
            self._advance_scene()
            return
        self._state = PlayerState.TYPING
        self._reveal_started_ms = self._scheduler.now_ms()
        duration = reveal_duration_ms(node.text, self._typing_interval_ms)
        if duration <= 0:
            self._cancel_timer()
            self._finish_reveal()
            return
        self._schedule(duration, self._finish_reveal)

    def _finish_reveal(self) -> None:
        if self._state != PlayerState.TYPING:
            return
        self._cancel_timer()
        node = self.current_node()
        scene = self.current_scene()
        if node is None or scene is None:
            return
        is_last = self._dialogue_index >= len(scene.dialogue) - 1
        if is_last and scene.has_choices:
            self._state = PlayerState.AWAITING_CHOICE
        else:
            self._state = PlayerState.AWAITING_CONTINUE
        if self._state == PlayerState.AWAITING_CONTINUE and self._autoplay:
            self._schedule(self.autoplay_delay_ms, self._on_autoplay)
        self._event_bus.publish(VoiceCue(speaker=node.speaker, voice_effect=node.voice_effect))

    def _on_autoplay(self) -> None:
        self.advance()

    def _advance_scene(self) -> None:
        story = self._story
        scene = self.current_scene()
        if story is None or scene is None:
            return
        self._state = PlayerState.SCENE_ADVANCE
        finished = self._scene_index + 1
        if not self._interjection:
            percent = (finished * 100) // story.scene_count
            self._progress.set_story_percent(story.id, percent)
            self._event_bus.publish(
                SceneCompleted(
                    story_id=story.id,
                    scene_id=scene.id,
                    outcome=scene.outcome,
                    unlocks=tuple(scene.unlocks),
                    percent_complete=percent,
                )
            )
        # a subscriber may have closed or replaced the playback
        if self._story is not story or self._state != PlayerState.SCENE_ADVANCE:
            return
        if finished < story.scene_count:
            self._scene_index = finished
            self._dialogue_index = 0
            self._enter_typing()
        else:
            self._complete(skipped=False)

    def _complete(self, *, skipped: bool) -> None:
        story = self._story
        if story is None:
            return
        self._cancel_timer()
        self._state = PlayerState.STORY_COMPLETE
        interjection = self._interjection
        if not interjection:
            self._progress.mark_completed(story.id)
        self._reset()
        if not interjection:
            self._event_bus.publish(
                StoryCompleted(story_id=story.id, title=story.title, rewards=tuple(story.rewards), skipped=skipped)
            )

    def _reset(self) -> None:
        self._state = PlayerState.IDLE
        self._story = None
        self._character_id = None
        self._interjection = False
        self._scene_index = 0
        self._dialogue_index = 0

    # -- timer --------------------------------------------------------------------

    def _schedule(self, delay_ms: float, callback: Callable[[], None]) -> None:
        self._cancel_timer()
        self._timer = self._scheduler.call_later(delay_ms, callback)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def pending_timer(self) -> bool:
        return self._timer is not None and self._timer.active
