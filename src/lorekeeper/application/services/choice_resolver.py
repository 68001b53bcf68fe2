from __future__ import annotations

from lorekeeper.application.services.event_bus import EventBus
from lorekeeper.application.services.progress_store import ProgressStore
from lorekeeper.domain.events import ChoiceResolved, ConsequenceDescriptor, RelationshipChanged
from lorekeeper.domain.models.character import Character
from lorekeeper.domain.models.story import RelationshipDelta, StoryChoice


LORE_UNLOCK = "character_lore"


class ChoiceResolver:
    """Applies a selected choice to the progress store and announces the outcome.

    State is written before any event is published, so a failing subscriber
    never rolls back the relationship change.
    """

    def __init__(self, progress: ProgressStore, event_bus: EventBus) -> None:
        self._progress = progress
        self._event_bus = event_bus

    def resolve(self, choice: StoryChoice, active_character_id: str | None) -> ConsequenceDescriptor:
        delta = choice.relationship_delta
        pending: list[RelationshipChanged] = []
        if delta is not None:
            before, after = self._progress.apply_relationship_delta(delta.character_id, delta.change)
            pending.append(
                RelationshipChanged(
                    character_id=delta.character_id,
                    delta=after - before,
                    score_before=before,
                    score_after=after,
                    requested_delta=int(delta.change),
                )
            )

        descriptor = ConsequenceDescriptor(
            choice_id=choice.id,
            consequence_text=choice.consequence,
            relationship_change=delta,
            unlocks=tuple(choice.unlocks),
            blocks=tuple(choice.blocks),
        )
        for event in pending:
            self._event_bus.publish(event)
        self._event_bus.publish(
            ChoiceResolved(choice_id=choice.id, descriptor=descriptor, character_id=active_character_id)
        )
        return descriptor


def reply_choices(character: Character, *, limit: int = 3) -> tuple[StoryChoice, ...]:
    """Player replies offered after a character's interjection line."""

    def _reply(choice_id: str, text: str, change: int, unlocks: tuple[str, ...] = ()) -> StoryChoice:
        return StoryChoice(
            id=choice_id,
            text=text,
            relationship_delta=RelationshipDelta(character_id=character.id, change=change),
            unlocks=unlocks,
        )

    replies: list[StoryChoice] = []
    if character.has_trait("Wise"):
        replies.append(_reply("wisdom", "I value your wisdom greatly.", 10))
    if character.has_trait("Ambitious"):
        replies.append(_reply("ambitious", "Your ambition inspires me!", 8))
    replies.append(_reply("positive", "Thank you for the encouragement!", 5))
    replies.append(_reply("question", "Can you tell me more about that?", 3, (LORE_UNLOCK,)))
    replies.append(_reply("neutral", "I understand.", 1))
    return tuple(replies[: max(0, int(limit))])
