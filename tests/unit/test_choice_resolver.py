import sys
from pathlib import Path
import unittest

sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

from lorekeeper.application.services.choice_resolver import LORE_UNLOCK, ChoiceResolver, reply_choices
from lorekeeper.application.services.event_bus import EventBus
from lorekeeper.application.services.progress_store import ProgressStore
from lorekeeper.domain.events import ChoiceResolved, RelationshipChanged
from lorekeeper.domain.models.progress import RelationshipTier, relationship_tier
from lorekeeper.infrastructure.inmemory.inmemory_state_repo import InMemoryStateRepository

from story_builders import character, choice


class ChoiceResolverTests(unittest.TestCase):
    def setUp(self) -> None:
        self.progress = ProgressStore(InMemoryStateRepository())
        self.bus = EventBus()
        self.events = []
        self.bus.subscribe(RelationshipChanged, self.events.append)
        self.bus.subscribe(ChoiceResolved, self.events.append)
        self.resolver = ChoiceResolver(self.progress, self.bus)

    def test_negative_delta_from_small_score_goes_negative_and_tier_lookup_works(self) -> None:
        self.progress.apply_relationship_delta("x", 5)

        descriptor = self.resolver.resolve(choice("betray", "x", -10), "x")

        self.assertEqual(-5, self.progress.relationship("x"))
        self.assertEqual(RelationshipTier.DISLIKE, relationship_tier(self.progress.relationship("x")))
        self.assertEqual("betray", descriptor.choice_id)
        self.assertEqual(-10, descriptor.relationship_change.change)

    def test_state_is_committed_before_events_publish(self) -> None:
        seen = []
        self.bus.subscribe(RelationshipChanged, lambda _e: seen.append(self.progress.relationship("x")))

        self.resolver.resolve(choice("help", "x", 20), "x")

        self.assertEqual([20], seen)
        self.assertIsInstance(self.events[0], RelationshipChanged)
        self.assertEqual((0, 20), (self.events[0].score_before, self.events[0].score_after))
        self.assertIsInstance(self.events[1], ChoiceResolved)

    def test_clamped_change_reports_the_applied_delta(self) -> None:
        self.progress.apply_relationship_delta("x", 100)

        self.resolver.resolve(choice("help", "x", 10), "x")

        self.assertEqual(100, self.progress.relationship("x"))
        changed = self.events[0]
        self.assertEqual((0, 100, 100), (changed.delta, changed.score_before, changed.score_after))
        self.assertEqual(10, changed.requested_delta)

    def test_partially_clamped_change_reports_what_was_stored(self) -> None:
        self.progress.apply_relationship_delta("x", -95)

        self.resolver.resolve(choice("betray", "x", -10), "x")

        self.assertEqual(-5, self.events[0].delta)
        self.assertEqual(-100, self.progress.relationship("x"))

    def test_choice_without_delta_publishes_only_resolution(self) -> None:
        self.resolver.resolve(choice("shrug"), None)

        self.assertEqual([ChoiceResolved], [type(event) for event in self.events])
        self.assertEqual({}, self.progress.relationships())


class ReplyChoiceTests(unittest.TestCase):
    def test_personality_replies_come_first_and_are_capped(self) -> None:
        replies = reply_choices(character("sage", personality=("Wise", "Ambitious")))

        self.assertEqual(["wisdom", "ambitious", "positive"], [row.id for row in replies])
        self.assertEqual(10, replies[0].relationship_delta.change)

    def test_plain_character_gets_base_replies(self) -> None:
        replies = reply_choices(character("plain"))

        self.assertEqual(["positive", "question", "neutral"], [row.id for row in replies])
        self.assertEqual((LORE_UNLOCK,), replies[1].unlocks)
        self.assertEqual({"plain"}, {row.relationship_delta.character_id for row in replies})


if __name__ == "__main__":
    unittest.main()
