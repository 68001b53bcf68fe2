import json
import sys
from pathlib import Path
import unittest

sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

from lorekeeper.application.services.progress_store import PROGRESS_KEY, RELATIONSHIPS_KEY, ProgressStore
from lorekeeper.domain.models.progress import RelationshipTier, clamp_relationship, relationship_tier
from lorekeeper.domain.repositories import ProgressConflictError
from lorekeeper.infrastructure.inmemory.inmemory_state_repo import InMemoryStateRepository


class RelationshipTierTests(unittest.TestCase):
    def test_tier_bands(self) -> None:
        self.assertEqual(RelationshipTier.BEST_FRIEND, relationship_tier(80))
        self.assertEqual(RelationshipTier.CLOSE_FRIEND, relationship_tier(79))
        self.assertEqual(RelationshipTier.FRIEND, relationship_tier(40))
        self.assertEqual(RelationshipTier.ACQUAINTANCE, relationship_tier(20))
        self.assertEqual(RelationshipTier.NEUTRAL, relationship_tier(0))
        self.assertEqual(RelationshipTier.DISLIKE, relationship_tier(-5))
        self.assertEqual(RelationshipTier.DISLIKE, relationship_tier(-20))
        self.assertEqual(RelationshipTier.HOSTILE, relationship_tier(-21))

    def test_out_of_range_scores_are_clamped_before_lookup(self) -> None:
        self.assertEqual(100, clamp_relationship(250))
        self.assertEqual(-100, clamp_relationship(-999))
        self.assertEqual(RelationshipTier.HOSTILE, relationship_tier(-10_000))


class ProgressStoreTests(unittest.TestCase):
    def test_fresh_store_starts_empty(self) -> None:
        store = ProgressStore(InMemoryStateRepository())

        self.assertEqual(set(), store.record.unlocked)
        self.assertEqual({}, store.relationships())
        self.assertEqual(0, store.relationship("anyone"))

    def test_mutations_persist_and_reload(self) -> None:
        repo = InMemoryStateRepository()
        store = ProgressStore(repo, player_id="p1")
        self.assertEqual(["a", "b"], store.mark_unlocked(["a", "b"]))
        self.assertEqual([], store.mark_unlocked(["a"]))
        store.set_story_percent("a", 50)
        store.mark_completed("b")
        store.apply_relationship_delta("hero", 12)

        reloaded = ProgressStore(repo, player_id="p1")

        self.assertEqual({"a", "b"}, reloaded.record.unlocked)
        self.assertEqual({"b"}, reloaded.record.completed)
        self.assertEqual({"a": 50, "b": 100}, reloaded.record.story_percent)
        self.assertEqual({"hero": 12}, reloaded.relationships())

    def test_players_are_isolated(self) -> None:
        repo = InMemoryStateRepository()
        ProgressStore(repo, player_id="p1").mark_unlocked(["a"])

        self.assertEqual(set(), ProgressStore(repo, player_id="p2").record.unlocked)

    def test_relationship_delta_clamps_and_reports_before_after(self) -> None:
        store = ProgressStore(InMemoryStateRepository())
        store.apply_relationship_delta("x", 5)

        self.assertEqual((5, -5), store.apply_relationship_delta("x", -10))
        self.assertEqual((-5, -100), store.apply_relationship_delta("x", -500))

    def test_story_percent_never_regresses(self) -> None:
        store = ProgressStore(InMemoryStateRepository())
        store.set_story_percent("a", 66)

        self.assertEqual(66, store.set_story_percent("a", 33))
        self.assertEqual(100, store.set_story_percent("a", 140))

    def test_malformed_blobs_are_discarded(self) -> None:
        repo = InMemoryStateRepository(
            seed={
                ("local", PROGRESS_KEY): "{not json",
                ("local", RELATIONSHIPS_KEY): json.dumps({"x": "lots"}),
            }
        )

        with self.assertLogs("lorekeeper.application.services.progress_store", level="WARNING") as logs:
            store = ProgressStore(repo)

        self.assertEqual(set(), store.record.unlocked)
        self.assertEqual({}, store.relationships())
        self.assertEqual(2, len(logs.records))

        store.mark_unlocked(["fresh"])
        self.assertEqual({"fresh"}, ProgressStore(repo).record.unlocked)

    def test_non_finite_numbers_are_discarded(self) -> None:
        repo = InMemoryStateRepository(
            seed={
                ("local", PROGRESS_KEY): '{"unlocked": ["intro"], "story_percent": {"intro": 1e400}}',
                ("local", RELATIONSHIPS_KEY): '{"mentor_01": Infinity}',
            }
        )

        with self.assertLogs("lorekeeper.application.services.progress_store", level="WARNING") as logs:
            store = ProgressStore(repo)

        self.assertEqual(set(), store.record.unlocked)
        self.assertEqual({}, store.record.story_percent)
        self.assertEqual({}, store.relationships())
        self.assertEqual(2, len(logs.records))

    def test_nan_relationship_score_is_discarded(self) -> None:
        repo = InMemoryStateRepository(seed={("local", RELATIONSHIPS_KEY): '{"mentor_01": NaN}'})

        with self.assertLogs("lorekeeper.application.services.progress_store", level="WARNING"):
            store = ProgressStore(repo)

        self.assertEqual({}, store.relationships())

    def test_wrong_shapes_are_discarded(self) -> None:
        repo = InMemoryStateRepository(seed={("local", PROGRESS_KEY): json.dumps({"unlocked": "a,b"})})

        with self.assertLogs("lorekeeper.application.services.progress_store", level="WARNING"):
            store = ProgressStore(repo)

        self.assertEqual(set(), store.record.unlocked)

    def test_stale_store_cannot_overwrite_newer_progress(self) -> None:
        repo = InMemoryStateRepository()
        first = ProgressStore(repo)
        second = ProgressStore(repo)
        first.mark_unlocked(["a"])

        with self.assertRaises(ProgressConflictError):
            second.mark_unlocked(["b"])

    def test_reset_clears_everything(self) -> None:
        repo = InMemoryStateRepository()
        store = ProgressStore(repo)
        store.mark_completed("a")
        store.apply_relationship_delta("x", 30)

        store.reset()

        reloaded = ProgressStore(repo)
        self.assertEqual(set(), reloaded.record.completed)
        self.assertEqual({}, reloaded.relationships())


if __name__ == "__main__":
    unittest.main()
