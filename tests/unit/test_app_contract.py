import sys
from dataclasses import fields
from pathlib import Path
import unittest

sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

from lorekeeper.application import dtos
from lorekeeper.application.contract import (
    COMMAND_INTENTS,
    CONTRACT_DTO_TYPES,
    CONTRACT_VERSION,
    QUERY_INTENTS,
)
from lorekeeper.application.services.narrative_engine import NarrativeEngine


class ApplicationContractTests(unittest.TestCase):
    def test_contract_version_uses_semver(self) -> None:
        self.assertRegex(CONTRACT_VERSION, r"^\d+\.\d+\.\d+$")

    def test_narrative_engine_implements_declared_command_and_query_intents(self) -> None:
        for name in COMMAND_INTENTS + QUERY_INTENTS:
            self.assertTrue(callable(getattr(NarrativeEngine, name, None)), f"Missing contract intent: {name}")

    def test_declared_dto_types_exist(self) -> None:
        for dto_name in CONTRACT_DTO_TYPES:
            self.assertTrue(hasattr(dtos, dto_name), f"Missing contract DTO: {dto_name}")

    def test_playback_intent_names_are_stable(self) -> None:
        for name in ("start_story", "advance", "select_choice", "skip", "close"):
            self.assertIn(name, COMMAND_INTENTS)
        for name in ("view", "notifications", "drain_effects"):
            self.assertIn(name, QUERY_INTENTS)

    def test_core_dto_fields_are_backward_compatible(self) -> None:
        self.assertEqual(
            ("id", "title", "character_id", "character_name", "chapter", "unlock_level", "unlocked", "completed", "percent_complete"),
            tuple(field.name for field in fields(dtos.StorySummaryView)),
        )
        self.assertEqual(
            ("id", "category", "title", "description", "character_id"),
            tuple(field.name for field in fields(dtos.NotificationView)),
        )
        self.assertEqual(("id", "text", "relationship_change"), tuple(field.name for field in fields(dtos.ChoiceView)))


if __name__ == "__main__":
    unittest.main()
