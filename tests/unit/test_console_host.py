import io
import random
import sys
from pathlib import Path
import unittest

from rich.console import Console

sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

from lorekeeper.application.services.narrative_engine import NarrativeEngine
from lorekeeper.application.services.scheduler import ManualScheduler
from lorekeeper.application.settings import EngineSettings
from lorekeeper.infrastructure.catalog_loader import load_catalog_file
from lorekeeper.infrastructure.inmemory.inmemory_state_repo import InMemoryStateRepository
from lorekeeper.presentation.console_host import ConsoleHost, render_notifications, render_stories


def _host(answers: list[str]) -> tuple[ConsoleHost, io.StringIO]:
    engine = NarrativeEngine(
        load_catalog_file(),
        InMemoryStateRepository(),
        ManualScheduler(),
        EngineSettings(),
        rng=random.Random(3),
    )
    buffer = io.StringIO()
    console = Console(file=buffer, width=120, color_system=None, force_terminal=False)
    scripted = iter(answers)
    return ConsoleHost(engine, console=console, input_fn=lambda _prompt: next(scripted)), buffer


class ConsoleHostTests(unittest.TestCase):
    def test_host_turns_autoplay_off(self) -> None:
        host, _ = _host([])

        self.assertFalse(host.engine.view().autoplay)

    def test_plays_first_story_with_a_choice(self) -> None:
        # menu 2 -> story 1; three lines, choice 2 (knowledge), two closing lines; then quit
        host, buffer = _host(["2", "1", "", "", "2", "", "", "q"])

        host.run()

        text = buffer.getvalue()
        self.assertIn("The Guardian's Awakening", text)
        self.assertIn("I want to learn and help secure the network", text)
        self.assertIn("Story Complete: The Guardian's Awakening", text)
        self.assertEqual(20, host.engine.progress.relationship("avalon-the-mountain-guardian"))
        self.assertTrue(host.engine.progress.record.is_completed("avalon-awakening"))

    def test_locked_story_is_refused(self) -> None:
        host, buffer = _host(["2", "2", "q"])

        host.run()

        self.assertIn("is not available yet", buffer.getvalue())

    def test_game_event_interjection_can_be_skipped(self) -> None:
        host, buffer = _host(["3", "1", "s", "q"])

        host.run()

        self.assertIn("Companion interjection", buffer.getvalue())
        self.assertEqual("idle", host.engine.view().state)

    def test_set_level_unlocks_more_stories(self) -> None:
        host, buffer = _host(["5", "5", "1", "q"])

        host.run()

        self.assertIn("New Story Unlocked: Birth of the Token Storm", buffer.getvalue())
        rows = {row.id: row for row in host.engine.list_stories()}
        self.assertTrue(rows["lyra-token-storm"].unlocked)

    def test_unknown_menu_option_is_reported(self) -> None:
        host, buffer = _host(["9", "q"])

        host.run()

        self.assertIn("Unknown option.", buffer.getvalue())

    def test_renderers(self) -> None:
        host, _ = _host([])
        self.assertIsNone(render_notifications(host.engine))

        host.engine.update_player(level=1)

        self.assertIsNotNone(render_notifications(host.engine))
        self.assertEqual(5, render_stories(host.engine).row_count)


if __name__ == "__main__":
    unittest.main()
