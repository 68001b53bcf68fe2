import time
from typing import Callable

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from lorekeeper.application.dtos import DialogueView
from lorekeeper.application.services.narrative_engine import NarrativeEngine
from lorekeeper.application.services.scheduler import ManualScheduler


_BORDER_DIALOGUE = "cyan"
_BORDER_STORIES = "yellow"
_BORDER_NOTICE = "magenta"
_BORDER_BONDS = "green"

_SAMPLE_EVENTS = (
    ("game_start", {}),
    ("level_complete", {"level": 5}),
    ("achievement", {"achievement": "first_steps"}),
    ("high_score", {"newScore": 12000}),
    ("defeat", {}),
    ("quest_complete", {"quest_id": "summit_relay"}),
)


def _title(text: str) -> str:
    return f"[bold yellow]{text}[/bold yellow]"


def render_dialogue(view: DialogueView) -> Panel:
    lines = []
    if view.setting:
        lines.append(f"[dim]{view.setting}[/dim]")
    speaker = view.speaker_name or "Narrator"
    emotion = f" [dim]({view.emotion})[/dim]" if view.emotion else ""
    lines.append(f"[bold]{speaker}[/bold]{emotion}")
    lines.append(view.revealed_text)
    for index, choice in enumerate(view.choices, start=1):
        change = ""
        if choice.relationship_change:
            change = f" [dim]({choice.relationship_change:+d})[/dim]"
        lines.append(f"  [cyan]{index}[/cyan]. {choice.text}{change}")
    if view.is_interjection:
        subtitle = "[dim]Companion interjection[/dim]"
    else:
        subtitle = f"[dim]Scene {view.scene_number}/{view.scene_count} - line {view.dialogue_number}/{view.dialogue_count}[/dim]"
    return Panel.fit(
        "\n".join(lines),
        title=_title(view.story_title or view.scene_title or "Dialogue"),
        subtitle=subtitle,
        subtitle_align="left",
        border_style=_BORDER_DIALOGUE,
    )


def render_stories(engine: NarrativeEngine) -> Table:
    table = Table(title="Stories", border_style=_BORDER_STORIES)
    table.add_column("#", justify="right")
    table.add_column("Story")
    table.add_column("Character")
    table.add_column("Level", justify="right")
    table.add_column("Status")
    for index, row in enumerate(engine.list_stories(), start=1):
        if row.completed:
            status = "[green]Completed[/green]"
        elif row.unlocked:
            status = f"Unlocked ({row.percent_complete}%)"
        else:
            status = "[dim]Locked[/dim]"
        table.add_row(str(index), row.title, row.character_name, str(row.unlock_level), status)
    return table


def render_relationships(engine: NarrativeEngine) -> Table:
    table = Table(title="Relationships", border_style=_BORDER_BONDS)
    table.add_column("Character")
    table.add_column("Score", justify="right")
    table.add_column("Tier")
    for row in engine.relationship_views():
        table.add_row(row.name, str(row.score), row.tier)
    return table


def render_notifications(engine: NarrativeEngine) -> Panel | None:
    rows = engine.notifications()
    if not rows:
        return None
    body = "\n".join(f"[bold]{row.title}[/bold] - {row.description}" for row in rows)
    return Panel.fit(body, title=_title("Notifications"), border_style=_BORDER_NOTICE)


class ConsoleHost:
    """Interactive terminal host: manual continue, numbered choices, sample game events."""

    def __init__(
        self,
        engine: NarrativeEngine,
        console: Console | None = None,
        input_fn: Callable[[str], str] | None = None,
    ) -> None:
        self.engine = engine
        self.console = console or Console()
        self._input = input_fn or self.console.input
        self._last_tick = time.monotonic()
        self.engine.set_autoplay(False)

    def _tick(self) -> None:
        # the virtual clock follows wall time between prompts so notifications expire
        now = time.monotonic()
        elapsed_ms = (now - self._last_tick) * 1000.0
        self._last_tick = now
        if isinstance(self.engine.scheduler, ManualScheduler):
            self.engine.scheduler.advance(elapsed_ms)

    def _ask(self, prompt: str) -> str:
        answer = self._input(prompt)
        self._tick()
        return str(answer or "").strip()

    def _show_notifications(self) -> None:
        panel = render_notifications(self.engine)
        if panel is not None:
            self.console.print(panel)

    def play_current(self) -> None:
        engine = self.engine
        while engine.view().state != "idle":
            engine.complete_reveal()
            view = engine.view()
            self.console.print(render_dialogue(view))
            if view.choices:
                answer = self._ask("[dim]Choose a number (s to skip, x to close): [/dim]")
                if answer.lower() == "s":
                    engine.skip()
                elif answer.lower() == "x":
                    engine.close()
                elif answer.isdigit() and 1 <= int(answer) <= len(view.choices):
                    engine.select_choice(view.choices[int(answer) - 1].id)
                else:
                    self.console.print("[red]Pick one of the listed choices.[/red]")
            else:
                answer = self._ask("[dim]ENTER to continue (s to skip, x to close): [/dim]")
                if answer.lower() == "s":
                    engine.skip()
                elif answer.lower() == "x":
                    engine.close()
                else:
                    engine.advance()
            self._show_notifications()

    def play_story(self) -> None:
        stories = self.engine.list_stories()
        self.console.print(render_stories(self.engine))
        answer = self._ask("[dim]Story number: [/dim]")
        if not answer.isdigit() or not 1 <= int(answer) <= len(stories):
            self.console.print("[red]No such story.[/red]")
            return
        story = stories[int(answer) - 1]
        if not self.engine.start_story(story.id):
            self.console.print(f"[red]{story.title} is not available yet.[/red]")
            return
        self.play_current()

    def fire_event(self) -> None:
        for index, (kind, payload) in enumerate(_SAMPLE_EVENTS, start=1):
            detail = f" {payload}" if payload else ""
            self.console.print(f"  [cyan]{index}[/cyan]. {kind}{detail}")
        answer = self._ask("[dim]Event number: [/dim]")
        if not answer.isdigit() or not 1 <= int(answer) <= len(_SAMPLE_EVENTS):
            self.console.print("[red]No such event.[/red]")
            return
        kind, payload = _SAMPLE_EVENTS[int(answer) - 1]
        trigger = self.engine.handle_game_event({"type": kind, "payload": payload})
        self._show_notifications()
        if trigger is None:
            self.console.print("[dim]Nobody had anything to say.[/dim]")
            return
        self.play_current()

    def set_level(self) -> None:
        answer = self._ask("[dim]Player level: [/dim]")
        if not answer.isdigit():
            self.console.print("[red]Level must be a number.[/red]")
            return
        self.engine.update_player(level=int(answer))
        self._show_notifications()

    def run(self) -> None:
        self.engine.update_player(level=1)
        actions = {
            "1": ("Stories", lambda: self.console.print(render_stories(self.engine))),
            "2": ("Play a story", self.play_story),
            "3": ("Fire a game event", self.fire_event),
            "4": ("Relationships", lambda: self.console.print(render_relationships(self.engine))),
            "5": ("Set player level", self.set_level),
        }
        while True:
            menu = "\n".join(f"[cyan]{key}[/cyan]. {label}" for key, (label, _) in actions.items())
            self.console.print(Panel.fit(menu + "\n[cyan]q[/cyan]. Quit", title=_title("Lorekeeper")))
            answer = self._ask("[dim]> [/dim]").lower()
            if answer in {"q", "quit", "exit"}:
                return
            action = actions.get(answer)
            if action is None:
                self.console.print("[red]Unknown option.[/red]")
                continue
            action[1]()
