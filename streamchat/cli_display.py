"""Rich rendering for chat turns.

Renders chat turns as panels (answer text, following steps, citations,
follow-up questions, errors) and provides ChatDisplay, a Live view that
follows the open turn while an answer streams in. Updated via event
listener callbacks from the ChatEventEmitter.
"""

from __future__ import annotations

from rich.console import Console, Group, RenderableType
from rich.live import Live
from rich.markdown import Markdown
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from streamchat.events import ChatEvent, EventType
from streamchat.schemas.chat import ChatTurn
from streamchat.schemas.config import Labels

COLORS = {
    "user": "cyan",
    "bot": "green",
    "error": "red",
    "dim": "grey50",
    "accent": "magenta",
}


def render_turn(turn: ChatTurn, labels: Labels, *, streaming: bool = False) -> Panel:
    """Build a panel for a single chat turn."""
    parts: list[RenderableType] = []

    for entry in turn.text:
        if entry.value:
            parts.append(Markdown(entry.value) if not turn.is_user_message else Text(entry.value))
        if entry.following_steps:
            steps = Text()
            for i, step in enumerate(entry.following_steps, 1):
                steps.append(f"  {i}. ", style=COLORS["accent"])
                steps.append(f"{step}\n")
            parts.append(steps)

    if turn.citations:
        citations = Text("Citations: ", style=COLORS["dim"])
        citations.append(
            "  ".join(f"{c.ref}. {c.text}" for c in turn.citations),
            style="underline",
        )
        parts.append(citations)

    if turn.followup_questions:
        followups = Text("Follow-up questions:\n", style=COLORS["dim"])
        for question in turn.followup_questions:
            followups.append(f"  ? {question}\n", style=COLORS["accent"])
        parts.append(followups)

    if turn.error is not None:
        parts.append(Text(turn.error.message, style=f"bold {COLORS['error']}"))

    if not parts:
        parts.append(Text("…" if streaming else "", style=COLORS["dim"]))

    who = labels.user_name if turn.is_user_message else labels.bot_name
    color = COLORS["user"] if turn.is_user_message else COLORS["bot"]
    if turn.error is not None:
        color = COLORS["error"]
    subtitle = turn.timestamp.strftime("%H:%M:%S")
    if streaming:
        subtitle += " · streaming (Ctrl+C to stop)"

    return Panel(
        Group(*parts),
        title=f"[bold {color}]{who}[/bold {color}]",
        title_align="left",
        subtitle=f"[{COLORS['dim']}]{subtitle}[/{COLORS['dim']}]",
        subtitle_align="right",
        border_style=color,
    )


def render_thought_process(thoughts: str, data_points: list[str]) -> Table:
    """Build a table with the thought process and supporting content."""
    table = Table(title="Thought process", show_header=False, expand=True)
    table.add_column("Section", style="bold", no_wrap=True)
    table.add_column("Content")
    table.add_row("Thoughts", thoughts or "[dim]none[/dim]")
    if data_points:
        for i, point in enumerate(data_points, 1):
            table.add_row(f"Source {i}", point)
    else:
        table.add_row("Sources", "[dim]none[/dim]")
    return table


class ChatDisplay:
    """Live view of the turn currently being answered.

    Completed turns are printed permanently; the open turn is shown in a
    transient Live region that is replaced on every progress event.
    """

    def __init__(self, console: Console, labels: Labels) -> None:
        self._console = console
        self._labels = labels
        self._live: Live | None = None
        self._turn: ChatTurn | None = None

    def create_listener(self):
        """Return a sync callback for ChatEventEmitter."""

        def listener(event: ChatEvent) -> None:
            turn = event.data.get("turn")

            if event.type == EventType.TURN_APPENDED and turn is not None:
                if turn.is_open:
                    self._turn = turn
                    self._start()
                elif turn.is_user_message:
                    # The prompt line already shows what the user typed
                    return
                else:
                    self._console.print(render_turn(turn, self._labels))

            elif event.type == EventType.PROGRESS and turn is not None:
                self._turn = turn
                self._refresh()

            elif event.type in (
                EventType.EXCHANGE_COMPLETED,
                EventType.EXCHANGE_CANCELLED,
                EventType.EXCHANGE_FAILED,
            ):
                self._finish(turn, event)

            elif event.type == EventType.THREAD_RESET:
                self._stop()
                self._console.print(f"[{COLORS['dim']}]Chat cleared.[/{COLORS['dim']}]")

        return listener

    def _start(self) -> None:
        self._stop()
        self._live = Live(
            self._renderable(),
            console=self._console,
            refresh_per_second=8,
            transient=True,
        )
        self._live.start()

    def _refresh(self) -> None:
        if self._live is not None:
            self._live.update(self._renderable())

    def _stop(self) -> None:
        if self._live is not None:
            self._live.stop()
            self._live = None

    def _finish(self, turn: ChatTurn | None, event: ChatEvent) -> None:
        streamed = self._live is not None
        self._stop()
        self._turn = None
        if turn is None:
            return
        # Full responses were already printed when their turn was appended
        if streamed or event.type == EventType.EXCHANGE_FAILED:
            self._console.print(render_turn(turn, self._labels))
        if event.type == EventType.EXCHANGE_CANCELLED:
            self._console.print(f"[{COLORS['dim']}]Answer stopped.[/{COLORS['dim']}]")

    def _renderable(self) -> RenderableType:
        if self._turn is None:
            return Text("")
        return render_turn(self._turn, self._labels, streaming=True)
