"""Textual full-screen display for a running power hour."""

from __future__ import annotations

import logging

from rich.text import Text
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Vertical
from textual.widgets import Static

from core.game import Game
from core.state import SessionState

from .formatting import (
    BANNER,
    BEER,
    HELP_LINE,
    now_playing_lines,
    played_line,
    progress_bar,
    round_counter,
    status_line,
)

logger = logging.getLogger(__name__)


class PowerHourApp(App):
    """
    Paints game.state on a timer and turns key presses into events.
    Never touches the player or the playlist; the game owns those.
    """

    CSS = """
    Screen {
        layout: vertical;
    }
    #banner {
        text-style: bold;
        color: $accent;
    }
    #now-playing {
        height: auto;
        margin-top: 1;
    }
    #beer {
        height: 1fr;
        content-align: center middle;
        color: $warning;
    }
    #status {
        color: $warning;
    }
    #bars {
        height: auto;
        dock: bottom;
    }
    """

    BINDINGS = [
        Binding("s", "skip", "Skip"),
        Binding("right", "skip", "Skip", show=False),
        Binding("p", "toggle_pause", "Play/Pause"),
        Binding("space", "toggle_pause", "Play/Pause", show=False),
        Binding("q", "quit_session", "Quit"),
    ]

    def __init__(self, game: Game, refresh_interval: float = 0.1):
        super().__init__()
        self.game = game
        self.refresh_interval = refresh_interval
        self.last_state: SessionState | None = None
        self._closing = False

    def compose(self) -> ComposeResult:
        yield Static(Text(BANNER), id="banner")
        yield Static(id="counter")
        yield Static(Text("Now Playing:"), id="now-playing-label")
        yield Static(id="now-playing")
        yield Static(Text("\n".join(BEER)), id="beer")
        with Vertical(id="bars"):
            yield Static(id="status")
            yield Static(id="round-bar")
            yield Static(id="played")
            yield Static(id="session-bar")
            yield Static(Text(HELP_LINE), id="help")

    def on_mount(self) -> None:
        self.set_interval(self.refresh_interval, self.paint)
        self.paint()

    def paint(self) -> None:
        state = self.game.state
        self.last_state = state
        width = max(20, self.size.width)

        self.query_one("#counter", Static).update(Text(round_counter(state)))
        self.query_one("#now-playing", Static).update(Text("\n".join(now_playing_lines(state))))
        self.query_one("#status", Static).update(Text(status_line(state)))
        self.query_one("#played", Static).update(Text(played_line(state)))
        self.query_one("#round-bar", Static).update(
            Text(progress_bar(state.progress.round_elapsed, state.round_duration, width))
        )
        self.query_one("#session-bar", Static).update(
            Text(progress_bar(state.progress.session_elapsed, state.session_duration, width))
        )

        if not self._closing and not self.game.active():
            self._closing = True
            logger.debug("Game finished (%s); closing terminal UI", state.phase.value)
            self.exit(state)

    # ---- key actions ----

    def action_skip(self) -> None:
        self.game.channel.skip()

    def action_toggle_pause(self) -> None:
        self.game.channel.toggle_pause()

    def action_quit_session(self) -> None:
        self.game.channel.quit()
