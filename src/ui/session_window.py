# ui/session_window.py
from __future__ import annotations

from PySide6.QtCore import Qt, QTimer
from PySide6.QtGui import QKeySequence, QShortcut
from PySide6.QtWidgets import QLabel, QMainWindow, QProgressBar, QVBoxLayout, QWidget

from core.game import Game

from .control_bar import ControlBar
from .formatting import BANNER, format_time, now_playing_lines, played_line, round_counter, status_line

# progress bars work in integer units
_BAR_SCALE = 10


class SessionWindow(QMainWindow):
    def __init__(self, game: Game, refresh_ms: int = 100):
        super().__init__()
        self.game = game
        self.setWindowTitle("pwrhr")
        self.resize(560, 360)

        central = QWidget()
        self.setCentralWidget(central)
        layout = QVBoxLayout(central)

        self.lbl_banner = QLabel(BANNER)
        self.lbl_banner.setObjectName("Banner")
        self.lbl_counter = QLabel("")
        self.lbl_counter.setObjectName("Counter")
        self.lbl_now = QLabel("")
        self.lbl_now.setObjectName("NowPlaying")
        self.lbl_now.setTextInteractionFlags(Qt.TextSelectableByMouse)
        self.lbl_status = QLabel("")
        self.lbl_played = QLabel("")

        self.round_bar = QProgressBar()
        self.session_bar = QProgressBar()
        for bar in (self.round_bar, self.session_bar):
            bar.setRange(0, 1)
            bar.setTextVisible(True)

        self.controls = ControlBar(game.channel)

        layout.addWidget(self.lbl_banner)
        layout.addWidget(self.lbl_counter)
        layout.addWidget(QLabel("Now Playing:"))
        layout.addWidget(self.lbl_now, 1)
        layout.addWidget(self.lbl_status)
        layout.addWidget(QLabel("This song"))
        layout.addWidget(self.round_bar)
        layout.addWidget(QLabel("Power hour"))
        layout.addWidget(self.session_bar)
        layout.addWidget(self.lbl_played)
        layout.addWidget(self.controls)

        # --- Shortcuts ---
        channel = game.channel
        QShortcut(QKeySequence("S"), self, activated=channel.skip)
        QShortcut(QKeySequence("Right"), self, activated=channel.skip)
        QShortcut(QKeySequence("P"), self, activated=channel.toggle_pause)
        QShortcut(QKeySequence("Space"), self, activated=channel.toggle_pause)
        QShortcut(QKeySequence("Q"), self, activated=channel.quit)

        self._timer = QTimer(self)
        self._timer.setInterval(refresh_ms)
        self._timer.timeout.connect(self.paint)
        self._timer.start()
        self.paint()

    def _set_bar(self, bar: QProgressBar, elapsed: float, duration: float) -> None:
        bar.setRange(0, max(1, int(duration * _BAR_SCALE)))
        bar.setValue(min(bar.maximum(), int(elapsed * _BAR_SCALE)))
        bar.setFormat(f"{format_time(elapsed)} / {format_time(duration)}")

    def paint(self) -> None:
        state = self.game.state
        self.lbl_counter.setText(round_counter(state))
        self.lbl_now.setText("\n".join(line.strip() for line in now_playing_lines(state)))
        self.lbl_status.setText(status_line(state))
        self.lbl_played.setText(played_line(state))
        self._set_bar(self.round_bar, state.progress.round_elapsed, state.round_duration)
        self._set_bar(self.session_bar, state.progress.session_elapsed, state.session_duration)
        self.controls.set_phase(state.phase)

        if not self.game.active() and state.phase.finished:
            self._timer.stop()

    def closeEvent(self, event):
        if self.game.active():
            self.game.channel.quit()
        super().closeEvent(event)
