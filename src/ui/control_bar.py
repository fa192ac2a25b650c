# ui/control_bar.py
from __future__ import annotations

from PySide6.QtCore import QByteArray, QSize, Qt
from PySide6.QtGui import QIcon, QPainter, QPixmap
from PySide6.QtSvg import QSvgRenderer
from PySide6.QtWidgets import QHBoxLayout, QLabel, QToolButton, QWidget

from core.events import EventChannel
from core.state import Phase


def _svg_icon(path_d: str, size: int = 20, color: str = "#e5e7eb") -> QIcon:
    svg = f"""
    <svg xmlns="http://www.w3.org/2000/svg" width="{size}" height="{size}" viewBox="0 0 24 24">
      <path d="{path_d}" fill="{color}"/>
    </svg>
    """.strip()

    renderer = QSvgRenderer(QByteArray(svg.encode("utf-8")))
    pm = QPixmap(size, size)
    pm.fill(Qt.transparent)

    p = QPainter(pm)
    renderer.render(p)
    p.end()

    return QIcon(pm)


SVG_NEXT = "M16 6v12h2V6h-2zM6 18l8.5-6L6 6v12z"
SVG_PLAY = "M8 5v14l11-7L8 5z"
SVG_PAUSE = "M6 5h4v14H6V5zm8 0h4v14h-4V5z"
SVG_STOP = "M6 6h12v12H6z"


class ControlBar(QWidget):
    """Skip / play-pause / quit buttons. Clicks only enqueue events."""

    def __init__(self, channel: EventChannel, parent=None):
        super().__init__(parent)
        self.channel = channel
        self._paused = False

        root = QHBoxLayout(self)
        root.setContentsMargins(8, 6, 8, 6)
        root.setSpacing(10)

        self._icons = {
            "play": _svg_icon(SVG_PLAY, 22),
            "pause": _svg_icon(SVG_PAUSE, 22),
        }

        self.btn_play = QToolButton()
        self.btn_play.setObjectName("BtnPlay")
        self.btn_play.setIcon(self._icons["pause"])
        self.btn_play.setIconSize(QSize(22, 22))
        self.btn_play.setToolTip("Pause (P)")

        self.btn_skip = QToolButton()
        self.btn_skip.setIcon(_svg_icon(SVG_NEXT, 20))
        self.btn_skip.setIconSize(QSize(20, 20))
        self.btn_skip.setToolTip("Skip song (S)")

        self.btn_quit = QToolButton()
        self.btn_quit.setIcon(_svg_icon(SVG_STOP, 20))
        self.btn_quit.setIconSize(QSize(20, 20))
        self.btn_quit.setToolTip("Quit (Q)")

        self.lbl_help = QLabel("S skip · P play/pause · Q quit")

        root.addWidget(self.btn_play)
        root.addWidget(self.btn_skip)
        root.addWidget(self.btn_quit)
        root.addSpacing(6)
        root.addWidget(self.lbl_help, 1)

        self.btn_play.clicked.connect(self.channel.toggle_pause)
        self.btn_skip.clicked.connect(self.channel.skip)
        self.btn_quit.clicked.connect(self.channel.quit)

        self.setObjectName("ControlBar")
        self._apply_styles()

    def set_phase(self, phase: Phase) -> None:
        paused = phase is Phase.PAUSED
        if paused != self._paused:
            self._paused = paused
            self.btn_play.setIcon(self._icons["play" if paused else "pause"])
            self.btn_play.setToolTip("Play (P)" if paused else "Pause (P)")
        finished = phase.finished
        for btn in (self.btn_play, self.btn_skip, self.btn_quit):
            btn.setEnabled(not finished)

    def _apply_styles(self):
        self.setStyleSheet("""
        QWidget#ControlBar {
            background-color: #020617;
            border-top: 1px solid #111827;
        }

        QToolButton {
            border: 1px solid transparent;
            background: transparent;
            padding: 6px;
            border-radius: 10px;
        }
        QToolButton:hover {
            background: #0b1222;
            border-color: #1f2937;
        }

        QToolButton#BtnPlay {
            background: #111827;
            border: 1px solid #1f2937;
            border-radius: 999px;
            padding: 8px;
        }
        QToolButton#BtnPlay:hover {
            border-color: #38bdf8;
        }

        QLabel {
            color: #9ca3af;
            font-size: 11px;
        }
        """)
