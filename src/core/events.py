# core/events.py
from __future__ import annotations

import logging
import queue
import threading
from enum import Enum
from typing import Optional

logger = logging.getLogger(__name__)


class Event(Enum):
    SKIP = "skip"
    TOGGLE_PAUSE = "toggle_pause"
    QUIT = "quit"


class EventChannel:
    """
    Ordered, unbounded conduit from input sources (keyboard, GUI buttons)
    to the control thread. put() never blocks and never drops.
    """

    def __init__(self):
        self._q: "queue.Queue[Event]" = queue.Queue()

    def put(self, event: Event) -> None:
        self._q.put(event)

    def skip(self) -> None:
        self.put(Event.SKIP)

    def toggle_pause(self) -> None:
        self.put(Event.TOGGLE_PAUSE)

    def quit(self) -> None:
        self.put(Event.QUIT)

    def get(self, timeout: Optional[float] = None) -> Event:
        return self._q.get(timeout=timeout)

    def pending(self) -> int:
        return self._q.qsize()


class ControlFlags:
    """
    Flags written by the control thread and read by the scheduling thread.

    The scheduler's only write is consume_skip(), which reads and clears
    the skip request in one step.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._terminate = False
        self._skip = False
        self._playing = True

    @property
    def terminate(self) -> bool:
        with self._lock:
            return self._terminate

    @property
    def skip_requested(self) -> bool:
        with self._lock:
            return self._skip

    @property
    def playing(self) -> bool:
        with self._lock:
            return self._playing

    def apply(self, event: Event) -> None:
        with self._lock:
            if event is Event.SKIP:
                self._skip = True
            elif event is Event.TOGGLE_PAUSE:
                self._playing = not self._playing
            elif event is Event.QUIT:
                self._terminate = True

    def consume_skip(self) -> bool:
        with self._lock:
            was, self._skip = self._skip, False
            return was


class ControlTask:
    """Drains the channel into the flags until Quit is received."""

    def __init__(self, channel: EventChannel, flags: ControlFlags):
        self.channel = channel
        self.flags = flags
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        if self._thread is not None:
            return
        self._thread = threading.Thread(target=self.run, name="pwrhr-control", daemon=True)
        self._thread.start()

    def run(self) -> None:
        while True:
            event = self.channel.get()
            logger.debug("Control event: %s", event.value)
            self.flags.apply(event)
            if event is Event.QUIT:
                break

    def is_alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def join(self, timeout: Optional[float] = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)
