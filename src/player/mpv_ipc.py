from __future__ import annotations

import json
import logging
import os
import platform
import queue
import shutil
import socket
import subprocess
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

from core.errors import MissingExternalPlayer

logger = logging.getLogger(__name__)

MPV_PATH_ENV = "PWRHR_MPV_PATH"


# -----------------------------
# Utilities
# -----------------------------

def _is_windows() -> bool:
    return os.name == "nt"


def _default_ipc_endpoint(app_name: str = "pwrhr-mpv") -> str:
    """
    Windows: named pipe \\.\pipe\<name>-<pid>
    Unix:    unix socket in the temp dir
    The pid suffix keeps two sessions from fighting over one endpoint.
    """
    name = f"{app_name}-{os.getpid()}"
    if _is_windows():
        return rf"\\.\pipe\{name}"
    return os.path.join(os.environ.get("TMPDIR", "/tmp"), f"{name}.sock")


def _remove_unix_socket_if_exists(path: str) -> None:
    if _is_windows():
        return
    try:
        if os.path.exists(path):
            os.remove(path)
    except OSError as e:
        logger.warning("Could not remove stale mpv socket %s: %s", path, e)


def find_mpv_binary(preferred_path: Optional[str] = None) -> Optional[str]:
    """
    Locate mpv. Priority:
      1) preferred_path / $PWRHR_MPV_PATH if it exists
      2) bundled third_party/mpv/<platform>/ relative to cwd
      3) mpv on PATH
    Returns None when none of them is available.
    """
    candidates: list[str] = []
    for c in (preferred_path, os.environ.get(MPV_PATH_ENV)):
        if c:
            candidates.append(c)

    cwd = os.getcwd()
    exe = "mpv.exe" if _is_windows() else "mpv"
    sys_name = {"windows": "windows", "darwin": "macos"}.get(platform.system().lower(), "linux")
    candidates += [
        os.path.join(cwd, "third_party", "mpv", sys_name, exe),
        os.path.join(cwd, "third_party", "mpv", exe),
    ]

    for c in candidates:
        if os.path.isfile(c):
            return c
    return shutil.which("mpv")


# -----------------------------
# IPC transport
# -----------------------------

class _MpvJsonIpcTransport:
    """
    JSON-lines connection to mpv's --input-ipc-server.

    Unix uses an AF_UNIX socket; on Windows mpv serves a named pipe which is
    opened as a binary file. A reader thread pushes decoded messages into a
    queue that the owner drains with recv_nowait().
    """

    def __init__(self, endpoint: str):
        self.endpoint = endpoint
        self._stop = threading.Event()
        self._rx_thread: Optional[threading.Thread] = None
        self._rx_queue: "queue.Queue[dict[str, Any]]" = queue.Queue()
        self._tx_lock = threading.Lock()
        self._pipe_fh = None
        self._sock: Optional[socket.socket] = None

    @property
    def closed(self) -> bool:
        return self._stop.is_set()

    def _open_once(self) -> None:
        if _is_windows():
            self._pipe_fh = open(self.endpoint, "r+b", buffering=0)
        else:
            s = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
            try:
                s.connect(self.endpoint)
            except OSError:
                s.close()
                raise
            self._sock = s

    def connect(self, timeout_s: float = 3.0) -> None:
        # mpv creates the endpoint shortly after start; retry until it shows up
        deadline = time.monotonic() + timeout_s
        last_err: Optional[Exception] = None
        while time.monotonic() < deadline:
            try:
                self._open_once()
                break
            except OSError as e:
                last_err = e
                time.sleep(0.05)
        else:
            raise OSError(f"Failed to connect to mpv IPC at {self.endpoint}: {last_err!r}")

        self._rx_thread = threading.Thread(target=self._rx_loop, name="mpv-ipc-rx", daemon=True)
        self._rx_thread.start()

    def close(self) -> None:
        self._stop.set()
        if self._sock is not None:
            try:
                self._sock.shutdown(socket.SHUT_RDWR)
            except OSError:
                pass
            self._sock.close()
            self._sock = None
        if self._pipe_fh is not None:
            self._pipe_fh.close()
            self._pipe_fh = None

    def send(self, payload: dict[str, Any]) -> None:
        line = (json.dumps(payload) + "\n").encode("utf-8")
        with self._tx_lock:
            if self._pipe_fh is not None:
                self._pipe_fh.write(line)
                self._pipe_fh.flush()
            elif self._sock is not None:
                self._sock.sendall(line)
            else:
                raise ConnectionError("mpv IPC not connected")

    def recv_nowait(self) -> Optional[dict[str, Any]]:
        try:
            return self._rx_queue.get_nowait()
        except queue.Empty:
            return None

    def _read_chunk(self) -> bytes:
        if self._pipe_fh is not None:
            return self._pipe_fh.read(4096)
        if self._sock is not None:
            return self._sock.recv(4096)
        return b""

    def _rx_loop(self) -> None:
        buf = b""
        try:
            while not self._stop.is_set():
                try:
                    chunk = self._read_chunk()
                except (OSError, ValueError):
                    break
                if not chunk:
                    break  # EOF: mpv went away

                buf += chunk
                while b"\n" in buf:
                    line, buf = buf.split(b"\n", 1)
                    line = line.strip()
                    if not line:
                        continue
                    try:
                        msg = json.loads(line.decode("utf-8", errors="replace"))
                    except json.JSONDecodeError:
                        logger.debug("Ignoring malformed mpv line: %r", line)
                        continue
                    if isinstance(msg, dict):
                        self._rx_queue.put(msg)
        finally:
            self._stop.set()


# -----------------------------
# Backend (mpv process + JSON protocol)
# -----------------------------

@dataclass
class MpvBackendConfig:
    mpv_path: Optional[str] = None
    ipc_endpoint: Optional[str] = None
    volume: float = 1.0          # 0.0 - 1.0
    cwd: Optional[str] = None


class MpvIpcBackend:
    """
    An idle mpv process controlled through JSON IPC.

    Property changes and events are only dispatched from process_messages(),
    so callbacks run on whichever thread pumps the backend.
    """

    def __init__(self, config: Optional[MpvBackendConfig] = None):
        self.config = config or MpvBackendConfig()

        self._mpv_bin = find_mpv_binary(self.config.mpv_path)
        if not self._mpv_bin:
            raise MissingExternalPlayer("mpv")

        self.ipc = self.config.ipc_endpoint or _default_ipc_endpoint()
        self._proc: Optional[subprocess.Popen] = None

        self._observer_id = 0
        self._observers: dict[str, list[Callable[[Any], None]]] = {}
        self._event_handlers: dict[str, list[Callable[[dict[str, Any]], None]]] = {}
        self._time_pos_s = 0.0

        self._transport = _MpvJsonIpcTransport(self.ipc)

    def start(self) -> None:
        if self._proc is not None:
            return

        _remove_unix_socket_if_exists(self.ipc)
        volume = int(max(0.0, min(1.0, self.config.volume)) * 100)
        argv = [
            self._mpv_bin,
            "--idle=yes",
            "--no-video",
            "--audio-display=no",
            "--keep-open=no",
            "--terminal=no",
            "--msg-level=all=warn",
            f"--volume={volume}",
            f"--input-ipc-server={self.ipc}",
        ]

        flags = getattr(subprocess, "CREATE_NO_WINDOW", 0) if _is_windows() else 0
        try:
            self._proc = subprocess.Popen(
                argv,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                cwd=self.config.cwd or None,
                creationflags=flags,
            )
        except FileNotFoundError as e:
            raise MissingExternalPlayer(self._mpv_bin) from e

        try:
            self._transport.connect(timeout_s=3.0)
        except OSError:
            self.shutdown()
            raise

        self.observe_property("time-pos", self._on_time_pos)
        logger.info("mpv started (%s, ipc %s)", self._mpv_bin, self.ipc)

    def shutdown(self) -> None:
        """Stop playback and terminate the mpv process."""
        if self._proc is None:
            return
        if not self._transport.closed:
            try:
                self.command("quit")
            except OSError as e:
                logger.debug("mpv quit command failed: %s", e)
        self._transport.close()
        try:
            self._proc.wait(timeout=1.0)
        except subprocess.TimeoutExpired:
            self._proc.terminate()
        self._proc = None
        _remove_unix_socket_if_exists(self.ipc)

    def is_running(self) -> bool:
        if self._proc is None or self._transport.closed:
            return False
        return self._proc.poll() is None

    def command(self, *args: Any) -> None:
        """Send a command without waiting for mpv's reply."""
        self._transport.send({"command": list(args)})

    def observe_property(self, name: str, on_change: Callable[[Any], None]) -> None:
        callbacks = self._observers.get(name)
        if callbacks is None:
            callbacks = self._observers[name] = []
            self._observer_id += 1
            self.command("observe_property", self._observer_id, name)
        callbacks.append(on_change)

    def on_event(self, event: str, handler: Callable[[dict[str, Any]], None]) -> None:
        """Register a handler for an mpv event such as "end-file"."""
        self._event_handlers.setdefault(event, []).append(handler)

    def process_messages(self, max_messages: int = 200) -> None:
        """Dispatch queued property changes and events."""
        for _ in range(max_messages):
            msg = self._transport.recv_nowait()
            if msg is None:
                return

            event = msg.get("event")
            if event is None:
                # command reply
                if msg.get("error") not in (None, "success"):
                    logger.debug("mpv rejected a command: %s", msg.get("error"))
            elif event == "property-change":
                for cb in self._observers.get(msg.get("name"), ()):
                    cb(msg.get("data"))
            else:
                for handler in self._event_handlers.get(event, ()):
                    handler(msg)

    def _on_time_pos(self, value: Any) -> None:
        self._time_pos_s = float(value) if isinstance(value, (int, float)) else 0.0

    def load(self, path: str) -> None:
        """Replace the current file; playback stays paused until set_paused(False)."""
        self.set_paused(True)
        self._time_pos_s = 0.0
        self.command("loadfile", path, "replace")

    def set_paused(self, paused: bool) -> None:
        self.command("set_property", "pause", bool(paused))

    def stop_playback(self) -> None:
        self.command("stop")

    def position_s(self) -> float:
        return self._time_pos_s
