import logging
import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent
SRC_DIR = ROOT / "src"

if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from core.errors import PowerHourError
from core.events import EventChannel
from core.game import Game
from core.playlist import PlaylistSource
from core.settings import SessionConfig, get_app_data_dir, parse_args
from library.scan_library import load_tracks, read_track_metadata

logger = logging.getLogger("pwrhr")

LOG_LEVEL_ENV = "PWRHR_LOG_LEVEL"


def configure_logging(config: SessionConfig) -> str:
    """
    The terminal belongs to the UI, so the log goes to a file.
    Returns the log file path.
    """
    log_file = config.log_file or os.path.join(get_app_data_dir(), "pwrhr.log")
    level_name = os.getenv(LOG_LEVEL_ENV) or ("DEBUG" if config.verbose else "INFO")
    level = logging.getLevelName(level_name.upper())
    if not isinstance(level, int):
        level = logging.INFO

    logging.basicConfig(
        filename=log_file,
        level=level,
        format="%(asctime)s %(levelname)s [%(threadName)s] %(name)s: %(message)s",
    )
    return log_file


def create_player(config: SessionConfig):
    # imported lazily so --command sessions never need mpv
    if config.player_command:
        from player.command_player import CommandPlayer
        return CommandPlayer(config.player_command, config.round_duration)

    from player.player import Player
    return Player()


def run_terminal(game: Game, config: SessionConfig) -> None:
    from ui.terminal import PowerHourApp

    PowerHourApp(game, refresh_interval=config.poll_interval).run()


def run_gui(game: Game, config: SessionConfig) -> int:
    from PySide6.QtWidgets import QApplication
    from ui.session_window import SessionWindow

    qt_app = QApplication(sys.argv)
    window = SessionWindow(game, refresh_ms=int(config.poll_interval * 1000))
    window.show()
    return qt_app.exec()


def main(argv=None) -> int:
    try:
        config = parse_args(argv)
    except PowerHourError as e:
        print(f"pwrhr: {e}", file=sys.stderr)
        return 2

    log_file = configure_logging(config)
    logger.info("Logging to %s", log_file)

    player = None
    try:
        # fatal problems surface here, before any UI is shown
        tracks = load_tracks(config)
        player = create_player(config)
        logger.info("Audio backend: %s", player.backend_name())

        game = Game(
            config,
            PlaylistSource(tracks),
            player,
            EventChannel(),
            metadata=read_track_metadata,
        )
        game.run()

        if config.gui:
            run_gui(game, config)
        else:
            run_terminal(game, config)

        # the UI may have been closed without a Quit (e.g. Ctrl+C in the terminal)
        if game.active():
            game.channel.quit()
        game.join(timeout=5 * config.poll_interval + 1.0)

        if game.error is not None:
            raise game.error
    except PowerHourError as e:
        logger.error("Fatal: %s", e)
        print(f"pwrhr: {e}", file=sys.stderr)
        return 1
    finally:
        if player is not None:
            player.close()

    logger.info("Bye")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
