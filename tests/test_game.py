"""Scheduler scenarios against the real clock, with short rounds and a fast poll."""

import random
import time

import pytest

from core.errors import NoPlayableTracks, SessionCrashed
from core.game import Game, RoundOutcome
from core.playlist import PlaylistSource
from core.settings import SkipPolicy
from core.state import Phase

from conftest import FakePlayer, make_tracks

pytestmark = pytest.mark.slow


def wait_for(predicate, timeout=3.0, interval=0.005):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


def make_game(config, tracks, player, **kwargs):
    return Game(config, PlaylistSource(tracks, rng=random.Random(11)), player, **kwargs)


def test_idle_before_run(fast_config, tracks, player):
    game = make_game(fast_config(), tracks, player)

    assert not game.active()
    assert game.state.phase is Phase.IDLE
    assert game.state.track is None


def test_session_runs_every_round_to_completion(fast_config, tracks, player):
    game = make_game(fast_config(round_count=3, round_duration=0.2), tracks, player)

    started = time.monotonic()
    game.run()
    assert game.join(timeout=5.0)
    wall = time.monotonic() - started

    state = game.state
    assert state.phase is Phase.COMPLETED
    assert game.round_index == 3
    assert state.progress.current_round_index == 3
    assert state.progress.session_elapsed == pytest.approx(0.6)
    assert not game.active()
    assert 0.55 <= wall < 2.0
    assert [o for _, o in game.attempts] == [RoundOutcome.COMPLETED] * 3
    assert len(set(player.loaded_paths())) == 3
    assert player.names()[-1] == "stop"


def test_round_index_never_decreases_or_overshoots(fast_config, tracks, player):
    game = make_game(fast_config(round_count=4, round_duration=0.08), tracks, player)
    seen = []

    game.run()
    while game.active():
        seen.append(game.state.progress.current_round_index)
        time.sleep(0.005)
    seen.append(game.state.progress.current_round_index)

    assert seen == sorted(seen)
    assert max(seen) == 4


def test_pause_freezes_round_and_resumes_same_track(fast_config, tracks, player):
    game = make_game(fast_config(round_count=1, round_duration=0.4), tracks, player)

    started = time.monotonic()
    game.run()
    time.sleep(0.2)
    game.channel.toggle_pause()

    assert wait_for(lambda: game.state.phase is Phase.PAUSED)
    frozen = game.state.progress.round_elapsed
    paused_track = game.state.track
    assert game.source.remaining[-1].path == paused_track.path

    time.sleep(0.3)
    assert game.state.progress.round_elapsed == pytest.approx(frozen, abs=0.02)
    assert game.round_index == 0

    game.channel.toggle_pause()
    assert game.join(timeout=3.0)
    wall = time.monotonic() - started

    assert game.state.phase is Phase.COMPLETED
    assert game.round_index == 1
    # 0.2 played + 0.3 paused + 0.2 played
    assert wall >= 0.65
    assert player.loaded_paths() == [paused_track.path]
    assert "pause" in player.names() and "resume" in player.names()
    assert [o for _, o in game.attempts] == [RoundOutcome.PAUSED, RoundOutcome.COMPLETED]


def test_paused_time_is_excluded_from_played_time(fast_config, tracks, player):
    game = make_game(fast_config(round_count=1, round_duration=0.3), tracks, player)

    game.run()
    time.sleep(0.1)
    game.channel.toggle_pause()
    time.sleep(0.3)
    game.channel.toggle_pause()
    assert game.join(timeout=3.0)

    assert game.state.played_elapsed == pytest.approx(0.3, abs=0.1)


def test_skip_advances_round_and_drops_track(fast_config, tracks, player):
    game = make_game(fast_config(round_count=2, round_duration=5.0), tracks, player)

    game.run()
    assert wait_for(lambda: game.state.phase is Phase.PLAYING)
    time.sleep(0.1)
    skipped = game.state.track
    game.channel.skip()

    assert wait_for(lambda: game.round_index == 1)
    assert all(t.path != skipped.path for t in game.source.remaining)
    assert wait_for(lambda: len(player.loaded_paths()) == 2)
    assert player.loaded_paths()[1] != skipped.path
    assert not game.flags.skip_requested

    game.channel.quit()
    assert game.join(timeout=1.0)
    assert game.attempts[0] == (skipped.path, RoundOutcome.SKIPPED)


def test_skip_with_retry_policy_replays_round_slot(fast_config, tracks, player):
    config = fast_config(round_count=1, round_duration=0.3, skip_policy=SkipPolicy.RETRY)
    game = make_game(config, tracks, player)

    game.run()
    time.sleep(0.1)
    game.channel.skip()
    assert game.join(timeout=3.0)

    outcomes = [o for _, o in game.attempts]
    assert outcomes == [RoundOutcome.SKIPPED, RoundOutcome.COMPLETED]
    first, second = player.loaded_paths()
    assert first != second
    assert game.round_index == 1
    # the skipped partial round is not counted as played
    assert game.state.played_elapsed == pytest.approx(0.3, abs=0.1)


def test_quit_stops_within_one_poll_and_loads_nothing_more(fast_config, tracks, player):
    game = make_game(fast_config(round_count=10, round_duration=5.0, poll_interval=0.05), tracks, player)

    game.run()
    assert wait_for(lambda: game.state.phase is Phase.PLAYING)
    game.channel.quit()

    assert wait_for(lambda: not game.active(), timeout=0.2)
    assert game.state.phase is Phase.TERMINATED
    assert len(player.loaded_paths()) == 1
    assert player.names()[-1] == "stop"
    assert game.error is None


def test_quit_while_paused(fast_config, tracks, player):
    game = make_game(fast_config(round_count=3, round_duration=5.0), tracks, player)

    game.run()
    time.sleep(0.05)
    game.channel.toggle_pause()
    assert wait_for(lambda: game.state.phase is Phase.PAUSED)
    game.channel.quit()

    assert game.join(timeout=1.0)
    assert game.state.phase is Phase.TERMINATED
    assert player.names()[-1] == "stop"


def test_load_failures_retry_same_round_with_other_tracks(fast_config):
    tracks = make_tracks("bad1", "bad2", "good")
    bad = {"/music/bad1.mp3", "/music/bad2.mp3"}
    player = FakePlayer(load_failures=bad)
    game = make_game(fast_config(round_count=2, round_duration=0.1), tracks, player)

    game.run()
    assert game.join(timeout=3.0)

    assert game.state.phase is Phase.COMPLETED
    assert game.round_index == 2
    assert len(game.source) == 1
    completed = [p for p, o in game.attempts if o is RoundOutcome.COMPLETED]
    assert completed == ["/music/good.mp3", "/music/good.mp3"]


def test_start_failure_counts_as_failed_attempt(fast_config):
    tracks = make_tracks("mute", "loud")
    player = FakePlayer(start_failures={"/music/mute.mp3"})
    game = make_game(fast_config(round_count=2, round_duration=0.05), tracks, player)

    game.run()
    assert game.join(timeout=3.0)

    assert game.round_index == 2
    assert "/music/mute.mp3" not in [t.path for t in game.source.all_tracks]


def test_playback_failure_mid_round_draws_new_track(fast_config):
    tracks = make_tracks("corrupt", "fine")
    player = FakePlayer(broken={"/music/corrupt.mp3"})
    game = make_game(fast_config(round_count=1, round_duration=0.1), tracks, player)

    game.run()
    assert game.join(timeout=3.0)

    assert game.state.phase is Phase.COMPLETED
    assert game.attempts[-1] == ("/music/fine.mp3", RoundOutcome.COMPLETED)


def test_every_track_failing_is_fatal(fast_config):
    tracks = make_tracks("x", "y")
    player = FakePlayer(load_failures={t.path for t in tracks})
    game = make_game(fast_config(round_count=5), tracks, player)

    game.run()
    assert game.join(timeout=3.0)

    assert isinstance(game.error, NoPlayableTracks)
    assert game.state.phase is Phase.FAILED
    assert game.round_index == 0


def test_empty_source_fails_before_any_round(fast_config, player):
    game = make_game(fast_config(), [], player)

    game.run()
    assert game.join(timeout=1.0)

    assert isinstance(game.error, NoPlayableTracks)
    assert player.loaded_paths() == []
    state = game.state
    assert state.phase is Phase.FAILED
    assert state.track is None
    assert state.progress.current_round_index == 0


def test_metadata_resolver_feeds_state(fast_config, tracks, player):
    def resolve(track):
        return track.with_metadata(artist="Band", title=track.file_name.upper())

    game = make_game(fast_config(round_count=1, round_duration=0.2), tracks, player, metadata=resolve)

    game.run()
    assert wait_for(lambda: game.state.track is not None)
    assert game.state.track.artist == "Band"
    game.join(timeout=2.0)


def test_skip_and_pause_on_same_tick_skip_wins_then_pauses(fast_config, tracks, player):
    game = make_game(fast_config(round_count=2, round_duration=5.0, poll_interval=0.2), tracks, player)

    game.run()
    assert wait_for(lambda: game.state.phase is Phase.PLAYING)
    time.sleep(0.05)
    skipped = game.state.track
    # both land while the scheduler sleeps between two polls
    game.channel.skip()
    game.channel.toggle_pause()

    assert wait_for(lambda: game.state.phase is Phase.PAUSED)
    assert list(game.attempts) == [(skipped.path, RoundOutcome.SKIPPED)]
    assert game.round_index == 1
    assert all(t.path != skipped.path for t in game.source.remaining)
    assert "pause" not in player.names()
    assert not game.flags.skip_requested

    time.sleep(0.3)
    assert player.loaded_paths() == [skipped.path]

    game.channel.quit()
    assert game.join(timeout=1.0)
    assert game.state.phase is Phase.TERMINATED


def test_skip_while_paused_applies_to_resumed_track(fast_config, tracks, player):
    game = make_game(fast_config(round_count=2, round_duration=5.0), tracks, player)

    game.run()
    assert wait_for(lambda: game.state.phase is Phase.PLAYING)
    time.sleep(0.05)
    game.channel.toggle_pause()
    assert wait_for(lambda: game.state.phase is Phase.PAUSED)
    paused = game.state.track

    game.channel.skip()
    time.sleep(0.05)
    assert game.state.phase is Phase.PAUSED
    assert game.round_index == 0

    game.channel.toggle_pause()
    assert wait_for(lambda: game.round_index == 1)
    assert list(game.attempts)[:2] == [
        (paused.path, RoundOutcome.PAUSED),
        (paused.path, RoundOutcome.SKIPPED),
    ]
    assert "resume" in player.names()
    assert all(t.path != paused.path for t in game.source.remaining)
    assert wait_for(lambda: len(player.loaded_paths()) == 2)
    assert player.loaded_paths()[1] != paused.path

    game.channel.quit()
    assert game.join(timeout=1.0)


def test_unexpected_exception_fails_the_session(fast_config, tracks, player):
    def broken_metadata(track):
        raise KeyError("tag")

    game = make_game(fast_config(round_count=2), tracks, player, metadata=broken_metadata)

    game.run()
    assert game.join(timeout=2.0)

    assert isinstance(game.error, SessionCrashed)
    assert isinstance(game.error.cause, KeyError)
    state = game.state
    assert state.phase is Phase.FAILED
    assert "KeyError" in state.message
    assert game.round_index == 0
    assert player.names()[-1] == "stop"


def test_single_track_failing_mid_round_ends_session(fast_config):
    tracks = make_tracks("only")
    player = FakePlayer(broken={"/music/only.mp3"})
    game = make_game(fast_config(round_count=3, round_duration=0.5), tracks, player)

    game.run()
    assert game.join(timeout=2.0)

    assert isinstance(game.error, NoPlayableTracks)
    assert list(game.attempts) == [("/music/only.mp3", RoundOutcome.FAILED)]
    assert len(game.source) == 0
