"""Pytest suite for the match engine state machine."""

from __future__ import annotations

import random
from collections import Counter

import numpy as np
import pytest

from pairlink_src.matching.board import Board, Coordinate
from pairlink_src.matching.engine import MatchEngine, Outcome, Phase, TapResult
from pairlink_src.matching.levels import InvalidLevelError, LevelConfig
from pairlink_src.matching.records import MemoryRecordSink

C = Coordinate

# ────────────────────────────── Shared test data ────────────────────────────── #

TWO_PAIRS = LevelConfig(1, "Level 1", rows=2, cols=2, distinct_types=2, time_limit=5)
WIDE_LEVEL = LevelConfig(4, "Level 4", rows=4, cols=6, distinct_types=5, time_limit=30)

# A at (0,0)/(0,3), B at (1,0)/(1,3): both rows connect straight across
TWO_ROWS = "A..A\nB..B"


@pytest.fixture
def sink() -> MemoryRecordSink:
    return MemoryRecordSink()


@pytest.fixture
def engine(sink: MemoryRecordSink) -> MatchEngine:
    """Engine playing the TWO_ROWS layout with a 0.3s removal delay."""
    eng = MatchEngine(
        record_sink=sink,
        player_name="Tester",
        rng=random.Random(1),
        resolve_delay=0.3,
        default_time_limit=600,
    )
    level = LevelConfig(2, "Level 2", rows=2, cols=4, distinct_types=2, time_limit=60)
    eng.start_level(level, Board.from_ascii(TWO_ROWS))
    return eng


def test_start_level_fills_board() -> None:
    eng = MatchEngine(rng=random.Random(5))
    eng.start_level(WIDE_LEVEL)
    counts = Counter(int(k) for k in eng.board.type_grid().flat)
    assert sum(counts.values()) == WIDE_LEVEL.rows * WIDE_LEVEL.cols
    assert all(n % 2 == 0 for n in counts.values())
    assert eng.phase == Phase.NO_SELECTION
    assert eng.outcome == Outcome.IN_PROGRESS
    assert eng.clock.remaining == 30


def test_start_level_rejects_odd_grid() -> None:
    eng = MatchEngine()
    with pytest.raises(InvalidLevelError):
        eng.start_level(LevelConfig(1, "Odd", rows=3, cols=3, distinct_types=2))
    assert eng.board is None


def test_level_without_limit_uses_default() -> None:
    eng = MatchEngine(default_time_limit=120)
    eng.start_level(LevelConfig(1, "L", rows=2, cols=2, distinct_types=1))
    assert eng.clock.remaining == 120


# ───────────────────────────────── Selection ───────────────────────────────── #


def test_first_tap_selects(engine: MatchEngine) -> None:
    assert engine.tap(C(0, 0)) == TapResult.SELECTED
    assert engine.phase == Phase.ONE_SELECTED
    assert engine.selected is engine.board.occupant(C(0, 0))
    assert engine.board.selection_mask()[0, 0]


def test_same_token_twice_deselects(engine: MatchEngine) -> None:
    engine.tap(C(0, 0))
    assert engine.tap(C(0, 0)) == TapResult.DESELECTED
    assert engine.phase == Phase.NO_SELECTION
    assert engine.selected is None
    assert engine.score == 0
    assert engine.path == []
    assert not engine.board.selection_mask().any()


def test_mismatched_kind_is_rejected(engine: MatchEngine) -> None:
    before = engine.board.type_grid()
    engine.tap(C(0, 0))
    assert engine.tap(C(1, 0)) == TapResult.NO_PATH
    assert engine.phase == Phase.NO_SELECTION
    assert engine.selected is None
    assert engine.score == 0
    assert engine.message
    assert np.array_equal(engine.board.type_grid(), before)
    assert not engine.board.selection_mask().any()


@pytest.mark.parametrize("cell", [C(0, 1), C(-1, 0), C(2, 0), C(0, 9)])
def test_taps_on_empty_or_outside_cells_are_ignored(engine: MatchEngine, cell: Coordinate) -> None:
    assert engine.tap(cell) == TapResult.IGNORED
    assert engine.phase == Phase.NO_SELECTION


def test_tap_before_start_is_ignored() -> None:
    assert MatchEngine().tap(C(0, 0)) == TapResult.IGNORED


# ────────────────────────────── Deferred matches ───────────────────────────── #


def test_match_waits_for_delay(engine: MatchEngine) -> None:
    engine.tap(C(0, 0))
    assert engine.tap(C(0, 3)) == TapResult.MATCHED
    assert engine.phase == Phase.RESOLVING
    assert engine.path == [C(0, 0), C(0, 3)]
    # still on the board while the path is shown
    assert engine.board.occupant(C(0, 0)) is not None

    engine.advance(0.1)
    assert engine.phase == Phase.RESOLVING

    engine.advance(0.2)
    assert engine.phase == Phase.NO_SELECTION
    assert engine.board.occupant(C(0, 0)) is None
    assert engine.board.occupant(C(0, 3)) is None
    assert engine.score == 10
    assert engine.path == []


def test_matched_tokens_are_flagged(engine: MatchEngine) -> None:
    first = engine.board.occupant(C(0, 0))
    second = engine.board.occupant(C(0, 3))
    engine.tap(C(0, 0))
    engine.tap(C(0, 3))
    engine.resolve_now()
    assert first.matched and second.matched
    assert not first.selected and not second.selected
    assert engine.tap_token(first) == TapResult.IGNORED


def test_taps_while_resolving_are_ignored(engine: MatchEngine) -> None:
    engine.tap(C(0, 0))
    engine.tap(C(0, 3))
    assert engine.tap(C(1, 0)) == TapResult.IGNORED
    assert engine.phase == Phase.RESOLVING
    assert engine.board.occupant(C(1, 0)).selected is False


def test_last_pair_wins(engine: MatchEngine, sink: MemoryRecordSink) -> None:
    for a, b in ((C(0, 0), C(0, 3)), (C(1, 0), C(1, 3))):
        engine.tap(a)
        engine.tap(b)
        engine.resolve_now()

    assert engine.outcome == Outcome.WON
    assert engine.phase == Phase.FINISHED
    assert engine.board.is_empty()
    assert not engine.clock.running

    assert len(sink.records) == 1
    record = sink.records[0]
    assert record.won
    assert record.score == 10 * 2
    assert record.level_id == 2
    assert record.level_name == "Level 2"
    assert record.player_name == "Tester"
    assert engine.last_record is record


def test_zero_delay_resolves_inside_tap(sink: MemoryRecordSink) -> None:
    eng = MatchEngine(record_sink=sink, resolve_delay=0)
    level = LevelConfig(1, "L", rows=2, cols=4, distinct_types=2)
    eng.start_level(level, Board.from_ascii(TWO_ROWS))
    eng.tap(C(0, 0))
    assert eng.tap(C(0, 3)) == TapResult.MATCHED
    assert eng.phase == Phase.NO_SELECTION
    assert eng.score == 10


def test_taps_after_finish_are_ignored(engine: MatchEngine) -> None:
    for a, b in ((C(0, 0), C(0, 3)), (C(1, 0), C(1, 3))):
        engine.tap(a)
        engine.tap(b)
        engine.advance(1.0)
    assert engine.tap(C(0, 0)) == TapResult.IGNORED
    assert engine.tick() == Outcome.WON


# ─────────────────────────────────── Clock ─────────────────────────────────── #


def test_clock_expiry_loses(sink: MemoryRecordSink) -> None:
    eng = MatchEngine(record_sink=sink, player_name=lambda: "Callable")
    eng.start_level(TWO_PAIRS)
    for _ in range(4):
        assert eng.tick() == Outcome.IN_PROGRESS
    assert eng.tick() == Outcome.LOST

    assert eng.phase == Phase.FINISHED
    assert eng.clock.elapsed == 5
    assert eng.clock.remaining == 0
    assert eng.board.occupied_count() == 4
    assert sink.records[0].won is False
    assert sink.records[0].player_name == "Callable"
    assert sink.records[0].elapsed == 5


def test_expiry_discards_pending_match(engine: MatchEngine, sink: MemoryRecordSink) -> None:
    engine.clock.remaining = 1
    engine.tap(C(0, 0))
    engine.tap(C(0, 3))
    assert engine.tick() == Outcome.LOST

    engine.advance(5.0)
    assert engine.board.occupied_count() == 4
    assert engine.score == 0
    assert engine.path == []
    assert len(sink.records) == 1


def test_tap_after_expiry_does_not_mutate(engine: MatchEngine, sink: MemoryRecordSink) -> None:
    engine.tap(C(0, 0))
    engine.clock.remaining = 0
    assert engine.tap(C(0, 3)) == TapResult.IGNORED
    assert engine.outcome == Outcome.LOST
    assert engine.board.occupied_count() == 4
    assert not engine.board.selection_mask().any()
    assert len(sink.records) == 1


# ───────────────────────────── Restart and levels ──────────────────────────── #


def test_restart_resets_session(engine: MatchEngine) -> None:
    engine.tap(C(0, 0))
    engine.tap(C(0, 3))
    engine.resolve_now()
    engine.tick()
    engine.tap(C(1, 0))

    engine.restart()
    assert engine.score == 0
    assert engine.clock.elapsed == 0
    assert engine.clock.remaining == 60
    assert engine.outcome == Outcome.IN_PROGRESS
    assert engine.phase == Phase.NO_SELECTION
    assert engine.selected is None
    assert engine.board.occupied_count() == 8
    assert Counter(int(k) for k in engine.board.type_grid().flat) == {1: 4, 2: 4}


def test_restart_cancels_pending_match(engine: MatchEngine) -> None:
    engine.tap(C(0, 0))
    engine.tap(C(0, 3))
    engine.restart()
    assert engine.pending is None
    engine.advance(1.0)
    assert engine.score == 0
    assert engine.board.occupied_count() == 8


def test_next_level_adds_kinds() -> None:
    eng = MatchEngine(rng=random.Random(2), level_step=2)
    eng.start_level(WIDE_LEVEL)
    eng.next_level()
    assert eng.level.id == 5
    assert eng.level.name == "Level 5"
    assert eng.level.distinct_types == 7
    assert (eng.level.rows, eng.level.cols) == (4, 6)
    assert eng.board.occupied_count() == 24


def test_restart_without_level_raises() -> None:
    with pytest.raises(RuntimeError):
        MatchEngine().restart()


def test_prepared_board_must_match_level() -> None:
    with pytest.raises(ValueError):
        MatchEngine().start_level(TWO_PAIRS, Board.from_ascii(TWO_ROWS))


def test_odd_level_with_prepared_board_is_rejected() -> None:
    eng = MatchEngine()
    odd = LevelConfig(1, "Odd", rows=3, cols=3, distinct_types=2)
    with pytest.raises(InvalidLevelError):
        eng.start_level(odd, Board.from_ascii("AA.\nBB.\n..."))
    assert eng.board is None
    assert eng.level is None


def win_two_rows(eng: MatchEngine) -> None:
    """Clear the TWO_ROWS layout pair by pair."""
    for a, b in ((C(0, 0), C(0, 3)), (C(1, 0), C(1, 3))):
        eng.tap(a)
        eng.tap(b)
        eng.resolve_now()


def assert_fresh_session(eng: MatchEngine) -> None:
    assert eng.outcome == Outcome.IN_PROGRESS
    assert eng.phase == Phase.NO_SELECTION
    assert eng.clock.running
    assert eng.clock.elapsed == 0
    assert eng.score == 0
    assert eng.last_record is None
    assert eng.board.occupied_count() == eng.level.rows * eng.level.cols


def test_restart_after_win(engine: MatchEngine) -> None:
    win_two_rows(engine)
    engine.tick()
    assert engine.outcome == Outcome.WON

    engine.restart()
    assert_fresh_session(engine)
    assert engine.clock.remaining == 60
    assert engine.tick() == Outcome.IN_PROGRESS
    assert engine.clock.elapsed == 1


def test_restart_after_loss(engine: MatchEngine) -> None:
    engine.clock.remaining = 1
    engine.tap(C(0, 0))
    engine.tick()
    assert engine.outcome == Outcome.LOST

    engine.restart()
    assert_fresh_session(engine)
    assert engine.tap(C(0, 0)) == TapResult.SELECTED


def test_next_level_after_win(engine: MatchEngine) -> None:
    win_two_rows(engine)
    engine.next_level()
    assert_fresh_session(engine)
    assert engine.level.id == 3
    assert engine.level.distinct_types == 2 + engine.level_step


def test_next_level_after_loss(engine: MatchEngine) -> None:
    engine.clock.remaining = 1
    engine.tick()
    assert engine.outcome == Outcome.LOST

    engine.next_level()
    assert_fresh_session(engine)
    assert engine.level.id == 3


# ───────────────────────────────── Queries ─────────────────────────────────── #


def test_hint_does_not_change_state(engine: MatchEngine) -> None:
    first, second, path = engine.hint()
    assert first.kind == second.kind
    assert len(path) >= 2
    assert engine.phase == Phase.NO_SELECTION
    assert not engine.board.selection_mask().any()


def test_no_hint_while_match_is_resolving(engine: MatchEngine) -> None:
    engine.tap(C(0, 0))
    engine.tap(C(0, 3))
    assert engine.phase == Phase.RESOLVING
    assert engine.hint() is None
    assert engine.pending.path == [C(0, 0), C(0, 3)]

    engine.advance(1.0)
    assert engine.pending is None
    first, second, _path = engine.hint()
    assert {first.position, second.position} == {C(1, 0), C(1, 3)}


def test_no_hint_after_finish(engine: MatchEngine) -> None:
    win_two_rows(engine)
    assert engine.hint() is None


def test_snapshot(engine: MatchEngine) -> None:
    engine.tap(C(0, 0))
    engine.tap(C(0, 3))
    engine.tick()
    snap = engine.snapshot()
    assert snap.kinds.shape == (2, 4)
    assert snap.selected[0, 0]
    assert snap.path == (C(0, 0), C(0, 3))
    assert snap.elapsed == 1
    assert snap.remaining == 59
    assert snap.phase == Phase.RESOLVING
    assert snap.outcome == Outcome.IN_PROGRESS
