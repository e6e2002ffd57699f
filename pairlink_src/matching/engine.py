"""Selection state machine turning taps and clock ticks into board changes."""

from __future__ import annotations

import logging
import random
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum, auto
from typing import TYPE_CHECKING

from pairlink_src.matching.board import Board, Coordinate, Token
from pairlink_src.matching.clock import Clock
from pairlink_src.matching.pathfinder import Path, connect, find_any_match
from pairlink_src.matching.records import MatchRecord
from pairlink_src.util.config import get_key

if TYPE_CHECKING:
    import numpy as np

    from pairlink_src.matching.levels import LevelConfig
    from pairlink_src.matching.records import RecordSink

logger = logging.getLogger(__name__)


class Phase(Enum):
    """Where the selection state machine currently is."""

    NO_SELECTION = auto()
    ONE_SELECTED = auto()
    RESOLVING = auto()  # a match was found and waits for removal
    FINISHED = auto()


class Outcome(Enum):
    """Result of the session so far."""

    IN_PROGRESS = auto()
    WON = auto()
    LOST = auto()


class TapResult(Enum):
    """What a single tap did."""

    SELECTED = auto()
    DESELECTED = auto()
    MATCHED = auto()
    NO_PATH = auto()
    IGNORED = auto()


@dataclass(frozen=True, slots=True)
class PendingMatch:
    """A found match whose removal is deferred until ``due``."""

    first: Token
    second: Token
    path: Path
    due: float


@dataclass(frozen=True, slots=True)
class EngineSnapshot:
    """Everything a view needs to draw the current state."""

    kinds: np.ndarray
    selected: np.ndarray
    path: tuple[Coordinate, ...]
    score: int
    elapsed: int
    remaining: int | None
    phase: Phase
    outcome: Outcome


class MatchEngine:
    """Drives one session: selection, matching, scoring, win and loss.

    All state changes come from ``tap``, ``tick`` and ``advance``, which the
    owner calls one at a time. The engine owns no timers; the owner reports
    elapsed time and the engine resolves whatever became due.
    """

    def __init__(
        self,
        record_sink: RecordSink | None = None,
        player_name: str | Callable[[], str] = get_key("player.name", "Player"),
        rng: random.Random | None = None,
        resolve_delay: float = get_key("engine.resolve_delay", 0.3),
        match_score: int = get_key("engine.match_score", 10),
        level_step: int = get_key("engine.level_step", 2),
        default_time_limit: int | None = get_key("clock.default_time_limit", 600),
    ) -> None:
        """Initialize an idle engine; call start_level before tapping."""
        self.record_sink = record_sink
        self.player_name = player_name
        self.resolve_delay = resolve_delay
        self.match_score = match_score
        self.level_step = level_step
        self.default_time_limit = default_time_limit
        self._rng = rng if rng is not None else random.Random(get_key("generation.seed", 42))

        self.level: LevelConfig | None = None
        self.board: Board | None = None
        self.clock = Clock(default_time_limit)
        self.phase = Phase.NO_SELECTION
        self.outcome = Outcome.IN_PROGRESS
        self.score = 0
        self.selected: Token | None = None
        self.path: Path = []
        self.message = ""
        self.last_record: MatchRecord | None = None
        self._pending: PendingMatch | None = None
        self._now = 0.0

    # ───────────────────────────── Session lifecycle ───────────────────────────── #

    def start_level(self, level: LevelConfig, board: Board | None = None) -> None:
        """Build a fresh board for level and reset the session. Raises InvalidLevelError.

        A prepared board, e.g. one restored from a snapshot, is played as is
        instead of a shuffled one; restart() still shuffles a new board.
        """
        level.validate()
        if board is None:
            board = Board.from_level(level, self._rng)
        elif (board.rows, board.cols) != (level.rows, level.cols):
            raise ValueError(
                f"Board is {board.rows}x{board.cols} but {level.name} is {level.rows}x{level.cols}"
            )

        # replacing every field drops any pending match from the old board
        self.level = level
        self.board = board
        time_limit = level.time_limit if level.time_limit is not None else self.default_time_limit
        self.clock = Clock(time_limit)
        self.phase = Phase.NO_SELECTION
        self.outcome = Outcome.IN_PROGRESS
        self.score = 0
        self.selected = None
        self.path = []
        self.message = ""
        self.last_record = None
        self._pending = None
        self._now = 0.0
        logger.info(
            "Started %s (%dx%d, %d kinds)", level.name, level.rows, level.cols, level.distinct_types
        )

    def restart(self) -> None:
        """Start the current level again from scratch."""
        if self.level is None:
            raise RuntimeError("No level has been started")
        self.start_level(self.level)

    def next_level(self) -> None:
        """Start the following level: same grid, more distinct kinds."""
        if self.level is None:
            raise RuntimeError("No level has been started")
        self.start_level(self.level.next(self.level_step))

    # ───────────────────────────────── Events ──────────────────────────────────── #

    def tap(self, position: Coordinate) -> TapResult:
        """Handle a tap on a cell. Taps that cannot apply are ignored."""
        if self.board is None:
            return TapResult.IGNORED
        token = self.board.occupant(position)
        if token is None:
            return TapResult.IGNORED
        return self.tap_token(token)

    def tap_token(self, token: Token) -> TapResult:
        """Handle a tap on a token of the current board."""
        if self.board is None or self.phase in (Phase.RESOLVING, Phase.FINISHED):
            return TapResult.IGNORED
        if self.clock.expired():
            # time ran out before this tap could land
            self._finish(Outcome.LOST)
            return TapResult.IGNORED
        if token.matched or self.board.occupant(token.position) is not token:
            return TapResult.IGNORED

        if self.selected is None:
            self.board.set_selected(token, True)
            self.selected = token
            self.phase = Phase.ONE_SELECTED
            return TapResult.SELECTED

        first = self.selected
        if first.id == token.id:
            self._deselect()
            return TapResult.DESELECTED

        path = connect(first, token, self.board)
        if path is None:
            logger.debug("No path between %s and %s", first.position, token.position)
            self.message = "These tokens cannot connect!"
            self._deselect()
            return TapResult.NO_PATH

        logger.debug("Matched kind %d via %s", token.kind, path)
        self.path = path
        self.phase = Phase.RESOLVING
        self._pending = PendingMatch(first, token, path, self._now + self.resolve_delay)
        if self.resolve_delay <= 0:
            self.resolve_now()
        return TapResult.MATCHED

    def advance(self, seconds: float) -> Outcome:
        """Move presentation time forward and resolve a pending match once it is due."""
        self._now += seconds
        if self._pending is not None and self._now >= self._pending.due:
            self.resolve_now()
        return self.outcome

    def resolve_now(self) -> None:
        """Remove the pending matched pair immediately, if there is one."""
        pending = self._pending
        if pending is None or self.board is None:
            return
        self._pending = None

        for token in (pending.first, pending.second):
            token.matched = True
            token.selected = False
            self.board.remove(token.position)

        self.selected = None
        self.path = []
        self.phase = Phase.NO_SELECTION
        self.score += self.match_score

        if self.board.is_empty():
            self.message = f"Congratulations! You won!\nScore: {self.score}"
            self._finish(Outcome.WON)

    def tick(self) -> Outcome:
        """Advance the clock one interval; running out of time loses the session."""
        if self.board is None or self.phase == Phase.FINISHED:
            return self.outcome
        self.clock.tick()
        if self.clock.expired():
            self._finish(Outcome.LOST)
        return self.outcome

    # ───────────────────────────────── Queries ─────────────────────────────────── #

    def hint(self) -> tuple[Token, Token, Path] | None:
        """Return a pair that can be matched right now, without changing anything."""
        if self.board is None or self.phase in (Phase.RESOLVING, Phase.FINISHED):
            return None
        return find_any_match(self.board)

    @property
    def pending(self) -> PendingMatch | None:
        """The match waiting to be removed, or None outside RESOLVING."""
        return self._pending

    def snapshot(self) -> EngineSnapshot:
        """Return a read-only view of the board and session for rendering."""
        if self.board is None:
            raise RuntimeError("No level has been started")
        return EngineSnapshot(
            kinds=self.board.type_grid(),
            selected=self.board.selection_mask(),
            path=tuple(self.path),
            score=self.score,
            elapsed=self.clock.elapsed,
            remaining=self.clock.remaining,
            phase=self.phase,
            outcome=self.outcome,
        )

    # ───────────────────────────────── Helpers ─────────────────────────────────── #

    def _deselect(self) -> None:
        if self.selected is not None and self.board is not None:
            self.board.set_selected(self.selected, False)
        self.selected = None
        self.phase = Phase.NO_SELECTION

    def _player_name(self) -> str:
        if callable(self.player_name):
            return self.player_name()
        return self.player_name

    def _finish(self, outcome: Outcome) -> None:
        """Enter FINISHED, stop the clock and emit the session record."""
        self._pending = None
        self.path = []
        self._deselect()
        self.phase = Phase.FINISHED
        self.outcome = outcome
        self.clock.stop()
        if outcome == Outcome.LOST:
            self.message = f"Time's up! Game Over!\nFinal Score: {self.score}"

        assert self.level is not None
        record = MatchRecord(
            level_id=self.level.id,
            level_name=self.level.name,
            score=self.score,
            elapsed=self.clock.elapsed,
            player_name=self._player_name(),
            won=outcome == Outcome.WON,
        )
        self.last_record = record
        if self.record_sink is not None:
            self.record_sink.save_record(record)
        logger.info("%s %s with score %d", self.level.name, outcome.name.lower(), self.score)
