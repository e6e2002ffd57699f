"""Pair-matching Gymnasium Environment."""

import random

import gymnasium as gym
import numpy as np

from pairlink_src.matching.board import Coordinate
from pairlink_src.matching.engine import MatchEngine, Outcome, TapResult
from pairlink_src.matching.levels import LevelConfig


class PairLinkEnv(gym.Env):
    """Pair-matching environment for gymnasium.

    An action taps the cell with flat index ``row * cols + col``. The reward
    is the score gained by that tap; the episode terminates once the board is
    cleared, and is truncated after ``max_steps`` taps.
    """

    metadata = {"render_modes": ["ansi"]}

    def __init__(
        self,
        level: LevelConfig,
        max_steps: int | None = None,
        render_mode: str | None = None,
    ):
        """Initialize the environment for a given level."""
        super().__init__()
        level.validate()
        self.level = level
        self.max_steps = max_steps if max_steps is not None else 4 * level.rows * level.cols
        self.render_mode = render_mode
        self.engine = self._new_engine(None)
        self._steps = 0

        self.observation_space = gym.spaces.Box(
            low=0,
            high=level.distinct_types,
            shape=(level.rows, level.cols),
            dtype=np.int32,
        )
        self.action_space = gym.spaces.Discrete(level.rows * level.cols)

    def reset(self, *, seed: int | None = None, options: dict | None = None):  # noqa: ANN201
        """Start a new board, seeded for reproducibility when seed is given."""
        super().reset(seed=seed)
        self.engine = self._new_engine(int(self.np_random.integers(0, 2**31 - 1)))
        self.engine.start_level(self.level)
        self._steps = 0
        return self._observation(), {}

    def step(self, action: int):  # noqa: ANN201
        """Tap the cell encoded by action."""
        if self.engine.board is None:
            raise RuntimeError("Call reset() before step()")
        row, col = divmod(int(action), self.level.cols)
        before = self.engine.score
        result = self.engine.tap(Coordinate(row, col))
        self._steps += 1

        reward = float(self.engine.score - before)
        terminated = self.engine.outcome != Outcome.IN_PROGRESS
        truncated = not terminated and self._steps >= self.max_steps
        info = {"tap": result, "score": self.engine.score, "matched": result == TapResult.MATCHED}
        return self._observation(), reward, terminated, truncated, info

    def render(self) -> str | None:
        """Return the board as text in ansi mode."""
        if self.render_mode == "ansi" and self.engine.board is not None:
            return self.engine.board.board_str()
        return None

    def is_game_over(self) -> bool:
        """Check if the game is over."""
        return self.engine.outcome != Outcome.IN_PROGRESS

    @staticmethod
    def _new_engine(seed: int | None) -> MatchEngine:
        # matches resolve inside the step and no clock runs between taps
        rng = random.Random(seed) if seed is not None else None
        return MatchEngine(rng=rng, resolve_delay=0, default_time_limit=None)

    def _observation(self) -> np.ndarray:
        return self.engine.board.type_grid()
