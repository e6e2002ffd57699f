from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import numpy as np

from pairlink_src.matching.levels import InvalidLevelError
from pairlink_src.util.config import get_key

if TYPE_CHECKING:
    from collections.abc import Iterator, Sequence

    from pairlink_src.matching.levels import LevelConfig

logger = logging.getLogger(__name__)

EMPTY_ID: int = 0  # grid value for a cell with no token


@dataclass(frozen=True, slots=True)
class Coordinate:
    """Immutable grid coordinate (row, col). May lie outside the grid when used as a waypoint."""

    row: int
    col: int

    def aligned_with(self, other: Coordinate) -> bool:
        """Return True if other shares this coordinate's row or column."""
        return self.row == other.row or self.col == other.col


@dataclass(eq=False, slots=True)
class Token:
    """A matchable piece. Equality is identity (id), never kind."""

    id: int
    kind: int
    position: Coordinate
    selected: bool = field(default=False)
    matched: bool = field(default=False)

    def __eq__(self, other: object) -> bool:
        """Two tokens are equal only if they are the same instance id."""
        if not isinstance(other, Token):
            return NotImplemented
        return self.id == other.id

    def __hash__(self) -> int:
        """Hash by id so tokens can key dicts and sets."""
        return hash(self.id)


def pair_kinds(rows: int, cols: int, distinct_types: int) -> list[int]:
    """Return the multiset of kinds for a rows x cols board: pair i gets kind (i mod distinct) + 1."""
    kinds: list[int] = []
    for i in range(rows * cols // 2):
        kind = (i % distinct_types) + 1
        kinds.extend((kind, kind))
    return kinds


def parse_ascii_board(board_str: str) -> list[list[int]]:
    """Convert an ASCII board string into a grid of kinds, '.' marking an empty cell."""
    rows: list[str] = [line.strip() for line in board_str.strip("\n").splitlines() if line.strip()]

    if any(len(r) != len(rows[0]) for r in rows):
        raise ValueError("All rows must have the same length")

    # assign each new symbol a kind in order of first appearance
    symbol_to_kind: dict[str, int] = {}
    grid: list[list[int]] = []
    for row in rows:
        kinds = []
        for ch in row:
            if ch == ".":
                kinds.append(EMPTY_ID)
                continue
            kinds.append(symbol_to_kind.setdefault(ch, len(symbol_to_kind) + 1))
        grid.append(kinds)
    return grid


class Board:
    """Mutable grid of tokens. Cells hold a token id, or EMPTY_ID."""

    def __init__(self, rows: int, cols: int) -> None:
        """Create an empty rows x cols board."""
        if rows <= 0 or cols <= 0:
            raise ValueError("Board dimensions must be positive")
        self.rows, self.cols = rows, cols
        self._grid: np.ndarray = np.zeros((rows, cols), dtype=np.int32)
        self._tokens: dict[int, Token] = {}
        self._next_id = 1

    def in_bounds(self, c: Coordinate) -> bool:
        """Return True if coordinate c is inside the board bounds."""
        return 0 <= c.row < self.rows and 0 <= c.col < self.cols

    def _place(self, c: Coordinate, kind: int) -> Token:
        """Create a new token of kind at c, which must be empty."""
        token = Token(self._next_id, kind, c)
        self._next_id += 1
        self._tokens[token.id] = token
        self._grid[c.row, c.col] = token.id
        return token

    def occupant(self, c: Coordinate) -> Token | None:
        """Return the token at c, or None for an empty or out-of-bounds coordinate."""
        if not self.in_bounds(c):
            return None
        token_id = int(self._grid[c.row, c.col])
        if token_id == EMPTY_ID:
            return None
        return self._tokens[token_id]

    def token(self, token_id: int) -> Token:
        """Return the token record with the given id, matched or not."""
        return self._tokens[token_id]

    def remove(self, c: Coordinate) -> Token:
        """Clear the cell at c and return the token that occupied it."""
        token = self.occupant(c)
        if token is None:
            raise ValueError(f"No token to remove at {c}")
        self._grid[c.row, c.col] = EMPTY_ID
        return token

    def set_selected(self, token: Token, selected: bool) -> None:
        """Set the selection flag of a token on this board."""
        self._tokens[token.id].selected = selected

    def tokens(self) -> Iterator[Token]:
        """Yield every token still on the board in row-major order."""
        for coord in self._generate_board_coords():
            token = self.occupant(coord)
            if token is not None:
                yield token

    def occupied_count(self) -> int:
        """Return how many cells currently hold a token."""
        return int(np.count_nonzero(self._grid))

    def is_empty(self) -> bool:
        """Return True when no cell holds a token."""
        return self.occupied_count() == 0

    def type_grid(self) -> np.ndarray:
        """Return a rows x cols array of token kinds, EMPTY_ID where a cell is empty."""
        kinds = np.zeros((self.rows, self.cols), dtype=np.int32)
        for token in self.tokens():
            kinds[token.position.row, token.position.col] = token.kind
        return kinds

    def selection_mask(self) -> np.ndarray:
        """Return a boolean array marking the selected tokens."""
        mask = np.zeros((self.rows, self.cols), dtype=bool)
        for token in self.tokens():
            mask[token.position.row, token.position.col] = token.selected
        return mask

    def _generate_board_coords(self) -> Iterator[Coordinate]:
        """Yield every coordinate on the board in row-major order."""
        for r in range(self.rows):
            for c in range(self.cols):
                yield Coordinate(r, c)

    @classmethod
    def from_level(cls, level: LevelConfig, rng: random.Random | None = None) -> Board:
        """Create a fully occupied board for level with a shuffled pair layout."""
        level.validate()
        if rng is None:
            rng = random.Random(get_key("generation.seed", 42))

        kinds = pair_kinds(level.rows, level.cols, level.distinct_types)
        # Fisher-Yates, unbiased
        rng.shuffle(kinds)

        board = cls(level.rows, level.cols)
        for coord, kind in zip(board._generate_board_coords(), kinds, strict=True):
            board._place(coord, kind)

        logger.debug(
            "Built %dx%d board with %d kinds for level %s",
            level.rows,
            level.cols,
            level.distinct_types,
            level.id,
        )
        return board

    @classmethod
    def from_types(cls, grid: Sequence[Sequence[int]] | np.ndarray) -> Board:
        """Create a board from a grid of kinds where EMPTY_ID marks an empty cell."""
        arr = np.asarray(grid, dtype=np.int32)
        if arr.ndim != 2 or arr.size == 0:
            raise ValueError("Board grid must be a non-empty 2D array")
        if (arr < 0).any():
            raise ValueError("Token kinds must be positive")
        if np.count_nonzero(arr) % 2:
            raise InvalidLevelError("Board must hold an even number of tokens")

        board = cls(arr.shape[0], arr.shape[1])
        for coord in board._generate_board_coords():
            kind = int(arr[coord.row, coord.col])
            if kind != EMPTY_ID:
                board._place(coord, kind)
        return board

    @classmethod
    def from_ascii(cls, data: str) -> Board:
        """Create a board from an ASCII string, one character per cell."""
        return cls.from_types(parse_ascii_board(data))

    def board_str(self) -> str:
        """Return a string view of the board with borders."""

        def cell(token: str) -> str:
            """Pad each cell token to width 3 for alignment."""
            return f"{token:>3}"

        top_line = "+" + "-" * (self.cols * 4 - 1) + "+"
        lines = [top_line]

        for r in range(self.rows):
            row_cells: list[str] = []
            for c in range(self.cols):
                token = self.occupant(Coordinate(r, c))
                if token is None:
                    row_cells.append(cell("."))
                elif token.selected:
                    row_cells.append(cell(f"{token.kind}*"))
                else:
                    row_cells.append(cell(str(token.kind)))
            lines.append("|" + " ".join(row_cells) + "|")

        lines.append(top_line)
        return "\n".join(lines)

    def __str__(self) -> str:
        """Return a string representation of the board."""
        return self.board_str()

    def __repr__(self) -> str:
        """Return a string representation of the Board instance."""
        return f"Board(rows={self.rows}, cols={self.cols}, occupied={self.occupied_count()})"
