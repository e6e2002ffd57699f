"""Connects two tokens with at most three straight segments, routing up to one cell off the board."""

from __future__ import annotations

from collections import defaultdict
from itertools import combinations
from typing import TYPE_CHECKING

from .board import Board, Coordinate, Token

if TYPE_CHECKING:
    from collections.abc import Iterator

# Ordered waypoints from source to destination, consecutive points row- or column-aligned
Path = list[Coordinate]


def segment_clear(board: Board, a: Coordinate, b: Coordinate) -> bool:
    """Return True if the straight segment a-b has no token strictly between its ends.

    A segment running along a row or column outside the grid is always clear.
    Unaligned endpoints never form a segment.
    """
    if a.row == b.row:
        if not 0 <= a.row < board.rows:
            return True
        lo, hi = sorted((a.col, b.col))
        return all(board.occupant(Coordinate(a.row, col)) is None for col in range(lo + 1, hi))

    if a.col == b.col:
        if not 0 <= a.col < board.cols:
            return True
        lo, hi = sorted((a.row, b.row))
        return all(board.occupant(Coordinate(row, a.col)) is None for row in range(lo + 1, hi))

    return False


def _empty_or_target(board: Board, c: Coordinate, target: Coordinate) -> bool:
    """Return True if a turn may be taken at c on the way to target."""
    return c == target or board.occupant(c) is None


def direct_path(board: Board, start: Coordinate, end: Coordinate) -> Path | None:
    """Zero turns: start and end share a row or column with nothing in between."""
    if start.aligned_with(end) and segment_clear(board, start, end):
        return [start, end]
    return None


def one_turn_path(board: Board, start: Coordinate, end: Coordinate) -> Path | None:
    """One turn at (start.row, end.col), else at (end.row, start.col)."""
    for corner in (Coordinate(start.row, end.col), Coordinate(end.row, start.col)):
        if (
            _empty_or_target(board, corner, end)
            and segment_clear(board, start, corner)
            and segment_clear(board, corner, end)
        ):
            return [start, corner, end]
    return None


def _two_turn_candidates(
    board: Board, start: Coordinate, end: Coordinate
) -> Iterator[tuple[Coordinate, Coordinate]]:
    """Yield waypoint pairs: every column in [-1, cols], then every row in [-1, rows]."""
    for col in range(-1, board.cols + 1):
        yield Coordinate(start.row, col), Coordinate(end.row, col)
    for row in range(-1, board.rows + 1):
        yield Coordinate(row, start.col), Coordinate(row, end.col)


def two_turn_path(board: Board, start: Coordinate, end: Coordinate) -> Path | None:
    """Two turns through a lane that may lie one step outside the grid."""
    for mid1, mid2 in _two_turn_candidates(board, start, end):
        # out-of-bounds waypoints read as empty
        if not _empty_or_target(board, mid1, end) or not _empty_or_target(board, mid2, end):
            continue
        if (
            segment_clear(board, start, mid1)
            and segment_clear(board, mid1, mid2)
            and segment_clear(board, mid2, end)
        ):
            return [start, mid1, mid2, end]
    return None


def connect(a: Token, b: Token, board: Board) -> Path | None:
    """Return the waypoints joining a to b, or None if the pair cannot be matched.

    Shapes are tried cheapest first (straight, one turn, two turns) and the
    first route found wins, so the result is deterministic for a given board.
    """
    if a.id == b.id or a.kind != b.kind:
        return None

    start, end = a.position, b.position
    for finder in (direct_path, one_turn_path, two_turn_path):
        path = finder(board, start, end)
        if path is not None:
            return path
    return None


def find_any_match(board: Board) -> tuple[Token, Token, Path] | None:
    """Return the first connectable pair in row-major order, or None if no move is left."""
    by_kind: dict[int, list[Token]] = defaultdict(list)
    for token in board.tokens():
        if not token.matched:
            by_kind[token.kind].append(token)

    # kinds in order of first appearance, pairs in row-major order within a kind
    for group in by_kind.values():
        for a, b in combinations(group, 2):
            path = connect(a, b, board)
            if path is not None:
                return a, b, path
    return None
