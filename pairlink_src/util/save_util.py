"""Utilities for saving and restoring board snapshots."""

from __future__ import annotations

from pathlib import Path

import numpy as np

from pairlink_src.matching.board import Board

SNAPSHOT_KEY = "kinds"


def export_board(board: Board, filepath: str | Path, compressed: bool = False) -> Path:
    """
    Save the kind grid of a board so the layout can be replayed later.

    Only kinds are stored: token ids, selection and matched flags belong to a
    live session and are rebuilt when the snapshot is loaded.

    Args:
        board:      The board to save.
        filepath:   Path or filename (can include or omit extension).
        compressed: Store as .npz (key 'kinds') instead of .npy.

    Returns:
        The path actually written, with its extension.
    """
    path = Path(filepath)
    path.parent.mkdir(parents=True, exist_ok=True)
    kinds = board.type_grid()
    if compressed:
        path = path.with_suffix(".npz")
        np.savez_compressed(path, **{SNAPSHOT_KEY: kinds})
    else:
        path = path.with_suffix(".npy")
        np.save(path, kinds)
    return path


def import_board(filepath: str | Path) -> Board:
    """
    Rebuild a board from a .npy or .npz snapshot written by export_board.

    Raises:
        ValueError: if the stored grid is not a 2D grid of whole pairs.
    """
    path = Path(filepath)
    if path.suffix == ".npz":
        with np.load(path) as data:
            if SNAPSHOT_KEY not in data:
                raise ValueError(f"{path.name}: no '{SNAPSHOT_KEY}' array in snapshot")
            kinds = data[SNAPSHOT_KEY]
    else:
        kinds = np.load(path)
    return Board.from_types(kinds)
