"""Play random boards greedily from the CLI and report how often they clear."""

import argparse
import logging
import random
from dataclasses import dataclass
from datetime import datetime
from multiprocessing import Pool, cpu_count
from pathlib import Path

# Config keys:
#   simulation.output.dir: directory for boards the greedy player got stuck on
#   generation.seed: base seed, game i uses seed + i
from tqdm import tqdm

from pairlink_src.matching.board import Board
from pairlink_src.matching.engine import MatchEngine, Outcome
from pairlink_src.matching.levels import InvalidLevelError, LevelConfig
from pairlink_src.matching.records import MemoryRecordSink
from pairlink_src.util.config import configure_logging, get_key
from pairlink_src.util.save_util import export_board

logger = logging.getLogger(__name__)

OUTPUT_DIR = Path(get_key("simulation.output.dir", "./stuck_boards"))
BASE_SEED = int(get_key("generation.seed", 42))


@dataclass(frozen=True, slots=True)
class GameResult:
    """Summary of one greedy playthrough."""

    seed: int
    pairs_total: int
    pairs_cleared: int
    won: bool
    stuck_board: Board | None = None


def generate_hash() -> str:
    """Generate a unique hash based on the current datetime."""
    return datetime.now().strftime("%Y%m%d%H%M%S")


def parse_args() -> argparse.Namespace:
    """Parse command line arguments for the simulation."""
    parser = argparse.ArgumentParser(description="Greedily play random pair-matching boards.")
    parser.add_argument("-r", "--rows", type=int, required=True)
    parser.add_argument("-c", "--cols", type=int, required=True)
    parser.add_argument("-t", "--types", type=int, required=True, help="Distinct token kinds")
    parser.add_argument("-n", "--num-games", type=int, required=True)
    parser.add_argument("-w", "--workers", type=int, default=cpu_count())
    parser.add_argument(
        "--save-stuck",
        action="store_true",
        help="Export the kind grid of every board the greedy player could not clear",
    )
    return parser.parse_args()


def play_greedy(level: LevelConfig, seed: int) -> GameResult:
    """Play one board, always taking the first available match, until none is left."""
    sink = MemoryRecordSink()
    engine = MatchEngine(
        record_sink=sink,
        rng=random.Random(seed),
        resolve_delay=0,
        default_time_limit=None,
    )
    engine.start_level(level)
    pairs_total = level.rows * level.cols // 2

    while engine.outcome == Outcome.IN_PROGRESS:
        move = engine.hint()
        if move is None:
            break
        first, second, _path = move
        engine.tap_token(first)
        engine.tap_token(second)

    won = engine.outcome == Outcome.WON
    return GameResult(
        seed=seed,
        pairs_total=pairs_total,
        pairs_cleared=engine.score // engine.match_score,
        won=won,
        stuck_board=None if won else engine.board,
    )


def play_one(task: tuple[LevelConfig, int]) -> GameResult:
    """Pool worker: unpack a (level, seed) task."""
    level, seed = task
    return play_greedy(level, seed)


def main() -> None:
    """Greedy self-play with CLI."""
    configure_logging()
    args = parse_args()
    level = LevelConfig(0, "Simulation", rows=args.rows, cols=args.cols, distinct_types=args.types)
    try:
        level.validate()
    except InvalidLevelError as e:
        raise SystemExit(str(e)) from e

    tasks = [(level, BASE_SEED + i) for i in range(args.num_games)]
    results: list[GameResult] = []
    chunksize = max(1, args.num_games // (args.workers * 4))

    with Pool(args.workers) as pool, tqdm(total=args.num_games, desc="Playing", unit="game") as pbar:
        for result in pool.imap_unordered(play_one, tasks, chunksize=chunksize):
            results.append(result)
            pbar.update(1)

    wins = sum(r.won for r in results)
    cleared = sum(r.pairs_cleared for r in results) / max(1, sum(r.pairs_total for r in results))
    print(f"Cleared {wins}/{len(results)} boards, {cleared:.1%} of all pairs")

    if args.save_stuck:
        stuck = [r for r in results if r.stuck_board is not None]
        for r in stuck:
            out = OUTPUT_DIR / f"stuck_{generate_hash()}_seed{r.seed}_{args.rows}x{args.cols}"
            export_board(r.stuck_board, out)
        logger.info("Saved %d stuck boards to %s", len(stuck), OUTPUT_DIR)


if __name__ == "__main__":
    main()
