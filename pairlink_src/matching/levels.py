"""Level definitions and the YAML-backed level provider."""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, replace
from pathlib import Path

import yaml

from pairlink_src.util.config import get_key

logger = logging.getLogger(__name__)


class InvalidLevelError(ValueError):
    """Raised when a level cannot produce a board made of whole pairs."""


@dataclass(frozen=True, slots=True)
class LevelConfig:
    """Dimensions and difficulty of one level. time_limit is in seconds, None for the default."""

    id: int
    name: str
    rows: int
    cols: int
    distinct_types: int
    time_limit: int | None = None

    def validate(self) -> None:
        """Raise InvalidLevelError unless the level can be built."""
        if self.rows <= 0 or self.cols <= 0:
            raise InvalidLevelError(f"{self.name}: rows and cols must be positive")
        if (self.rows * self.cols) % 2:
            raise InvalidLevelError(
                f"{self.name}: {self.rows}x{self.cols} has an odd number of cells"
            )
        if self.distinct_types <= 0:
            raise InvalidLevelError(f"{self.name}: distinct_types must be positive")
        if self.time_limit is not None and self.time_limit <= 0:
            raise InvalidLevelError(f"{self.name}: time_limit must be positive")

    def next(self, step: int = get_key("engine.level_step", 2)) -> LevelConfig:
        """Return the following level: same grid, step more distinct types."""
        return replace(
            self,
            id=self.id + 1,
            name=f"Level {self.id + 1}",
            distinct_types=self.distinct_types + step,
        )

    @classmethod
    def from_dict(cls, raw: dict) -> LevelConfig:
        """Build a level from a mapping, e.g. one entry of a levels file."""
        try:
            level = cls(
                id=int(raw["id"]),
                name=str(raw.get("name", f"Level {raw['id']}")),
                rows=int(raw["rows"]),
                cols=int(raw["cols"]),
                distinct_types=int(raw["distinct_types"]),
                time_limit=None if raw.get("time_limit") is None else int(raw["time_limit"]),
            )
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise InvalidLevelError(f"Malformed level entry {raw!r}: {e}") from e
        level.validate()
        return level

    def to_dict(self) -> dict:
        """Return a plain mapping suitable for yaml.safe_dump."""
        return asdict(self)


DEFAULT_LEVELS: tuple[LevelConfig, ...] = (
    LevelConfig(1, "Level 1", rows=10, cols=20, distinct_types=25),
    LevelConfig(2, "Level 2", rows=10, cols=20, distinct_types=30, time_limit=300),
    LevelConfig(3, "Level 3", rows=12, cols=22, distinct_types=35, time_limit=240),
)


class LevelProvider:
    """Supplies level configs from a YAML file, or the built-in defaults.

    The file holds a list of mappings with keys ``id``, ``name``, ``rows``,
    ``cols``, ``distinct_types`` and optionally ``time_limit``.
    """

    def __init__(self, path: str | Path | None = None) -> None:
        self._path = Path(path if path is not None else get_key("levels.path", "./levels.yaml"))
        self._levels = self._load()

    def levels(self) -> list[LevelConfig]:
        return list(self._levels)

    def get_level(self, level_id: int) -> LevelConfig | None:
        return next((level for level in self._levels if level.id == level_id), None)

    def first(self) -> LevelConfig:
        return self._levels[0]

    def save(self, levels: list[LevelConfig]) -> None:
        """Write levels to the provider's file and use them from now on."""
        payload = [level.to_dict() for level in levels]
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(yaml.safe_dump(payload, sort_keys=False), encoding="utf-8")
        except OSError as e:
            logger.warning("Could not save levels to %s: %s", self._path, e)
            return
        self._levels = list(levels)

    def _load(self) -> list[LevelConfig]:
        if not self._path.exists():
            return list(DEFAULT_LEVELS)
        try:
            raw = yaml.safe_load(self._path.read_text(encoding="utf-8"))
        except (yaml.YAMLError, OSError) as e:
            logger.warning("Could not load levels from %s: %s", self._path, e)
            return list(DEFAULT_LEVELS)

        if not raw or not isinstance(raw, list):
            logger.warning("%s: expected a YAML list of levels, using defaults", self._path)
            return list(DEFAULT_LEVELS)
        return [LevelConfig.from_dict(entry) for entry in raw]
