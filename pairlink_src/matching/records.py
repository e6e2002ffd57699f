"""Finished-game records and the JSON record store."""

from __future__ import annotations

import json
import logging
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Protocol

from pairlink_src.util.config import get_key

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class MatchRecord:
    """Result of one session, emitted when it is won or lost."""

    level_id: int
    level_name: str
    score: int
    elapsed: int
    player_name: str
    won: bool = False
    recorded_at: datetime = field(default_factory=datetime.now)
    record_id: str = field(default_factory=lambda: uuid.uuid4().hex)

    def to_dict(self) -> dict:
        payload = asdict(self)
        payload["recorded_at"] = self.recorded_at.isoformat()
        return payload

    @classmethod
    def from_dict(cls, raw: dict) -> MatchRecord:
        return cls(
            level_id=int(raw["level_id"]),
            level_name=str(raw["level_name"]),
            score=int(raw["score"]),
            elapsed=int(raw["elapsed"]),
            player_name=str(raw.get("player_name", "Player")),
            won=bool(raw.get("won", False)),
            recorded_at=datetime.fromisoformat(raw["recorded_at"]),
            record_id=str(raw.get("record_id") or uuid.uuid4().hex),
        )


class RecordSink(Protocol):
    """Anything that accepts finished-game records."""

    def save_record(self, record: MatchRecord) -> None: ...


class MemoryRecordSink:
    """Keeps records in memory, in arrival order."""

    def __init__(self) -> None:
        self.records: list[MatchRecord] = []

    def save_record(self, record: MatchRecord) -> None:
        self.records.append(record)


def _ranking_key(record: MatchRecord) -> tuple[int, float]:
    # highest score first, newest first among equal scores
    return (-record.score, -record.recorded_at.timestamp())


class RecordStore:
    """Stores finished-game records as JSON, best scores first.

    At most ``max_records`` are retained; the lowest-ranked records are
    dropped when a new one pushes the list over the cap.
    """

    def __init__(
        self,
        path: str | Path | None = None,
        max_records: int = get_key("records.max_records", 100),
    ) -> None:
        self._file_path = Path(path if path is not None else get_key("records.path"))
        self._max_records = max_records
        self._records = self._load()

    def save_record(self, record: MatchRecord) -> None:
        records = [*self._records, record]
        records.sort(key=_ranking_key)
        self._records = records[: self._max_records]
        self._save()

    def records(self) -> list[MatchRecord]:
        return list(self._records)

    def records_for_level(self, level_id: int) -> list[MatchRecord]:
        return [r for r in self._records if r.level_id == level_id]

    def best_score(self, level_id: int) -> int | None:
        """Return the top score recorded for a level, or None if it was never finished."""
        level_records = self.records_for_level(level_id)
        return level_records[0].score if level_records else None

    def clear(self) -> None:
        """Drop every stored record."""
        self._records = []
        self._save()

    def _load(self) -> list[MatchRecord]:
        if not self._file_path.exists():
            return []
        try:
            payload = json.loads(self._file_path.read_text(encoding="utf-8"))
            records = [MatchRecord.from_dict(raw) for raw in payload.get("records", [])]
        except (json.JSONDecodeError, OSError, AttributeError, KeyError, TypeError, ValueError) as e:
            logger.warning("Could not load records from %s: %s", self._file_path, e)
            return []
        records.sort(key=_ranking_key)
        return records[: self._max_records]

    def _save(self) -> None:
        payload = {"records": [r.to_dict() for r in self._records]}
        try:
            self._file_path.parent.mkdir(parents=True, exist_ok=True)
            self._file_path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        except OSError as e:
            logger.warning("Could not save records to %s: %s", self._file_path, e)
