"""SQLite-backed preference store.

Persists per-category affinity scores and a bounded interaction history
to a local SQLite database (default ``data/preferences.db``) via
``aiosqlite``.

Concurrency model: every mutation runs under one ``asyncio.Lock`` and is
written in a single transaction.  The in-memory view is a dict of frozen
records that is rebuilt and swapped in whole after the commit, so a
concurrent reader sees either the old view or the new one, never a mix.
"""

from __future__ import annotations

import asyncio
import math
from datetime import datetime, timezone
from pathlib import Path

import aiosqlite
import structlog

from helping_hand.interfaces.preference_store import IPreferenceStore
from helping_hand.models.place import Category, Coordinate
from helping_hand.models.preference import (
    MAX_AFFINITY,
    MIN_AFFINITY,
    InteractionEvent,
    PreferenceRecord,
    PreferenceSnapshot,
)
from helping_hand.utils.errors import PreferenceStoreError
from helping_hand.utils.geo import haversine_meters

logger = structlog.get_logger(logger_name=__name__)

_PROVIDER_NAME = "sqlite_preferences"
_DEFAULT_DB_PATH = Path("data/preferences.db")

MAX_HISTORY_EVENTS = 500
FAMILIARITY_RADIUS_METERS = 1000.0
FAMILIARITY_SATURATION = 50

_CREATE_PREFERENCES_SQL = """\
CREATE TABLE IF NOT EXISTS preferences (
    category          TEXT    PRIMARY KEY,
    affinity_score    REAL    NOT NULL,
    last_updated      TEXT    NOT NULL,
    interaction_count INTEGER NOT NULL DEFAULT 0
);
"""

_CREATE_EVENTS_SQL = """\
CREATE TABLE IF NOT EXISTS interaction_events (
    id               INTEGER PRIMARY KEY AUTOINCREMENT,
    query            TEXT    NOT NULL DEFAULT '',
    place_name       TEXT    NOT NULL,
    category         TEXT    NOT NULL,
    kind             TEXT    NOT NULL,
    latitude         REAL    NOT NULL,
    longitude        REAL    NOT NULL,
    hour_of_day      INTEGER NOT NULL,
    day_of_week      INTEGER NOT NULL,
    duration_seconds REAL    NOT NULL,
    timestamp        TEXT    NOT NULL
);
"""

_UPSERT_PREFERENCE_SQL = """\
INSERT INTO preferences (category, affinity_score, last_updated, interaction_count)
VALUES (?, ?, ?, ?)
ON CONFLICT(category)
DO UPDATE SET affinity_score    = excluded.affinity_score,
              last_updated      = excluded.last_updated,
              interaction_count = excluded.interaction_count;
"""

_SELECT_PREFERENCES_SQL = """\
SELECT category, affinity_score, last_updated, interaction_count FROM preferences;
"""

_INSERT_EVENT_SQL = """\
INSERT INTO interaction_events (
    query, place_name, category, kind, latitude, longitude,
    hour_of_day, day_of_week, duration_seconds, timestamp
) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?);
"""

_TRIM_EVENTS_SQL = """\
DELETE FROM interaction_events
WHERE id NOT IN (
    SELECT id FROM interaction_events ORDER BY id DESC LIMIT ?
);
"""

_SELECT_EVENT_COORDS_SQL = "SELECT latitude, longitude FROM interaction_events;"


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)  # noqa: UP017


def _event_coordinates(rows: list) -> list[tuple[float, float]]:
    """Usable (lat, lon) pairs from history rows; unreadable rows are skipped."""
    coordinates: list[tuple[float, float]] = []
    skipped = 0
    for lat, lon in rows:
        try:
            pair = (float(lat), float(lon))
        except (TypeError, ValueError):
            skipped += 1
            continue
        if math.isfinite(pair[0]) and math.isfinite(pair[1]):
            coordinates.append(pair)
        else:
            skipped += 1
    if skipped:
        logger.warning("interaction_events_unreadable", skipped=skipped)
    return coordinates


class SQLitePreferenceStore(IPreferenceStore):
    """Durable per-category affinity storage with single-writer semantics.

    Parameters
    ----------
    db_path:
        SQLite database file; parent directories are created on
        :meth:`initialize`.
    """

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH) -> None:
        self._db_path = Path(db_path)
        self._lock = asyncio.Lock()
        self._records: dict[Category, PreferenceRecord] | None = None

    # ------------------------------------------------------------------
    # IPreferenceStore implementation
    # ------------------------------------------------------------------

    async def initialize(self) -> None:
        """Create tables, load stored records, and repair missing or bad rows."""
        async with self._lock:
            if self._records is not None:
                return
            self._records = await self._load()

    async def get(self, category: Category) -> PreferenceRecord:
        records = await self._current()
        return records[category]

    async def snapshot(self) -> PreferenceSnapshot:
        records = await self._current()
        return PreferenceSnapshot(records=dict(records))

    async def record_interaction(
        self, category: Category, now: datetime | None = None
    ) -> PreferenceRecord:
        await self.initialize()
        async with self._lock:
            updated = self._apply(category, now or _utcnow())
            try:
                async with aiosqlite.connect(str(self._db_path)) as db:
                    await self._write_records(db, updated)
                    await db.commit()
            except (aiosqlite.Error, OSError) as exc:
                raise self._wrap("record_interaction", exc) from exc
            self._records = updated

        self._log_update(category, updated[category])
        return updated[category]

    async def record_event(self, event: InteractionEvent) -> PreferenceRecord:
        await self.initialize()
        async with self._lock:
            updated = self._apply(event.category, event.timestamp)
            try:
                async with aiosqlite.connect(str(self._db_path)) as db:
                    await db.execute(
                        _INSERT_EVENT_SQL,
                        (
                            event.query,
                            event.place_name,
                            event.category.value,
                            event.kind.value,
                            event.coordinate.latitude,
                            event.coordinate.longitude,
                            event.hour_of_day,
                            event.day_of_week,
                            event.duration_seconds,
                            event.timestamp.isoformat(),
                        ),
                    )
                    await db.execute(_TRIM_EVENTS_SQL, (MAX_HISTORY_EVENTS,))
                    await self._write_records(db, updated)
                    await db.commit()
            except (aiosqlite.Error, OSError) as exc:
                raise self._wrap("record_event", exc) from exc
            self._records = updated

        self._log_update(event.category, updated[event.category], kind=event.kind.value)
        return updated[event.category]

    async def location_familiarity(self, coordinate: Coordinate) -> float:
        await self.initialize()
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                cursor = await db.execute(_SELECT_EVENT_COORDS_SQL)
                rows = await cursor.fetchall()
        except (aiosqlite.Error, OSError) as exc:
            raise self._wrap("location_familiarity", exc) from exc

        nearby = sum(
            1
            for lat, lon in _event_coordinates(rows)
            if haversine_meters(coordinate.latitude, coordinate.longitude, lat, lon)
            <= FAMILIARITY_RADIUS_METERS
        )
        return min(1.0, nearby / FAMILIARITY_SATURATION)

    async def reset(self) -> None:
        async with self._lock:
            now = _utcnow()
            fresh = {category: PreferenceRecord.neutral(category, now) for category in Category}
            try:
                self._db_path.parent.mkdir(parents=True, exist_ok=True)
                async with aiosqlite.connect(str(self._db_path)) as db:
                    await self._create_tables(db)
                    await db.execute("DELETE FROM interaction_events;")
                    await db.execute("DELETE FROM preferences;")
                    await self._write_records(db, fresh)
                    await db.commit()
            except (aiosqlite.Error, OSError) as exc:
                raise self._wrap("reset", exc) from exc
            self._records = fresh
        logger.info("preferences_reset", path=str(self._db_path))

    def get_provider_name(self) -> str:
        return _PROVIDER_NAME

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _current(self) -> dict[Category, PreferenceRecord]:
        if self._records is None:
            await self.initialize()
        return self._records

    def _apply(self, category: Category, now: datetime) -> dict[Category, PreferenceRecord]:
        """Return a new record map with *category* boosted and the rest decayed."""
        return {
            cat: record.boosted(now) if cat == category else record.decayed()
            for cat, record in self._records.items()
        }

    async def _load(self) -> dict[Category, PreferenceRecord]:
        now = _utcnow()
        try:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
            async with aiosqlite.connect(str(self._db_path)) as db:
                await self._create_tables(db)
                cursor = await db.execute(_SELECT_PREFERENCES_SQL)
                rows = await cursor.fetchall()

                records: dict[Category, PreferenceRecord] = {}
                for category_value, score, last_updated, count in rows:
                    try:
                        category = Category(category_value)
                    except ValueError:
                        logger.warning("preference_unknown_category", category=category_value)
                        continue
                    try:
                        records[category] = self._parse_row(
                            category, score, last_updated, count, now
                        )
                    except (TypeError, ValueError, OverflowError) as exc:
                        # Dropped rows are re-seeded at neutral below.
                        logger.warning(
                            "preference_row_unreadable",
                            category=category.value,
                            error=str(exc),
                        )

                missing = [category for category in Category if category not in records]
                for category in missing:
                    records[category] = PreferenceRecord.neutral(category, now)
                # Always write back so clamped scores are persisted too.
                await self._write_records(db, records)
                await db.commit()
        except (aiosqlite.Error, OSError) as exc:
            raise self._wrap("initialize", exc) from exc

        logger.info(
            "preference_db_initialized",
            path=str(self._db_path),
            loaded=len(rows),
            repaired=len(missing),
        )
        # Keep Category declaration order.
        return {category: records[category] for category in Category}

    @classmethod
    def _parse_row(
        cls,
        category: Category,
        score: object,
        last_updated: str | None,
        count: object,
        now: datetime,
    ) -> PreferenceRecord:
        """Build a record from one stored row, clamping the score into range."""
        affinity = float(score)
        if not math.isfinite(affinity):
            raise ValueError(f"non-finite affinity score {score!r}")
        return PreferenceRecord(
            category=category,
            affinity_score=min(MAX_AFFINITY, max(MIN_AFFINITY, affinity)),
            last_updated=cls._parse_timestamp(last_updated, now),
            interaction_count=max(0, int(count)),
        )

    @staticmethod
    async def _create_tables(db: aiosqlite.Connection) -> None:
        await db.execute(_CREATE_PREFERENCES_SQL)
        await db.execute(_CREATE_EVENTS_SQL)

    @staticmethod
    async def _write_records(
        db: aiosqlite.Connection, records: dict[Category, PreferenceRecord]
    ) -> None:
        await db.executemany(
            _UPSERT_PREFERENCE_SQL,
            [
                (
                    record.category.value,
                    record.affinity_score,
                    record.last_updated.isoformat(),
                    record.interaction_count,
                )
                for record in records.values()
            ],
        )

    @staticmethod
    def _parse_timestamp(value: str | None, default: datetime) -> datetime:
        if not value:
            return default
        try:
            return datetime.fromisoformat(value)
        except (TypeError, ValueError):
            return default

    def _wrap(self, operation: str, exc: Exception) -> PreferenceStoreError:
        logger.error(
            "preference_store_failed",
            operation=operation,
            path=str(self._db_path),
            error=str(exc),
        )
        return PreferenceStoreError(
            message=f"{operation} failed: {exc}",
            provider_name=_PROVIDER_NAME,
        )

    @staticmethod
    def _log_update(category: Category, record: PreferenceRecord, **extra: str) -> None:
        logger.info(
            "preference_updated",
            category=category.value,
            affinity_score=record.affinity_score,
            interaction_count=record.interaction_count,
            **extra,
        )
