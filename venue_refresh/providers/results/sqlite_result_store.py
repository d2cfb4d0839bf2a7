"""SQLite-backed extraction result store.

Keeps the latest resolved operating hours per entity in a local SQLite
database (``data/results.db`` by default) using ``aiosqlite`` for async I/O.
One row per entity; a newer result replaces the older one outright.
"""

from __future__ import annotations

import sqlite3
from pathlib import Path

import aiosqlite
import structlog
from pydantic import ValidationError

from venue_refresh.interfaces.result_store import IResultStore
from venue_refresh.models.extraction import ExtractionResult
from venue_refresh.utils.errors import PersistenceError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/results.db")

_CREATE_TABLE_SQL = """\
CREATE TABLE IF NOT EXISTS results (
    entity_id           TEXT PRIMARY KEY,
    tier                INTEGER NOT NULL,
    provenance          TEXT    NOT NULL,
    hours_json          TEXT    NOT NULL,
    prompt_version      TEXT,
    content_fingerprint TEXT,
    produced_at         TEXT    NOT NULL,
    result_json         TEXT    NOT NULL,
    updated_at          TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))
);
"""

_CREATE_INDICES_SQL = [
    "CREATE INDEX IF NOT EXISTS idx_results_provenance ON results(provenance);",
    "CREATE INDEX IF NOT EXISTS idx_results_prompt ON results(prompt_version);",
]

_UPSERT_SQL = """\
INSERT INTO results
    (entity_id, tier, provenance, hours_json, prompt_version,
     content_fingerprint, produced_at, result_json)
VALUES (?, ?, ?, ?, ?, ?, ?, ?)
ON CONFLICT(entity_id)
DO UPDATE SET tier                = excluded.tier,
              provenance          = excluded.provenance,
              hours_json          = excluded.hours_json,
              prompt_version      = excluded.prompt_version,
              content_fingerprint = excluded.content_fingerprint,
              produced_at         = excluded.produced_at,
              result_json         = excluded.result_json,
              updated_at          = strftime('%Y-%m-%dT%H:%M:%fZ', 'now');
"""


class SQLiteResultStore(IResultStore):
    """SQLite persistence for :class:`ExtractionResult` rows."""

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH) -> None:
        self._db_path = Path(db_path)

    async def initialize(self) -> None:
        """Create the results table and indices if they don't exist."""
        try:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
            async with aiosqlite.connect(str(self._db_path)) as db:
                await db.execute(_CREATE_TABLE_SQL)
                for idx_sql in _CREATE_INDICES_SQL:
                    await db.execute(idx_sql)
                await db.commit()
        except (OSError, sqlite3.Error) as exc:
            raise PersistenceError(
                message=f"cannot initialise result store at {self._db_path}: {exc}",
                provider_name="sqlite",
            ) from exc
        logger.info("results_db_initialized", path=str(self._db_path))

    async def save(self, result: ExtractionResult) -> None:
        row = (
            result.entity_id,
            int(result.tier),
            result.provenance.value,
            result.payload.model_dump_json(),
            result.prompt_version,
            result.content_fingerprint,
            result.produced_at.isoformat(),
            result.model_dump_json(),
        )
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                await db.execute(_UPSERT_SQL, row)
                await db.commit()
        except sqlite3.Error as exc:
            raise PersistenceError(
                message=f"failed to save result for {result.entity_id}: {exc}",
                provider_name="sqlite",
            ) from exc
        logger.debug(
            "result_saved",
            entity_id=result.entity_id,
            tier=int(result.tier),
            provenance=result.provenance.value,
        )

    async def get(self, entity_id: str) -> ExtractionResult | None:
        async with aiosqlite.connect(str(self._db_path)) as db:
            cursor = await db.execute(
                "SELECT result_json FROM results WHERE entity_id = ?",
                (entity_id,),
            )
            row = await cursor.fetchone()
        if row is None:
            return None
        try:
            return ExtractionResult.model_validate_json(row[0])
        except ValidationError:
            logger.warning("result_row_unreadable", entity_id=entity_id)
            return None

    async def count(self) -> int:
        async with aiosqlite.connect(str(self._db_path)) as db:
            cursor = await db.execute("SELECT COUNT(*) FROM results")
            row = await cursor.fetchone()
        return int(row[0]) if row else 0
