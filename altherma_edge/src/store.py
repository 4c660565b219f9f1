"""
Durable capability store using async SQLite.

Holds the latest displayed value of every capability per unit, plus a small
per-unit key/value store for the energy accumulators and their calendar
reset keys. The accumulators survive process restarts because the store is
backed by a SQLite database file on disk in WAL mode.

Operations:
- publish(unit, values): UPSERT each capability value (JSON encoded).
- load(unit): SELECT all current capability values for a unit.
- save_store(unit, values): UPSERT per-unit store keys.
- load_store(unit): SELECT the per-unit store keys.
- close(): Close the underlying database connection.

Supports async context manager protocol for clean resource management.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import aiosqlite

_CREATE_CAPABILITY_SQL = """\
CREATE TABLE IF NOT EXISTS capability (
    unit TEXT NOT NULL,
    name TEXT NOT NULL,
    value TEXT,
    updated_at TEXT NOT NULL DEFAULT (datetime('now')),
    PRIMARY KEY (unit, name)
);
"""

_CREATE_UNIT_STORE_SQL = """\
CREATE TABLE IF NOT EXISTS unit_store (
    unit TEXT NOT NULL,
    key TEXT NOT NULL,
    value TEXT,
    PRIMARY KEY (unit, key)
);
"""

_UPSERT_CAPABILITY_SQL = """\
INSERT INTO capability (unit, name, value, updated_at)
VALUES (?, ?, ?, datetime('now'))
ON CONFLICT (unit, name) DO UPDATE SET
    value = excluded.value,
    updated_at = excluded.updated_at;
"""

_UPSERT_STORE_SQL = """\
INSERT INTO unit_store (unit, key, value)
VALUES (?, ?, ?)
ON CONFLICT (unit, key) DO UPDATE SET value = excluded.value;
"""

_SELECT_CAPABILITY_SQL = "SELECT name, value FROM capability WHERE unit = ? ORDER BY name;"

_SELECT_STORE_SQL = "SELECT key, value FROM unit_store WHERE unit = ? ORDER BY key;"


class CapabilityStore:
    """Async SQLite sink for capability values and per-unit store keys.

    Values are stored as JSON text so bools, numbers, strings and ``None``
    round-trip unchanged.

    Args:
        path: Filesystem path for the SQLite database file.
              Accepts ``str`` or ``pathlib.Path``.

    Usage::

        async with CapabilityStore(path="/data/altherma.db") as store:
            await store.publish("heatpump", {"measure_power": 1432})
            values = await store.load("heatpump")
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._db: aiosqlite.Connection | None = None

    async def open(self) -> None:
        """Open the SQLite connection and initialize the schema."""
        self._db = await aiosqlite.connect(str(self._path))
        await self._db.execute("PRAGMA journal_mode=WAL;")
        await self._db.execute(_CREATE_CAPABILITY_SQL)
        await self._db.execute(_CREATE_UNIT_STORE_SQL)
        await self._db.commit()

    async def close(self) -> None:
        """Close the underlying SQLite connection."""
        if self._db is not None:
            await self._db.close()
            self._db = None

    async def __aenter__(self) -> CapabilityStore:
        await self.open()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def publish(self, unit: str, values: dict[str, Any]) -> None:
        """Set the current value of each named capability for *unit*.

        An empty mapping is a no-op.
        """
        assert self._db is not None, "Store not opened. Call open() or use async with."
        if not values:
            return
        rows = [(unit, name, json.dumps(value)) for name, value in values.items()]
        await self._db.executemany(_UPSERT_CAPABILITY_SQL, rows)
        await self._db.commit()

    async def load(self, unit: str) -> dict[str, Any]:
        """Return every stored capability value for *unit*."""
        assert self._db is not None, "Store not opened. Call open() or use async with."
        return await self._select(_SELECT_CAPABILITY_SQL, unit)

    async def save_store(self, unit: str, values: dict[str, Any]) -> None:
        """Persist per-unit store keys (accumulators and reset keys)."""
        assert self._db is not None, "Store not opened. Call open() or use async with."
        if not values:
            return
        rows = [(unit, key, json.dumps(value)) for key, value in values.items()]
        await self._db.executemany(_UPSERT_STORE_SQL, rows)
        await self._db.commit()

    async def load_store(self, unit: str) -> dict[str, Any]:
        """Return the persisted store keys for *unit*; empty when none."""
        assert self._db is not None, "Store not opened. Call open() or use async with."
        return await self._select(_SELECT_STORE_SQL, unit)

    async def _select(self, sql: str, unit: str) -> dict[str, Any]:
        assert self._db is not None
        cursor = await self._db.execute(sql, (unit,))
        rows = await cursor.fetchall()
        return {row[0]: json.loads(row[1]) if row[1] is not None else None for row in rows}
