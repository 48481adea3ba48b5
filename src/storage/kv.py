# src/storage/kv.py
from __future__ import annotations

import json
from typing import Any, Dict, Optional

import aiosqlite

from storage import database
from utils.logger import get_logger

_logger = get_logger(__name__)


class KeyValueStore:
    """
    Durable per-machine store of JSON blobs, the client's equivalent of
    browser local storage.

    Reads never raise: a missing key, an unreadable database or a malformed
    blob all come back as ``default``. Writes raise ``StoreError`` and leave it
    to the caller to decide whether the failure matters.
    """

    async def get_raw(self, key: str) -> Optional[str]:
        async with database.connect() as conn:
            cur = await conn.execute(
                "SELECT value FROM kv_store WHERE key = ?;", (key,)
            )
            row = await cur.fetchone()
            await cur.close()
        return row[0] if row else None

    async def get_json(self, key: str, default: Any = None) -> Any:
        try:
            raw = await self.get_raw(key)
        except (aiosqlite.Error, OSError) as e:
            _logger.error(f"Could not read '{key}' from store: {e}")
            return default
        if raw is None:
            return default
        try:
            return json.loads(raw)
        except ValueError as e:
            _logger.error(f"Stored value for '{key}' is not valid JSON: {e}")
            return default

    async def set_json(self, key: str, value: Any) -> None:
        raw = json.dumps(value, ensure_ascii=False)
        try:
            async with database.connect() as conn:
                await conn.execute(
                    """
                    INSERT INTO kv_store(key, value, updated_at)
                    VALUES (?, ?, datetime('now'))
                    ON CONFLICT(key) DO UPDATE
                        SET value = excluded.value,
                            updated_at = excluded.updated_at;
                    """,
                    (key, raw),
                )
                await conn.commit()
        except (aiosqlite.Error, OSError) as e:
            raise StoreError(f"Could not write '{key}' to store: {e}") from e

    async def remove(self, key: str) -> None:
        try:
            async with database.connect() as conn:
                await conn.execute("DELETE FROM kv_store WHERE key = ?;", (key,))
                await conn.commit()
        except (aiosqlite.Error, OSError) as e:
            raise StoreError(f"Could not remove '{key}' from store: {e}") from e


class SessionStore(KeyValueStore):
    """
    Same interface, held in memory: everything is gone when the app exits,
    like browser session storage.
    """

    def __init__(self) -> None:
        self._data: Dict[str, str] = {}

    async def get_raw(self, key: str) -> Optional[str]:
        return self._data.get(key)

    async def set_json(self, key: str, value: Any) -> None:
        self._data[key] = json.dumps(value, ensure_ascii=False)

    async def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def clear(self) -> None:
        self._data.clear()


class StoreError(Exception):
    pass
