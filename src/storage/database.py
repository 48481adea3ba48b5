# manages the connection to the durable client store, internal to storage package
import asyncio
import os.path
from contextlib import asynccontextmanager

import aiosqlite

from utils import settings
from utils.logger import get_logger

_logger = get_logger(__name__)

DB_PATH = settings.STORE_PATH

_SCHEMA = """
CREATE TABLE IF NOT EXISTS kv_store (
    key        TEXT PRIMARY KEY,
    value      TEXT NOT NULL,
    updated_at TEXT NOT NULL DEFAULT (datetime('now'))
);
"""

_initialized_path = None
_init_lock = asyncio.Lock()


async def _table_exists(conn: aiosqlite.Connection, table_name: str) -> bool:
    cur = await conn.execute(
        """
        SELECT name
        FROM sqlite_master
        WHERE type = 'table'
          AND name = ?;
        """,
        (table_name,),
    )
    row = await cur.fetchone()
    await cur.close()
    return row is not None


@asynccontextmanager
async def connect() -> aiosqlite.Connection:
    """Async context manager yielding an aiosqlite connection to the store.

    Creates the parent directory and the key/value table on first use of a path.
    """
    global _initialized_path
    folder = os.path.dirname(DB_PATH)
    if folder and not os.path.isdir(folder):
        os.makedirs(folder, exist_ok=True)

    conn = await aiosqlite.connect(DB_PATH)
    try:
        if _initialized_path != DB_PATH:
            async with _init_lock:
                if _initialized_path != DB_PATH:
                    if not await _table_exists(conn, "kv_store"):
                        _logger.info(f"Initializing client store at {DB_PATH}...")
                        await conn.executescript(_SCHEMA)
                        await conn.commit()
                    _initialized_path = DB_PATH
        yield conn
    finally:
        await conn.close()
