# manages connection to db, provides helper methods internal to db package
import asyncio
import os.path
from contextlib import asynccontextmanager
from sqlite3 import Row

import aiosqlite

from utils.config import get_settings
from utils.logger import get_logger

_logger = get_logger(__name__)

SQL_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "sql")

DB_PATH = get_settings().db_path
DB_INIT_SCRIPTS = [
    os.path.join(SQL_DIR, "tables.sql"),
    os.path.join(SQL_DIR, "seed-data.sql"),
]
# a database missing any of these gets the init scripts
REQUIRED_TABLES = ("products", "gst_rates", "orders", "order_items")

_initialized = False
_init_lock = asyncio.Lock()


async def _init_db(conn: aiosqlite.Connection) -> None:
    for script in DB_INIT_SCRIPTS:
        if not os.path.exists(script) or os.path.getsize(script) == 0:
            continue
        _logger.info(f"Running {os.path.basename(script)}...")
        with open(script, "r", encoding="utf-8") as f:
            await conn.executescript(f.read())
    await conn.commit()


async def _missing_tables(conn: aiosqlite.Connection) -> set:
    cur = await conn.execute(
        f"""
        SELECT name
        FROM sqlite_master
        WHERE type = 'table'
          AND name IN ({", ".join("?" * len(REQUIRED_TABLES))});
        """,
        REQUIRED_TABLES,
    )
    found = {row[0] for row in await cur.fetchall()}
    await cur.close()
    return set(REQUIRED_TABLES) - found


@asynccontextmanager
async def connect() -> aiosqlite.Connection:
    """Async context manager yielding an aiosqlite connection with FK enabled.

    The sqlite file (and its directory) is created on first use and filled
    with the schema and seed catalog when the storefront tables are missing.
    """
    global _initialized
    parent = os.path.dirname(DB_PATH)
    if parent:
        os.makedirs(parent, exist_ok=True)

    conn = await aiosqlite.connect(DB_PATH)
    try:
        conn.row_factory = Row
        await conn.execute("PRAGMA foreign_keys = ON;")

        if not _initialized:
            async with _init_lock:
                if not _initialized:
                    missing = await _missing_tables(conn)
                    if missing:
                        _logger.info(
                            f"Initializing database at {DB_PATH} (missing {', '.join(sorted(missing))})"
                        )
                        await _init_db(conn)
                    _initialized = True
        yield conn
    finally:
        await conn.close()


@asynccontextmanager
async def transaction() -> aiosqlite.Connection:
    """connect() that commits when the block completes and rolls back if it raises."""
    async with connect() as conn:
        try:
            yield conn
        except Exception:
            await conn.rollback()
            raise
        await conn.commit()
