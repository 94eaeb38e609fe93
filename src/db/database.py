# manages connection to db, provides helper methods internal to db package
import asyncio
import os.path
import sqlite3
from contextlib import asynccontextmanager
from sqlite3 import Row
from typing import Awaitable, Callable, Optional, TypeVar

import aiosqlite

from utils import config
from utils.logger import get_logger

_logger = get_logger(__name__)

_HERE = os.path.dirname(os.path.abspath(__file__))

DB_PATH = config.DB_PATH
DB_INIT_SCRIPTS = [
    os.path.join(_HERE, "schema.sql"),
    os.path.join(_HERE, "seed-data.sql"),
]

_initialized = False
_init_lock = asyncio.Lock()

T = TypeVar("T")


class TransactionError(Exception):
    """The store rejected a transaction, or it kept conflicting until attempts ran out."""


async def _init_db(conn: aiosqlite.Connection) -> None:
    for script in DB_INIT_SCRIPTS:
        if not os.path.exists(script) or os.path.getsize(script) == 0:
            continue
        _logger.info(f"Initializing database with script {os.path.basename(script)}...")
        with open(script, "r") as f:
            await conn.executescript(f.read())
    await conn.commit()


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
    """Async context manager yielding an aiosqlite connection with FK enabled.

    Ensures the database is initialized (tables and seed data) on first use.
    """
    global _initialized
    folder = os.path.dirname(DB_PATH)
    if folder:
        os.makedirs(folder, exist_ok=True)

    conn = await aiosqlite.connect(DB_PATH, timeout=config.DB_BUSY_TIMEOUT)
    conn.row_factory = Row
    await conn.execute("PRAGMA foreign_keys = ON;")

    if not _initialized:
        async with _init_lock:
            if not _initialized:
                if not await _table_exists(conn, "products"):
                    await _init_db(conn)
                _initialized = True
    try:
        yield conn
    finally:
        await conn.close()


def _is_busy(exc: sqlite3.Error) -> bool:
    msg = str(exc).lower()
    return "locked" in msg or "busy" in msg


async def run_transaction(
    fn: Callable[[aiosqlite.Connection], Awaitable[T]],
    attempts: Optional[int] = None,
) -> T:
    """
    Run ``fn(conn)`` inside one write transaction and commit its result.

    ``BEGIN IMMEDIATE`` takes the write lock up front, so every read made by
    ``fn`` sees the same state its writes are applied to; concurrent callers
    are serialized. When the lock cannot be obtained the whole attempt is
    retried with a growing backoff, up to ``attempts`` times.

    Anything raised by ``fn`` rolls the transaction back and propagates
    unchanged. Store failures surface as TransactionError.
    """
    attempts = attempts or config.TXN_ATTEMPTS
    for attempt in range(1, attempts + 1):
        async with connect() as conn:
            try:
                await conn.execute("BEGIN IMMEDIATE;")
                result = await fn(conn)
                await conn.commit()
                return result
            except sqlite3.Error as e:
                await conn.rollback()
                if _is_busy(e) and attempt < attempts:
                    _logger.warning(
                        f"Transaction conflict (attempt {attempt}/{attempts}), retrying"
                    )
                    await asyncio.sleep(config.TXN_BACKOFF_SECONDS * attempt)
                    continue
                _logger.error(f"Transaction failed after {attempt} attempt(s): {e}")
                raise TransactionError(str(e)) from e
            except BaseException:
                await conn.rollback()
                raise
    # only reached when attempts < 1, which config prevents
    raise TransactionError("no transaction attempt was made")
