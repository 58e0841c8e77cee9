# portal/core/db.py
"""
Database access module.

Wraps one shared aiosqlite connection behind a small adapter so route
handlers can run inline SQL and get back plain dict rows or a write summary.
The connection is opened lazily on first use and kept for the lifetime of
the process; a failed open is not memoized, so the next call tries again.
"""
import asyncio
import logging
import re
import sqlite3
from dataclasses import dataclass
from typing import Any, Iterable, Optional

import aiosqlite

from portal.core.errors import DatabaseUnavailable

logger = logging.getLogger("uvicorn.error")

# Statements with no SQLite equivalent; answered with an empty result
_NO_OP_KEYWORDS = ("SHOW", "DESCRIBE")
# Statements that produce rows
_READ_KEYWORDS = ("SELECT", "PRAGMA")
# Statements whose lastrowid is meaningful
_INSERT_KEYWORDS = ("INSERT", "REPLACE")

_LEADING_WORD = re.compile(r"\s*([A-Za-z]+)")


@dataclass(frozen=True)
class WriteResult:
    """Summary of a mutation: last inserted row id and number of rows changed."""
    insert_id: Optional[int]
    affected_rows: int

    # camelCase access for callers written against the [rows, fields] client convention
    _ALIASES = {"insertId": "insert_id", "affectedRows": "affected_rows"}

    def __getitem__(self, key: str):
        return getattr(self, self._ALIASES.get(key, key))

    def as_dict(self) -> dict:
        return {"insertId": self.insert_id, "affectedRows": self.affected_rows}


def leading_keyword(sql: str) -> str:
    """Upper-cased leading word of a statement, so "SELECT*FROM t" gives "SELECT" ("" if none)."""
    match = _LEADING_WORD.match(sql)
    return match.group(1).upper() if match else ""


def _params(params: Optional[Iterable[Any]]) -> tuple:
    return tuple(params) if params is not None else ()


class Database:
    """
    Persistence adapter over a single embedded SQLite database file.

    Two ways to run SQL:
      - explicit intent: ``fetch_all`` / ``fetch_one`` for reads, ``run`` for writes
      - ``execute`` / ``query``: classify by leading keyword and return a
        ``(result, [])`` pair, where result is a row list or a WriteResult
    """

    def __init__(self, path: str):
        self.path = path
        self._conn: Optional[aiosqlite.Connection] = None
        self._open_lock = asyncio.Lock()

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    # -------- connection lifecycle --------
    async def _connect(self) -> aiosqlite.Connection:
        if self._conn is not None:
            return self._conn
        async with self._open_lock:
            if self._conn is not None:
                return self._conn
            conn = None
            try:
                # isolation_level=None: autocommit, every write is durable on return
                conn = await aiosqlite.connect(self.path, isolation_level=None)
                conn.row_factory = aiosqlite.Row
                await conn.execute("PRAGMA foreign_keys = ON")
                await conn.execute("PRAGMA journal_mode = WAL")
            except (sqlite3.Error, OSError) as e:
                logger.error("[DB] FATAL: Cannot open SQLite database at %s: %s", self.path, e)
                if conn is not None:
                    await conn.close()
                self._conn = None  # next call retries the open
                raise DatabaseUnavailable() from e
            logger.info("[DB] Connected to SQLite database at %s", self.path)
            self._conn = conn
            return conn

    async def shutdown(self) -> None:
        """Close the shared connection; the next call opens a fresh one."""
        conn, self._conn = self._conn, None
        if conn is not None:
            await conn.close()
            logger.info("[DB] Connection closed")

    async def get_connection(self) -> "Connection":
        await self._connect()
        return Connection(self)

    # -------- explicit-intent API --------
    async def fetch_all(self, sql: str, params: Optional[Iterable[Any]] = None) -> list[dict]:
        conn = await self._connect()
        async with conn.execute(sql, _params(params)) as cursor:
            rows = await cursor.fetchall()
        return [dict(r) for r in rows]

    async def fetch_one(self, sql: str, params: Optional[Iterable[Any]] = None) -> Optional[dict]:
        conn = await self._connect()
        async with conn.execute(sql, _params(params)) as cursor:
            row = await cursor.fetchone()
        return dict(row) if row is not None else None

    async def run(self, sql: str, params: Optional[Iterable[Any]] = None) -> WriteResult:
        conn = await self._connect()
        async with conn.execute(sql, _params(params)) as cursor:
            lastrowid = cursor.lastrowid
            rowcount = cursor.rowcount
        insert_id = lastrowid if leading_keyword(sql) in _INSERT_KEYWORDS and rowcount > 0 else None
        # DDL reports -1
        return WriteResult(insert_id=insert_id, affected_rows=max(rowcount, 0))

    async def execute_script(self, sql: str) -> None:
        conn = await self._connect()
        await conn.executescript(sql)

    # -------- keyword-classified API --------
    async def execute(self, sql: str, params: Optional[Iterable[Any]] = None) -> tuple[Any, list]:
        """
        Run one statement and return ``(result, [])``.

        Args:
            sql: Statement text; its leading keyword decides the handling
            params: Positional parameters for ``?`` placeholders

        Returns:
            ``([], [])`` for SHOW/DESCRIBE (database not touched),
            ``(rows, [])`` for SELECT/PRAGMA,
            ``(WriteResult, [])`` for anything else.
        """
        keyword = leading_keyword(sql)
        if keyword in _NO_OP_KEYWORDS:
            return [], []
        if keyword in _READ_KEYWORDS:
            return await self.fetch_all(sql, params), []
        return await self.run(sql, params), []

    async def query(self, sql: str, params: Optional[Iterable[Any]] = None) -> tuple[Any, list]:
        return await self.execute(sql, params)


class Connection:
    """
    Handle returned by ``Database.get_connection()``.

    There is no pool behind it; every call goes to the shared connection and
    ``release()`` does nothing.
    """

    def __init__(self, db: Database):
        self._db = db

    async def execute(self, sql, params=None):
        return await self._db.execute(sql, params)

    async def query(self, sql, params=None):
        return await self._db.query(sql, params)

    async def fetch_all(self, sql, params=None):
        return await self._db.fetch_all(sql, params)

    async def fetch_one(self, sql, params=None):
        return await self._db.fetch_one(sql, params)

    async def run(self, sql, params=None):
        return await self._db.run(sql, params)

    def release(self) -> None:
        pass

    async def __aenter__(self) -> "Connection":
        return self

    async def __aexit__(self, *exc) -> None:
        self.release()
