"""
Database connection management.

Connection model
----------------
The ledger keeps two long-lived aiosqlite connections to the same WAL-mode
database file:

  - a **writer** used only inside ``transaction()``. Every transaction starts
    with ``BEGIN IMMEDIATE`` so it holds SQLite's write lock from its first
    statement, and in-process writers are queued on ``_write_sem``;
  - a **reader** used by ``read()``. WAL readers see the last committed
    snapshot, so a read never observes a half-applied mutation and never
    blocks a writer.

Usage
-----
    manager = ConnectionManager()
    await manager.open(path)

    async with manager.transaction() as conn:
        await conn.execute("INSERT ...")
        await conn.execute("UPDATE ...")
        # commits on clean exit, rolls back on exception

    async with manager.read() as conn:
        cursor = await conn.execute("SELECT ...")

    await manager.close()
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

import aiosqlite

from modledger.util.logger import get_logger

logger = get_logger("database_connection")

# Pragmas applied to both connections when they are opened
_PRAGMAS = [
    "PRAGMA journal_mode = WAL",
    "PRAGMA foreign_keys = ON",
    "PRAGMA synchronous = NORMAL",    # safe with WAL
    "PRAGMA busy_timeout = 5000",
    "PRAGMA temp_store = MEMORY",
]


class ConnectionManager:
    """
    Owner of the writer and reader connections for one database file.

    * Reads:  ``async with read()``; no lock, committed data only.
    * Writes: ``async with transaction()``; serialised, atomic.
    """

    def __init__(self) -> None:
        self._writer: aiosqlite.Connection | None = None
        self._reader: aiosqlite.Connection | None = None
        self._write_sem = asyncio.Semaphore(1)
        self._path: Path | None = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def is_open(self) -> bool:
        return self._writer is not None

    @property
    def path(self) -> Path | None:
        return self._path

    async def open(self, path: Path) -> None:
        """
        Open both connections and apply pragmas.

        Args:
            path: Path to the SQLite database file.
        """
        if self._writer is not None:
            logger.warning("[DB CONNECTION] open() called but connection already exists, ignoring")
            return

        path.parent.mkdir(parents=True, exist_ok=True)
        self._path = path

        # isolation_level=None: transactions are started explicitly
        self._writer = await aiosqlite.connect(path, isolation_level=None)
        self._writer.row_factory = aiosqlite.Row
        for pragma in _PRAGMAS:
            await self._writer.execute(pragma)

        self._reader = await aiosqlite.connect(path, isolation_level=None)
        self._reader.row_factory = aiosqlite.Row
        for pragma in _PRAGMAS:
            await self._reader.execute(pragma)

        logger.info("[DB CONNECTION] Opened connections to %s", path)

    async def close(self) -> None:
        """Checkpoint the WAL and close both connections."""
        if self._writer is None:
            return

        try:
            await self._writer.execute("PRAGMA wal_checkpoint(TRUNCATE)")
        except aiosqlite.Error:
            logger.exception("[DB CONNECTION] WAL checkpoint failed during close")
        finally:
            if self._reader is not None:
                await self._reader.close()
                self._reader = None
            await self._writer.close()
            self._writer = None
            logger.info("[DB CONNECTION] Connections closed")

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def _require_open(self) -> None:
        if self._writer is None or self._reader is None:
            raise RuntimeError(
                "ConnectionManager: connection is not open. "
                "Call await Database.initialize() at startup."
            )

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[aiosqlite.Connection]:
        """
        Serialised write transaction.

        * Acquires the write semaphore so only one transaction per process
          is active at a time.
        * ``BEGIN IMMEDIATE`` takes SQLite's write lock up front, which also
          serialises writers in other processes.
        * Commits on clean exit, rolls back if an exception is raised.

        Raises:
            RuntimeError: If the connection is not open.
        """
        self._require_open()
        conn = self._writer

        async with self._write_sem:
            await conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except BaseException:
                if conn.in_transaction:
                    await conn.execute("ROLLBACK")
                raise
            else:
                await conn.execute("COMMIT")

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def read(self) -> AsyncIterator[aiosqlite.Connection]:
        """
        Read-only access on the reader connection.

        Each statement sees the latest committed snapshot. No semaphore is
        acquired, so reads proceed while a write transaction is open.
        """
        self._require_open()
        yield self._reader
