"""
Database initialization and connection management for the moderation ledger.

The Database class coordinates the specialised modules:
- connection: writer/reader connections and transactions
- schema: table and index creation
- performance: operation timing and statistics

The ledgers in ``modledger.moderation`` receive a Database and run all of
their reads and writes through it.
"""

from __future__ import annotations

from pathlib import Path
from typing import AsyncIterator, Dict

import aiosqlite
from contextlib import asynccontextmanager

from modledger.configuration.app_configuration import app_config
from modledger.database.db_connection import ConnectionManager
from modledger.database.db_perf_mon import DatabasePerformanceMonitor
from modledger.database.db_schema import SchemaManager
from modledger.util.logger import get_logger

logger = get_logger("database")


class Database:
    """
    Central database coordinator.

    Lifecycle:
        1. Call initialize() at program startup
        2. Use transaction() / read() through the ledgers
        3. Call shutdown() at program end
    """

    def __init__(self, db_path: Path | None = None, slow_query_threshold_ms: float | None = None):
        """
        Args:
            db_path: Path to the SQLite database file (default from app config)
            slow_query_threshold_ms: Slow query warning threshold (default from app config)
        """
        self.db_path = db_path if db_path is not None else app_config.database_path
        threshold = slow_query_threshold_ms if slow_query_threshold_ms is not None else app_config.slow_query_threshold_ms
        self._initialized = False
        self._connection = ConnectionManager()
        self.db_perf_mon = DatabasePerformanceMonitor(threshold)

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    async def initialize(self) -> None:
        """
        Open the connections and create the schema.

        Safe to call more than once. Errors propagate: a ledger that cannot
        open its store must not start.
        """
        if self._initialized:
            logger.debug("[DATABASE] Already initialized, skipping")
            return

        await self._connection.open(self.db_path)
        try:
            async with self._connection.transaction() as conn:
                await SchemaManager.initialize_schema(conn)
        except Exception:
            await self._connection.close()
            raise

        self._initialized = True
        logger.info("[DATABASE] Database initialized at %s", self.db_path)

    async def shutdown(self) -> None:
        """Close the connections."""
        if not self._initialized:
            return

        await self._connection.close()
        self._initialized = False
        logger.info("[DATABASE] Database shutdown complete")

    @asynccontextmanager
    async def transaction(self, operation: str) -> AsyncIterator[aiosqlite.Connection]:
        """Atomic write transaction, timed under ``operation``."""
        with self.db_perf_mon.measure(operation):
            async with self._connection.transaction() as conn:
                yield conn

    @asynccontextmanager
    async def read(self, operation: str) -> AsyncIterator[aiosqlite.Connection]:
        """Committed-snapshot read access, timed under ``operation``."""
        with self.db_perf_mon.measure(operation):
            async with self._connection.read() as conn:
                yield conn

    def get_db_performance_stats(self) -> Dict[str, Dict[str, float]]:
        return self.db_perf_mon.get_statistics()

    def reset_db_performance_stats(self) -> None:
        self.db_perf_mon.reset()
        logger.info("[DATABASE] Performance statistics reset")
