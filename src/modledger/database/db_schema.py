"""
Database schema initialization and migration management.

Creates the ledger tables and indexes and records the schema version.
"""

import aiosqlite
from modledger.util.logger import get_logger

logger = get_logger("database_schema")

SCHEMA_VERSION = 1


class SchemaManager:
    """Manages database schema creation and migrations."""

    @staticmethod
    async def initialize_schema(db: aiosqlite.Connection) -> None:
        """
        Create all ledger tables and indexes if they do not exist.

        Args:
            db: Connection inside an open transaction
        """
        await SchemaManager._create_tables(db)
        await SchemaManager._create_indexes(db)
        await SchemaManager._update_schema_version(db)
        logger.info("[SCHEMA] Database schema initialized (version %d)", SCHEMA_VERSION)

    @staticmethod
    async def _create_tables(db: aiosqlite.Connection) -> None:
        """Create all required database tables."""
        # Moderation actions: append-only apart from the single reversal update
        await db.execute("""
            CREATE TABLE IF NOT EXISTS moderation_actions (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                action TEXT NOT NULL,
                subject_type TEXT NOT NULL,
                subject_key TEXT NOT NULL,
                subject_did TEXT,
                subject_uri TEXT,
                subject_cid TEXT,
                reason TEXT NOT NULL,
                created_by TEXT NOT NULL,
                created_at TEXT NOT NULL,
                reversed_by TEXT,
                reversed_at TEXT,
                reversed_reason TEXT,
                CHECK (subject_type IN ('account', 'record', 'blob')),
                CHECK ((reversed_at IS NULL) = (reversed_by IS NULL))
            )
        """)

        # Reports: append-only apart from the single resolution update
        await db.execute("""
            CREATE TABLE IF NOT EXISTS moderation_reports (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                reason_type TEXT NOT NULL,
                subject_type TEXT NOT NULL,
                subject_key TEXT NOT NULL,
                subject_did TEXT,
                subject_uri TEXT,
                subject_cid TEXT,
                reported_by TEXT NOT NULL,
                reason TEXT,
                created_at TEXT NOT NULL,
                resolving_action_id INTEGER,
                resolved_by TEXT,
                resolved_at TEXT,
                CHECK (subject_type IN ('account', 'record', 'blob')),
                FOREIGN KEY (resolving_action_id) REFERENCES moderation_actions(id)
            )
        """)

        await db.execute("""
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER PRIMARY KEY,
                applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

    @staticmethod
    async def _create_indexes(db: aiosqlite.Connection) -> None:
        """Indexes for lookup by subject and by active / open status."""
        await db.execute(
            "CREATE INDEX IF NOT EXISTS idx_moderation_actions_subject "
            "ON moderation_actions(subject_key, reversed_at, created_at)"
        )
        await db.execute(
            "CREATE INDEX IF NOT EXISTS idx_moderation_actions_active "
            "ON moderation_actions(subject_key) WHERE reversed_at IS NULL"
        )
        await db.execute(
            "CREATE INDEX IF NOT EXISTS idx_moderation_reports_subject "
            "ON moderation_reports(subject_key, resolving_action_id)"
        )
        await db.execute(
            "CREATE INDEX IF NOT EXISTS idx_moderation_reports_action "
            "ON moderation_reports(resolving_action_id)"
        )

    @staticmethod
    async def _update_schema_version(db: aiosqlite.Connection) -> None:
        await db.execute("INSERT OR IGNORE INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,))
