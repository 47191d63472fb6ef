"""
Persistent storage for moderation actions.

Timestamps are stored as ISO-8601 UTC strings with microsecond precision,
so lexical order is chronological order.
"""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, List, Optional

import aiosqlite

from modledger.datatypes.action_datatypes import ActionType, ModerationAction
from modledger.datatypes.subject_datatypes import Subject, subject_columns, subject_from_row
from modledger.util.logger import get_logger
from modledger.util.time_utils import format_timestamp, parse_timestamp

logger = get_logger("action_repo")

_COLUMNS = (
    "id, action, subject_type, subject_did, subject_uri, subject_cid, reason, "
    "created_by, created_at, reversed_by, reversed_at, reversed_reason"
)


def row_to_action(row: aiosqlite.Row) -> ModerationAction:
    kind = ActionType.parse(row["action"])
    if kind is None:
        logger.debug("[ACTION REPO] Action %s has unrecognised kind %r", row["id"], row["action"])
    return ModerationAction(
        id=row["id"],
        action=kind if kind is not None else row["action"],
        subject=subject_from_row(row["subject_type"], row["subject_did"], row["subject_uri"], row["subject_cid"]),
        reason=row["reason"],
        created_by=row["created_by"],
        created_at=parse_timestamp(row["created_at"]),
        reversed_by=row["reversed_by"],
        reversed_at=parse_timestamp(row["reversed_at"]),
        reversed_reason=row["reversed_reason"],
    )


class ActionRepo:
    """Low-level CRUD for the ``moderation_actions`` table."""

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    @staticmethod
    async def insert(
        conn: aiosqlite.Connection,
        action: ActionType,
        subject: Subject,
        reason: str,
        created_by: str,
        created_at: datetime,
    ) -> int:
        """Insert a new active action and return its generated id."""
        subject_type, subject_key, did, uri, cid = subject_columns(subject)
        cursor = await conn.execute(
            """
            INSERT INTO moderation_actions
                (action, subject_type, subject_key, subject_did, subject_uri, subject_cid,
                 reason, created_by, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (action.value, subject_type, subject_key, did, uri, cid, reason, created_by, format_timestamp(created_at)),
        )
        return cursor.lastrowid

    @staticmethod
    async def mark_reversed(
        conn: aiosqlite.Connection,
        action_id: int,
        reversed_by: str,
        reversed_at: datetime,
        reason: str,
    ) -> bool:
        """Set the reversal fields if the action is still active.

        Returns False when no active row matched (unknown id or already
        reversed); the caller decides which.
        """
        cursor = await conn.execute(
            """
            UPDATE moderation_actions
            SET reversed_by = ?, reversed_at = ?, reversed_reason = ?
            WHERE id = ? AND reversed_at IS NULL
            """,
            (reversed_by, format_timestamp(reversed_at), reason, action_id),
        )
        return cursor.rowcount == 1

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @staticmethod
    async def get(conn: aiosqlite.Connection, action_id: int) -> Optional[ModerationAction]:
        cursor = await conn.execute(
            f"SELECT {_COLUMNS} FROM moderation_actions WHERE id = ?",
            (action_id,),
        )
        row = await cursor.fetchone()
        return row_to_action(row) if row is not None else None

    @staticmethod
    async def exists(conn: aiosqlite.Connection, action_id: int) -> bool:
        cursor = await conn.execute("SELECT 1 FROM moderation_actions WHERE id = ? LIMIT 1", (action_id,))
        return await cursor.fetchone() is not None

    @staticmethod
    async def list_active_for_subject_keys(
        conn: aiosqlite.Connection,
        subject_keys: Iterable[str],
    ) -> List[ModerationAction]:
        """Active actions on any of the keys, oldest first (ties by id)."""
        keys = sorted(set(subject_keys))
        if not keys:
            return []
        placeholders = ",".join("?" * len(keys))
        cursor = await conn.execute(
            f"""
            SELECT {_COLUMNS} FROM moderation_actions
            WHERE subject_key IN ({placeholders}) AND reversed_at IS NULL
            ORDER BY created_at ASC, id ASC
            """,
            keys,
        )
        rows = await cursor.fetchall()
        return [row_to_action(row) for row in rows]

    @staticmethod
    async def list_for_subject_key(
        conn: aiosqlite.Connection,
        subject_key: str,
        include_reversed: bool = True,
    ) -> List[ModerationAction]:
        """Audit trail for one subject, newest first."""
        query = f"SELECT {_COLUMNS} FROM moderation_actions WHERE subject_key = ?"
        if not include_reversed:
            query += " AND reversed_at IS NULL"
        query += " ORDER BY created_at DESC, id DESC"
        cursor = await conn.execute(query, (subject_key,))
        rows = await cursor.fetchall()
        return [row_to_action(row) for row in rows]

    @staticmethod
    async def list_page(
        conn: aiosqlite.Connection,
        limit: int,
        before_id: Optional[int] = None,
    ) -> List[ModerationAction]:
        """Newest actions first, optionally starting below ``before_id``."""
        if before_id is None:
            cursor = await conn.execute(
                f"SELECT {_COLUMNS} FROM moderation_actions ORDER BY id DESC LIMIT ?",
                (limit,),
            )
        else:
            cursor = await conn.execute(
                f"SELECT {_COLUMNS} FROM moderation_actions WHERE id < ? ORDER BY id DESC LIMIT ?",
                (before_id, limit),
            )
        rows = await cursor.fetchall()
        return [row_to_action(row) for row in rows]


# Module-level singleton
action_repo = ActionRepo()
