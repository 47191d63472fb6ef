"""
Persistent storage for moderation reports.
"""

from __future__ import annotations

from datetime import datetime
from typing import Dict, Iterable, List, Optional

import aiosqlite

from modledger.datatypes.report_datatypes import ModerationReport, ReasonType
from modledger.datatypes.subject_datatypes import Subject, subject_columns, subject_from_row
from modledger.util.time_utils import format_timestamp, parse_timestamp

_COLUMNS = (
    "id, reason_type, subject_type, subject_did, subject_uri, subject_cid, reported_by, "
    "reason, created_at, resolving_action_id, resolved_by, resolved_at"
)


def row_to_report(row: aiosqlite.Row) -> ModerationReport:
    return ModerationReport(
        id=row["id"],
        reason_type=ReasonType.parse(row["reason_type"]) or ReasonType.OTHER,
        subject=subject_from_row(row["subject_type"], row["subject_did"], row["subject_uri"], row["subject_cid"]),
        reported_by=row["reported_by"],
        reason=row["reason"],
        created_at=parse_timestamp(row["created_at"]),
        resolving_action_id=row["resolving_action_id"],
        resolved_by=row["resolved_by"],
        resolved_at=parse_timestamp(row["resolved_at"]),
    )


class ReportRepo:
    """Low-level CRUD for the ``moderation_reports`` table."""

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    @staticmethod
    async def insert(
        conn: aiosqlite.Connection,
        reason_type: ReasonType,
        subject: Subject,
        reason: Optional[str],
        reported_by: str,
        created_at: datetime,
    ) -> int:
        subject_type, subject_key, did, uri, cid = subject_columns(subject)
        cursor = await conn.execute(
            """
            INSERT INTO moderation_reports
                (reason_type, subject_type, subject_key, subject_did, subject_uri, subject_cid,
                 reported_by, reason, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (reason_type.value, subject_type, subject_key, did, uri, cid, reported_by, reason, format_timestamp(created_at)),
        )
        return cursor.lastrowid

    @staticmethod
    async def mark_resolved(
        conn: aiosqlite.Connection,
        report_ids: List[int],
        action_id: int,
        resolved_by: str,
        resolved_at: datetime,
    ) -> int:
        """Link every still-open report in ``report_ids`` to the action.

        Returns the number of rows updated. Callers compare it against the
        number of ids to detect a concurrent resolution.
        """
        if not report_ids:
            return 0
        placeholders = ",".join("?" * len(report_ids))
        cursor = await conn.execute(
            f"""
            UPDATE moderation_reports
            SET resolving_action_id = ?, resolved_by = ?, resolved_at = ?
            WHERE id IN ({placeholders}) AND resolving_action_id IS NULL
            """,
            [action_id, resolved_by, format_timestamp(resolved_at), *report_ids],
        )
        return cursor.rowcount

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @staticmethod
    async def get(conn: aiosqlite.Connection, report_id: int) -> Optional[ModerationReport]:
        cursor = await conn.execute(f"SELECT {_COLUMNS} FROM moderation_reports WHERE id = ?", (report_id,))
        row = await cursor.fetchone()
        return row_to_report(row) if row is not None else None

    @staticmethod
    async def get_many(conn: aiosqlite.Connection, report_ids: Iterable[int]) -> Dict[int, ModerationReport]:
        ids = sorted(set(report_ids))
        if not ids:
            return {}
        placeholders = ",".join("?" * len(ids))
        cursor = await conn.execute(
            f"SELECT {_COLUMNS} FROM moderation_reports WHERE id IN ({placeholders})",
            ids,
        )
        rows = await cursor.fetchall()
        return {row["id"]: row_to_report(row) for row in rows}

    @staticmethod
    async def list_open_for_subject_key(conn: aiosqlite.Connection, subject_key: str) -> List[ModerationReport]:
        cursor = await conn.execute(
            f"""
            SELECT {_COLUMNS} FROM moderation_reports
            WHERE subject_key = ? AND resolving_action_id IS NULL
            ORDER BY created_at ASC, id ASC
            """,
            (subject_key,),
        )
        rows = await cursor.fetchall()
        return [row_to_report(row) for row in rows]

    @staticmethod
    async def list_for_action(conn: aiosqlite.Connection, action_id: int) -> List[ModerationReport]:
        cursor = await conn.execute(
            f"""
            SELECT {_COLUMNS} FROM moderation_reports
            WHERE resolving_action_id = ?
            ORDER BY id ASC
            """,
            (action_id,),
        )
        rows = await cursor.fetchall()
        return [row_to_report(row) for row in rows]


# Module-level singleton
report_repo = ReportRepo()
