"""
Report ledger: user reports and their link to the resolving action.
"""

from __future__ import annotations

from typing import List, Optional, Sequence, Union

from modledger.database.database import Database
from modledger.datatypes.report_datatypes import ModerationReport, ReasonType
from modledger.datatypes.subject_datatypes import Subject, ensure_subject
from modledger.moderation.action_ledger import Clock, require_identity
from modledger.moderation.errors import (
    ActionNotFound,
    AlreadyResolved,
    InvalidRequest,
    ReportNotFound,
)
from modledger.repositories.action_repo import action_repo
from modledger.repositories.report_repo import report_repo
from modledger.util.logger import get_logger
from modledger.util.time_utils import to_utc, utc_now

logger = get_logger("report_ledger")


class ReportLedger:
    """Stores reports and resolves them against actions."""

    def __init__(self, database: Database, clock: Clock = utc_now) -> None:
        self._db = database
        self._clock = clock

    async def create_report(
        self,
        reason_type: Union[ReasonType, str],
        subject: Union[Subject, dict],
        reason: Optional[str],
        reported_by: str,
    ) -> ModerationReport:
        """
        Record a report. Duplicate reports against one subject are all kept.

        Raises:
            InvalidSubject: The subject is malformed
            InvalidRequest: Unknown reason type, missing reporter, or a
                non-text reason
        """
        subject = ensure_subject(subject)
        kind = ReasonType.parse(reason_type)
        if kind is None:
            raise InvalidRequest(f"unknown report reason type: {reason_type!r}")
        if reason is not None and not isinstance(reason, str):
            raise InvalidRequest("reason must be a string")
        require_identity(reported_by, "reported_by")

        created_at = to_utc(self._clock())
        async with self._db.transaction("create_report") as conn:
            report_id = await report_repo.insert(conn, kind, subject, reason, reported_by, created_at)

        logger.info("[REPORT LEDGER] Report %d (%s) on %s", report_id, kind.value, subject.key)
        return ModerationReport(
            id=report_id,
            reason_type=kind,
            subject=subject,
            reported_by=reported_by,
            reason=reason,
            created_at=created_at,
        )

    async def resolve_reports(
        self,
        action_id: int,
        report_ids: Sequence[int],
        created_by: str,
    ) -> List[ModerationReport]:
        """
        Link every listed report to ``action_id``, all or nothing.

        Raises:
            InvalidRequest: ``report_ids`` is empty or ``created_by`` missing
            ActionNotFound: The action does not exist
            ReportNotFound: At least one report id does not exist
            AlreadyResolved: At least one report is already resolved; none of
                the listed reports are changed
        """
        require_identity(created_by, "created_by")
        ids = list(dict.fromkeys(report_ids))
        if not ids:
            raise InvalidRequest("report_ids must not be empty")

        resolved_at = to_utc(self._clock())
        async with self._db.transaction("resolve_reports") as conn:
            if not await action_repo.exists(conn, action_id):
                raise ActionNotFound(action_id)

            existing = await report_repo.get_many(conn, ids)
            missing = [report_id for report_id in ids if report_id not in existing]
            if missing:
                raise ReportNotFound(missing)

            already = [report_id for report_id in ids if not existing[report_id].is_open]
            if already:
                logger.warning(
                    "[REPORT LEDGER] Rejecting resolution by action %d: reports %s already resolved",
                    action_id, already
                )
                raise AlreadyResolved(already)

            updated = await report_repo.mark_resolved(conn, ids, action_id, created_by, resolved_at)
            if updated != len(ids):
                # Another writer got in between the check and the update
                raise AlreadyResolved(ids)

            resolved = await report_repo.get_many(conn, ids)

        logger.info("[REPORT LEDGER] Resolved reports %s with action %d", ids, action_id)
        return [resolved[report_id] for report_id in ids]

    async def get_report(self, report_id: int) -> ModerationReport:
        async with self._db.read("get_report") as conn:
            report = await report_repo.get(conn, report_id)
        if report is None:
            raise ReportNotFound(report_id)
        return report

    async def list_open_reports(self, subject: Union[Subject, dict]) -> List[ModerationReport]:
        """Open reports against exactly this subject, oldest first."""
        subject = ensure_subject(subject)
        async with self._db.read("list_open_reports") as conn:
            return await report_repo.list_open_for_subject_key(conn, subject.key)

    async def list_reports_for_action(self, action_id: int) -> List[ModerationReport]:
        """Reports resolved by one action."""
        async with self._db.read("list_reports_for_action") as conn:
            return await report_repo.list_for_action(conn, action_id)
