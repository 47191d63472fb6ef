"""
Moderation service: one object wiring the ledgers, the hierarchy resolver
and the directive engine around a single Database.
"""

from __future__ import annotations

from typing import List, Optional, Sequence, Union

from modledger.configuration.app_configuration import app_config
from modledger.database.database import Database
from modledger.datatypes.action_datatypes import ActionType, ModerationAction
from modledger.datatypes.directive_datatypes import EntityKind, ModerationDecision
from modledger.datatypes.report_datatypes import ModerationReport, ReasonType
from modledger.datatypes.subject_datatypes import AccountSubject, BlobSubject, RecordSubject, Subject
from modledger.moderation.action_ledger import ActionLedger, Clock
from modledger.moderation.directive_engine import USE_DEFAULT_TIMEOUT, DirectiveEngine, Timeout
from modledger.moderation.hierarchy_resolver import HierarchyResolver
from modledger.moderation.report_ledger import ReportLedger
from modledger.moderation.views import ActionDetail, ModerationViews, ReportDetail, SubjectStatus
from modledger.util.logger import get_logger
from modledger.util.time_utils import utc_now

logger = get_logger("moderation_service")

_USE_CONFIG = object()


class ModerationService:
    """
    Lifecycle:
        1. ``await service.start()`` opens the database
        2. call the operations
        3. ``await service.stop()``
    """

    def __init__(
        self,
        database: Optional[Database] = None,
        resolver: Optional[HierarchyResolver] = None,
        clock: Clock = utc_now,
        resolution_timeout=_USE_CONFIG,
    ) -> None:
        self.database = database or Database()
        timeout = app_config.resolution_timeout if resolution_timeout is _USE_CONFIG else resolution_timeout
        self.actions = ActionLedger(self.database, clock)
        self.reports = ReportLedger(self.database, clock)
        self.resolver = resolver or HierarchyResolver()
        self.engine = DirectiveEngine(self.actions, self.resolver, timeout)
        self.views = ModerationViews(self.actions, self.reports, self.engine)

    async def start(self) -> None:
        await self.database.initialize()
        logger.info("[MODERATION SERVICE] Ready")

    async def stop(self) -> None:
        await self.database.shutdown()

    async def __aenter__(self) -> "ModerationService":
        await self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.stop()

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    async def take_action(
        self,
        action: Union[ActionType, str],
        subject: Union[Subject, dict],
        reason: str,
        created_by: str,
    ) -> ModerationAction:
        return await self.actions.take_action(action, subject, reason, created_by)

    async def reverse_action(self, action_id: int, reversed_by: str, reason: str) -> ModerationAction:
        return await self.actions.reverse_action(action_id, reversed_by, reason)

    async def get_action(self, action_id: int) -> ActionDetail:
        return await self.views.action_detail(action_id)

    async def list_actions(self, limit: int = 50, cursor: Optional[int] = None) -> List[ModerationAction]:
        return await self.actions.list_actions(limit, cursor)

    async def list_actions_for_subject(
        self,
        subject: Union[Subject, dict],
        include_reversed: bool = True,
    ) -> List[ModerationAction]:
        return await self.actions.list_actions_for_subject(subject, include_reversed)

    # ------------------------------------------------------------------
    # Reports
    # ------------------------------------------------------------------

    async def create_report(
        self,
        reason_type: Union[ReasonType, str],
        subject: Union[Subject, dict],
        reason: Optional[str],
        reported_by: str,
    ) -> ModerationReport:
        return await self.reports.create_report(reason_type, subject, reason, reported_by)

    async def resolve_reports(self, action_id: int, report_ids: Sequence[int], created_by: str) -> List[ModerationReport]:
        return await self.reports.resolve_reports(action_id, report_ids, created_by)

    async def get_report(self, report_id: int) -> ReportDetail:
        return await self.views.report_detail(report_id)

    async def list_open_reports(self, subject: Union[Subject, dict]) -> List[ModerationReport]:
        return await self.reports.list_open_reports(subject)

    async def list_reports_for_action(self, action_id: int) -> List[ModerationReport]:
        return await self.reports.list_reports_for_action(action_id)

    # ------------------------------------------------------------------
    # Directives
    # ------------------------------------------------------------------

    async def resolve_directives(
        self,
        subject: Union[Subject, dict],
        role: Optional[Union[EntityKind, str]] = None,
        timeout: Timeout = USE_DEFAULT_TIMEOUT,
    ) -> ModerationDecision:
        return await self.engine.resolve_directives(subject, role, timeout)

    async def resolve_profile_directives(
        self,
        did: Union[str, AccountSubject],
        profile: Optional[Union[RecordSubject, dict]] = None,
        avatar: Optional[Union[BlobSubject, dict]] = None,
        timeout: Timeout = USE_DEFAULT_TIMEOUT,
    ) -> ModerationDecision:
        return await self.engine.resolve_profile_directives(did, profile, avatar, timeout)

    async def subject_status(self, subject: Union[Subject, dict]) -> SubjectStatus:
        return await self.views.subject_status(subject)
