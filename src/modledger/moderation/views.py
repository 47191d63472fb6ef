"""
Detail views for operators: an action with the reports it resolved, a
report with its resolving action, and the overall state of one subject.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from modledger.datatypes.action_datatypes import ModerationAction
from modledger.datatypes.directive_datatypes import ModerationDecision
from modledger.datatypes.report_datatypes import ModerationReport
from modledger.datatypes.subject_datatypes import Subject, ensure_subject
from modledger.moderation.action_ledger import ActionLedger
from modledger.moderation.directive_engine import DirectiveEngine
from modledger.moderation.report_ledger import ReportLedger


@dataclass
class ActionDetail:
    action: ModerationAction
    resolved_reports: List[ModerationReport] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        data = self.action.to_dict()
        data["resolvedReports"] = [report.to_dict() for report in self.resolved_reports]
        return data


@dataclass
class ReportDetail:
    report: ModerationReport
    resolved_by_action: Optional[ModerationAction] = None

    def to_dict(self) -> Dict[str, Any]:
        data = self.report.to_dict()
        data["resolvedByAction"] = self.resolved_by_action.to_dict() if self.resolved_by_action else None
        return data


@dataclass
class SubjectStatus:
    subject: Subject
    actions: List[ModerationAction]
    open_reports: List[ModerationReport]
    decision: ModerationDecision

    @property
    def active_actions(self) -> List[ModerationAction]:
        return [action for action in self.actions if action.is_active]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "subject": self.subject.to_dict(),
            "actions": [action.to_dict() for action in self.actions],
            "openReports": [report.to_dict() for report in self.open_reports],
            "decision": self.decision.to_dict(),
        }


class ModerationViews:
    def __init__(self, actions: ActionLedger, reports: ReportLedger, engine: DirectiveEngine) -> None:
        self._actions = actions
        self._reports = reports
        self._engine = engine

    async def action_detail(self, action_id: int) -> ActionDetail:
        action = await self._actions.get_action(action_id)
        resolved = await self._reports.list_reports_for_action(action_id)
        return ActionDetail(action=action, resolved_reports=resolved)

    async def report_detail(self, report_id: int) -> ReportDetail:
        report = await self._reports.get_report(report_id)
        action = None
        if report.resolving_action_id is not None:
            action = await self._actions.get_action(report.resolving_action_id)
        return ReportDetail(report=report, resolved_by_action=action)

    async def subject_status(self, subject: Union[Subject, dict]) -> SubjectStatus:
        subject = ensure_subject(subject)
        return SubjectStatus(
            subject=subject,
            actions=await self._actions.list_actions_for_subject(subject),
            open_reports=await self._reports.list_open_reports(subject),
            decision=await self._engine.resolve_directives(subject),
        )
