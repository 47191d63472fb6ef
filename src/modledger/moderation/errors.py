"""
Exceptions raised by the moderation ledgers and fixtures.

Every ledger error leaves stored state untouched: validation errors are
raised before any write, and conflict errors abort the surrounding
transaction.
"""

from __future__ import annotations


class ModerationError(Exception):
    """Base class for all moderation core errors."""


class InvalidSubject(ModerationError, ValueError):
    """The subject identifier or content hash is malformed."""


class InvalidActionType(ModerationError, ValueError):
    """The requested action kind is not one this ledger can record."""


class InvalidRequest(ModerationError, ValueError):
    """A request argument other than the subject is malformed."""


class NotFound(ModerationError, LookupError):
    """An action or report id does not exist."""


class ActionNotFound(NotFound):
    def __init__(self, action_id: int) -> None:
        super().__init__(f"moderation action {action_id} not found")
        self.action_id = action_id


class ReportNotFound(NotFound):
    def __init__(self, report_ids) -> None:
        ids = sorted(report_ids) if not isinstance(report_ids, int) else [report_ids]
        super().__init__(f"moderation report(s) not found: {', '.join(str(i) for i in ids)}")
        self.report_ids = ids


class AlreadyReversed(ModerationError):
    def __init__(self, action_id: int) -> None:
        super().__init__(f"moderation action {action_id} has already been reversed")
        self.action_id = action_id


class AlreadyResolved(ModerationError):
    def __init__(self, report_ids) -> None:
        ids = sorted(report_ids)
        super().__init__(f"moderation report(s) already resolved: {', '.join(str(i) for i in ids)}")
        self.report_ids = ids


class ScenarioError(ModerationError):
    """A behavior fixture file is malformed."""
