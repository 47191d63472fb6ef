"""
Report categories and the ModerationReport record.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Union

from modledger.datatypes.subject_datatypes import Subject

LEXICON_PREFIX = "com.atproto.moderation.defs#reason"


class ReasonType(Enum):
    """Categories a reporter can choose from."""

    SPAM = "spam"
    VIOLATION = "violation"
    MISLEADING = "misleading"
    SEXUAL = "sexual"
    RUDE = "rude"
    OTHER = "other"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, value: Union[str, "ReasonType"]) -> Optional["ReasonType"]:
        """Return the matching ReasonType, or None when unknown.

        Accepts ``"spam"`` as well as ``"com.atproto.moderation.defs#reasonSpam"``.
        """
        if isinstance(value, ReasonType):
            return value
        if not isinstance(value, str):
            return None
        token = value.strip()
        if token.startswith(LEXICON_PREFIX):
            token = token[len(LEXICON_PREFIX):]
        try:
            return cls(token.lower())
        except ValueError:
            return None


@dataclass(frozen=True, slots=True)
class ModerationReport:
    """A user report against a subject.

    The report is open until ``resolving_action_id`` is set, which happens
    exactly once.
    """

    id: int
    reason_type: ReasonType
    subject: Subject
    reported_by: str
    reason: Optional[str]
    created_at: datetime
    resolving_action_id: Optional[int] = None
    resolved_by: Optional[str] = None
    resolved_at: Optional[datetime] = None

    @property
    def is_open(self) -> bool:
        return self.resolving_action_id is None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "reasonType": self.reason_type.value,
            "subject": self.subject.to_dict(),
            "reportedBy": self.reported_by,
            "reason": self.reason,
            "createdAt": self.created_at.isoformat(),
            "resolvedByActionId": self.resolving_action_id,
            "resolvedBy": self.resolved_by,
            "resolvedAt": self.resolved_at.isoformat() if self.resolved_at else None,
        }
