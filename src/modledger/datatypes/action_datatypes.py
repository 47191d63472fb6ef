"""
Action types and data structures for moderation actions.

This module defines the ActionType enum and the ModerationAction record
stored by the action ledger.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Union

from modledger.datatypes.subject_datatypes import Subject

LEXICON_PREFIX = "com.atproto.admin.defs#"


class ActionType(Enum):
    """Enumeration of supported moderation actions."""

    TAKEDOWN = "takedown"
    ACKNOWLEDGE = "acknowledge"
    FLAG = "flag"
    ESCALATE = "escalate"
    MUTE = "mute"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, value: Union[str, "ActionType"]) -> Optional["ActionType"]:
        """Return the matching ActionType, or None for an unknown kind.

        Accepts the short value (``"takedown"``), the member name
        (``"TAKEDOWN"``) and the lexicon token
        (``"com.atproto.admin.defs#takedown"``).
        """
        if isinstance(value, ActionType):
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


class ActionStatus(Enum):
    ACTIVE = "active"
    REVERSED = "reversed"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True, slots=True)
class ModerationAction:
    """A moderation action as stored in the ledger.

    Attributes:
        id: Ledger-assigned id, monotonic and never reused
        action: Kind of action; a raw string when the row was written by a
            deployment that knows kinds this one does not
        subject: What the action targets
        reason: Operator supplied reason (opaque audit text)
        created_by: Identity of the operator who took the action
        created_at: When the action was recorded (UTC)
        reversed_by, reversed_at, reversed_reason: Set once on reversal
    """

    id: int
    action: Union[ActionType, str]
    subject: Subject
    reason: str
    created_by: str
    created_at: datetime
    reversed_by: Optional[str] = None
    reversed_at: Optional[datetime] = None
    reversed_reason: Optional[str] = None

    @property
    def status(self) -> ActionStatus:
        return ActionStatus.ACTIVE if self.reversed_at is None else ActionStatus.REVERSED

    @property
    def is_active(self) -> bool:
        return self.reversed_at is None

    @property
    def kind(self) -> str:
        return self.action.value if isinstance(self.action, ActionType) else str(self.action)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "action": self.kind,
            "subject": self.subject.to_dict(),
            "reason": self.reason,
            "createdBy": self.created_by,
            "createdAt": self.created_at.isoformat(),
            "status": self.status.value,
        }
        if self.reversed_at is not None:
            data["reversal"] = {
                "reason": self.reversed_reason,
                "createdBy": self.reversed_by,
                "createdAt": self.reversed_at.isoformat(),
            }
        return data
