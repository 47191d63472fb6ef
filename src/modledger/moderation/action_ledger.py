"""
Action ledger: creation, reversal and lookup of moderation actions.

An action moves through exactly one transition, ``active -> reversed``.
Both operations are single transactions; reversal is a conditional write
so two racing reversals of the same action cannot both succeed.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, Iterable, List, Optional, Union

from modledger.database.database import Database
from modledger.datatypes.action_datatypes import ActionType, ModerationAction
from modledger.datatypes.subject_datatypes import Subject, ensure_subject
from modledger.moderation.errors import (
    ActionNotFound,
    AlreadyReversed,
    InvalidActionType,
    InvalidRequest,
)
from modledger.repositories.action_repo import action_repo
from modledger.util.logger import get_logger
from modledger.util.time_utils import to_utc, utc_now

logger = get_logger("action_ledger")

Clock = Callable[[], datetime]


def require_identity(value: Any, field_name: str) -> str:
    """Operator and reporter identities arrive pre-verified but must be present."""
    if not isinstance(value, str) or not value.strip():
        raise InvalidRequest(f"{field_name} must be a non-empty string")
    return value


def require_text(value: Any, field_name: str) -> str:
    if not isinstance(value, str):
        raise InvalidRequest(f"{field_name} must be a string")
    return value


class ActionLedger:
    """Records moderation actions taken by operators."""

    def __init__(self, database: Database, clock: Clock = utc_now) -> None:
        self._db = database
        self._clock = clock

    async def take_action(
        self,
        action: Union[ActionType, str],
        subject: Union[Subject, dict],
        reason: str,
        created_by: str,
    ) -> ModerationAction:
        """
        Record a new active action.

        Raises:
            InvalidSubject: The subject is malformed
            InvalidActionType: The action kind is unknown
            InvalidRequest: ``created_by`` is empty or ``reason`` not text
        """
        subject = ensure_subject(subject)
        kind = ActionType.parse(action)
        if kind is None:
            raise InvalidActionType(f"unknown moderation action: {action!r}")
        require_text(reason, "reason")
        require_identity(created_by, "created_by")

        created_at = to_utc(self._clock())
        async with self._db.transaction("take_action") as conn:
            action_id = await action_repo.insert(conn, kind, subject, reason, created_by, created_at)

        logger.info(
            "[ACTION LEDGER] Action %d: %s on %s by %s",
            action_id, kind.value, subject.key, created_by
        )
        return ModerationAction(
            id=action_id,
            action=kind,
            subject=subject,
            reason=reason,
            created_by=created_by,
            created_at=created_at,
        )

    async def reverse_action(self, action_id: int, reversed_by: str, reason: str) -> ModerationAction:
        """
        Reverse an active action. Reversal is terminal.

        Raises:
            ActionNotFound: No action has this id
            AlreadyReversed: The action was reversed before (including by a
                concurrent caller that won the race)
        """
        require_identity(reversed_by, "reversed_by")
        require_text(reason, "reason")

        reversed_at = to_utc(self._clock())
        async with self._db.transaction("reverse_action") as conn:
            updated = await action_repo.mark_reversed(conn, action_id, reversed_by, reversed_at, reason)
            if not updated:
                if not await action_repo.exists(conn, action_id):
                    raise ActionNotFound(action_id)
                logger.warning("[ACTION LEDGER] Action %d already reversed, rejecting reversal by %s", action_id, reversed_by)
                raise AlreadyReversed(action_id)
            action = await action_repo.get(conn, action_id)

        logger.info("[ACTION LEDGER] Action %d reversed by %s", action_id, reversed_by)
        return action

    async def get_action(self, action_id: int) -> ModerationAction:
        """
        Raises:
            ActionNotFound: No action has this id
        """
        async with self._db.read("get_action") as conn:
            action = await action_repo.get(conn, action_id)
        if action is None:
            raise ActionNotFound(action_id)
        return action

    async def list_active_actions_for_subjects(self, subjects: Iterable[Subject]) -> List[ModerationAction]:
        """
        Active actions whose subject is exactly one of ``subjects``.

        Ordered by creation time ascending (ties broken by id) so callers get
        a deterministic sequence. Runs as a single statement, which reads one
        committed snapshot.
        """
        keys = [ensure_subject(subject).key for subject in subjects]
        if not keys:
            return []
        async with self._db.read("list_active_actions_for_subjects") as conn:
            return await action_repo.list_active_for_subject_keys(conn, keys)

    async def list_actions_for_subject(
        self,
        subject: Union[Subject, dict],
        include_reversed: bool = True,
    ) -> List[ModerationAction]:
        """Audit trail for one subject, newest first."""
        subject = ensure_subject(subject)
        async with self._db.read("list_actions_for_subject") as conn:
            return await action_repo.list_for_subject_key(conn, subject.key, include_reversed)

    async def list_actions(self, limit: int = 50, cursor: Optional[int] = None) -> List[ModerationAction]:
        """Page through all actions newest first; pass the last id seen as ``cursor``."""
        if limit < 1:
            raise InvalidRequest("limit must be positive")
        async with self._db.read("list_actions") as conn:
            return await action_repo.list_page(conn, min(limit, 100), cursor)
