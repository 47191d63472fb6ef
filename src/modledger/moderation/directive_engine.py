"""
Directive resolution: turn the active actions around a subject into the
display directives a viewer must honor.

Resolution is recomputed from the ledger on every query. The steps are:

1. Build the applicability set: the subject plus its ancestors, outermost
   first.
2. Read every active action on those subjects in one statement.
3. Map each action through the policy table to per-entity contributions.
4. Merge contributions per entity, most restrictive wins.

``compute_directives`` is steps 3 and 4 with no I/O; the scenario fixtures
drive it directly.
"""

from __future__ import annotations

import asyncio
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from modledger.datatypes.action_datatypes import ModerationAction
from modledger.datatypes.directive_datatypes import (
    DirectiveSet,
    EntityKind,
    ModerationDecision,
    SubjectLevel,
)
from modledger.datatypes.subject_datatypes import (
    AccountSubject,
    BlobSubject,
    RecordSubject,
    Subject,
    SubjectType,
    ensure_subject,
)
from modledger.moderation.action_ledger import ActionLedger
from modledger.moderation.errors import InvalidRequest
from modledger.moderation.hierarchy_resolver import HierarchyResolver, level_of
from modledger.moderation.policy import policy_for
from modledger.util.logger import get_logger

logger = get_logger("directive_engine")

DEFAULT_ROLES = {
    SubjectType.RECORD: EntityKind.PROFILE,
    SubjectType.BLOB: EntityKind.AVATAR,
}
CONTENT_ROLES = (EntityKind.PROFILE, EntityKind.AVATAR)

LeveledAction = Tuple[SubjectLevel, ModerationAction]
# (subject, entities it covers, role content-level actions land on)
Part = Tuple[Subject, Tuple[EntityKind, ...], EntityKind]

# Marks "use the engine default"; an explicit None disables the timeout.
USE_DEFAULT_TIMEOUT: Any = object()
Timeout = Optional[float]


def compute_directives(
    entities: Sequence[EntityKind],
    leveled_actions: Iterable[LeveledAction],
    role: EntityKind = EntityKind.PROFILE,
) -> Dict[EntityKind, Optional[DirectiveSet]]:
    """
    Merge the contributions of ``leveled_actions`` onto ``entities``.

    Args:
        entities: Entities the caller wants directives for
        leveled_actions: ``(level, action)`` pairs; reversed actions are skipped
        role: Entity that content-level actions land on

    Returns:
        One entry per requested entity: the merged DirectiveSet, or None when
        nothing contributed.
    """
    contributions: Dict[EntityKind, List[DirectiveSet]] = {entity: [] for entity in entities}
    for level, action in leveled_actions:
        if not action.is_active:
            continue
        for entity, directive in policy_for(action.action).contributions(level, role).items():
            if entity in contributions:
                contributions[entity].append(directive)

    return {
        entity: DirectiveSet.merge_all(found) if found else None
        for entity, found in contributions.items()
    }


def entities_for(subject: Subject, role: Optional[EntityKind]) -> Tuple[Tuple[EntityKind, ...], EntityKind]:
    """Entities a query covers and the role content-level actions land on."""
    if isinstance(subject, AccountSubject):
        if role is None:
            return tuple(EntityKind), EntityKind.ACCOUNT
        return (role,), role

    effective = role if role is not None else DEFAULT_ROLES[subject.subject_type]
    if effective not in CONTENT_ROLES:
        raise InvalidRequest(f"{subject.subject_type.value} subjects cannot be rendered as {effective.value}")
    return (effective,), effective


class DirectiveEngine:
    """Resolves display directives from the current ledger state."""

    def __init__(
        self,
        actions: ActionLedger,
        resolver: Optional[HierarchyResolver] = None,
        default_timeout: Optional[float] = None,
    ) -> None:
        self._actions = actions
        self._resolver = resolver or HierarchyResolver()
        self._default_timeout = default_timeout

    def applicability_set(self, subject: Subject) -> List[Subject]:
        """The subject and its ancestors, outermost first."""
        chain = [subject, *self._resolver.ancestors_of(subject)]
        chain.reverse()
        return chain

    async def resolve_directives(
        self,
        subject: Union[Subject, dict],
        role: Optional[Union[EntityKind, str]] = None,
        timeout: Timeout = USE_DEFAULT_TIMEOUT,
    ) -> ModerationDecision:
        """
        Directives for one subject.

        Args:
            subject: Account, record or blob being rendered
            role: Entity a record or blob is rendered as (default: profile
                for records, avatar for blobs); for an account, restricts
                the decision to that one entity
            timeout: Seconds to wait; on expiry an unresolved decision is
                returned, which callers must not treat as clean. None waits
                indefinitely; omitted uses the engine default.

        Raises:
            InvalidSubject: The subject is malformed
            InvalidRequest: The role does not fit the subject
        """
        subject = ensure_subject(subject)
        role = EntityKind(role) if isinstance(role, str) else role
        entities, effective_role = entities_for(subject, role)
        return await self._with_timeout(
            subject,
            self._resolve(subject, [(subject, entities, effective_role)]),
            timeout,
        )

    async def resolve_profile_directives(
        self,
        did: Union[str, AccountSubject],
        profile: Optional[Union[RecordSubject, dict]] = None,
        avatar: Optional[Union[BlobSubject, dict]] = None,
        timeout: Timeout = USE_DEFAULT_TIMEOUT,
    ) -> ModerationDecision:
        """
        Full decision for rendering a profile: the account's own actions,
        plus actions on its profile record (as profile) and avatar blob (as
        avatar), merged per entity.

        All three parts are computed from one ledger read.
        """
        account = did if isinstance(did, AccountSubject) else AccountSubject(did)
        parts: List[Part] = [(account, tuple(EntityKind), EntityKind.ACCOUNT)]
        if profile is not None:
            parts.append((ensure_subject(profile), (EntityKind.PROFILE,), EntityKind.PROFILE))
        if avatar is not None:
            parts.append((ensure_subject(avatar), (EntityKind.AVATAR,), EntityKind.AVATAR))

        return await self._with_timeout(account, self._resolve(account, parts), timeout)

    async def _with_timeout(self, subject: Subject, coro, timeout: Timeout) -> ModerationDecision:
        limit = self._default_timeout if timeout is USE_DEFAULT_TIMEOUT else timeout
        if limit is None:
            return await coro
        try:
            return await asyncio.wait_for(coro, limit)
        except asyncio.TimeoutError:
            logger.warning("[DIRECTIVES] Resolution for %s timed out after %.2fs, reporting unresolved", subject.key, limit)
            return ModerationDecision.unresolved(subject)

    async def _resolve(self, subject: Subject, parts: Sequence[Part]) -> ModerationDecision:
        """Resolve every part against a single snapshot of active actions."""
        chains = [self.applicability_set(part_subject) for part_subject, _, _ in parts]
        union: Dict[str, Subject] = {}
        for chain in chains:
            for candidate in chain:
                union.setdefault(candidate.key, candidate)
        levels = {key: level_of(candidate) for key, candidate in union.items()}
        actions = await self._actions.list_active_actions_for_subjects(list(union.values()))

        decision: Optional[ModerationDecision] = None
        for (part_subject, entities, role), chain in zip(parts, chains):
            keys = {candidate.key for candidate in chain}
            relevant = [action for action in actions if action.subject.key in keys]
            merged = compute_directives(entities, [(levels[a.subject.key], a) for a in relevant], role)
            partial = ModerationDecision(
                subject=subject,
                account=merged.get(EntityKind.ACCOUNT),
                profile=merged.get(EntityKind.PROFILE),
                avatar=merged.get(EntityKind.AVATAR),
                action_ids=[action.id for action in relevant],
            )
            decision = partial if decision is None else decision.merge(partial)

        logger.debug(
            "[DIRECTIVES] %s resolved from %d active action(s): %s",
            subject.key, len(actions), decision.to_behaviors()
        )
        return decision
