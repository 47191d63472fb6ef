"""
Policy table: what each action kind does to each rendered entity.

Every ActionType must have an entry; the table is checked when this module
is imported, so adding a kind without deciding its effect fails at startup
rather than silently doing nothing.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, Iterable, Mapping, Union

from modledger.datatypes.action_datatypes import ActionType
from modledger.datatypes.directive_datatypes import DirectiveSet, EntityKind, SubjectLevel
from modledger.util.logger import get_logger

logger = get_logger("moderation_policy")


@dataclass(frozen=True)
class ActionPolicy:
    """Effect of one action kind.

    Attributes:
        account_level: Contributions when the action targets an account,
            per entity of that account (and of content it owns)
        content_level: Contribution when the action targets a record or
            blob, applied to the entity the content is rendered as
    """

    account_level: Mapping[EntityKind, DirectiveSet] = field(default_factory=dict)
    content_level: DirectiveSet = field(default_factory=DirectiveSet.empty)

    def contributions(self, level: SubjectLevel, role: EntityKind) -> Dict[EntityKind, DirectiveSet]:
        if level is SubjectLevel.ACCOUNT:
            return {entity: directive for entity, directive in self.account_level.items() if not directive.is_empty}
        if self.content_level.is_empty:
            return {}
        return {role: self.content_level}


_LOCKED_COVER = DirectiveSet(blur=True, no_override=True)
_COVER = DirectiveSet(blur=True)
_ALERT = DirectiveSet(alert=True)

POLICY_TABLE: Mapping[ActionType, ActionPolicy] = MappingProxyType({
    ActionType.TAKEDOWN: ActionPolicy(
        account_level={
            EntityKind.ACCOUNT: DirectiveSet(filter=True, blur=True, no_override=True),
            EntityKind.PROFILE: _LOCKED_COVER,
            EntityKind.AVATAR: _LOCKED_COVER,
        },
        content_level=DirectiveSet(filter=True, blur=True, no_override=True),
    ),
    ActionType.FLAG: ActionPolicy(
        account_level={
            EntityKind.ACCOUNT: _COVER,
            EntityKind.PROFILE: _COVER,
            EntityKind.AVATAR: _COVER,
        },
        content_level=_COVER,
    ),
    ActionType.ESCALATE: ActionPolicy(
        account_level={
            EntityKind.ACCOUNT: _ALERT,
            EntityKind.PROFILE: _ALERT,
            EntityKind.AVATAR: _ALERT,
        },
        content_level=_ALERT,
    ),
    ActionType.MUTE: ActionPolicy(
        account_level={EntityKind.ACCOUNT: DirectiveSet(filter=True, alert=True)},
        content_level=DirectiveSet(filter=True),
    ),
    # Audit marker only
    ActionType.ACKNOWLEDGE: ActionPolicy(),
})


def validate_policy_table(table: Mapping[ActionType, ActionPolicy], kinds: Iterable[ActionType] = ActionType) -> None:
    """
    Raises:
        RuntimeError: If any action kind has no policy entry
    """
    missing = [kind.value for kind in kinds if kind not in table]
    if missing:
        raise RuntimeError(f"moderation policy table has no entry for: {', '.join(missing)}")


def policy_for(kind: Union[ActionType, str]) -> ActionPolicy:
    """Policy for a kind; unknown kinds map to the no-effect policy."""
    if isinstance(kind, ActionType):
        return POLICY_TABLE[kind]
    logger.warning("[POLICY] No policy for unrecognised action kind %r, ignoring it", kind)
    return _NO_EFFECT


_NO_EFFECT = ActionPolicy()

validate_policy_table(POLICY_TABLE)
