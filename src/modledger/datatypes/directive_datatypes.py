"""
Display directive types.

A DirectiveSet is what a viewer must do when rendering one entity:

- ``filter``: do not show it in listings at all
- ``blur``: put it behind a warning cover
- ``no_override``: the cover cannot be lifted (only meaningful with blur)
- ``alert``: show a warning without covering

DirectiveSets form a monoid under ``|`` (field-wise OR) with
``DirectiveSet.empty()`` as identity, so any number of contributions can be
merged in any order and grouping with the same result.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from functools import reduce
from typing import Any, Dict, Iterable, List, Mapping, Optional

from modledger.datatypes.subject_datatypes import Subject


class EntityKind(Enum):
    """The rendered entities a decision covers."""

    ACCOUNT = "account"
    PROFILE = "profile"
    AVATAR = "avatar"

    def __str__(self) -> str:
        return self.value


class SubjectLevel(Enum):
    """Where in the hierarchy an action sits relative to the queried content.

    ACCOUNT actions cascade onto everything the account owns; CONTENT
    actions (records, blobs) affect only the entity they are rendered as.
    """

    ACCOUNT = "account"
    CONTENT = "content"

    def __str__(self) -> str:
        return self.value


BEHAVIOR_KEYS = {"filter": "filter", "blur": "blur", "noOverride": "no_override", "alert": "alert"}


@dataclass(frozen=True, slots=True)
class DirectiveSet:
    filter: bool = False
    blur: bool = False
    no_override: bool = False
    alert: bool = False

    def __post_init__(self) -> None:
        if self.no_override and not self.blur:
            raise ValueError("no_override requires blur")

    @classmethod
    def empty(cls) -> "DirectiveSet":
        return _EMPTY

    @classmethod
    def merge_all(cls, directives: Iterable["DirectiveSet"]) -> "DirectiveSet":
        """Most-restrictive-wins merge of any number of directive sets."""
        return reduce(lambda left, right: left | right, directives, _EMPTY)

    @classmethod
    def from_behavior(cls, behavior: Optional[Mapping[str, Any]]) -> "DirectiveSet":
        """Build from the fixture shape ``{filter?, blur?, noOverride?, alert?}``."""
        if not behavior:
            return _EMPTY
        unknown = set(behavior) - set(BEHAVIOR_KEYS)
        if unknown:
            raise ValueError(f"unknown directive keys: {sorted(unknown)}")
        return cls(**{BEHAVIOR_KEYS[key]: bool(value) for key, value in behavior.items()})

    def __or__(self, other: "DirectiveSet") -> "DirectiveSet":
        if not isinstance(other, DirectiveSet):
            return NotImplemented
        return DirectiveSet(
            filter=self.filter or other.filter,
            blur=self.blur or other.blur,
            no_override=self.no_override or other.no_override,
            alert=self.alert or other.alert,
        )

    @property
    def is_empty(self) -> bool:
        return not (self.filter or self.blur or self.no_override or self.alert)

    def to_behavior(self) -> Dict[str, bool]:
        """Fixture shape with only the true fields."""
        return {key: True for key, attr in BEHAVIOR_KEYS.items() if getattr(self, attr)}


_EMPTY = DirectiveSet()


@dataclass(frozen=True)
class ModerationDecision:
    """Resolved directives for one query.

    An entity is None when it is not relevant to the queried subject or
    when no active action contributed to it. ``resolved`` is False when the
    query could not complete; such a decision must never be read as clean.
    """

    subject: Subject
    account: Optional[DirectiveSet] = None
    profile: Optional[DirectiveSet] = None
    avatar: Optional[DirectiveSet] = None
    action_ids: List[int] = field(default_factory=list)
    resolved: bool = True

    @classmethod
    def unresolved(cls, subject: Subject) -> "ModerationDecision":
        return cls(subject=subject, resolved=False)

    def get(self, entity: EntityKind) -> Optional[DirectiveSet]:
        return getattr(self, entity.value)

    @property
    def is_clean(self) -> bool:
        """True only for a completed resolution with no directive anywhere."""
        if not self.resolved:
            return False
        return all(
            directive is None or directive.is_empty
            for directive in (self.account, self.profile, self.avatar)
        )

    def merge(self, other: "ModerationDecision") -> "ModerationDecision":
        """Combine two decisions entity by entity, keeping this subject."""

        def pick(mine: Optional[DirectiveSet], theirs: Optional[DirectiveSet]) -> Optional[DirectiveSet]:
            if mine is None:
                return theirs
            if theirs is None:
                return mine
            return mine | theirs

        return ModerationDecision(
            subject=self.subject,
            account=pick(self.account, other.account),
            profile=pick(self.profile, other.profile),
            avatar=pick(self.avatar, other.avatar),
            action_ids=sorted(set(self.action_ids) | set(other.action_ids)),
            resolved=self.resolved and other.resolved,
        )

    def to_behaviors(self) -> Dict[str, Dict[str, bool]]:
        """Fixture shape: entities with at least one true field only."""
        behaviors: Dict[str, Dict[str, bool]] = {}
        for entity in EntityKind:
            directive = self.get(entity)
            if directive is not None and not directive.is_empty:
                behaviors[entity.value] = directive.to_behavior()
        return behaviors

    def to_dict(self) -> Dict[str, Any]:
        return {
            "subject": self.subject.to_dict(),
            "resolved": self.resolved,
            "behaviors": self.to_behaviors(),
            "actionIds": list(self.action_ids),
        }
