"""
Behavior scenarios: declarative "these actions produce these directives"
records.

Each scenario names the kind of subject being rendered, the actions in
force around it, and the expected behaviors::

    - title: Account takedown
      subject: account
      actions:
        - {action: takedown, level: account}
      behaviors:
        account: {filter: true, blur: true, noOverride: true}
        profile: {blur: true, noOverride: true}
        avatar: {blur: true, noOverride: true}

``level`` is ``account`` for an action against the owning account or
``content`` for an action against the rendered record/blob itself. An
action may be marked ``reversed: true``. The fixture file shipped with the
package covers every entry of the policy table.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from importlib import resources
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

import yaml

from modledger.datatypes.action_datatypes import ActionType, ModerationAction
from modledger.datatypes.directive_datatypes import DirectiveSet, EntityKind, ModerationDecision, SubjectLevel
from modledger.datatypes.subject_datatypes import (
    AccountSubject,
    BlobSubject,
    RecordSubject,
    Subject,
    SubjectType,
)
from modledger.moderation.directive_engine import compute_directives, entities_for
from modledger.moderation.errors import ScenarioError
from modledger.util.logger import get_logger

logger = get_logger("scenarios")

FIXTURE_PACKAGE = "modledger.data"
FIXTURE_NAME = "profile_moderation_behaviors.yml"

SCENARIO_DID = "did:example:alice"
SCENARIO_RECORD = RecordSubject(
    "at://did:example:alice/app.bsky.actor.profile/self",
    "bafyreiscenarioprofile",
)
SCENARIO_BLOB = BlobSubject("bafkreiscenarioavatar", SCENARIO_DID)


@dataclass(frozen=True)
class ScenarioAction:
    action: str
    level: SubjectLevel
    reversed: bool = False


@dataclass(frozen=True)
class Scenario:
    title: str
    subject_type: SubjectType
    actions: Tuple[ScenarioAction, ...]
    behaviors: Dict[str, Dict[str, bool]]
    role: Optional[EntityKind] = None

    def subject(self) -> Subject:
        """The synthetic subject this scenario renders."""
        if self.subject_type is SubjectType.ACCOUNT:
            return AccountSubject(SCENARIO_DID)
        if self.subject_type is SubjectType.RECORD:
            return SCENARIO_RECORD
        return SCENARIO_BLOB

    def target_of(self, scenario_action: ScenarioAction) -> Subject:
        if scenario_action.level is SubjectLevel.ACCOUNT:
            return AccountSubject(SCENARIO_DID)
        return self.subject()


@dataclass
class ScenarioResult:
    scenario: Scenario
    expected: Dict[str, Dict[str, bool]]
    actual: Dict[str, Dict[str, bool]] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.expected == self.actual


def normalize_behaviors(behaviors: Optional[Mapping[str, Any]]) -> Dict[str, Dict[str, bool]]:
    """Canonical form: only entities with a true field, only true fields."""
    normalized: Dict[str, Dict[str, bool]] = {}
    for entity_name, behavior in (behaviors or {}).items():
        try:
            entity = EntityKind(entity_name)
            directive = DirectiveSet.from_behavior(behavior)
        except (TypeError, ValueError) as exc:
            raise ScenarioError(f"invalid behavior for {entity_name!r}: {exc}") from exc
        if not directive.is_empty:
            normalized[entity.value] = directive.to_behavior()
    return normalized


ACTION_KEYS = frozenset({"action", "level", "reversed"})


def _parse_action(raw: Any, title: str, subject_type: SubjectType) -> ScenarioAction:
    if not isinstance(raw, Mapping) or "action" not in raw:
        raise ScenarioError(f"{title}: each action needs an 'action' key")
    # YAML 1.1 turns bare keys like ``on``/``yes`` into booleans
    unknown = [key for key in raw if not isinstance(key, str) or key not in ACTION_KEYS]
    if unknown:
        raise ScenarioError(f"{title}: unknown action keys {unknown!r}, expected {sorted(ACTION_KEYS)}")
    try:
        level = SubjectLevel(raw.get("level", "account"))
    except ValueError as exc:
        raise ScenarioError(f"{title}: 'level' must be 'account' or 'content'") from exc
    if level is SubjectLevel.CONTENT and subject_type is SubjectType.ACCOUNT:
        raise ScenarioError(f"{title}: account scenarios have no content-level actions")
    return ScenarioAction(action=str(raw["action"]), level=level, reversed=bool(raw.get("reversed", False)))


def parse_scenario(raw: Any) -> Scenario:
    if not isinstance(raw, Mapping) or not raw.get("title"):
        raise ScenarioError(f"scenario must be a mapping with a title: {raw!r}")
    title = str(raw["title"])
    try:
        subject_type = SubjectType(raw.get("subject", "account"))
        role = EntityKind(raw["role"]) if raw.get("role") else None
    except ValueError as exc:
        raise ScenarioError(f"{title}: {exc}") from exc

    actions = tuple(_parse_action(item, title, subject_type) for item in raw.get("actions") or [])
    return Scenario(
        title=title,
        subject_type=subject_type,
        actions=actions,
        behaviors=normalize_behaviors(raw.get("behaviors")),
        role=role,
    )


def load_scenarios(path: Optional[Path] = None) -> List[Scenario]:
    """
    Load scenarios from ``path`` or from the packaged fixture file.

    Raises:
        ScenarioError: If the file is not a list of valid scenarios or two
            scenarios share a title
    """
    try:
        if path is None:
            text = resources.files(FIXTURE_PACKAGE).joinpath(FIXTURE_NAME).read_text(encoding="utf-8")
        else:
            text = Path(path).read_text(encoding="utf-8")
        data = yaml.safe_load(text)
    except (OSError, yaml.YAMLError) as exc:
        raise ScenarioError(f"cannot read scenarios: {exc}") from exc

    if isinstance(data, Mapping):
        data = data.get("scenarios")
    if not isinstance(data, list):
        raise ScenarioError("scenario file must contain a list of scenarios")

    scenarios = [parse_scenario(item) for item in data]
    titles = [scenario.title for scenario in scenarios]
    duplicates = sorted({title for title in titles if titles.count(title) > 1})
    if duplicates:
        raise ScenarioError(f"duplicate scenario titles: {duplicates}")

    logger.debug("[SCENARIOS] Loaded %d scenarios", len(scenarios))
    return scenarios


def synthesize_actions(scenario: Scenario) -> List[Tuple[SubjectLevel, ModerationAction]]:
    """Concrete ledger rows for a scenario, in creation order."""
    base = datetime(2023, 1, 1, tzinfo=timezone.utc)
    leveled = []
    for index, item in enumerate(scenario.actions, start=1):
        created_at = base + timedelta(minutes=index)
        kind = ActionType.parse(item.action)
        action = ModerationAction(
            id=index,
            action=kind if kind is not None else item.action,
            subject=scenario.target_of(item),
            reason="scenario",
            created_by="did:example:admin",
            created_at=created_at,
            reversed_by="did:example:admin" if item.reversed else None,
            reversed_at=created_at + timedelta(seconds=30) if item.reversed else None,
            reversed_reason="scenario" if item.reversed else None,
        )
        leveled.append((item.level, action))
    return leveled


def evaluate_scenario(scenario: Scenario) -> Dict[str, Dict[str, bool]]:
    """Behaviors the resolution rules produce for a scenario."""
    subject = scenario.subject()
    entities, role = entities_for(subject, scenario.role)
    merged = compute_directives(entities, synthesize_actions(scenario), role)
    decision = ModerationDecision(
        subject=subject,
        account=merged.get(EntityKind.ACCOUNT),
        profile=merged.get(EntityKind.PROFILE),
        avatar=merged.get(EntityKind.AVATAR),
    )
    return decision.to_behaviors()


def check_scenario(scenario: Scenario) -> ScenarioResult:
    return ScenarioResult(scenario=scenario, expected=scenario.behaviors, actual=evaluate_scenario(scenario))


def check_scenarios(scenarios: List[Scenario]) -> List[ScenarioResult]:
    """Evaluate every scenario and log the ones that do not match."""
    results = [check_scenario(scenario) for scenario in scenarios]
    for result in results:
        if not result.ok:
            logger.error(
                "[SCENARIOS] %s: expected %s, got %s",
                result.scenario.title, result.expected, result.actual
            )
    return results
