"""Tests for the action policy table."""

import pytest

from modledger.datatypes.action_datatypes import ActionType
from modledger.datatypes.directive_datatypes import DirectiveSet, EntityKind, SubjectLevel
from modledger.moderation.policy import POLICY_TABLE, ActionPolicy, policy_for, validate_policy_table


def test_every_action_kind_has_a_policy():
    assert set(POLICY_TABLE) == set(ActionType)


def test_validate_rejects_missing_kind():
    partial = {kind: policy for kind, policy in POLICY_TABLE.items() if kind is not ActionType.MUTE}
    with pytest.raises(RuntimeError, match="mute"):
        validate_policy_table(partial)


def test_table_is_read_only():
    with pytest.raises(TypeError):
        POLICY_TABLE[ActionType.MUTE] = ActionPolicy()


def test_unknown_kind_has_no_effect():
    policy = policy_for("quarantine")
    assert policy.contributions(SubjectLevel.ACCOUNT, EntityKind.ACCOUNT) == {}
    assert policy.contributions(SubjectLevel.CONTENT, EntityKind.PROFILE) == {}


def test_acknowledge_has_no_effect():
    policy = policy_for(ActionType.ACKNOWLEDGE)
    assert policy.contributions(SubjectLevel.ACCOUNT, EntityKind.ACCOUNT) == {}
    assert policy.contributions(SubjectLevel.CONTENT, EntityKind.AVATAR) == {}


def test_account_takedown_locks_every_entity():
    contributions = policy_for(ActionType.TAKEDOWN).contributions(SubjectLevel.ACCOUNT, EntityKind.ACCOUNT)
    assert contributions[EntityKind.ACCOUNT] == DirectiveSet(filter=True, blur=True, no_override=True)
    assert contributions[EntityKind.PROFILE] == DirectiveSet(blur=True, no_override=True)
    assert contributions[EntityKind.AVATAR] == DirectiveSet(blur=True, no_override=True)


def test_content_action_lands_on_role():
    contributions = policy_for(ActionType.FLAG).contributions(SubjectLevel.CONTENT, EntityKind.AVATAR)
    assert contributions == {EntityKind.AVATAR: DirectiveSet(blur=True)}


def test_account_mute_does_not_cascade():
    contributions = policy_for(ActionType.MUTE).contributions(SubjectLevel.ACCOUNT, EntityKind.ACCOUNT)
    assert set(contributions) == {EntityKind.ACCOUNT}
