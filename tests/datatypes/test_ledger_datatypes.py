from datetime import datetime, timezone

import pytest

from modledger.datatypes.action_datatypes import ActionStatus, ActionType, ModerationAction
from modledger.datatypes.report_datatypes import ModerationReport, ReasonType
from modledger.datatypes.subject_datatypes import AccountSubject

CREATED = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("takedown", ActionType.TAKEDOWN),
        ("TAKEDOWN", ActionType.TAKEDOWN),
        ("com.atproto.admin.defs#acknowledge", ActionType.ACKNOWLEDGE),
        (ActionType.MUTE, ActionType.MUTE),
        ("quarantine", None),
        (7, None),
    ],
)
def test_action_type_parse(raw, expected):
    assert ActionType.parse(raw) is expected


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("spam", ReasonType.SPAM),
        ("com.atproto.moderation.defs#reasonMisleading", ReasonType.MISLEADING),
        ("harassment", None),
    ],
)
def test_reason_type_parse(raw, expected):
    assert ReasonType.parse(raw) is expected


def test_action_to_dict_with_reversal():
    action = ModerationAction(
        id=3,
        action=ActionType.FLAG,
        subject=AccountSubject("did:example:alice"),
        reason="nsfw avatar",
        created_by="did:example:admin",
        created_at=CREATED,
        reversed_by="did:example:lead",
        reversed_at=CREATED.replace(hour=13),
        reversed_reason="fixed",
    )
    data = action.to_dict()
    assert action.status is ActionStatus.REVERSED
    assert data["action"] == "flag"
    assert data["status"] == "reversed"
    assert data["reversal"] == {
        "reason": "fixed",
        "createdBy": "did:example:lead",
        "createdAt": "2024-05-01T13:00:00+00:00",
    }


def test_action_with_unrecognised_kind():
    action = ModerationAction(
        id=1,
        action="quarantine",
        subject=AccountSubject("did:example:alice"),
        reason="",
        created_by="did:example:admin",
        created_at=CREATED,
    )
    assert action.kind == "quarantine"
    assert action.is_active
    assert "reversal" not in action.to_dict()


def test_report_to_dict_open():
    report = ModerationReport(
        id=9,
        reason_type=ReasonType.RUDE,
        subject=AccountSubject("did:example:alice"),
        reported_by="did:example:bob",
        reason=None,
        created_at=CREATED,
    )
    data = report.to_dict()
    assert report.is_open
    assert data["reasonType"] == "rude"
    assert data["resolvedByActionId"] is None
    assert data["resolvedAt"] is None
