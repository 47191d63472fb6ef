"""Tests for the report ledger and report resolution."""

import asyncio

import pytest

from modledger.datatypes.report_datatypes import ReasonType
from modledger.datatypes.subject_datatypes import AccountSubject, RecordSubject
from modledger.moderation.action_ledger import ActionLedger
from modledger.moderation.errors import (
    ActionNotFound,
    AlreadyResolved,
    InvalidRequest,
    InvalidSubject,
    ReportNotFound,
)
from modledger.moderation.report_ledger import ReportLedger

ALICE = "did:example:alice"
BOB = "did:example:bob"
ADMIN = "did:example:admin"
POST = RecordSubject("at://did:example:alice/app.bsky.feed.post/3k2a", "bafyreipost")


@pytest.fixture
def actions(database, clock):
    return ActionLedger(database, clock)


@pytest.fixture
def reports(database, clock):
    return ReportLedger(database, clock)


class TestCreateReport:
    @pytest.mark.asyncio
    async def test_create_and_get(self, reports):
        report = await reports.create_report("spam", AccountSubject(ALICE), "bot account", BOB)

        assert report.reason_type is ReasonType.SPAM
        assert report.is_open
        assert await reports.get_report(report.id) == report

    @pytest.mark.asyncio
    async def test_lexicon_reason_and_missing_text(self, reports):
        report = await reports.create_report("com.atproto.moderation.defs#reasonRude", POST, None, BOB)
        assert report.reason_type is ReasonType.RUDE
        assert report.reason is None

    @pytest.mark.asyncio
    async def test_duplicates_are_kept(self, reports):
        first = await reports.create_report("spam", AccountSubject(ALICE), None, BOB)
        second = await reports.create_report("spam", AccountSubject(ALICE), None, BOB)

        assert first.id != second.id
        open_reports = await reports.list_open_reports(AccountSubject(ALICE))
        assert [r.id for r in open_reports] == [first.id, second.id]

    @pytest.mark.asyncio
    async def test_unknown_reason_type(self, reports):
        with pytest.raises(InvalidRequest):
            await reports.create_report("boring", AccountSubject(ALICE), None, BOB)

    @pytest.mark.asyncio
    async def test_invalid_subject(self, reports):
        with pytest.raises(InvalidSubject):
            await reports.create_report("spam", {"uri": "at://x", "cid": "bafy"}, None, BOB)

    @pytest.mark.asyncio
    async def test_missing_reporter(self, reports):
        with pytest.raises(InvalidRequest):
            await reports.create_report("spam", AccountSubject(ALICE), None, "")

    @pytest.mark.asyncio
    async def test_get_unknown_report(self, reports):
        with pytest.raises(ReportNotFound):
            await reports.get_report(7)


class TestResolveReports:
    @pytest.mark.asyncio
    async def test_resolve_links_every_report(self, actions, reports):
        r1 = await reports.create_report("spam", AccountSubject(ALICE), None, BOB)
        r2 = await reports.create_report("rude", AccountSubject(ALICE), None, BOB)
        action = await actions.take_action("takedown", AccountSubject(ALICE), "confirmed", ADMIN)

        resolved = await reports.resolve_reports(action.id, [r2.id, r1.id], ADMIN)

        assert [r.id for r in resolved] == [r2.id, r1.id]
        assert all(r.resolving_action_id == action.id for r in resolved)
        assert all(r.resolved_by == ADMIN for r in resolved)
        assert await reports.list_open_reports(AccountSubject(ALICE)) == []

        linked = await reports.list_reports_for_action(action.id)
        assert sorted(r.id for r in linked) == [r1.id, r2.id]

    @pytest.mark.asyncio
    async def test_duplicate_ids_collapse(self, actions, reports):
        report = await reports.create_report("spam", AccountSubject(ALICE), None, BOB)
        action = await actions.take_action("acknowledge", AccountSubject(ALICE), "", ADMIN)

        resolved = await reports.resolve_reports(action.id, [report.id, report.id], ADMIN)
        assert [r.id for r in resolved] == [report.id]

    @pytest.mark.asyncio
    async def test_empty_list_rejected(self, actions, reports):
        action = await actions.take_action("acknowledge", AccountSubject(ALICE), "", ADMIN)
        with pytest.raises(InvalidRequest):
            await reports.resolve_reports(action.id, [], ADMIN)

    @pytest.mark.asyncio
    async def test_unknown_action(self, reports):
        report = await reports.create_report("spam", AccountSubject(ALICE), None, BOB)
        with pytest.raises(ActionNotFound):
            await reports.resolve_reports(404, [report.id], ADMIN)
        assert (await reports.get_report(report.id)).is_open

    @pytest.mark.asyncio
    async def test_unknown_report_changes_nothing(self, actions, reports):
        report = await reports.create_report("spam", AccountSubject(ALICE), None, BOB)
        action = await actions.take_action("flag", AccountSubject(ALICE), "", ADMIN)

        with pytest.raises(ReportNotFound) as excinfo:
            await reports.resolve_reports(action.id, [report.id, 999], ADMIN)

        assert excinfo.value.report_ids == [999]
        assert (await reports.get_report(report.id)).is_open

    @pytest.mark.asyncio
    async def test_already_resolved_is_all_or_nothing(self, actions, reports):
        r1 = await reports.create_report("spam", AccountSubject(ALICE), None, BOB)
        r2 = await reports.create_report("spam", AccountSubject(ALICE), None, BOB)
        first = await actions.take_action("flag", AccountSubject(ALICE), "", ADMIN)
        second = await actions.take_action("takedown", AccountSubject(ALICE), "", ADMIN)
        await reports.resolve_reports(first.id, [r1.id], ADMIN)

        with pytest.raises(AlreadyResolved) as excinfo:
            await reports.resolve_reports(second.id, [r2.id, r1.id], ADMIN)

        assert excinfo.value.report_ids == [r1.id]
        assert (await reports.get_report(r2.id)).is_open
        assert (await reports.get_report(r1.id)).resolving_action_id == first.id

    @pytest.mark.asyncio
    async def test_concurrent_resolutions_exactly_one_wins(self, actions, reports):
        report = await reports.create_report("spam", AccountSubject(ALICE), None, BOB)
        contenders = [await actions.take_action("flag", AccountSubject(ALICE), str(i), ADMIN) for i in range(4)]

        results = await asyncio.gather(
            *(reports.resolve_reports(action.id, [report.id], f"did:example:op{i}") for i, action in enumerate(contenders)),
            return_exceptions=True,
        )

        successes = [r for r in results if not isinstance(r, Exception)]
        failures = [r for r in results if isinstance(r, Exception)]
        assert len(successes) == 1
        assert len(failures) == 3
        assert all(isinstance(f, AlreadyResolved) for f in failures)

        winner = successes[0][0]
        stored = await reports.get_report(report.id)
        assert stored.resolving_action_id == winner.resolving_action_id
        assert stored.resolved_by == winner.resolved_by
        assert len(await reports.list_reports_for_action(winner.resolving_action_id)) == 1

    @pytest.mark.asyncio
    async def test_concurrent_overlapping_resolutions_stay_all_or_nothing(self, actions, reports):
        shared = await reports.create_report("spam", AccountSubject(ALICE), None, BOB)
        left = await reports.create_report("spam", AccountSubject(ALICE), None, BOB)
        right = await reports.create_report("spam", AccountSubject(ALICE), None, BOB)
        first = await actions.take_action("flag", AccountSubject(ALICE), "", ADMIN)
        second = await actions.take_action("takedown", AccountSubject(ALICE), "", ADMIN)

        results = await asyncio.gather(
            reports.resolve_reports(first.id, [left.id, shared.id], ADMIN),
            reports.resolve_reports(second.id, [right.id, shared.id], ADMIN),
            return_exceptions=True,
        )

        assert sum(isinstance(r, AlreadyResolved) for r in results) == 1
        winner_id = (await reports.get_report(shared.id)).resolving_action_id
        loser_report = right if winner_id == first.id else left
        assert (await reports.get_report(loser_report.id)).is_open
        assert {r.id for r in await reports.list_reports_for_action(winner_id)} == {
            shared.id,
            left.id if winner_id == first.id else right.id,
        }

    @pytest.mark.asyncio
    async def test_reversed_action_can_still_resolve(self, actions, reports):
        report = await reports.create_report("spam", AccountSubject(ALICE), None, BOB)
        action = await actions.take_action("flag", AccountSubject(ALICE), "", ADMIN)
        await actions.reverse_action(action.id, ADMIN, "undo")

        resolved = await reports.resolve_reports(action.id, [report.id], ADMIN)
        assert resolved[0].resolving_action_id == action.id

    @pytest.mark.asyncio
    async def test_open_reports_are_per_subject(self, reports):
        await reports.create_report("spam", AccountSubject(ALICE), None, BOB)
        on_post = await reports.create_report("spam", POST, None, BOB)

        assert [r.id for r in await reports.list_open_reports(POST)] == [on_post.id]
