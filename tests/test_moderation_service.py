"""Tests for ModerationService and the detail views it serves."""

import pytest

from modledger.database.database import Database
from modledger.datatypes.directive_datatypes import DirectiveSet
from modledger.datatypes.subject_datatypes import AccountSubject, BlobSubject, RecordSubject
from modledger.moderation.errors import ActionNotFound, ReportNotFound
from modledger.moderation.hierarchy_resolver import HierarchyResolver
from modledger.moderation.moderation_service import ModerationService

ALICE = "did:example:alice"
BOB = "did:example:bob"
ADMIN = "did:example:admin"
HANDLE_PROFILE = RecordSubject("at://alice.test/app.bsky.actor.profile/self", "bafyreiprofile")
AVATAR = BlobSubject("bafkreialiceavatar")


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_context_manager_opens_and_closes(self, tmp_path):
        service = ModerationService(Database(tmp_path / "ctx.db"), resolution_timeout=None)
        async with service as running:
            assert running.database.is_initialized
        assert not service.database.is_initialized

    @pytest.mark.asyncio
    async def test_configured_timeout_used_by_default(self, tmp_path):
        service = ModerationService(Database(tmp_path / "cfg.db"), resolution_timeout=0.5)
        assert service.engine._default_timeout == 0.5


class TestActionWorkflow:
    @pytest.mark.asyncio
    async def test_report_action_resolve_and_views(self, service):
        report = await service.create_report("spam", {"did": ALICE}, "posting links", BOB)
        action = await service.take_action("takedown", {"did": ALICE}, "confirmed spam", ADMIN)
        await service.resolve_reports(action.id, [report.id], ADMIN)

        action_detail = await service.get_action(action.id)
        assert action_detail.action.id == action.id
        assert [r.id for r in action_detail.resolved_reports] == [report.id]
        assert action_detail.to_dict()["resolvedReports"][0]["resolvedByActionId"] == action.id

        report_detail = await service.get_report(report.id)
        assert report_detail.resolved_by_action.id == action.id
        assert report_detail.to_dict()["resolvedByAction"]["action"] == "takedown"

        assert await service.list_open_reports(AccountSubject(ALICE)) == []

    @pytest.mark.asyncio
    async def test_open_report_detail_has_no_action(self, service):
        report = await service.create_report("other", {"did": ALICE}, None, BOB)
        detail = await service.get_report(report.id)
        assert detail.resolved_by_action is None
        assert detail.to_dict()["resolvedByAction"] is None

    @pytest.mark.asyncio
    async def test_missing_ids(self, service):
        with pytest.raises(ActionNotFound):
            await service.get_action(1)
        with pytest.raises(ReportNotFound):
            await service.get_report(1)

    @pytest.mark.asyncio
    async def test_listings(self, service):
        flag = await service.take_action("flag", AccountSubject(ALICE), "", ADMIN)
        mute = await service.take_action("mute", AccountSubject(BOB), "", ADMIN)
        report = await service.create_report("spam", AccountSubject(ALICE), None, BOB)
        await service.resolve_reports(flag.id, [report.id], ADMIN)
        await service.reverse_action(flag.id, ADMIN, "cleared")

        assert [a.id for a in await service.list_actions(limit=10)] == [mute.id, flag.id]
        assert [a.id for a in await service.list_actions(limit=10, cursor=mute.id)] == [flag.id]
        assert [a.id for a in await service.list_actions_for_subject(AccountSubject(ALICE))] == [flag.id]
        assert await service.list_actions_for_subject(AccountSubject(ALICE), include_reversed=False) == []
        assert [r.id for r in await service.list_reports_for_action(flag.id)] == [report.id]
        assert await service.list_reports_for_action(mute.id) == []


class TestDirectives:
    @pytest.mark.asyncio
    async def test_handle_record_resolves_through_directory(self, service):
        await service.take_action("takedown", AccountSubject(ALICE), "", ADMIN)
        decision = await service.resolve_directives(HANDLE_PROFILE)
        assert decision.profile == DirectiveSet(blur=True, no_override=True)

    @pytest.mark.asyncio
    async def test_reversal_clears_directives(self, service):
        action = await service.take_action("flag", AccountSubject(ALICE), "", ADMIN)
        assert not (await service.resolve_directives(AccountSubject(ALICE))).is_clean

        await service.reverse_action(action.id, ADMIN, "resolved")
        assert (await service.resolve_directives(AccountSubject(ALICE))).is_clean

    @pytest.mark.asyncio
    async def test_subject_status(self, service):
        flag = await service.take_action("flag", AccountSubject(ALICE), "", ADMIN)
        old = await service.take_action("takedown", AccountSubject(ALICE), "", ADMIN)
        await service.reverse_action(old.id, ADMIN, "too harsh")
        report = await service.create_report("rude", AccountSubject(ALICE), None, BOB)

        status = await service.subject_status(AccountSubject(ALICE))

        assert [a.id for a in status.actions] == [old.id, flag.id]
        assert [a.id for a in status.active_actions] == [flag.id]
        assert [r.id for r in status.open_reports] == [report.id]
        assert status.decision.account == DirectiveSet(blur=True)

        data = status.to_dict()
        assert data["subject"]["did"] == ALICE
        assert data["decision"]["behaviors"]["account"] == {"blur": True}

    @pytest.mark.asyncio
    async def test_profile_directives(self, service):
        await service.take_action("takedown", AVATAR, "", ADMIN)
        await service.take_action("flag", HANDLE_PROFILE, "", ADMIN)

        decision = await service.resolve_profile_directives(ALICE, profile=HANDLE_PROFILE, avatar=AVATAR)
        assert decision.account is None
        assert decision.profile == DirectiveSet(blur=True)
        assert decision.avatar == DirectiveSet(filter=True, blur=True, no_override=True)
        assert len(decision.action_ids) == 2

    @pytest.mark.asyncio
    async def test_explicit_no_timeout_passes_through(self, tmp_path, directory):
        service = ModerationService(
            Database(tmp_path / "untimed.db"),
            resolver=HierarchyResolver(directory),
            resolution_timeout=0.000001,
        )
        async with service:
            await service.take_action("flag", AccountSubject(ALICE), "", ADMIN)
            decision = await service.resolve_directives(AccountSubject(ALICE), timeout=None)
            assert decision.resolved
            assert decision.account == DirectiveSet(blur=True)

            profile = await service.resolve_profile_directives(ALICE, timeout=None)
            assert profile.resolved
