"""
modledger operator console
==========================

Command line access to the moderation ledger: take and reverse actions,
file and resolve reports, and inspect the directives a subject currently
resolves to. Every command prints JSON.
"""

import asyncio
import json
import os
import sys
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional

import click
from dotenv import load_dotenv

from modledger import __version__
from modledger.configuration.app_configuration import app_config
from modledger.database.database import Database
from modledger.datatypes.subject_datatypes import subject_from_dict
from modledger.moderation.directive_engine import USE_DEFAULT_TIMEOUT
from modledger.moderation.errors import ModerationError
from modledger.moderation.moderation_service import ModerationService
from modledger.moderation.scenarios import check_scenarios, load_scenarios
from modledger.util.logger import get_logger

logger = get_logger("main")


def resolve_base_dir() -> Path:
    """Project directory: ``MODLEDGER_HOME`` if set, else the current directory."""
    if env_home := os.getenv("MODLEDGER_HOME"):
        return Path(env_home).resolve()
    return Path.cwd()


def build_subject(did: Optional[str], uri: Optional[str], cid: Optional[str]) -> dict:
    """Subject mapping from the --did/--uri/--cid options."""
    if uri:
        return {"$type": "strongRef", "uri": uri, "cid": cid}
    if cid:
        data = {"$type": "blobRef", "cid": cid}
        if did:
            data["did"] = did
        return data
    if did:
        return {"$type": "repoRef", "did": did}
    raise click.UsageError("a subject needs --did, --uri/--cid or --cid")


def subject_options(func: Callable) -> Callable:
    func = click.option("--cid", default=None, help="Content hash of a record or blob")(func)
    func = click.option("--uri", default=None, help="AT URI of a record")(func)
    func = click.option("--did", default=None, help="Account DID (or blob owner)")(func)
    return func


def emit(payload: Any) -> None:
    click.echo(json.dumps(payload, indent=2, sort_keys=True))


def run_with_service(ctx: click.Context, operation: Callable[[ModerationService], Awaitable[Any]]) -> Any:
    """Open the ledger, run one operation, close it; ledger errors exit 1."""

    async def runner() -> Any:
        async with ModerationService(Database(ctx.obj["db_path"])) as service:
            return await operation(service)

    try:
        return asyncio.run(runner())
    except ModerationError as exc:
        logger.warning("[CONSOLE] %s failed: %s", ctx.command.name, exc)
        raise click.ClickException(str(exc)) from exc


@click.group()
@click.version_option(version=__version__)
@click.option("--db", "db_path", type=click.Path(path_type=Path), default=None, help="Ledger database file")
@click.pass_context
def main(ctx: click.Context, db_path: Optional[Path]) -> None:
    """Moderation ledger and directive resolution console."""
    base_dir = resolve_base_dir()
    load_dotenv(dotenv_path=base_dir / ".env")
    ctx.ensure_object(dict)
    ctx.obj["db_path"] = db_path.resolve() if db_path else app_config.database_path


@main.command("init-db")
@click.pass_context
def init_db(ctx: click.Context) -> None:
    """Create the ledger database and schema."""

    async def operation(service: ModerationService) -> dict:
        return {"database": str(service.database.db_path), "initialized": service.database.is_initialized}

    emit(run_with_service(ctx, operation))


@main.command("take-action")
@click.argument("action")
@subject_options
@click.option("--reason", default="", help="Reason recorded with the action")
@click.option("--by", "created_by", required=True, help="Operator identity")
@click.pass_context
def take_action(ctx, action, did, uri, cid, reason, created_by) -> None:
    """Record ACTION (takedown, flag, escalate, mute, acknowledge) against a subject."""
    subject = build_subject(did, uri, cid)

    async def operation(service: ModerationService) -> dict:
        return (await service.take_action(action, subject, reason, created_by)).to_dict()

    emit(run_with_service(ctx, operation))


@main.command("reverse-action")
@click.argument("action_id", type=int)
@click.option("--reason", required=True, help="Why the action is reversed")
@click.option("--by", "reversed_by", required=True, help="Operator identity")
@click.pass_context
def reverse_action(ctx, action_id, reason, reversed_by) -> None:
    """Reverse an active action."""

    async def operation(service: ModerationService) -> dict:
        return (await service.reverse_action(action_id, reversed_by, reason)).to_dict()

    emit(run_with_service(ctx, operation))


@main.command("show-action")
@click.argument("action_id", type=int)
@click.pass_context
def show_action(ctx, action_id) -> None:
    """Show an action and the reports it resolved."""

    async def operation(service: ModerationService) -> dict:
        return (await service.get_action(action_id)).to_dict()

    emit(run_with_service(ctx, operation))


@main.command("report")
@click.argument("reason_type")
@subject_options
@click.option("--reason", default=None, help="Free text from the reporter")
@click.option("--by", "reported_by", required=True, help="Reporter identity")
@click.pass_context
def report(ctx, reason_type, did, uri, cid, reason, reported_by) -> None:
    """File a report of REASON_TYPE against a subject."""
    subject = build_subject(did, uri, cid)

    async def operation(service: ModerationService) -> dict:
        return (await service.create_report(reason_type, subject, reason, reported_by)).to_dict()

    emit(run_with_service(ctx, operation))


@main.command("resolve-reports")
@click.argument("action_id", type=int)
@click.argument("report_ids", type=int, nargs=-1, required=True)
@click.option("--by", "created_by", required=True, help="Operator identity")
@click.pass_context
def resolve_reports(ctx, action_id, report_ids, created_by) -> None:
    """Resolve REPORT_IDS with ACTION_ID (all or nothing)."""

    async def operation(service: ModerationService) -> list:
        return [r.to_dict() for r in await service.resolve_reports(action_id, list(report_ids), created_by)]

    emit(run_with_service(ctx, operation))


@main.command("directives")
@subject_options
@click.option("--role", type=click.Choice(["account", "profile", "avatar"]), default=None)
@click.option("--timeout", type=float, default=None, help="Seconds before reporting unresolved")
@click.pass_context
def directives(ctx, did, uri, cid, role, timeout) -> None:
    """Show the directives a subject currently resolves to."""
    subject = build_subject(did, uri, cid)
    limit = USE_DEFAULT_TIMEOUT if timeout is None else timeout

    async def operation(service: ModerationService) -> dict:
        return (await service.resolve_directives(subject_from_dict(subject), role, limit)).to_dict()

    emit(run_with_service(ctx, operation))


@main.command("profile-directives")
@click.argument("did")
@click.option("--profile-uri", default=None, help="AT URI of the profile record")
@click.option("--profile-cid", default=None, help="Content hash of the profile record")
@click.option("--avatar-cid", default=None, help="Content hash of the avatar blob")
@click.option("--timeout", type=float, default=None, help="Seconds before reporting unresolved")
@click.pass_context
def profile_directives(ctx, did, profile_uri, profile_cid, avatar_cid, timeout) -> None:
    """Show the combined directives for rendering DID's profile."""
    if bool(profile_uri) != bool(profile_cid):
        raise click.UsageError("--profile-uri and --profile-cid go together")
    profile = {"$type": "strongRef", "uri": profile_uri, "cid": profile_cid} if profile_uri else None
    avatar = {"$type": "blobRef", "cid": avatar_cid, "did": did} if avatar_cid else None
    limit = USE_DEFAULT_TIMEOUT if timeout is None else timeout

    async def operation(service: ModerationService) -> dict:
        decision = await service.resolve_profile_directives(did, profile, avatar, limit)
        return decision.to_dict()

    emit(run_with_service(ctx, operation))


@main.command("check-scenarios")
@click.option("--path", "scenario_path", type=click.Path(path_type=Path, exists=True), default=None)
def check_scenarios_command(scenario_path: Optional[Path]) -> None:
    """Check the behavior fixtures against the resolution rules."""
    try:
        scenarios = load_scenarios(scenario_path or app_config.scenarios_path)
    except ModerationError as exc:
        raise click.ClickException(str(exc)) from exc

    results = check_scenarios(scenarios)
    failures = [result for result in results if not result.ok]
    emit({
        "total": len(results),
        "failed": [
            {"title": r.scenario.title, "expected": r.expected, "actual": r.actual}
            for r in failures
        ],
    })
    if failures:
        sys.exit(1)


if __name__ == "__main__":
    main()
