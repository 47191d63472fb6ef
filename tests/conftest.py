"""
Pytest configuration and fixtures for modledger tests.
"""

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
import pytest_asyncio

# Add src directory to path so imports work without an install
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from modledger.database.database import Database  # noqa: E402
from modledger.moderation.hierarchy_resolver import HierarchyResolver, StaticOwnershipDirectory  # noqa: E402
from modledger.moderation.moderation_service import ModerationService  # noqa: E402

ALICE = "did:example:alice"
BOB = "did:example:bob"
ADMIN = "did:example:admin"


class TickClock:
    """Deterministic clock: each call is one second after the previous one."""

    def __init__(self, start: datetime = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc), step: float = 1.0):
        self.now = start
        self.step = timedelta(seconds=step)

    def __call__(self) -> datetime:
        current = self.now
        self.now = self.now + self.step
        return current


@pytest.fixture
def clock() -> TickClock:
    return TickClock()


@pytest.fixture
def directory() -> StaticOwnershipDirectory:
    return StaticOwnershipDirectory(
        handles={"alice.test": ALICE},
        blobs={"bafkreialiceavatar": ALICE},
    )


@pytest_asyncio.fixture
async def database(tmp_path):
    """An initialized ledger database in a temporary directory."""
    db = Database(tmp_path / "ledger.db", slow_query_threshold_ms=1000)
    await db.initialize()
    yield db
    await db.shutdown()


@pytest_asyncio.fixture
async def service(tmp_path, clock, directory):
    """A started ModerationService with a deterministic clock and no timeout."""
    svc = ModerationService(
        Database(tmp_path / "service.db", slow_query_threshold_ms=1000),
        resolver=HierarchyResolver(directory),
        clock=clock,
        resolution_timeout=None,
    )
    await svc.start()
    yield svc
    await svc.stop()
