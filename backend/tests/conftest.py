"""
Pytest configuration and fixtures for backend tests.
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ["TALLY_REPORT_DELAY_SECONDS"] = "0"
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["LOG_FORMAT"] = "text"

from datetime import datetime, timedelta
from typing import AsyncGenerator, List, Optional

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from httpx import ASGITransport, AsyncClient

from app.main import app
from app.core.database import Base, get_db
from app.core.security import create_access_token, hash_voter_identity
from app.models.election import Election, ElectionType
from app.models.schedule import ScheduledJob
from app.models.vote import Ballot, CastingToken, ParticipationRecord
from app.schemas.tally import TallyReport
from app.services.election_service import ElectionService


@pytest_asyncio.fixture(scope="function")
async def session_factory(tmp_path) -> AsyncGenerator[async_sessionmaker, None]:
    """
    Session factory on a per-test SQLite file, so several sessions can
    work against the same database at once.
    """
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def test_db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture(scope="function")
async def client(test_db: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create a test client with the test database."""
    async def override_get_db():
        yield test_db

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def operator_headers() -> dict:
    """Authentication headers for an election operator."""
    token = create_access_token({"sub": "operator-1", "role": "operator"})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def voter_headers() -> dict:
    """Authentication headers for a token without operator rights."""
    token = create_access_token({"sub": "voter-1", "role": "voter"})
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture
async def test_election(test_db: AsyncSession) -> Election:
    """Create an active single-winner election with three candidates."""
    election = Election(
        title="Leadership Election",
        candidates=["Alice", "Bob", "Carol"],
        election_type=ElectionType.SINGLE_WINNER,
        seats=1,
        is_active=True,
        sink_ref="log",
        end_time=datetime.utcnow() + timedelta(days=7),
    )
    test_db.add(election)
    await test_db.commit()
    await test_db.refresh(election)
    return election


@pytest_asyncio.fixture
async def make_token(test_db: AsyncSession):
    """Factory issuing a casting token for a voter."""
    async def _make(election: Election, voter_id: str = "voter-1") -> str:
        token = await ElectionService(test_db).issue_token(election.id, voter_id)
        return token.token

    return _make


async def seed_election(
    db: AsyncSession,
    candidates: List[str],
    ballots: List[List[str]],
    election_type: ElectionType = ElectionType.SINGLE_WINNER,
    voters: int = 2,
    title: str = "Seeded Election",
):
    """
    Insert an active election with ballots, tokens, participation records
    and a pending tally job. Returns the election id.
    """
    election = Election(
        title=title,
        candidates=candidates,
        election_type=election_type,
        seats=election_type.seats,
        is_active=True,
        sink_ref="log",
        end_time=datetime.utcnow(),
    )
    db.add(election)
    await db.flush()

    for choices in ballots:
        db.add(Ballot(election_id=election.id, ranked_choices=choices))

    for n in range(voters):
        voter_hash = hash_voter_identity(f"voter-{n}", str(election.id))
        db.add(CastingToken(
            token=f"token-{election.id}-{n}",
            election_id=election.id,
            voter_hash=voter_hash,
            is_used=True,
        ))
        db.add(ParticipationRecord(election_id=election.id, voter_hash=voter_hash))

    db.add(ScheduledJob(election_id=election.id, due_time=datetime.utcnow()))
    await db.commit()
    return election.id


class RecordingSink:
    """Result sink keeping every report; optionally fails after a number of posts."""

    def __init__(self, fail_after: Optional[int] = None):
        self.reports: List[TallyReport] = []
        self.fail_after = fail_after

    async def post(self, report: TallyReport) -> None:
        if self.fail_after is not None and len(self.reports) >= self.fail_after:
            raise ConnectionError("sink unavailable")
        self.reports.append(report)

    @property
    def titles(self) -> List[str]:
        return [r.title for r in self.reports]
