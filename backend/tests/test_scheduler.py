"""
Tests for durable tally scheduling.
"""
from datetime import datetime, timedelta
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import select

from app.models.election import Election
from app.models.schedule import ScheduledJob
from app.services.scheduler import TallyScheduler

from conftest import seed_election


ABC = ["A", "B", "C"]


async def job_count(session_factory) -> int:
    async with session_factory() as db:
        result = await db.execute(select(ScheduledJob.id))
        return len(result.all())


class TestTallyScheduler:
    """Scheduling and running tally jobs."""

    @pytest.mark.asyncio
    async def test_schedule_and_find_due_jobs(self, test_db, test_election):
        scheduler = TallyScheduler(test_db)
        due = datetime.utcnow() + timedelta(hours=1)

        job = await scheduler.schedule(test_election.id, due)
        await test_db.commit()

        assert job.task_type == "tally_election"
        assert await scheduler.due_jobs(datetime.utcnow()) == []
        jobs = await scheduler.due_jobs(due + timedelta(seconds=1))
        assert [j.election_id for j in jobs] == [test_election.id]

    @pytest.mark.asyncio
    async def test_due_job_runs_the_tally(self, test_db, session_factory):
        election_id = await seed_election(test_db, ABC, [ABC] * 3)

        processed = await TallyScheduler(test_db, session_factory).run_due_jobs()

        assert processed == 1
        assert await job_count(session_factory) == 0
        async with session_factory() as db:
            result = await db.execute(select(Election.is_active).where(Election.id == election_id))
            assert result.scalar_one() is False

    @pytest.mark.asyncio
    async def test_future_job_is_left_alone(self, test_db, session_factory):
        election_id = await seed_election(test_db, ABC, [ABC] * 3)

        processed = await TallyScheduler(test_db, session_factory).run_due_jobs(
            datetime.utcnow() - timedelta(days=1)
        )

        assert processed == 0
        assert await job_count(session_factory) == 1
        async with session_factory() as db:
            result = await db.execute(select(Election.is_active).where(Election.id == election_id))
            assert result.scalar_one() is True

    @pytest.mark.asyncio
    async def test_failing_job_is_deleted(self, test_db, session_factory):
        await seed_election(test_db, ABC, [ABC] * 3)

        with patch(
            "app.services.scheduler.TallyCoordinator.run_tally",
            new=AsyncMock(side_effect=RuntimeError("boom")),
        ):
            processed = await TallyScheduler(test_db, session_factory).run_due_jobs()

        assert processed == 1
        assert await job_count(session_factory) == 0
