"""
Durable tally scheduling.

Jobs live in the scheduled_jobs table so a restart does not drop a pending
tally. A polling loop picks up due jobs and runs the tally coordinator; the
coordinator deletes the job as part of its cleanup.
"""
import asyncio
import logging
import uuid
from datetime import datetime
from typing import Callable, List, Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import async_session_maker
from app.models.schedule import ScheduledJob, TALLY_ELECTION
from app.services.tally_coordinator import TallyCoordinator


logger = logging.getLogger(__name__)


class TallyScheduler:
    """Schedules and runs tally jobs."""

    def __init__(
        self,
        db: Optional[AsyncSession] = None,
        session_factory: Optional[Callable[[], AsyncSession]] = None
    ):
        self.db = db
        self.session_factory = session_factory or async_session_maker

    async def schedule(self, election_id: uuid.UUID, due_time: datetime) -> ScheduledJob:
        """Add a tally job. The caller commits."""
        job = ScheduledJob(
            election_id=election_id,
            task_type=TALLY_ELECTION,
            due_time=due_time,
        )
        self.db.add(job)
        await self.db.flush()
        logger.info("Scheduled tally job for election %s, due %s", election_id, due_time.isoformat())
        return job

    async def due_jobs(self, now: Optional[datetime] = None) -> List[ScheduledJob]:
        result = await self.db.execute(
            select(ScheduledJob)
            .where(ScheduledJob.due_time <= (now or datetime.utcnow()))
            .order_by(ScheduledJob.due_time.asc())
        )
        return list(result.scalars().all())

    async def run_due_jobs(self, now: Optional[datetime] = None) -> int:
        """
        Run every due job, each with its own session.

        A job whose run raised is deleted anyway to avoid a crash loop.

        Returns:
            Number of jobs processed
        """
        jobs = await self.due_jobs(now)
        if jobs:
            logger.info("Scheduler found %d due job(s)", len(jobs))

        for job in jobs:
            job_id, election_id = job.id, job.election_id
            try:
                async with self.session_factory() as session:
                    await TallyCoordinator(session).run_tally(election_id)
            except Exception as e:
                logger.error("Error processing job %s for election %s: %s", job_id, election_id, e)
                await self._delete_job(job_id)
                logger.error("Failed job %s has been deleted to prevent a loop", job_id)

        return len(jobs)

    async def run_forever(self, poll_seconds: int) -> None:
        """Poll for due jobs until cancelled."""
        logger.info("Scheduler started")
        while True:
            try:
                async with self.session_factory() as session:
                    await TallyScheduler(session, self.session_factory).run_due_jobs()
            except Exception as e:
                logger.error("Scheduler failed to process jobs: %s", e)
            await asyncio.sleep(poll_seconds)

    async def _delete_job(self, job_id: uuid.UUID) -> None:
        try:
            async with self.session_factory() as session:
                await session.execute(delete(ScheduledJob).where(ScheduledJob.id == job_id))
                await session.commit()
        except Exception as e:
            logger.critical("CRITICAL: failed to delete erroring job %s; it may loop: %s", job_id, e)
