"""
Tally coordinator: close the election, snapshot its ballots, run the STV
engine, emit reports, then purge identity-linking data.
"""
import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from typing import List, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import TallyComputationFailure
from app.models.election import Election
from app.models.schedule import ScheduledJob
from app.models.vote import Ballot, CastingToken, ParticipationRecord
from app.schemas.tally import TallyReport
from app.services import reports
from app.services.stv import TallyRound, TieBreak, get_tie_break, tally
from app.sinks.result_sink import ResultSink, resolve_sink


logger = logging.getLogger(__name__)


@dataclass
class TallyOutcome:
    """What a single tally run did."""

    election_id: uuid.UUID
    winners: List[str] = field(default_factory=list)
    rounds: List[TallyRound] = field(default_factory=list)
    quota: Optional[int] = None
    total_ballots: int = 0
    reports_sent: int = 0
    error: Optional[str] = None
    cleaned_up: bool = False


class TallyCoordinator:
    """
    Runs the end-of-election tally.

    The election is closed before its ballots are read, so casting stops
    and a concurrent run for the same election backs off. A run is not
    cancellable and emitted reports are never retracted. Cleanup always
    follows: tokens, participation records and scheduled jobs are deleted
    whatever happened while computing or reporting.
    """

    def __init__(
        self,
        db: AsyncSession,
        sink: Optional[ResultSink] = None,
        report_delay: Optional[float] = None,
        page_size: Optional[int] = None,
        tie_break: Optional[TieBreak] = None
    ):
        self.db = db
        self.sink = sink
        self.report_delay = (
            settings.TALLY_REPORT_DELAY_SECONDS if report_delay is None else report_delay
        )
        self.page_size = page_size or settings.BALLOT_PAGE_SIZE
        self.tie_break = tie_break

    async def run_tally(self, election_id: uuid.UUID) -> Optional[TallyOutcome]:
        """
        Tally an election. Safe to call more than once.

        Returns:
            The outcome, or None if the election is missing or already closed
        """
        result = await self.db.execute(
            select(Election)
            .where(Election.id == election_id)
            .execution_options(populate_existing=True)
        )
        election = result.scalar_one_or_none()

        if not election or not election.is_active:
            logger.info("Election %s is missing or already closed; nothing to tally", election_id)
            await self._remove_stale_jobs(election_id)
            return None

        title = election.title
        candidates = list(election.candidates)
        seats = election.seats
        sink_ref = election.sink_ref

        if not await self._claim(election_id):
            logger.info("Election %s is already being tallied", election_id)
            return None

        logger.info("Tallying election %s (%s)", election_id, title)
        outcome = TallyOutcome(election_id=election_id)
        sink = self.sink

        try:
            if sink is None:
                sink = resolve_sink(sink_ref)

            ballots = await self._load_ballots(election_id)
            outcome.total_ballots = len(ballots)

            pending = self._build_reports(title, candidates, ballots, seats, outcome)
            await self._emit(sink, pending, outcome)
        except ValueError as e:
            logger.error("Cannot report results for election %s: %s", election_id, e)
            outcome.error = str(e)
        finally:
            await self._cleanup(election_id, title, sink, outcome)

        return outcome

    async def _claim(self, election_id: uuid.UUID) -> bool:
        """
        Close the election if it is still active. Of several concurrent
        runs only the one whose update matched the row goes on to tally.
        """
        result = await self.db.execute(
            update(Election)
            .where(Election.id == election_id, Election.is_active.is_(True))
            .values(is_active=False)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        return result.rowcount == 1

    async def _load_ballots(self, election_id: uuid.UUID) -> List[List[str]]:
        """Snapshot the ballots, dropping rows that are not a list of names."""
        result = await self.db.execute(
            select(Ballot.ranked_choices)
            .where(Ballot.election_id == election_id)
            .order_by(Ballot.id)
        )

        ballots = []
        skipped = 0
        for choices in result.scalars():
            if isinstance(choices, list) and all(isinstance(c, str) for c in choices):
                ballots.append(choices)
            else:
                skipped += 1

        if skipped:
            logger.warning("Skipped %d corrupted ballot(s) for election %s", skipped, election_id)
        return ballots

    def _build_reports(
        self,
        title: str,
        candidates: List[str],
        ballots: List[List[str]],
        seats: int,
        outcome: TallyOutcome
    ) -> List[TallyReport]:
        if not ballots:
            logger.info("Election %s ended with 0 valid ballots", outcome.election_id)
            return [reports.no_ballots_report(title)]

        tie_break = self.tie_break or get_tie_break(
            settings.TALLY_TIE_BREAK, settings.TALLY_TIE_BREAK_SEED
        )
        try:
            result = tally(candidates, ballots, seats, tie_break=tie_break)
        except TallyComputationFailure as e:
            logger.error(
                "Tally failed for election %s; operator review required: %s",
                outcome.election_id, e
            )
            outcome.error = str(e)
            return [reports.failure_report(title, e)]

        outcome.winners = result.winners
        outcome.rounds = result.rounds
        outcome.quota = result.quota
        logger.info("Election %s winners: %s", outcome.election_id, ", ".join(result.winners))

        pending = [reports.start_report(title, result)]
        pending.extend(reports.round_report(r, result.quota) for r in result.rounds)
        pending.append(reports.conclusion_report(title, result))
        pending.extend(reports.ballot_pages(candidates, ballots, self.page_size))
        return pending

    async def _emit(
        self,
        sink: ResultSink,
        pending: List[TallyReport],
        outcome: TallyOutcome
    ) -> None:
        """Post reports in order, pausing between them. Stops at the first sink failure."""
        for position, report in enumerate(pending):
            if position:
                await asyncio.sleep(self.report_delay)
            try:
                await sink.post(report)
            except Exception as e:
                logger.error(
                    "Result sink failed after %d of %d reports for election %s: %s",
                    outcome.reports_sent, len(pending), outcome.election_id, e
                )
                outcome.error = outcome.error or f"Result sink failed: {e}"
                return
            outcome.reports_sent += 1

    async def _cleanup(
        self,
        election_id: uuid.UUID,
        title: str,
        sink: Optional[ResultSink],
        outcome: TallyOutcome
    ) -> None:
        """Purge identity data of the claimed election. Never raises."""
        try:
            # End the snapshot transaction and any failed state left by reporting
            await self.db.rollback()

            for model in (CastingToken, ParticipationRecord, ScheduledJob):
                await self.db.execute(
                    delete(model)
                    .where(model.election_id == election_id)
                    .execution_options(synchronize_session=False)
                )
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.critical(
                "CRITICAL: identity data of election %s could not be purged: %s", election_id, e
            )
            outcome.error = outcome.error or f"Cleanup failed: {e}"
            if sink is not None:
                try:
                    await sink.post(reports.cleanup_failure_report(title))
                except Exception as notify_error:
                    logger.error("Failed to report cleanup failure: %s", notify_error)
            return

        outcome.cleaned_up = True
        logger.info("Election %s: anonymity data purged", election_id)

    async def _remove_stale_jobs(self, election_id: uuid.UUID) -> None:
        result = await self.db.execute(
            select(ScheduledJob.id).where(ScheduledJob.election_id == election_id)
        )
        if result.first() is None:
            return
        await self.db.execute(
            delete(ScheduledJob)
            .where(ScheduledJob.election_id == election_id)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        logger.info("Removed stale tally job(s) for election %s", election_id)
