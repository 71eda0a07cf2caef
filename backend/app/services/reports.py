"""
Builders turning a tally result into a sequence of structured reports.
"""
from fractions import Fraction
from typing import List, Sequence

from app.schemas.tally import ReportField, ReportSeverity, TallyReport
from app.services.stv import TallyResult, TallyRound


def _fmt(value: Fraction) -> str:
    return f"{float(value):.2f}"


def start_report(title: str, result: TallyResult) -> TallyReport:
    return TallyReport(
        title=f"Tally Started: {title}",
        severity=ReportSeverity.INFO,
        body=(
            f"Total Ballots: {result.total_ballots}\n"
            f"Seats to Fill: {result.seats}\n"
            f"Droop Quota: {result.quota}\n"
            f"Candidates: {', '.join(result.candidates)}"
        ),
        fields=[
            ReportField(name="Ballots", value=str(result.total_ballots)),
            ReportField(name="Seats", value=str(result.seats)),
            ReportField(name="Quota", value=str(result.quota)),
        ],
    )


def round_report(tally_round: TallyRound, quota: int) -> TallyReport:
    """Report one round: hopeful standings in the body, every candidate in fields."""
    standings = sorted(
        tally_round.hopeful,
        key=lambda c: tally_round.counts[c],
        reverse=True
    )
    lines = ["Current Vote Counts:"]
    lines.extend(f"  - {c}: {_fmt(tally_round.counts[c])} votes" for c in standings)

    transfers = {t.candidate: t for t in tally_round.transfers}
    if not tally_round.elected_by_default:
        for winner in tally_round.elected:
            lines.append(
                f"{winner} reached the quota ({_fmt(tally_round.counts[winner])}) "
                "and is elected."
            )
            transfer = transfers.get(winner)
            if transfer:
                lines.append(
                    f"  Surplus {_fmt(transfer.surplus)} transferred at ratio "
                    f"{float(transfer.transfer_weight):.4f}"
                )

    if tally_round.elected_by_default:
        lines.append(
            f"Only {len(tally_round.elected)} candidate(s) remaining for the open seats."
        )
        lines.extend(f"{c} is elected by default." for c in tally_round.elected)

    if tally_round.eliminated:
        if tally_round.tied:
            lines.append(f"Tie for last place between {', '.join(tally_round.tied)}.")
        lines.append(f"{tally_round.eliminated} is eliminated.")

    if tally_round.elected:
        severity = ReportSeverity.SUCCESS
    elif tally_round.eliminated:
        severity = ReportSeverity.WARNING
    else:
        severity = ReportSeverity.INFO

    return TallyReport(
        title=f"Round {tally_round.index}",
        severity=severity,
        body="\n".join(lines),
        fields=[
            ReportField(name=c, value=_fmt(count))
            for c, count in tally_round.counts.items()
        ],
    )


def conclusion_report(title: str, result: TallyResult) -> TallyReport:
    winners = ", ".join(result.winners) or "none"
    return TallyReport(
        title=f"Vote Concluded: {title}",
        severity=ReportSeverity.SUCCESS,
        body=(
            f"Winner(s): {winners}\n\n"
            f"A total of {result.total_ballots} valid ballots were cast. "
            f"The quota was {result.quota}."
        ),
        fields=[ReportField(name="Winners", value=winners)],
    )


def no_ballots_report(title: str) -> TallyReport:
    return TallyReport(
        title=f"Vote Concluded: {title}",
        severity=ReportSeverity.WARNING,
        body="No valid ballots were cast. No winner could be determined.",
    )


def failure_report(title: str, error: Exception) -> TallyReport:
    return TallyReport(
        title=f"Tally Failed: {title}",
        severity=ReportSeverity.ERROR,
        body=(
            f"The tally could not be computed: {error}\n"
            "The election has been closed. An operator must review its "
            "candidate and ballot data."
        ),
    )


def cleanup_failure_report(title: str) -> TallyReport:
    return TallyReport(
        title=f"Cleanup Failed: {title}",
        severity=ReportSeverity.ERROR,
        body=(
            "The election is closed but its voter tokens and participation "
            "records could not be purged. Contact an administrator."
        ),
    )


def ballot_pages(
    candidates: Sequence[str],
    ballots: Sequence[Sequence[str]],
    page_size: int = 20
) -> List[TallyReport]:
    """Split the anonymous ballot list into fixed-size pages."""
    total = len(ballots)
    header = ["Ballot"] + [f"Pref {i + 1}" for i in range(len(candidates))]
    pages = []

    for start in range(0, total, page_size):
        page = ballots[start:start + page_size]
        rows = [header]
        for offset, ballot in enumerate(page):
            row = [f"#{start + offset + 1}"]
            row.extend(ballot[i] if i < len(ballot) else "-" for i in range(len(candidates)))
            rows.append(row)

        widths = [max(len(row[i]) for row in rows) for i in range(len(header))]
        lines = [
            " | ".join(cell.ljust(width) for cell, width in zip(row, widths)).rstrip()
            for row in rows
        ]
        pages.append(TallyReport(
            title=f"Anonymous Ballots {start + 1}-{start + len(page)} of {total}",
            severity=ReportSeverity.INFO,
            body="\n".join(lines),
        ))

    return pages
