"""
Operator endpoints: create elections, issue tokens, end an election now.
"""
from typing import Any, Dict
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.database import get_db
from app.core.exceptions import VotingError
from app.services.election_service import ElectionService
from app.services.tally_coordinator import TallyCoordinator
from app.schemas.election import (
    ElectionCreate,
    ElectionResponse,
    TokenIssueRequest,
    TokenIssueResponse,
)
from app.schemas.tally import TallyOutcomeResponse
from app.api.v1.deps import require_operator
from app.api.v1.endpoints.votes import to_http_exception


router = APIRouter()


@router.post("", response_model=ElectionResponse, status_code=status.HTTP_201_CREATED)
async def create_election(
    election_data: ElectionCreate,
    db: AsyncSession = Depends(get_db),
    operator: Dict[str, Any] = Depends(require_operator)
) -> ElectionResponse:
    """
    Start a new election and schedule its tally at the end of the duration.

    Only one election per result sink may be active at a time.
    """
    try:
        election = await ElectionService(db).create_election(election_data)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )
    except VotingError as e:
        raise to_http_exception(e)

    return ElectionResponse.model_validate(election)


@router.get("/{election_id}", response_model=ElectionResponse)
async def get_election(
    election_id: UUID,
    db: AsyncSession = Depends(get_db),
    operator: Dict[str, Any] = Depends(require_operator)
) -> ElectionResponse:
    """Get an election by ID."""
    election = await ElectionService(db).get_election(election_id)

    if not election:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Election not found"
        )

    return ElectionResponse.model_validate(election)


@router.post("/{election_id}/tokens", response_model=TokenIssueResponse)
async def issue_token(
    election_id: UUID,
    request: TokenIssueRequest,
    db: AsyncSession = Depends(get_db),
    operator: Dict[str, Any] = Depends(require_operator)
) -> TokenIssueResponse:
    """
    Issue a casting token for an eligible voter.

    Voters who already voted get 403. A voter with an unused token gets the
    same token back.
    """
    try:
        token = await ElectionService(db).issue_token(election_id, request.voter_id)
    except VotingError as e:
        raise to_http_exception(e)

    host = settings.PUBLIC_BASE_URL.rstrip("/")
    return TokenIssueResponse(
        token=token.token,
        election_id=token.election_id,
        vote_url=f"{host}/vote?token={token.token}",
    )


@router.post("/{election_id}/end", response_model=TallyOutcomeResponse)
async def end_election(
    election_id: UUID,
    db: AsyncSession = Depends(get_db),
    operator: Dict[str, Any] = Depends(require_operator)
) -> TallyOutcomeResponse:
    """
    End an election now and tally it.

    Calling this on an election that is already closed does nothing.
    """
    election = await ElectionService(db).get_election(election_id)
    if not election:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Election not found"
        )

    outcome = await TallyCoordinator(db).run_tally(election_id)

    if outcome is None:
        return TallyOutcomeResponse(election_id=election_id, ran=False)

    return TallyOutcomeResponse(
        election_id=election_id,
        ran=True,
        winners=outcome.winners,
        quota=outcome.quota,
        total_ballots=outcome.total_ballots,
        rounds=len(outcome.rounds),
        reports_sent=outcome.reports_sent,
        error=outcome.error,
        cleaned_up=outcome.cleaned_up,
    )
