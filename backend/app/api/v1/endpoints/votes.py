"""
Voter-facing endpoints: fetch ballot details and submit a ranking.
"""
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.exceptions import VotingError
from app.services.ballot_service import BallotCaster
from app.schemas.vote import (
    VoteDetailsResponse,
    VoteSubmitRequest,
    VoteSubmitResponse,
)


router = APIRouter()


def to_http_exception(error: VotingError) -> HTTPException:
    """Map a domain error to an HTTP error carrying its code."""
    return HTTPException(
        status_code=error.status_code,
        detail=error.message,
        headers={"X-Error-Code": error.error_code},
    )


@router.get("/details", response_model=VoteDetailsResponse)
async def get_vote_details(
    token: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db)
) -> VoteDetailsResponse:
    """
    Get the title and candidates for the election a token belongs to.

    Fails with 403 if the token is unknown or used, or the election has
    concluded.
    """
    if not token:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No token provided"
        )

    try:
        title, candidates = await BallotCaster(db).get_vote_details(token)
    except VotingError as e:
        raise to_http_exception(e)

    return VoteDetailsResponse(title=title, candidates=candidates)


@router.post("/submit", response_model=VoteSubmitResponse)
async def submit_vote(
    request: VoteSubmitRequest,
    db: AsyncSession = Depends(get_db)
) -> VoteSubmitResponse:
    """
    Cast a ballot.

    The ranking must list every candidate exactly once. Errors:
    - 400: malformed ballot (the token stays usable)
    - 403: invalid or used token, or inactive election
    - 409: the token was consumed by a concurrent request
    - 500: storage failure
    """
    try:
        await BallotCaster(db).cast(request.token, request.ranks)
    except VotingError as e:
        raise to_http_exception(e)

    return VoteSubmitResponse(success=True, message="Vote cast successfully.")
