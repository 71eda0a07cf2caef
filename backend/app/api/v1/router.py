"""
API v1 router configuration.
"""
from fastapi import APIRouter

from app.api.v1.endpoints import elections, votes


api_router = APIRouter()

api_router.include_router(
    elections.router,
    prefix="/elections",
    tags=["Elections"]
)

api_router.include_router(
    votes.router,
    prefix="/votes",
    tags=["Voting"]
)
