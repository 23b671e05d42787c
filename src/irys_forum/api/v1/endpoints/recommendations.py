"""Daily recommendation endpoints."""

from fastapi import APIRouter

from irys_forum.schemas import DailyRecommendations

from ..dependencies import QueryServiceDep

router = APIRouter(prefix="/recommendations", tags=["recommendations"])


@router.get("/daily", response_model=DailyRecommendations)
def daily_recommendations(
    queries: QueryServiceDep, user_address: str | None = None
) -> DailyRecommendations:
    """Return today's hottest posts, ranking them on the first request of the day."""
    return queries.daily_recommendations(user_address)
