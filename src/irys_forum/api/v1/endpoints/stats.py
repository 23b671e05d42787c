"""Forum statistics endpoints."""

from fastapi import APIRouter, Query

from irys_forum.schemas import ActiveUser, GlobalStats

from ..dependencies import QueryServiceDep

router = APIRouter(prefix="/stats", tags=["stats"])


@router.get("/global", response_model=GlobalStats)
def global_stats(queries: QueryServiceDep) -> GlobalStats:
    return queries.global_stats()


@router.get("/active-users", response_model=list[ActiveUser])
def active_users(
    queries: QueryServiceDep, limit: int | None = Query(None, ge=1)
) -> list[ActiveUser]:
    """Rank users with at least one post or comment by reputation."""
    return queries.active_users(limit)
