from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session
from typing import List, Optional
from questlog.infrastructure.database.session import get_db
from questlog.infrastructure.repositories.user_repository import UserRepository
from questlog.api.dependencies.auth import require_bearer_token
from questlog.api.schemas import LeaderboardEntry
from questlog.core.config import settings
from questlog.core.rate_limit import limiter, default_limit

router = APIRouter(prefix="/leaderboard", tags=["Leaderboard"])


def _page_param(raw: Optional[str], default: int) -> int:
    """Unparseable, zero or negative values fall back to `default`."""
    try:
        value = int(raw)
    except (TypeError, ValueError):
        return default
    return value if value > 0 else default


@router.get("", response_model=List[LeaderboardEntry])
@limiter.limit(default_limit)
def get_leaderboard(
    request: Request,
    token: str = Depends(require_bearer_token),
    limit: Optional[str] = Query(default=None, description="Page size, defaults to 10"),
    offset: Optional[str] = Query(default=None, description="Rows to skip, defaults to 0"),
    db: Session = Depends(get_db)
):
    """Opted-in users ranked by XP, highest first."""
    page_size = min(
        _page_param(limit, settings.LEADERBOARD_DEFAULT_LIMIT), settings.LEADERBOARD_MAX_LIMIT
    )
    return UserRepository(db).leaderboard(limit=page_size, offset=_page_param(offset, 0))
