from fastapi import APIRouter, Depends, Header, Request
from sqlalchemy.orm import Session
from typing import Optional
from questlog.infrastructure.database.session import get_db
from questlog.infrastructure.repositories.user_repository import UserRepository
from questlog.infrastructure.database.models import UserORM
from questlog.api.dependencies.auth import extract_token, get_target_user
from questlog.api.schemas import (
    CreateUserRequest, UserSessionResponse, UpdateUserRequest,
    UserResponse, OptInResponse, MessageResponse
)
from questlog.core.errors import AuthenticationError, ValidationError
from questlog.core.logging import get_logger
from questlog.core.rate_limit import limiter, default_limit
from questlog.domain.models.user import coerce_number
from questlog.domain.services.task_store import TaskStore

router = APIRouter(prefix="/users", tags=["Users"])
logger = get_logger(__name__)


@router.post("", response_model=UserSessionResponse)
@limiter.limit(default_limit)
def create_or_fetch_user(
    request: Request,
    data: CreateUserRequest,
    authorization: Optional[str] = Header(None),
    db: Session = Depends(get_db)
):
    """Return the user registered under googleId, creating it on first sign-in."""
    token = extract_token(authorization)
    if not token or not data.google_id:
        logger.warning("Missing token or googleId", has_token=bool(token), google_id=data.google_id)
        raise AuthenticationError("Authentication required")

    repo = UserRepository(db)
    user, existed = repo.get_or_create(
        data.google_id,
        email=data.email,
        name=data.name,
        picture=data.picture,
        xp=data.xp or 0,
        level=data.level or 1,
    )
    if existed:
        logger.info("User found", user_id=user.id)
    else:
        logger.info("New user created", user_id=user.id)

    return UserSessionResponse(
        user_id=str(user.id),
        exists=existed,
        xp=user.xp,
        level=user.level,
        tasks_completed=user.tasks_completed,
        tasks=user.tasks or [],
        completed_tasks=user.completed_tasks or [],
    )


@router.put("/{user_id}", response_model=MessageResponse)
def update_user(
    data: UpdateUserRequest,
    user: UserORM = Depends(get_target_user),
    db: Session = Depends(get_db)
):
    """Replace the user's progress: xp, tasksCompleted, level and both task lists."""
    try:
        xp = coerce_number(data.xp, 0)
        tasks_completed = coerce_number(data.tasks_completed, 0)
        level = coerce_number(data.level, 1)
    except ValueError:
        raise ValidationError("Invalid xp, tasksCompleted, or level value")

    tasks = data.tasks or []
    completed_tasks = data.completed_tasks or []
    try:
        TaskStore.from_documents(tasks, completed_tasks)
    except (TypeError, ValueError) as exc:
        logger.warning("Rejected task documents", user_id=user.id, error=str(exc))
        raise ValidationError("Invalid tasks or completedTasks value")

    user.xp = xp
    user.tasks_completed = tasks_completed
    user.level = level
    user.tasks = tasks
    user.completed_tasks = completed_tasks
    UserRepository(db).update(user)
    logger.info("User updated", user_id=user.id, xp=xp, level=level)
    return MessageResponse(message="User updated successfully")


@router.get("/{user_id}", response_model=UserResponse)
def get_user(user: UserORM = Depends(get_target_user)):
    """Full user record."""
    return user


@router.put("/{user_id}/opt-in", response_model=OptInResponse)
def toggle_opt_in(
    user: UserORM = Depends(get_target_user),
    db: Session = Depends(get_db)
):
    """Flip leaderboard visibility."""
    new_status = UserRepository(db).toggle_opt_in(user)
    logger.info("Opt-in toggled", user_id=user.id, is_opt_in=new_status)
    return OptInResponse(message="Opt-in status updated successfully", is_opt_in=new_status)
