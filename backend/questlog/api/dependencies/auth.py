from typing import Optional
from fastapi import Depends, Header
from sqlalchemy.orm import Session
from questlog.core.errors import AuthenticationError, NotFoundError
from questlog.core.logging import bind_user
from questlog.infrastructure.database.session import get_db
from questlog.infrastructure.repositories.user_repository import UserRepository
from questlog.infrastructure.database.models import UserORM

BEARER_PREFIX = "Bearer "


def extract_token(authorization: Optional[str]) -> Optional[str]:
    """Token part of 'Bearer <token>', or None. The token itself is never verified here."""
    if not authorization or not authorization.startswith(BEARER_PREFIX):
        return None
    return authorization[len(BEARER_PREFIX):].strip() or None


def require_bearer_token(authorization: Optional[str] = Header(None)) -> str:
    # No Authorization header at all
    if not authorization:
        raise AuthenticationError("Authentication required")

    if not authorization.startswith(BEARER_PREFIX):
        raise AuthenticationError("Invalid token format")

    token = extract_token(authorization)
    if not token:
        raise AuthenticationError("Authentication required")
    return token


def get_target_user(
    user_id: int,
    token: str = Depends(require_bearer_token),
    db: Session = Depends(get_db),
) -> UserORM:
    """User addressed by the {user_id} path segment; 401 before 404."""
    user = UserRepository(db).get_by_id(user_id)
    if not user:
        raise NotFoundError("User not found")
    bind_user(user.id)
    return user
