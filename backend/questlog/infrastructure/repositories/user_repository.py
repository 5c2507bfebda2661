from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from typing import Optional, List, Tuple
from questlog.infrastructure.database.models import UserORM
from datetime import datetime


class UserRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, user_id: int) -> Optional[UserORM]:
        return self.db.query(UserORM).filter(UserORM.id == user_id).first()

    def get_by_google_id(self, google_id: str) -> Optional[UserORM]:
        return self.db.query(UserORM).filter(UserORM.google_id == google_id).first()

    def create(self, google_id: str, email: str = None, name: str = None,
               picture: str = None, xp: int = 0, level: int = 1) -> UserORM:
        user = UserORM(
            google_id=google_id,
            email=email,
            name=name,
            picture=picture,
            xp=xp,
            level=level,
            tasks_completed=0,
            tasks=[],
            completed_tasks=[],
            is_opt_in=False,
        )
        self.db.add(user)
        self.db.commit()
        self.db.refresh(user)
        return user

    def get_or_create(self, google_id: str, **profile) -> Tuple[UserORM, bool]:
        """Returns (user, existed). Safe against a concurrent insert of the same google_id."""
        existing = self.get_by_google_id(google_id)
        if existing:
            return existing, True
        try:
            return self.create(google_id, **profile), False
        except IntegrityError:
            # unique index on google_id: someone else won the race
            self.db.rollback()
            return self.get_by_google_id(google_id), True

    def update(self, user: UserORM) -> UserORM:
        user.updated_at = datetime.utcnow()
        self.db.commit()
        self.db.refresh(user)
        return user

    def toggle_opt_in(self, user: UserORM) -> bool:
        user.is_opt_in = not user.is_opt_in
        self.update(user)
        return user.is_opt_in

    def leaderboard(self, limit: int = 10, offset: int = 0) -> List[UserORM]:
        return self.db.query(UserORM).filter(
            UserORM.is_opt_in == True  # noqa: E712
        ).order_by(UserORM.xp.desc(), UserORM.id).offset(offset).limit(limit).all()
