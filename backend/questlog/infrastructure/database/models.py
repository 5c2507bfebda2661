from sqlalchemy import Column, Integer, String, Boolean, DateTime, Text, JSON
from datetime import datetime
from questlog.infrastructure.database.session import Base


class UserORM(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    google_id = Column(String(255), unique=True, index=True, nullable=False)
    email = Column(String(255))
    name = Column(String(255))
    picture = Column(Text)
    xp = Column(Integer, default=0, index=True)
    level = Column(Integer, default=1)
    tasks_completed = Column(Integer, default=0)
    tasks = Column(JSON, default=list)            # pending task documents
    completed_tasks = Column(JSON, default=list)  # completed task documents
    is_opt_in = Column(Boolean, default=False, index=True)  # leaderboard visibility
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
