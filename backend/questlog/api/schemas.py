from pydantic import BaseModel, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel
from typing import Optional, List, Dict, Any
from datetime import datetime

from questlog.domain.models.task import TaskInput


class CamelModel(BaseModel):
    """Snake_case in Python, camelCase on the wire (googleId, tasksCompleted, ...)."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


# ──── Users ───────────────────────────────────────────────────────────────────
class CreateUserRequest(CamelModel):
    google_id: Optional[str] = None
    email: Optional[EmailStr] = None
    name: Optional[str] = None
    picture: Optional[str] = None
    xp: Optional[int] = Field(None, ge=0)
    level: Optional[int] = Field(None, ge=1)

class UserSessionResponse(CamelModel):
    user_id: str
    exists: bool
    xp: int
    level: int
    tasks_completed: int
    tasks: List[Dict[str, Any]]
    completed_tasks: List[Dict[str, Any]]

class UpdateUserRequest(CamelModel):
    # numbers arrive loosely typed from the client; coerced in the route
    xp: Any = None
    tasks_completed: Any = None
    level: Any = None
    tasks: Optional[List[Dict[str, Any]]] = None
    completed_tasks: Optional[List[Dict[str, Any]]] = None

class UserResponse(CamelModel):
    id: int
    google_id: str
    email: Optional[str]
    name: Optional[str]
    picture: Optional[str]
    xp: int
    level: int
    tasks_completed: int
    tasks: List[Dict[str, Any]]
    completed_tasks: List[Dict[str, Any]]
    is_opt_in: bool
    created_at: datetime
    updated_at: Optional[datetime] = None

    @field_validator("tasks", "completed_tasks", mode="before")
    @classmethod
    def default_empty(cls, value):
        return value or []

class OptInResponse(CamelModel):
    message: str
    is_opt_in: bool


# ──── Leaderboard ─────────────────────────────────────────────────────────────
class LeaderboardEntry(CamelModel):
    id: int
    name: Optional[str]
    picture: Optional[str]
    xp: int
    level: int
    tasks_completed: int


# ──── Tasks ───────────────────────────────────────────────────────────────────
class TaskCreate(CamelModel):
    title: str = Field(..., min_length=1, max_length=255)
    experience: int = Field(default=0, ge=0)
    deadline: Optional[datetime] = None
    label: Optional[str] = Field(None, max_length=100)

    def to_input(self) -> TaskInput:
        return TaskInput(
            title=self.title,
            experience=self.experience,
            deadline=self.deadline,
            label=self.label,
        )

class TaskUpdate(CamelModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    experience: Optional[int] = Field(None, ge=0)
    deadline: Optional[datetime] = None
    label: Optional[str] = Field(None, max_length=100)

    @field_validator("title", "experience")
    @classmethod
    def not_null(cls, value):
        if value is None:
            raise ValueError("must not be null")
        return value

class TaskListResponse(CamelModel):
    tasks: List[Dict[str, Any]]
    completed_tasks: List[Dict[str, Any]]

class QuestProgressResponse(CamelModel):
    xp: int
    level: int
    tasks_completed: int
    xp_delta: int = 0
    tasks: List[Dict[str, Any]]
    completed_tasks: List[Dict[str, Any]]


# ──── Generic ─────────────────────────────────────────────────────────────────
class MessageResponse(BaseModel):
    message: str
