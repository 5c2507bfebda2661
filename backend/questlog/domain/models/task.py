from dataclasses import dataclass, field, fields, replace
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: Union[str, datetime, None]) -> Optional[datetime]:
    """Accept a datetime or an ISO-8601 string (trailing 'Z' allowed). Naive values are UTC."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
    else:
        raise ValueError(f"Invalid timestamp: {value!r}")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.isoformat().replace("+00:00", "Z")


@dataclass(frozen=True)
class XPBreakdown:
    early_bonus: int = 0
    overdue_penalty: int = 0

    @property
    def total(self) -> int:
        return self.early_bonus + self.overdue_penalty


# ──── Task creation requests ───────────────────────────────────────────────────
@dataclass(frozen=True)
class TaskInput:
    title: str
    experience: int = 0
    deadline: Optional[datetime] = None
    label: Optional[str] = None


@dataclass(frozen=True)
class SingleTask:
    task: TaskInput


@dataclass(frozen=True)
class TaskBatch:
    tasks: Sequence[TaskInput]


AddTaskRequest = Union[SingleTask, TaskBatch]


def expand_request(request: AddTaskRequest) -> List[TaskInput]:
    if isinstance(request, SingleTask):
        return [request.task]
    if isinstance(request, TaskBatch):
        return list(request.tasks)
    raise TypeError(f"Unsupported add-task request: {type(request).__name__}")


# ──── Tasks ────────────────────────────────────────────────────────────────────
# Fields an update may never touch
IMMUTABLE_FIELDS = frozenset({"id", "created_at"})

_DOCUMENT_KEYS = {
    "created_at": "createdAt",
    "completed_at": "completedAt",
    "early_bonus": "earlyBonus",
    "overdue_penalty": "overduePenalty",
}


@dataclass
class Task:
    id: str
    title: str = ""
    experience: int = 0
    deadline: Optional[datetime] = None
    label: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)

    def __post_init__(self):
        self.experience = int(self.experience or 0)
        if self.experience < 0:
            raise ValueError("experience must be non-negative")
        self.deadline = parse_timestamp(self.deadline)
        self.created_at = parse_timestamp(self.created_at)

    # ──── Business Rules ────────────────────────────────────────────
    def is_overdue(self, now: Optional[datetime] = None) -> bool:
        if not self.deadline:
            return False
        return (now or utcnow()) > self.deadline

    def merge(self, changes: Mapping[str, Any]) -> "Task":
        """Field-level merge; id and created_at survive whatever is passed."""
        updates = {k: v for k, v in changes.items() if k not in IMMUTABLE_FIELDS}
        return replace(self, **updates)

    def complete(self, breakdown: XPBreakdown, completed_at: Optional[datetime] = None) -> "CompletedTask":
        values = {f.name: getattr(self, f.name) for f in fields(Task)}
        return CompletedTask(
            **values,
            completed_at=completed_at or utcnow(),
            early_bonus=breakdown.early_bonus,
            overdue_penalty=breakdown.overdue_penalty,
        )

    # ──── Document form ─────────────────────────────────────────────
    def to_document(self) -> Dict[str, Any]:
        document = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, datetime):
                value = format_timestamp(value)
            document[_DOCUMENT_KEYS.get(f.name, f.name)] = value
        return document

    @classmethod
    def from_document(cls, document: Mapping[str, Any], id_factory=None):
        values = {}
        for f in fields(cls):
            key = _DOCUMENT_KEYS.get(f.name, f.name)
            if key in document:
                values[f.name] = document[key]
            elif f.name in document:
                values[f.name] = document[f.name]
        if values.get("id") is None:
            if id_factory is None:
                raise ValueError("Task document has no id")
            values["id"] = id_factory()
        values["id"] = str(values["id"])
        for name in ("created_at", "completed_at"):
            if name in values and values[name] is None:
                del values[name]
        return cls(**values)


@dataclass
class CompletedTask(Task):
    completed_at: datetime = field(default_factory=utcnow)
    early_bonus: int = 0
    overdue_penalty: int = 0

    def __post_init__(self):
        super().__post_init__()
        self.completed_at = parse_timestamp(self.completed_at)
        self.early_bonus = int(self.early_bonus or 0)
        self.overdue_penalty = int(self.overdue_penalty or 0)
        if self.early_bonus < 0:
            raise ValueError("early_bonus must be >= 0")
        if self.overdue_penalty > 0:
            raise ValueError("overdue_penalty must be <= 0")

    def contributed_xp(self) -> int:
        """XP this completion added to the user's total."""
        return self.experience + self.early_bonus + self.overdue_penalty
