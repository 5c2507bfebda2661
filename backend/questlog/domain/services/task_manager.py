"""
Task Lifecycle Manager: add / complete / remove / update over a user's
pending and completed collections.

All collaborators are injected: the XP calculator, one updater per
collection (each takes a transform of the previous list), an error reporter
and an optional celebration hook. No operation ever raises; a collaborator
failure is reported with its message and returned as a failed
OperationResult.
"""
import asyncio
import inspect
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, List, Mapping, Optional

from questlog.core.logging import get_logger
from questlog.domain.models.task import (
    AddTaskRequest, CompletedTask, Task, TaskInput, expand_request, utcnow
)
from questlog.domain.services.task_store import Transform, new_task_id

logger = get_logger(__name__)

Updater = Callable[[Transform], Any]


@dataclass(frozen=True)
class OperationError:
    message: str


@dataclass(frozen=True)
class OperationResult:
    error: Optional[OperationError] = None
    xp_delta: int = 0

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, xp_delta: int = 0) -> "OperationResult":
        return cls(xp_delta=xp_delta)

    @classmethod
    def failure(cls, message: str) -> "OperationResult":
        return cls(error=OperationError(message))


class TaskManager:
    def __init__(
        self,
        calculator,
        set_tasks: Updater,
        set_completed_tasks: Updater,
        report_error: Callable[[str], Any],
        celebrate: Optional[Callable[[Task], Any]] = None,
        id_factory: Callable[[], str] = new_task_id,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._calculator = calculator
        self._set_tasks = set_tasks
        self._set_completed_tasks = set_completed_tasks
        self._report_error = report_error
        self._celebrate = celebrate
        self._id_factory = id_factory
        self._clock = clock
        self._background = set()

    # ──── Public API ──────────────────────────────────────────────────────────
    async def add_task(self, request: AddTaskRequest) -> OperationResult:
        try:
            created_at = self._clock()
            new_tasks = [self._build_task(data, created_at) for data in expand_request(request)]
            self._set_tasks(lambda previous: previous + new_tasks)
            return OperationResult.success()
        except Exception as exc:
            return self._fail("add_task", exc)

    async def complete_task(self, task: Task) -> OperationResult:
        try:
            breakdown = self._calculator.calculate(task.experience, task.deadline)
            self._fire_celebration(task)
            completed = task.complete(breakdown, self._clock())

            self._set_tasks(lambda previous: [t for t in previous if t.id != task.id])
            self._set_completed_tasks(lambda previous: previous + [completed])
            return OperationResult.success(xp_delta=completed.contributed_xp())
        except Exception as exc:
            return self._fail("complete_task", exc)

    def remove_task(self, task_id: str, was_completed: bool = False) -> OperationResult:
        try:
            if not was_completed:
                self._set_tasks(lambda previous: [t for t in previous if t.id != task_id])
                return OperationResult.success()

            adjustments: List[int] = []

            def drop_completed(previous: List[CompletedTask]) -> List[CompletedTask]:
                match = next((t for t in previous if t.id == task_id), None)
                if match is not None:
                    adjustments.append(self._calculator.adjust(-match.contributed_xp()))
                return [t for t in previous if t.id != task_id]

            self._set_completed_tasks(drop_completed)
            return OperationResult.success(xp_delta=adjustments[0] if adjustments else 0)
        except Exception as exc:
            return self._fail("remove_task", exc)

    def update_task(self, task_id: str, changes: Mapping[str, Any]) -> OperationResult:
        try:
            self._set_tasks(
                lambda previous: [t.merge(changes) if t.id == task_id else t for t in previous]
            )
            return OperationResult.success()
        except Exception as exc:
            return self._fail("update_task", exc)

    # ──── Private helpers ─────────────────────────────────────────────────────
    def _build_task(self, data: TaskInput, created_at: datetime) -> Task:
        return Task(
            id=self._id_factory(),
            title=data.title,
            experience=data.experience,
            deadline=data.deadline,
            label=data.label,
            created_at=created_at,
        )

    def _fire_celebration(self, task: Task):
        if self._celebrate is None:
            return
        outcome = self._celebrate(task)
        if inspect.isawaitable(outcome):
            # not awaited: completion never waits on the effect
            pending = asyncio.ensure_future(outcome)
            self._background.add(pending)
            pending.add_done_callback(self._celebration_done)

    def _celebration_done(self, future: asyncio.Future):
        self._background.discard(future)
        if not future.cancelled() and future.exception() is not None:
            logger.warning("Celebration effect failed", error=str(future.exception()))

    def _fail(self, operation: str, exc: Exception) -> OperationResult:
        message = str(exc) or exc.__class__.__name__
        logger.error("Task operation failed", operation=operation, error=message)
        try:
            self._report_error(message)
        except Exception as report_exc:
            logger.error("Error reporter failed", operation=operation, error=str(report_exc))
        return OperationResult.failure(message)
