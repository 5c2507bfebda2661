"""
Task Store: the pending and completed collections of one user.

The only way to change a collection is update_pending / update_completed,
which apply a transform to the latest value at application time. Calls made
in sequence therefore land in invocation order without any locking.
"""
import uuid
from typing import Callable, Iterable, List, Mapping, Optional, Tuple

from questlog.domain.models.task import CompletedTask, Task

Transform = Callable[[List[Task]], List[Task]]


def new_task_id() -> str:
    return uuid.uuid4().hex


class TaskStore:
    def __init__(self, pending: Iterable[Task] = (), completed: Iterable[CompletedTask] = ()):
        self._pending: List[Task] = list(pending)
        self._completed: List[CompletedTask] = list(completed)

    @property
    def pending(self) -> List[Task]:
        return list(self._pending)

    @property
    def completed(self) -> List[CompletedTask]:
        return list(self._completed)

    def update_pending(self, transform: Transform):
        # a transform that raises leaves the collection untouched
        self._pending = list(transform(list(self._pending)))

    def update_completed(self, transform: Transform):
        self._completed = list(transform(list(self._completed)))

    def find_pending(self, task_id: str) -> Optional[Task]:
        return next((t for t in self._pending if t.id == task_id), None)

    def find_completed(self, task_id: str) -> Optional[CompletedTask]:
        return next((t for t in self._completed if t.id == task_id), None)

    # ──── Document form ───────────────────────────────────────────────────────
    @classmethod
    def from_documents(
        cls,
        tasks: Iterable[Mapping] = (),
        completed_tasks: Iterable[Mapping] = (),
    ) -> "TaskStore":
        return cls(
            [Task.from_document(d, id_factory=new_task_id) for d in tasks or []],
            [CompletedTask.from_document(d, id_factory=new_task_id) for d in completed_tasks or []],
        )

    def to_documents(self) -> Tuple[List[dict], List[dict]]:
        return (
            [t.to_document() for t in self._pending],
            [t.to_document() for t in self._completed],
        )
