from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool
from functools import partial
from typing import List, Tuple, Union
from questlog.infrastructure.database.session import get_db
from questlog.infrastructure.repositories.user_repository import UserRepository
from questlog.infrastructure.database.models import UserORM
from questlog.api.dependencies.auth import get_target_user
from questlog.api.schemas import (
    TaskCreate, TaskUpdate, TaskListResponse, QuestProgressResponse
)
from questlog.core.errors import InternalError, NotFoundError
from questlog.core.logging import get_logger
from questlog.domain.models.task import SingleTask, Task, TaskBatch
from questlog.domain.models.user import UserProgress
from questlog.domain.services.task_manager import OperationResult, TaskManager
from questlog.domain.services.task_store import TaskStore
from questlog.domain.services.xp_calculator import XPCalculator

router = APIRouter(prefix="/users/{user_id}/tasks", tags=["Tasks"])
logger = get_logger(__name__)


def _celebrate(user_id: int, task: Task):
    logger.info("Quest completed", user_id=user_id, task_id=task.id, title=task.title)


def _open_quest_log(user: UserORM) -> Tuple[TaskStore, TaskManager, List[str]]:
    try:
        store = TaskStore.from_documents(user.tasks, user.completed_tasks)
    except (TypeError, ValueError) as exc:
        logger.error("Stored tasks unreadable", user_id=user.id, error=str(exc))
        raise InternalError("Stored tasks are unreadable")

    errors: List[str] = []
    manager = TaskManager(
        XPCalculator(),
        store.update_pending,
        store.update_completed,
        errors.append,
        celebrate=partial(_celebrate, user.id),
    )
    return store, manager, errors


def _save_progress(
    user: UserORM,
    store: TaskStore,
    result: OperationResult,
    errors: List[str],
    db: Session,
    completed_delta: int = 0,
) -> QuestProgressResponse:
    if not result.ok:
        raise InternalError("; ".join(errors) or result.error.message)

    progress = UserProgress(
        xp=user.xp or 0, level=user.level or 1, tasks_completed=user.tasks_completed or 0
    ).apply(result.xp_delta, completed_delta)

    user.xp = progress.xp
    user.level = progress.level
    user.tasks_completed = progress.tasks_completed
    user.tasks, user.completed_tasks = store.to_documents()
    UserRepository(db).update(user)

    return QuestProgressResponse(
        xp=user.xp,
        level=user.level,
        tasks_completed=user.tasks_completed,
        xp_delta=result.xp_delta,
        tasks=user.tasks,
        completed_tasks=user.completed_tasks,
    )


@router.get("", response_model=TaskListResponse)
def list_tasks(user: UserORM = Depends(get_target_user)):
    """Pending and completed tasks of the user."""
    return TaskListResponse(tasks=user.tasks or [], completed_tasks=user.completed_tasks or [])


@router.post("", response_model=QuestProgressResponse, status_code=201)
async def create_tasks(
    data: Union[TaskCreate, List[TaskCreate]],
    user: UserORM = Depends(get_target_user),
    db: Session = Depends(get_db)
):
    """Create one task, or several in order when the body is a list."""
    if isinstance(data, list):
        request = TaskBatch([item.to_input() for item in data])
    else:
        request = SingleTask(data.to_input())

    store, manager, errors = await run_in_threadpool(_open_quest_log, user)
    result = await manager.add_task(request)
    response = await run_in_threadpool(_save_progress, user, store, result, errors, db)
    logger.info("Tasks created", user_id=user.id, count=len(response.tasks))
    return response


@router.post("/{task_id}/complete", response_model=QuestProgressResponse)
async def complete_task(
    task_id: str,
    user: UserORM = Depends(get_target_user),
    db: Session = Depends(get_db)
):
    """Complete a pending task and award its XP, bonus and penalty."""
    store, manager, errors = await run_in_threadpool(_open_quest_log, user)
    task = store.find_pending(task_id)
    if not task:
        raise NotFoundError("Task not found")

    result = await manager.complete_task(task)
    return await run_in_threadpool(_save_progress, user, store, result, errors, db, completed_delta=1)


@router.patch("/{task_id}", response_model=QuestProgressResponse)
def update_task(
    task_id: str,
    data: TaskUpdate,
    user: UserORM = Depends(get_target_user),
    db: Session = Depends(get_db)
):
    """Update fields of a pending task; the id never changes."""
    store, manager, errors = _open_quest_log(user)
    if not store.find_pending(task_id):
        raise NotFoundError("Task not found")

    result = manager.update_task(task_id, data.model_dump(exclude_unset=True))
    return _save_progress(user, store, result, errors, db)


@router.delete("/{task_id}", response_model=QuestProgressResponse)
def delete_task(
    task_id: str,
    completed: bool = Query(False, description="Remove from the completed list and revert its XP"),
    user: UserORM = Depends(get_target_user),
    db: Session = Depends(get_db)
):
    """Remove a task. Unknown ids leave everything unchanged."""
    store, manager, errors = _open_quest_log(user)
    completed_delta = -1 if completed and store.find_completed(task_id) else 0

    result = manager.remove_task(task_id, was_completed=completed)
    return _save_progress(user, store, result, errors, db, completed_delta=completed_delta)
