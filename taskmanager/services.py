"""
Task CRUD with per-owner access.

Every lookup goes through ``_get_owned``: a task that does not exist and a
task that belongs to another user raise the same ``TaskNotFoundError``, so
callers never learn whether someone else's task id exists.
"""
import logging
from typing import List, Optional

from fastapi import Depends
from sqlalchemy.orm import Session

from .auth import UserIdentity
from .database import get_db
from .errors import TaskNotFoundError, ValidationError
from .models import Task, TaskStatus
from .repositories import SqlTaskRepository, TaskRepository
from .schemas import TaskUpdate


def parse_status(value: Optional[str]) -> Optional[TaskStatus]:
    """Map a status name to ``TaskStatus``; ``None`` passes through."""
    if value is None:
        return None
    try:
        return TaskStatus[value]
    except KeyError:
        raise ValidationError(f"Unknown task status: {value}")


class TaskService:
    def __init__(self, tasks: TaskRepository, logger: Optional[logging.Logger] = None):
        self.tasks = tasks
        self.logger = logger or logging.getLogger(__name__)

    def _get_owned(self, owner: UserIdentity, task_id: int) -> Task:
        task = self.tasks.find_by_id(task_id)
        if task is None or task.user_id != owner.id:
            self.logger.warning(
                "Task %s not found or doesn't belong to user: %s", task_id, owner.username
            )
            raise TaskNotFoundError()
        return task

    def _parse_status(self, owner: UserIdentity, value: Optional[str], action: str):
        try:
            return parse_status(value)
        except ValidationError:
            self.logger.warning(
                "Rejected status %r while %s task for user: %s", value, action, owner.username
            )
            raise

    def create(
        self,
        owner: UserIdentity,
        title: str,
        description: Optional[str] = None,
        status: Optional[str] = None,
    ) -> Task:
        parsed = self._parse_status(owner, status, "creating") or TaskStatus.PENDING
        task = self.tasks.save(
            Task(title=title, description=description, status=parsed, user_id=owner.id)
        )
        self.logger.info("Task %s created by user: %s", task.id, owner.username)
        return task

    def list(self, owner: UserIdentity) -> List[Task]:
        tasks = self.tasks.find_by_owner(owner.id)
        self.logger.info("Retrieved %d tasks for user: %s", len(tasks), owner.username)
        return tasks

    def get(self, owner: UserIdentity, task_id: int) -> Task:
        return self._get_owned(owner, task_id)

    def update(self, owner: UserIdentity, task_id: int, changes: TaskUpdate) -> Task:
        task = self._get_owned(owner, task_id)

        fields = changes.model_dump(exclude_unset=True)
        if "status" in fields:
            status = self._parse_status(owner, fields.pop("status"), "updating")
            if status is not None:
                task.status = status
        for field, value in fields.items():
            setattr(task, field, value)

        task = self.tasks.save(task)
        self.logger.info("Task %s updated by user: %s", task_id, owner.username)
        return task

    def delete(self, owner: UserIdentity, task_id: int) -> None:
        task = self._get_owned(owner, task_id)
        self.tasks.delete(task)
        self.logger.info("Task %s deleted by user: %s", task_id, owner.username)


def get_task_service(db: Session = Depends(get_db)) -> TaskService:
    return TaskService(SqlTaskRepository(db))
