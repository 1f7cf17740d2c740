"""
Repository interfaces used by the services, and their SQLAlchemy versions.

Services only see the Protocols, so tests can swap in in-memory fakes.
"""
import logging
from typing import List, Optional, Protocol

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .errors import UsernameTakenError
from .models import Task, User

logger = logging.getLogger(__name__)


class UserRepository(Protocol):
    def exists_by_username(self, username: str) -> bool: ...

    def find_by_username(self, username: str) -> Optional[User]: ...

    def save(self, user: User) -> User: ...


class TaskRepository(Protocol):
    def find_by_id(self, task_id: int) -> Optional[Task]: ...

    def find_by_owner(self, owner_id: int) -> List[Task]: ...

    def save(self, task: Task) -> Task: ...

    def delete(self, task: Task) -> None: ...


class SqlUserRepository:
    def __init__(self, db: Session):
        self.db = db

    def exists_by_username(self, username: str) -> bool:
        return self.db.query(User.id).filter(User.username == username).first() is not None

    def find_by_username(self, username: str) -> Optional[User]:
        return self.db.query(User).filter(User.username == username).first()

    def save(self, user: User) -> User:
        self.db.add(user)
        try:
            self.db.commit()
        except IntegrityError:
            # lost a registration race on the unique username index
            self.db.rollback()
            logger.warning("Username %s was taken concurrently", user.username)
            raise UsernameTakenError()
        self.db.refresh(user)
        return user


class SqlTaskRepository:
    def __init__(self, db: Session):
        self.db = db

    def find_by_id(self, task_id: int) -> Optional[Task]:
        return self.db.get(Task, task_id)

    def find_by_owner(self, owner_id: int) -> List[Task]:
        return (
            self.db.query(Task)
            .filter(Task.user_id == owner_id)
            .order_by(Task.id)
            .all()
        )

    def save(self, task: Task) -> Task:
        self.db.add(task)
        self.db.commit()
        self.db.refresh(task)
        return task

    def delete(self, task: Task) -> None:
        self.db.delete(task)
        self.db.commit()
