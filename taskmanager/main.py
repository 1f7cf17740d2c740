import logging
from contextlib import asynccontextmanager, contextmanager
from typing import List

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, PlainTextResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from . import schemas
from .auth import AuthService, UserIdentity, get_auth_service, get_current_identity
from .config import get_settings
from .database import get_db, init_db
from .errors import TaskManagerError, UnauthorizedError
from .logging_setup import setup_logging
from .services import TaskService, get_task_service

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(get_settings().log_level)
    init_db()
    yield


app = FastAPI(title="Task Manager API", lifespan=lifespan)

auth_router = APIRouter(prefix="/auth", tags=["auth"])
task_router = APIRouter(prefix="/api/tasks", tags=["tasks"])


# ============== ERROR MAPPING ==============

@app.exception_handler(TaskManagerError)
async def handle_domain_error(request: Request, exc: TaskManagerError):
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, UnauthorizedError) else None
    return PlainTextResponse(exc.message, status_code=exc.status_code, headers=headers)


@app.exception_handler(RequestValidationError)
async def handle_validation_error(request: Request, exc: RequestValidationError):
    logger.warning("Rejected %s %s: %s", request.method, request.url.path, exc.errors())
    return JSONResponse(status_code=400, content={"detail": jsonable_encoder(exc.errors())})


@contextmanager
def store_errors(db: Session, action: str, username: str, subject: str = "task"):
    """Turn an unexpected database failure into a 400 for the client."""
    try:
        yield
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error %s %s for user: %s", action, subject, username)
        raise TaskManagerError(f"Error {action} {subject}")


# ============== AUTH ENDPOINTS ==============

@auth_router.post("/register", response_class=PlainTextResponse)
def register(
    user: schemas.UserCreate,
    auth: AuthService = Depends(get_auth_service),
    db: Session = Depends(get_db),
):
    """Register a new user"""
    with store_errors(db, "registering", user.username, subject="user"):
        auth.register(user.username, user.password)
    return "User registered successfully!"


@auth_router.post("/login", response_model=schemas.LoginResponse)
def login(credentials: schemas.LoginRequest, auth: AuthService = Depends(get_auth_service)):
    """Login and get JWT token"""
    return schemas.LoginResponse(token=auth.login(credentials.username, credentials.password))


# ============== TASK ENDPOINTS (PROTECTED) ==============

@task_router.post("", response_model=schemas.TaskView)
def create_task(
    task: schemas.TaskCreate,
    identity: UserIdentity = Depends(get_current_identity),
    service: TaskService = Depends(get_task_service),
    db: Session = Depends(get_db),
):
    """Create a new task owned by the caller"""
    with store_errors(db, "creating", identity.username):
        return service.create(identity, task.title, task.description, task.status)


@task_router.get("", response_model=List[schemas.TaskView])
def read_tasks(
    identity: UserIdentity = Depends(get_current_identity),
    service: TaskService = Depends(get_task_service),
    db: Session = Depends(get_db),
):
    """Get current user's tasks only"""
    with store_errors(db, "retrieving", identity.username):
        return service.list(identity)


@task_router.get("/{task_id}", response_model=schemas.TaskView)
def read_task(
    task_id: int,
    identity: UserIdentity = Depends(get_current_identity),
    service: TaskService = Depends(get_task_service),
    db: Session = Depends(get_db),
):
    """Get a specific task (only if user owns it)"""
    with store_errors(db, "retrieving", identity.username):
        return service.get(identity, task_id)


@task_router.put("/{task_id}", response_model=schemas.TaskView)
def update_task(
    task_id: int,
    task_update: schemas.TaskUpdate,
    identity: UserIdentity = Depends(get_current_identity),
    service: TaskService = Depends(get_task_service),
    db: Session = Depends(get_db),
):
    """Update a task (only if user owns it)"""
    with store_errors(db, "updating", identity.username):
        return service.update(identity, task_id, task_update)


@task_router.delete("/{task_id}", response_class=PlainTextResponse)
def delete_task(
    task_id: int,
    identity: UserIdentity = Depends(get_current_identity),
    service: TaskService = Depends(get_task_service),
    db: Session = Depends(get_db),
):
    """Delete a task (only if user owns it)"""
    with store_errors(db, "deleting", identity.username):
        service.delete(identity, task_id)
    return "Task deleted successfully"


app.include_router(auth_router)
app.include_router(task_router)
