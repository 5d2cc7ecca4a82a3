"""HTTP interface for the ledger: auth, tasks, rewards, stats and notifications."""

import logging
from typing import Literal

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from src.core.errors import (
    AlreadyClaimedError,
    AuthFailureError,
    BackendUnavailableError,
    InsufficientPointsError,
    InvalidInputError,
    LedgerError,
    NotFoundError,
    TransientStorageError,
    classify_error_with_response,
)
from src.domain.create_models import RewardCreate, TaskCreate
from src.domain.reward import Reward
from src.domain.task import Task
from src.domain.user import Identity
from src.models.service_models import LedgerStats
from src.services.ledger_service import Ledger
from src.services.notification_service import Notification
from src.services.session_service import SessionManager


logger = logging.getLogger(__name__)

router = APIRouter(tags=["ledger"])

# Most specific first; the first isinstance match wins
ERROR_STATUS_CODES: list[tuple[type[LedgerError], int]] = [
    (InvalidInputError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (InsufficientPointsError, status.HTTP_409_CONFLICT),
    (AlreadyClaimedError, status.HTTP_409_CONFLICT),
    (AuthFailureError, status.HTTP_401_UNAUTHORIZED),
    (BackendUnavailableError, status.HTTP_503_SERVICE_UNAVAILABLE),
    (TransientStorageError, status.HTTP_503_SERVICE_UNAVAILABLE),
]


class SignInBody(BaseModel):
    email: str = ""
    password: str = ""


class SignUpBody(BaseModel):
    name: str = ""
    email: str = ""
    password: str = ""
    password_confirm: str | None = None


async def ledger_error_handler(_request: Request, exc: Exception) -> JSONResponse:
    """Render a LedgerError as a structured ErrorResponse."""
    status_code = next(
        (code for error_type, code in ERROR_STATUS_CODES if isinstance(exc, error_type)),
        status.HTTP_500_INTERNAL_SERVER_ERROR,
    )
    response = classify_error_with_response(exc)
    logger.info("request_failed", extra={"code": response.code, "status": status_code})
    return JSONResponse(status_code=status_code, content=response.model_dump(mode="json"))


async def request_validation_handler(request: Request, exc: Exception) -> JSONResponse:
    """Render a rejected request body or query the same way as ledger input errors."""
    errors = exc.errors() if isinstance(exc, RequestValidationError) else []
    message = str(errors[0]["msg"]).removeprefix("Value error, ") if errors else "Invalid request."
    return await ledger_error_handler(request, InvalidInputError(message))


def get_sessions(request: Request) -> SessionManager:
    """Return the application's session manager."""
    return request.app.state.sessions


async def get_ledger(sessions: SessionManager = Depends(get_sessions)) -> Ledger:
    """Return the ledger of the signed-in identity."""
    return await sessions.get_ledger()


# Auth


@router.post("/auth/sign-in")
async def sign_in(body: SignInBody, sessions: SessionManager = Depends(get_sessions)) -> Identity:
    return await sessions.sign_in(body.email, body.password)


@router.post("/auth/sign-up", status_code=status.HTTP_201_CREATED)
async def sign_up(body: SignUpBody, sessions: SessionManager = Depends(get_sessions)) -> Identity:
    return await sessions.sign_up(body.email, body.password, body.name, body.password_confirm)


@router.post("/auth/sign-out", status_code=status.HTTP_204_NO_CONTENT)
async def sign_out(sessions: SessionManager = Depends(get_sessions)) -> None:
    await sessions.sign_out()


@router.get("/auth/me")
async def me(sessions: SessionManager = Depends(get_sessions)) -> Identity:
    identity = sessions.current_user
    if identity is None:
        raise AuthFailureError("Please sign in to continue.")
    return identity


# Tasks


@router.get("/tasks")
async def list_tasks(
    status_filter: Literal["pending", "completed"] | None = Query(default=None, alias="status"),
    ledger: Ledger = Depends(get_ledger),
) -> list[Task]:
    """List tasks, optionally only pending or completed ones."""
    if status_filter == "pending":
        return ledger.pending_tasks
    if status_filter == "completed":
        return ledger.completed_tasks
    return ledger.tasks


@router.post("/tasks", status_code=status.HTTP_201_CREATED)
async def create_task(body: TaskCreate, ledger: Ledger = Depends(get_ledger)) -> Task:
    return await ledger.create_task(
        title=body.title, description=body.description, frequency=body.frequency, points=body.points
    )


@router.post("/tasks/reset", status_code=status.HTTP_204_NO_CONTENT)
async def reset_tasks(ledger: Ledger = Depends(get_ledger)) -> None:
    await ledger.reset_tasks()


@router.post("/tasks/{task_id}/complete")
async def complete_task(task_id: str, ledger: Ledger = Depends(get_ledger)) -> Task:
    return await ledger.complete_task(task_id)


# Rewards


@router.get("/rewards")
async def list_rewards(
    status_filter: Literal["available", "claimed"] | None = Query(default=None, alias="status"),
    ledger: Ledger = Depends(get_ledger),
) -> list[Reward]:
    """List rewards, optionally only available or claimed ones."""
    if status_filter == "available":
        return ledger.available_rewards
    if status_filter == "claimed":
        return ledger.claimed_rewards
    return ledger.rewards


@router.post("/rewards", status_code=status.HTTP_201_CREATED)
async def create_reward(body: RewardCreate, ledger: Ledger = Depends(get_ledger)) -> Reward:
    return await ledger.create_reward(title=body.title, description=body.description, cost=body.cost)


@router.post("/rewards/{reward_id}/claim")
async def claim_reward(reward_id: str, ledger: Ledger = Depends(get_ledger)) -> Reward:
    return await ledger.claim_reward(reward_id)


# Progress and notifications


@router.get("/stats")
async def stats(ledger: Ledger = Depends(get_ledger)) -> LedgerStats:
    return ledger.stats()


@router.get("/notifications")
async def drain_notifications(sessions: SessionManager = Depends(get_sessions)) -> list[Notification]:
    """Return and clear pending notifications."""
    return sessions.notifier.drain()


@router.post("/storage/init", status_code=status.HTTP_204_NO_CONTENT)
async def initialize_storage(sessions: SessionManager = Depends(get_sessions)) -> None:
    """Create missing tables or collections for the configured backend."""
    await sessions.initialize_storage()
