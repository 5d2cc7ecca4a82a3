"""Error types and classification for ledger, storage and auth failures."""

from enum import Enum

from pydantic import BaseModel, ValidationError


class LedgerError(Exception):
    """Base class for every error raised by taskquest."""


class InvalidInputError(LedgerError, ValueError):
    """A required field is blank or a numeric field is out of range."""


class NotFoundError(LedgerError, KeyError):
    """An operation referenced an unknown task or reward id."""

    def __str__(self) -> str:
        # KeyError quotes its argument; keep messages readable
        return str(self.args[0]) if self.args else ""


class InsufficientPointsError(LedgerError):
    """A reward costs more than the current point balance."""

    def __init__(self, *, cost: int, balance: int) -> None:
        self.cost = cost
        self.balance = balance
        super().__init__(f"Reward costs {cost} points but only {balance} are available")


class AlreadyClaimedError(LedgerError):
    """A reward was redeemed twice."""


class StorageError(LedgerError):
    """Base class for storage collaborator failures."""


class BackendUnavailableError(StorageError):
    """The storage resource (table or collection) does not exist at all."""


class TransientStorageError(StorageError):
    """A read or write failed for any reason other than a missing resource."""


class AuthFailureError(LedgerError):
    """Authentication was rejected; the message is shown to the user verbatim."""


class ErrorSeverity(Enum):
    """Severity levels for errors."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCode:
    """Error codes for specific error conditions."""

    ERR_INVALID_INPUT = "ERR_INVALID_INPUT"
    ERR_NOT_FOUND = "ERR_NOT_FOUND"
    ERR_INSUFFICIENT_POINTS = "ERR_INSUFFICIENT_POINTS"
    ERR_ALREADY_CLAIMED = "ERR_ALREADY_CLAIMED"
    ERR_BACKEND_UNAVAILABLE = "ERR_BACKEND_UNAVAILABLE"
    ERR_STORAGE_FAILURE = "ERR_STORAGE_FAILURE"
    ERR_AUTHENTICATION_FAILED = "ERR_AUTHENTICATION_FAILED"
    ERR_UNKNOWN = "ERR_UNKNOWN"


class ErrorResponse(BaseModel):
    """Structured error response with user-friendly messaging."""

    code: str
    message: str
    suggestion: str
    severity: ErrorSeverity


BACKEND_UNAVAILABLE_MESSAGE = "Storage has not been initialized."
BACKEND_UNAVAILABLE_SUGGESTION = "Initialize storage (POST /storage/init) and try again."


def first_validation_message(error: ValidationError) -> str:
    """Return the first human-readable message of a pydantic ValidationError."""
    return str(error.errors()[0]["msg"]).removeprefix("Value error, ")


def classify_error_with_response(exception: Exception) -> ErrorResponse:  # noqa: PLR0911
    """Classify an error and return a structured response with recovery suggestions.

    Args:
        exception: The exception raised during execution

    Returns:
        ErrorResponse with code, message, suggestion, and severity
    """
    if isinstance(exception, InvalidInputError):
        return ErrorResponse(
            code=ErrorCode.ERR_INVALID_INPUT,
            message=str(exception),
            suggestion="Fill in all required fields and try again.",
            severity=ErrorSeverity.LOW,
        )

    if isinstance(exception, NotFoundError):
        return ErrorResponse(
            code=ErrorCode.ERR_NOT_FOUND,
            message=str(exception),
            suggestion="Refresh the list to see current tasks and rewards.",
            severity=ErrorSeverity.LOW,
        )

    if isinstance(exception, InsufficientPointsError):
        return ErrorResponse(
            code=ErrorCode.ERR_INSUFFICIENT_POINTS,
            message=str(exception),
            suggestion="Complete more tasks to earn points.",
            severity=ErrorSeverity.LOW,
        )

    if isinstance(exception, AlreadyClaimedError):
        return ErrorResponse(
            code=ErrorCode.ERR_ALREADY_CLAIMED,
            message=str(exception),
            suggestion="Pick another reward from the store.",
            severity=ErrorSeverity.LOW,
        )

    if isinstance(exception, BackendUnavailableError):
        return ErrorResponse(
            code=ErrorCode.ERR_BACKEND_UNAVAILABLE,
            message=BACKEND_UNAVAILABLE_MESSAGE,
            suggestion=BACKEND_UNAVAILABLE_SUGGESTION,
            severity=ErrorSeverity.CRITICAL,
        )

    if isinstance(exception, TransientStorageError):
        return ErrorResponse(
            code=ErrorCode.ERR_STORAGE_FAILURE,
            message="Your change could not be saved.",
            suggestion="Please repeat the action in a moment.",
            severity=ErrorSeverity.HIGH,
        )

    if isinstance(exception, AuthFailureError):
        return ErrorResponse(
            code=ErrorCode.ERR_AUTHENTICATION_FAILED,
            message=str(exception),
            suggestion="Check your email and password and try again.",
            severity=ErrorSeverity.MEDIUM,
        )

    return ErrorResponse(
        code=ErrorCode.ERR_UNKNOWN,
        message="An unexpected error occurred.",
        suggestion="Please try again later.",
        severity=ErrorSeverity.MEDIUM,
    )
