from src.services import (
    auth_service,
    ledger_service,
    notification_service,
    session_service,
)


__all__ = [
    "auth_service",
    "ledger_service",
    "notification_service",
    "session_service",
]
