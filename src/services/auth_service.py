"""Authentication collaborators: PocketBase email/password auth and the anonymous local owner."""

import asyncio
import logging
from typing import Any, Protocol

from pocketbase import PocketBase
from pocketbase.client import ClientResponseError
from pydantic import ValidationError

from src.core.config import settings
from src.core.errors import AuthFailureError, InvalidInputError, first_validation_message
from src.core.logging import span
from src.domain.create_models import SignInRequest, SignUpRequest
from src.domain.user import Identity


logger = logging.getLogger(__name__)

USERS_COLLECTION = "users"


def anonymous_identity() -> Identity:
    """Identity of the implicit local-mode ledger."""
    return Identity(id=settings.anonymous_owner_id, name="Local user", anonymous=True)


def _provider_message(error: ClientResponseError) -> str:
    """Extract the provider's own message so it can be shown verbatim."""
    data = error.data if isinstance(error.data, dict) else {}
    return str(data.get("message") or error)


def _identity_from_record(record: Any) -> Identity:
    return Identity(
        id=record.id,
        email=getattr(record, "email", None),
        name=getattr(record, "name", "") or "",
    )


class AuthProvider(Protocol):
    """Authentication contract used by the session layer."""

    @property
    def current_user(self) -> Identity | None:
        """The signed-in identity, if any."""
        ...

    async def sign_in(self, email: str, password: str) -> Identity:
        """Authenticate with email and password."""
        ...

    async def sign_up(self, email: str, password: str, name: str, password_confirm: str | None = None) -> Identity:
        """Register a new account."""
        ...

    async def sign_out(self) -> None:
        """Forget the current identity."""
        ...


class LocalAuthProvider:
    """Local-only mode: there is exactly one implicit, always signed-in owner."""

    def __init__(self) -> None:
        self._identity = anonymous_identity()

    @property
    def current_user(self) -> Identity | None:
        return self._identity

    async def sign_in(self, email: str, password: str) -> Identity:
        raise AuthFailureError("Sign-in is not available in local mode.")

    async def sign_up(self, email: str, password: str, name: str, password_confirm: str | None = None) -> Identity:
        raise AuthFailureError("Sign-up is not available in local mode.")

    async def sign_out(self) -> None:
        logger.debug("Sign-out ignored in local mode")


class PocketBaseAuthProvider:
    """Email/password authentication against the PocketBase users collection."""

    def __init__(self, client: PocketBase) -> None:
        self._client = client

    @property
    def current_user(self) -> Identity | None:
        model = self._client.auth_store.model
        if not self._client.auth_store.token or model is None:
            return None
        return _identity_from_record(model)

    async def sign_in(self, email: str, password: str) -> Identity:
        """Authenticate and keep the token in the client's auth store.

        Raises:
            InvalidInputError: If a field is blank
            AuthFailureError: If PocketBase rejects the credentials
        """
        with span("auth_service.sign_in"):
            try:
                request = SignInRequest(email=email, password=password)
            except ValidationError as e:
                raise InvalidInputError(first_validation_message(e)) from e

            try:
                response = await asyncio.to_thread(
                    self._client.collection(USERS_COLLECTION).auth_with_password,
                    request.email.strip(),
                    request.password,
                )
            except ClientResponseError as e:
                logger.warning("Sign-in failed for %s: %s", request.email, e)
                raise AuthFailureError(_provider_message(e)) from e

            identity = _identity_from_record(response.record)
            logger.info("User signed in", extra={"owner_id": identity.id})
            return identity

    async def sign_up(self, email: str, password: str, name: str, password_confirm: str | None = None) -> Identity:
        """Create an account and request its email verification.

        The new user is not signed in; they confirm their email first.

        Raises:
            InvalidInputError: If a field is blank, passwords differ or the password is too short
            AuthFailureError: If PocketBase rejects the registration
        """
        with span("auth_service.sign_up"):
            try:
                request = SignUpRequest(
                    name=name,
                    email=email,
                    password=password,
                    password_confirm=password if password_confirm is None else password_confirm,
                )
            except ValidationError as e:
                raise InvalidInputError(first_validation_message(e)) from e

            users = self._client.collection(USERS_COLLECTION)
            body = {
                "email": request.email.strip(),
                "name": request.name.strip(),
                "password": request.password,
                "passwordConfirm": request.password_confirm,
            }
            try:
                record = await asyncio.to_thread(users.create, body)
            except ClientResponseError as e:
                logger.warning("Sign-up failed for %s: %s", request.email, e)
                raise AuthFailureError(_provider_message(e)) from e

            try:
                await asyncio.to_thread(users.request_verification, request.email.strip())
            except ClientResponseError as e:
                # The account exists; verification can be requested again from the sign-in screen
                logger.warning("Verification email request failed for %s: %s", request.email, e)

            identity = _identity_from_record(record)
            logger.info("User signed up", extra={"owner_id": identity.id})
            return identity

    async def sign_out(self) -> None:
        """Clear the stored auth token."""
        self._client.auth_store.clear()
        logger.info("User signed out")
