"""Tests for the PocketBase and local authentication providers."""

import pytest
from pocketbase.client import ClientResponseError

from src.core.errors import AuthFailureError, InvalidInputError
from src.services.auth_service import LocalAuthProvider, PocketBaseAuthProvider


@pytest.fixture
def auth(fake_pocketbase) -> PocketBaseAuthProvider:
    return PocketBaseAuthProvider(fake_pocketbase)


@pytest.fixture
def registered_user(fake_pocketbase) -> dict:
    user = {
        "id": "user00000000001",
        "email": "ana@example.com",
        "name": "Ana",
        "password": "secret123",
    }
    fake_pocketbase.records.setdefault("users", {})[user["id"]] = user
    return user


@pytest.mark.unit
class TestPocketBaseSignIn:
    async def test_sign_in_sets_current_user(self, auth, registered_user):
        identity = await auth.sign_in("ana@example.com", "secret123")

        assert identity.id == registered_user["id"]
        assert identity.email == "ana@example.com"
        assert identity.anonymous is False
        assert auth.current_user == identity

    @pytest.mark.parametrize(("email", "password"), [("", "secret123"), ("ana@example.com", ""), ("  ", "x")])
    async def test_blank_fields_rejected_before_calling_provider(self, auth, fake_pocketbase, email, password):
        with pytest.raises(InvalidInputError, match="Please fill in all fields."):
            await auth.sign_in(email, password)

        assert fake_pocketbase.calls == []

    async def test_provider_message_is_passed_through(self, auth, registered_user):
        """Test the provider's rejection message reaches the caller verbatim."""
        with pytest.raises(AuthFailureError, match="^Failed to authenticate.$"):
            await auth.sign_in("ana@example.com", "wrong-password")

        assert auth.current_user is None

    async def test_sign_out_clears_identity(self, auth, registered_user):
        await auth.sign_in("ana@example.com", "secret123")

        await auth.sign_out()

        assert auth.current_user is None


@pytest.mark.unit
class TestPocketBaseSignUp:
    async def test_sign_up_creates_user_and_requests_verification(self, auth, fake_pocketbase):
        identity = await auth.sign_up("new@example.com", "secret123", "New User", "secret123")

        created = fake_pocketbase.records["users"][identity.id]
        assert created["email"] == "new@example.com"
        assert created["name"] == "New User"
        assert created["passwordConfirm"] == "secret123"
        assert fake_pocketbase.verification_requests == ["new@example.com"]
        assert auth.current_user is None

    @pytest.mark.parametrize(
        ("name", "password", "confirm", "message"),
        [
            ("", "secret123", "secret123", "Please fill in all fields."),
            ("Ana", "secret123", "different", "Passwords do not match."),
            ("Ana", "12345", "12345", "Password must be at least 6 characters."),
        ],
    )
    async def test_sign_up_validation(self, auth, fake_pocketbase, name, password, confirm, message):
        with pytest.raises(InvalidInputError, match=message):
            await auth.sign_up("ana@example.com", password, name, confirm)

        assert "users" not in fake_pocketbase.records

    async def test_sign_up_rejection_surfaces_provider_message(self, auth, fake_pocketbase):
        fake_pocketbase.failures[("users", "create")] = ClientResponseError(
            "bad request", status=400, data={"message": "Failed to create record."}
        )

        with pytest.raises(AuthFailureError, match="Failed to create record."):
            await auth.sign_up("ana@example.com", "secret123", "Ana")

    async def test_verification_failure_does_not_fail_sign_up(self, auth, fake_pocketbase):
        fake_pocketbase.failures[("users", "request_verification")] = ClientResponseError(
            "smtp down", status=500, data={}
        )

        identity = await auth.sign_up("ana@example.com", "secret123", "Ana")

        assert identity.email == "ana@example.com"


@pytest.mark.unit
class TestLocalAuthProvider:
    async def test_local_owner_is_always_signed_in(self):
        provider = LocalAuthProvider()

        await provider.sign_out()

        assert provider.current_user.anonymous is True
        assert provider.current_user.id == "anonymous"

    async def test_sign_in_not_available(self):
        with pytest.raises(AuthFailureError, match="local mode"):
            await LocalAuthProvider().sign_in("a@b.c", "secret123")
