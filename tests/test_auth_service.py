import json

import httpx
import pytest

from conftest import TEST_TOKEN
from unitrack.storage.persisted_state import AUTH_STORAGE_KEY, AuthTokenProvider
from unitrack.utils.errors import (
    EmailNotVerifiedError,
    HttpError,
    NetworkError,
    UnsuccessfulResponseError,
    ValidationError,
)

USER = {"id": "t-9", "name": "Grace", "email": "grace@uni.edu", "role": "teacher", "isVerified": True}


class TestLogin:
    """Test signing in."""

    @pytest.mark.asyncio
    async def test_login_persists_user_and_token(self, container, backend):
        backend.add("POST", "/auth/login", {"token": "fresh-token", "user": USER})
        auth = container.auth_service

        user = await auth.login(" Grace@Uni.edu ", "secret1")

        request = backend.requests[0]
        assert "Authorization" not in request.headers
        assert backend.body_of(request) == {"email": "grace@uni.edu", "password": "secret1"}
        assert user.is_verified
        assert auth.is_authenticated
        assert await AuthTokenProvider(container.store).get_token() == "fresh-token"

    @pytest.mark.asyncio
    async def test_unverified_email(self, container, backend):
        backend.add(
            "POST",
            "/auth/login",
            {"error": "Email not verified", "verificationToken": "verify-me"},
            status=403,
        )
        auth = container.auth_service

        with pytest.raises(EmailNotVerifiedError) as exc_info:
            await auth.login("grace@uni.edu", "secret1")

        assert exc_info.value.verification_token == "verify-me"
        assert auth.verification_token == "verify-me"
        assert auth.error == "Email not verified"

    @pytest.mark.asyncio
    async def test_wrong_password(self, container, backend):
        backend.add("POST", "/auth/login", {"error": "Invalid credentials"}, status=400)
        with pytest.raises(HttpError) as exc_info:
            await container.auth_service.login("grace@uni.edu", "nope")
        assert exc_info.value.message == "Invalid credentials"
        assert not container.auth_service.is_loading

    @pytest.mark.asyncio
    async def test_login_without_token_is_unsuccessful(self, container, backend):
        backend.add("POST", "/auth/login", {"message": "Try again"})
        with pytest.raises(UnsuccessfulResponseError):
            await container.auth_service.login("grace@uni.edu", "secret1")

    @pytest.mark.asyncio
    async def test_malformed_email_never_reaches_network(self, container, backend):
        with pytest.raises(ValidationError) as exc_info:
            await container.auth_service.login("grace@uni", "secret1")
        assert exc_info.value.error_code == "INVALID_EMAIL"
        assert backend.requests == []


class TestSession:
    """Test hydration and sign-out."""

    @pytest.mark.asyncio
    async def test_hydrate_restores_signed_in_state(self, container):
        auth = container.auth_service
        await auth.hydrate()
        assert auth.token == TEST_TOKEN
        assert auth.user.name == "Ada Teacher"
        assert await auth.check_auth()

    @pytest.mark.asyncio
    async def test_logout_clears_even_when_server_is_down(self, container, backend):
        def down(request):
            raise httpx.ConnectError("unreachable", request=request)

        backend.add("POST", "/auth/logout", handler=down)
        auth = container.auth_service
        await auth.hydrate()

        await auth.logout()

        assert auth.token is None
        assert not auth.is_authenticated
        assert await container.store.get_item(AUTH_STORAGE_KEY) is None
        assert backend.requests[0].headers["Authorization"] == f"Bearer {TEST_TOKEN}"

    @pytest.mark.asyncio
    async def test_update_user_persists(self, container):
        auth = container.auth_service
        await auth.hydrate()
        await auth.update_user(name="Ada L.")

        stored = json.loads(await container.store.get_item(AUTH_STORAGE_KEY))
        assert stored["state"]["user"]["name"] == "Ada L."
        assert stored["state"]["token"] == TEST_TOKEN


class TestRegistration:
    """Test sign-up and password recovery."""

    @pytest.mark.asyncio
    async def test_register_then_verify(self, container, backend):
        backend.add("POST", "/auth/register_teacher", {"message": "OTP has been sent", "registrationToken": "reg-1"})
        backend.add("POST", "/auth/verify_registration", {"message": "Registration successful"})
        auth = container.auth_service

        token = await auth.register_teacher(" Grace ", "GRACE@uni.edu", "secret1")
        assert token == "reg-1"
        assert backend.body_of(backend.requests[0]) == {
            "name": "Grace",
            "email": "grace@uni.edu",
            "password": "secret1",
            "role": "teacher",
        }

        await auth.verify_registration(token, "123456")
        assert auth.registration_token is None

    @pytest.mark.asyncio
    async def test_short_password_rejected_locally(self, container, backend):
        with pytest.raises(ValidationError):
            await container.auth_service.register_teacher("Grace", "grace@uni.edu", "123")
        assert backend.requests == []

    @pytest.mark.asyncio
    async def test_password_reset(self, container, backend):
        backend.add("POST", "/auth/request_otp", {"message": "If the email exists, an OTP was sent"})
        backend.add("POST", "/auth/verify_otp", {"success": True})
        auth = container.auth_service

        await auth.request_password_reset_otp("grace@uni.edu")
        await auth.verify_otp_and_reset_password("grace@uni.edu", "654321", "newpass1")

        assert backend.body_of(backend.requests[0]) == {
            "email": "grace@uni.edu",
            "purpose": "password_reset",
        }
        assert backend.body_of(backend.requests[1])["newPassword"] == "newpass1"

    @pytest.mark.asyncio
    async def test_verify_email_logs_in(self, container, backend):
        backend.add("POST", "/auth/verify_email", {"message": "Email verified successfully", "token": "t2", "user": USER})
        auth = container.auth_service
        auth.verification_token = "verify-me"

        user = await auth.verify_email("verify-me", "111111")

        assert user.email == "grace@uni.edu"
        assert auth.token == "t2"
        assert auth.verification_token is None

    @pytest.mark.asyncio
    async def test_network_failure_is_recorded(self, container, backend):
        def down(request):
            raise httpx.ConnectError("unreachable", request=request)

        backend.add("POST", "/auth/request_otp", handler=down)
        with pytest.raises(NetworkError):
            await container.auth_service.request_password_reset_otp("grace@uni.edu")
        assert container.auth_service.error
