import re
from typing import Any, Dict, Optional

from unitrack.schemas.auth_schemas import RegisterTeacherRequest, User
from unitrack.services.base_service import BaseStoreService, parse_response, validate_input
from unitrack.services.remote_client import error_for_status, server_message_of
from unitrack.services.response_classifiers import is_auth_success
from unitrack.storage.persisted_state import AUTH_STORAGE_KEY
from unitrack.utils.errors import (
    EmailNotVerifiedError,
    UniTrackError,
    UnsuccessfulResponseError,
    ValidationError,
)
from unitrack.utils.logging import get_logger

logger = get_logger()

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def validate_email(email: str) -> str:
    email = (email or "").strip().lower()
    if not EMAIL_PATTERN.match(email):
        raise ValidationError("Please enter a valid email address", "INVALID_EMAIL")
    return email


class AuthService(BaseStoreService):
    """
    Teacher sign-up, sign-in and password recovery.

    Only `user` and `token` are persisted. The registration and verification
    tokens live for a single flow and are dropped on restart.
    """

    storage_key = AUTH_STORAGE_KEY

    def __init__(self, client, store=None, guard=None):
        super().__init__(client, store, guard)
        self.user: Optional[User] = None
        self.token: Optional[str] = None
        self.registration_token: Optional[str] = None
        self.verification_token: Optional[str] = None
        self.is_authenticated = False

    def persisted_fields(self) -> Dict[str, Any]:
        return {
            "user": self.user.model_dump(by_alias=True) if self.user else None,
            "token": self.token,
        }

    async def hydrate(self) -> None:
        state = await self.load_persisted()
        user = state.get("user")
        self.user = User.model_validate(user) if user else None
        self.token = state.get("token")
        self.is_authenticated = bool(self.user and self.token)
        self.is_loading = False

    async def check_auth(self) -> bool:
        self.is_authenticated = bool(self.token and self.user)
        self.is_loading = False
        return self.is_authenticated

    async def _post(self, path: str, body: Dict[str, Any], failure_message: str) -> Dict[str, Any]:
        return await self.client.call(
            path,
            "POST",
            body=body,
            authenticate=False,
            success=is_auth_success,
            failure_message=failure_message,
        )

    async def register_teacher(self, name: str, email: str, password: str) -> Optional[str]:
        """Start a registration. Returns the registration token the OTP step needs."""
        request = validate_input(
            RegisterTeacherRequest, name=name, email=validate_email(email), password=password
        )
        async with self.guard("register"), self._tracked("Registration failed"):
            response = await self._post(
                "/auth/register_teacher", request.model_dump(), "Registration failed"
            )
            self.registration_token = response.get("registrationToken")
            logger.info(f"Registration started for {request.email}")
            return self.registration_token

    async def verify_registration(self, registration_token: str, otp: str) -> None:
        async with self.guard("verify-registration"), self._tracked("Verification failed"):
            await self._post(
                "/auth/verify_registration",
                {"registrationToken": registration_token, "otp": otp},
                "Verification failed",
            )
            self.registration_token = None

    async def login(self, email: str, password: str) -> User:
        """
        Sign in and persist the session.

        Raises:
            EmailNotVerifiedError: the account exists but is unverified. The
                verification token is kept on the service for the OTP screen.
        """
        email = validate_email(email)
        async with self.guard("login"), self._tracked("Login failed"):
            status, payload = await self.client.raw_call(
                "/auth/login",
                "POST",
                body={"email": email, "password": password},
                authenticate=False,
            )

            if not 200 <= status < 300:
                if payload.get("error") == "Email not verified" and payload.get(
                    "verificationToken"
                ):
                    self.verification_token = payload["verificationToken"]
                    raise EmailNotVerifiedError(
                        self.verification_token, status, payload["error"], payload
                    )
                raise error_for_status(status, payload)

            if not (payload.get("token") and payload.get("user")):
                raise UnsuccessfulResponseError(
                    status, server_message_of(payload) or "Login failed", payload
                )

            self.user = parse_response(User, payload["user"], status)
            self.token = payload["token"]
            self.is_authenticated = True
            await self.persist()
            logger.info(f"Signed in as {self.user.email}")
            return self.user

    async def request_verification_code(
        self, email: str, verification_token: Optional[str] = None
    ) -> Optional[str]:
        async with self._tracked("Failed to request verification code"):
            response = await self._post(
                "/auth/request_verification_code",
                {
                    "email": validate_email(email),
                    "verificationToken": verification_token or self.verification_token,
                },
                "Failed to request verification code",
            )
            self.verification_token = response.get("verificationToken") or self.verification_token
            return self.verification_token

    async def verify_email(self, verification_token: str, otp: str) -> Optional[User]:
        """Confirm the OTP. The backend may log the user straight in."""
        async with self.guard("verify-email"), self._tracked("Email verification failed"):
            response = await self._post(
                "/auth/verify_email",
                {"verificationToken": verification_token, "otp": otp},
                "Email verification failed",
            )
            self.verification_token = None
            if response.get("token") and response.get("user"):
                self.user = parse_response(User, response["user"])
                self.token = response["token"]
                self.is_authenticated = True
                await self.persist()
            return self.user

    async def logout(self) -> None:
        """Tell the backend when possible. Local state is cleared either way."""
        self.is_loading = True
        try:
            if self.token:
                await self.client.call("/auth/logout", "POST", token=self.token)
        except UniTrackError as e:
            logger.warning(f"Logout request failed, clearing local session anyway: {e.message}")
        finally:
            self.user = None
            self.token = None
            self.is_authenticated = False
            self.registration_token = None
            self.verification_token = None
            self.error = None
            self.is_loading = False
            if self.persisted is not None:
                await self.persisted.clear()

    async def request_password_reset_otp(self, email: str) -> None:
        async with self._tracked("Failed to request password reset"):
            await self._post(
                "/auth/request_otp",
                {"email": validate_email(email), "purpose": "password_reset"},
                "Failed to request password reset",
            )

    async def verify_otp_and_reset_password(self, email: str, otp: str, new_password: str) -> None:
        if len(new_password or "") < 6:
            raise ValidationError("Password must be at least 6 characters", "REQUIRED_FIELD")
        async with self.guard("reset-password"), self._tracked("Password reset failed"):
            await self._post(
                "/auth/verify_otp",
                {
                    "email": validate_email(email),
                    "otp": otp,
                    "purpose": "password_reset",
                    "newPassword": new_password,
                },
                "Password reset failed",
            )

    async def update_user(self, **fields: Any) -> Optional[User]:
        if self.user is None:
            return None
        self.user = self.user.model_copy(update=fields)
        await self.persist()
        return self.user

    def clear_tokens(self) -> None:
        self.registration_token = None
        self.verification_token = None
