"""
Authentication state for one console session.

AuthSession owns the session token, the user derived from its claims and the
entitlement snapshot embedded in it. It is constructed explicitly with an
ApiClient and a SessionStorage; nothing here is a module-level singleton.
Storage is synchronous, so the async methods reach it through the threadpool.

Status lifecycle:
    anonymous -> authenticating -> authenticated
    authenticating -> error (failed login) -> anonymous (clear_error)
    authenticated -> anonymous (logout, failed refresh, 401/403 from the API)
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, replace
from enum import Enum
from typing import Any, Awaitable, Callable, List, Mapping, Optional, Union

from fastapi.concurrency import run_in_threadpool

from entitlements.claims import SubscriptionFeatures, decode_jwt, get_subscription_features_from_token
from kyooar.platform.api_client import ApiClient
from kyooar.platform.errors import ApiError, SessionExpiredError
from kyooar.platform.result import Err
from kyooar.session.storage import AUTH_TOKEN_KEY, AUTH_USER_KEY, SessionStorage

logger = logging.getLogger(__name__)

LogoutListener = Callable[[], Union[None, Awaitable[None]]]


class AuthStatus(str, Enum):
    ANONYMOUS = "anonymous"
    AUTHENTICATING = "authenticating"
    AUTHENTICATED = "authenticated"
    ERROR = "error"


@dataclass
class User:
    id: str
    email: str
    name: str = ""
    phone: str = ""
    email_verified: bool = False
    deactivation_requested_at: Optional[str] = None
    account_id: Optional[str] = None
    role: Optional[str] = None

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "User":
        """Build from persisted JSON; raises ValueError on a malformed record."""
        if not isinstance(raw, Mapping):
            raise ValueError("stored user must be an object")
        if not raw.get("id") or not raw.get("email"):
            raise ValueError("stored user is missing id or email")
        return cls(
            id=str(raw["id"]),
            email=str(raw["email"]),
            name=str(raw.get("name") or ""),
            phone=str(raw.get("phone") or ""),
            email_verified=bool(raw.get("email_verified", False)),
            deactivation_requested_at=raw.get("deactivation_requested_at"),
            account_id=raw.get("account_id"),
            role=raw.get("role"),
        )

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class AuthState:
    user: Optional[User] = None
    token: Optional[str] = None
    subscription_features: Optional[SubscriptionFeatures] = None
    error: Optional[str] = None
    status: AuthStatus = AuthStatus.ANONYMOUS

    @property
    def is_authenticated(self) -> bool:
        return self.status == AuthStatus.AUTHENTICATED

    @property
    def is_loading(self) -> bool:
        return self.status == AuthStatus.AUTHENTICATING


@dataclass(frozen=True)
class LoginOutcome:
    success: bool
    unverified: bool = False
    email: Optional[str] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class RegisterOutcome:
    success: bool
    error: Optional[str] = None


class AuthSession:
    """Auth store bound to one ApiClient and one SessionStorage."""

    def __init__(self, client: ApiClient, storage: SessionStorage) -> None:
        self._client = client
        self._storage = storage
        self._logout_listeners: List[LogoutListener] = []
        self.state = AuthState()
        client.on_unauthorized = self._on_unauthorized

    @property
    def client(self) -> ApiClient:
        return self._client

    def add_logout_listener(self, listener: LogoutListener) -> None:
        """Run listener on every logout (the subscription session resets itself here)."""
        self._logout_listeners.append(listener)

    # ------------------------------------------------------------------
    # Rehydration
    # ------------------------------------------------------------------

    def rehydrate(self) -> AuthState:
        """Restore state from storage; corrupt records are discarded."""
        token = self._storage.get(AUTH_TOKEN_KEY)
        try:
            raw_user = self._storage.get_json(AUTH_USER_KEY)
            user = User.from_dict(raw_user) if token and raw_user is not None else None
        except ValueError as e:
            logger.warning("Discarding corrupt stored session", extra={"error": str(e)})
            user = None

        if user is None:
            self._clear_storage()
            self.state = AuthState()
            return self.state

        self._client.set_token(token)
        self.state = AuthState(
            user=user,
            token=token,
            subscription_features=get_subscription_features_from_token(token),
            status=AuthStatus.AUTHENTICATED,
        )
        return self.state

    # ------------------------------------------------------------------
    # Login / register / logout
    # ------------------------------------------------------------------

    async def login(self, email: str, password: str) -> LoginOutcome:
        self.state = replace(self.state, status=AuthStatus.AUTHENTICATING, error=None)

        result = await self._client.login(email, password)

        if isinstance(result, Err):
            if result.error.is_email_not_verified:
                logger.info("Login blocked until email is verified", extra={"email": email})
                self.state = replace(self.state, status=AuthStatus.ANONYMOUS, error=None)
                return LoginOutcome(success=False, unverified=True, email=email)
            return self._login_failed(result.error.message or "Login failed")

        data = result.value if isinstance(result.value, Mapping) else {}
        token = data.get("token")
        if not token:
            return self._login_failed("Invalid response from server")

        if not await run_in_threadpool(self.adopt_token, token):
            return self._login_failed("Invalid token received")

        logger.info("User logged in", extra={"account_id": self.state.user.account_id})
        return LoginOutcome(success=True)

    def adopt_token(self, token: str) -> bool:
        """
        Authenticate with a token issued by the API and persist it.

        The user is derived from the claims; a session that can present a
        token has a verified email.
        """
        payload = decode_jwt(token)
        if payload is None:
            return False

        user = User(
            id=payload.member_id or payload.account_id,
            email=payload.email,
            name=payload.name,
            email_verified=True,
            account_id=payload.account_id,
            role=payload.role or None,
        )

        self._storage.set(AUTH_TOKEN_KEY, token)
        self._storage.set_json(AUTH_USER_KEY, user.to_dict())
        self._client.set_token(token)

        self.state = AuthState(
            user=user,
            token=token,
            subscription_features=payload.subscription_features,
            status=AuthStatus.AUTHENTICATED,
        )
        return True

    def _login_failed(self, message: str) -> LoginOutcome:
        logger.warning("Login failed", extra={"error": message})
        self.state = AuthState(status=AuthStatus.ERROR, error=message)
        return LoginOutcome(success=False, error=message)

    async def register(self, payload: Mapping[str, Any]) -> RegisterOutcome:
        self.state = replace(self.state, error=None)

        result = await self._client.register(dict(payload))

        if isinstance(result, Err):
            message = result.error.message or "Registration failed"
            self.state = replace(self.state, error=message)
            return RegisterOutcome(success=False, error=message)

        return RegisterOutcome(success=True)

    async def logout(self) -> None:
        await run_in_threadpool(self._clear_storage)
        self._client.set_token(None)

        for listener in self._logout_listeners:
            outcome = listener()
            if outcome is not None:
                await outcome

        self.state = AuthState()
        logger.info("User logged out")

    async def _on_unauthorized(self, error: ApiError) -> None:
        logger.warning(
            "Session rejected by API, logging out",
            extra={"status_code": error.status_code, "error_code": error.code},
        )
        await self.logout()

    def _clear_storage(self) -> None:
        self._storage.remove(AUTH_TOKEN_KEY)
        self._storage.remove(AUTH_USER_KEY)

    # ------------------------------------------------------------------
    # Token maintenance
    # ------------------------------------------------------------------

    async def refresh_token(self) -> bool:
        """Exchange the token once; any failure ends the session."""
        try:
            result = await self._client.refresh()
        except SessionExpiredError:
            # the unauthorized handler has already logged out
            return False

        token = None
        if not isinstance(result, Err) and isinstance(result.value, Mapping):
            token = result.value.get("token")

        if not token:
            logger.warning("Token refresh failed, logging out")
            await self.logout()
            return False

        await run_in_threadpool(self._storage.set, AUTH_TOKEN_KEY, token)
        self._client.set_token(token)
        self.state = replace(
            self.state,
            token=token,
            subscription_features=get_subscription_features_from_token(token),
        )
        return True

    def update_token(self, token: str) -> bool:
        """Adopt a token issued elsewhere (e.g. after an email change)."""
        payload = decode_jwt(token)
        if payload is None:
            logger.error("Failed to update token: invalid token payload")
            return False

        self._storage.set(AUTH_TOKEN_KEY, token)
        user = self.state.user
        if user is not None and payload.email:
            user = replace(user, email=payload.email)
            self._storage.set_json(AUTH_USER_KEY, user.to_dict())

        self._client.set_token(token)
        self.state = replace(
            self.state,
            token=token,
            subscription_features=payload.subscription_features,
            user=user,
        )
        return True

    def update_user(self, user: User) -> None:
        self.state = replace(self.state, user=user)
        self._storage.set_json(AUTH_USER_KEY, user.to_dict())

    def clear_error(self) -> None:
        status = AuthStatus.ANONYMOUS if self.state.status == AuthStatus.ERROR else self.state.status
        self.state = replace(self.state, error=None, status=status)
