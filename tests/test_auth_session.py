"""
Tests for AuthSession: login, logout, rehydration and token refresh.
"""

import json
import threading

import httpx
import pytest

from kyooar.models import Subscription
from kyooar.platform.api_client import ApiClient
from kyooar.platform.errors import SessionExpiredError
from kyooar.session.auth import AuthSession, AuthStatus, User
from kyooar.session.storage import AUTH_TOKEN_KEY, AUTH_USER_KEY, SessionStorage
from kyooar.session.subscription import SubscriptionSession


class _Routes:
    """Programmable MockTransport handler keyed by (method, path)."""

    def __init__(self):
        self.responses = {}
        self.calls = []

    def add(self, method, path, status_code, body):
        self.responses[(method, path)] = (status_code, body)

    def __call__(self, request):
        self.calls.append((request.method, request.url.path))
        status_code, body = self.responses.get(
            (request.method, request.url.path),
            (404, {"success": False, "error": {"code": "NOT_FOUND", "message": "no route"}}),
        )
        return httpx.Response(status_code, json=body)


@pytest.fixture
def routes():
    return _Routes()


@pytest.fixture
def storage():
    return SessionStorage("session-1")


@pytest.fixture
def session(routes, storage):
    client = ApiClient("http://api.test", transport=httpx.MockTransport(routes))
    return AuthSession(client, storage)


class TestLogin:
    @pytest.mark.asyncio
    async def test_login_persists_token_and_user(self, session, routes, storage, make_token, pro_features):
        token = make_token(features=pro_features, member_id="mem-7", name="Mia", role="ADMIN")
        routes.add("POST", "/api/v1/auth/login", 200, {"success": True, "data": {"token": token}})

        outcome = await session.login("owner@example.com", "secret")

        assert outcome.success is True
        state = session.state
        assert state.status == AuthStatus.AUTHENTICATED
        assert state.is_authenticated is True
        assert state.user.id == "mem-7"
        assert state.user.account_id == "acct-1"
        assert state.user.email_verified is True
        assert state.subscription_features == pro_features
        assert storage.get(AUTH_TOKEN_KEY) == token
        assert storage.get_json(AUTH_USER_KEY)["name"] == "Mia"
        assert session.client.token == token

    @pytest.mark.asyncio
    async def test_user_id_falls_back_to_account_id(self, session, routes, make_token):
        routes.add("POST", "/api/v1/auth/login", 200, {"success": True, "data": {"token": make_token()}})

        await session.login("owner@example.com", "secret")

        assert session.state.user.id == "acct-1"

    @pytest.mark.asyncio
    async def test_unverified_email_is_not_an_error(self, session, routes, storage):
        routes.add(
            "POST",
            "/api/v1/auth/login",
            403,
            {"success": False, "error": {"code": "EMAIL_NOT_VERIFIED", "message": "Please verify"}},
        )

        outcome = await session.login("new@example.com", "secret")

        assert outcome.unverified is True
        assert outcome.email == "new@example.com"
        assert session.state.error is None
        assert session.state.status == AuthStatus.ANONYMOUS
        assert storage.get(AUTH_TOKEN_KEY) is None

    @pytest.mark.asyncio
    async def test_bad_credentials_set_error(self, session, routes):
        routes.add(
            "POST",
            "/api/v1/auth/login",
            401,
            {"success": False, "error": {"code": "INVALID_CREDENTIALS", "message": "Invalid email or password"}},
        )

        outcome = await session.login("owner@example.com", "wrong")

        assert outcome.success is False
        assert outcome.error == "Invalid email or password"
        assert session.state.status == AuthStatus.ERROR
        assert session.state.token is None
        assert session.state.user is None

        session.clear_error()
        assert session.state.status == AuthStatus.ANONYMOUS
        assert session.state.error is None

    @pytest.mark.asyncio
    async def test_undecodable_token_is_rejected(self, session, routes):
        routes.add("POST", "/api/v1/auth/login", 200, {"success": True, "data": {"token": "not.a.jwt"}})

        outcome = await session.login("owner@example.com", "secret")

        assert outcome.error == "Invalid token received"
        assert session.state.is_authenticated is False

    @pytest.mark.asyncio
    async def test_missing_token_is_rejected(self, session, routes):
        routes.add("POST", "/api/v1/auth/login", 200, {"success": True, "data": {}})

        outcome = await session.login("owner@example.com", "secret")

        assert outcome.error == "Invalid response from server"


class TestStorageOffLoop:
    @pytest.mark.asyncio
    async def test_login_and_logout_write_storage_in_worker_thread(self, routes, fake_redis, make_token):
        """Blocking storage calls never run on the event loop thread."""
        writer_threads = []
        setex, delete = fake_redis.setex, fake_redis.delete

        def recording_setex(*args):
            writer_threads.append(threading.get_ident())
            return setex(*args)

        def recording_delete(*args):
            writer_threads.append(threading.get_ident())
            return delete(*args)

        fake_redis.setex = recording_setex
        fake_redis.delete = recording_delete
        client = ApiClient("http://api.test", transport=httpx.MockTransport(routes))
        session = AuthSession(client, SessionStorage("session-2", client=fake_redis))
        routes.add("POST", "/api/v1/auth/login", 200, {"success": True, "data": {"token": make_token()}})

        await session.login("owner@example.com", "secret")
        await session.logout()

        assert len(writer_threads) == 4
        assert threading.get_ident() not in writer_threads


class TestLogout:
    @pytest.mark.asyncio
    async def test_logout_clears_everything(self, session, routes, storage, make_token, starter_features):
        routes.add("POST", "/api/v1/auth/login", 200, {"success": True, "data": {"token": make_token(features=starter_features)}})
        subscription = SubscriptionSession(session.client)
        subscription.set_subscription_data(Subscription(id="sub-1", status="active"))
        session.add_logout_listener(subscription.reset)
        await session.login("owner@example.com", "secret")

        await session.logout()

        assert session.state.status == AuthStatus.ANONYMOUS
        assert session.state.token is None
        assert session.state.subscription_features is None
        assert storage.get(AUTH_TOKEN_KEY) is None
        assert storage.get(AUTH_USER_KEY) is None
        assert session.client.token is None
        assert subscription.state.subscription is None

    @pytest.mark.asyncio
    async def test_async_listener_is_awaited(self, session):
        seen = []

        async def listener():
            seen.append("reset")

        session.add_logout_listener(listener)
        await session.logout()

        assert seen == ["reset"]

    @pytest.mark.asyncio
    async def test_api_401_logs_out(self, session, routes, storage, make_token):
        routes.add("POST", "/api/v1/auth/login", 200, {"success": True, "data": {"token": make_token()}})
        routes.add("GET", "/api/v1/organizations", 401, {"success": False, "error": {"code": "UNAUTHORIZED", "message": "expired"}})
        await session.login("owner@example.com", "secret")

        with pytest.raises(SessionExpiredError):
            await session.client.list_organizations()

        assert session.state.is_authenticated is False
        assert storage.get(AUTH_TOKEN_KEY) is None


class TestRehydrate:
    def test_restores_stored_session(self, session, storage, make_token):
        token = make_token()
        storage.set(AUTH_TOKEN_KEY, token)
        storage.set_json(AUTH_USER_KEY, User(id="acct-1", email="owner@example.com", email_verified=True).to_dict())

        state = session.rehydrate()

        assert state.is_authenticated is True
        assert state.user.email == "owner@example.com"
        assert session.client.token == token

    def test_corrupt_user_json_clears_both_keys(self, session, storage, make_token):
        storage.set(AUTH_TOKEN_KEY, make_token())
        storage.set(AUTH_USER_KEY, "{not json")

        state = session.rehydrate()

        assert state.status == AuthStatus.ANONYMOUS
        assert storage.get(AUTH_TOKEN_KEY) is None
        assert storage.get(AUTH_USER_KEY) is None

    def test_user_without_id_is_discarded(self, session, storage, make_token):
        storage.set(AUTH_TOKEN_KEY, make_token())
        storage.set(AUTH_USER_KEY, json.dumps({"email": "owner@example.com"}))

        assert session.rehydrate().is_authenticated is False
        assert storage.get(AUTH_TOKEN_KEY) is None

    def test_token_without_user_is_anonymous(self, session, storage, make_token):
        storage.set(AUTH_TOKEN_KEY, make_token())

        assert session.rehydrate().is_authenticated is False


class TestRefresh:
    @pytest.mark.asyncio
    async def test_refresh_replaces_token_and_features(self, session, routes, storage, make_token, starter_features, pro_features):
        routes.add("POST", "/api/v1/auth/login", 200, {"success": True, "data": {"token": make_token(features=starter_features)}})
        await session.login("owner@example.com", "secret")
        new_token = make_token(features=pro_features)
        routes.add("POST", "/api/v1/auth/refresh", 200, {"success": True, "data": {"token": new_token}})

        assert await session.refresh_token() is True

        assert session.state.token == new_token
        assert session.state.subscription_features == pro_features
        assert session.state.is_authenticated is True
        assert storage.get(AUTH_TOKEN_KEY) == new_token

    @pytest.mark.asyncio
    async def test_failed_refresh_logs_out(self, session, routes, make_token):
        routes.add("POST", "/api/v1/auth/login", 200, {"success": True, "data": {"token": make_token()}})
        routes.add("POST", "/api/v1/auth/refresh", 500, {"success": False, "error": {"code": "INTERNAL", "message": "boom"}})
        await session.login("owner@example.com", "secret")

        assert await session.refresh_token() is False
        assert session.state.is_authenticated is False

    @pytest.mark.asyncio
    async def test_rejected_refresh_logs_out(self, session, routes, make_token):
        routes.add("POST", "/api/v1/auth/login", 200, {"success": True, "data": {"token": make_token()}})
        routes.add("POST", "/api/v1/auth/refresh", 401, {"success": False, "error": {"code": "UNAUTHORIZED", "message": "expired"}})
        await session.login("owner@example.com", "secret")

        assert await session.refresh_token() is False
        assert session.state.is_authenticated is False
        assert [c for c in routes.calls if c[1] == "/api/v1/auth/refresh"] == [("POST", "/api/v1/auth/refresh")]

    @pytest.mark.asyncio
    async def test_rejected_refresh_notifies_listeners_once(self, session, routes, make_token):
        """A 401 on refresh ends the session through the unauthorized handler only."""
        routes.add("POST", "/api/v1/auth/login", 200, {"success": True, "data": {"token": make_token()}})
        routes.add("POST", "/api/v1/auth/refresh", 401, {"success": False, "error": {"code": "UNAUTHORIZED", "message": "expired"}})
        await session.login("owner@example.com", "secret")
        logouts = []
        session.add_logout_listener(lambda: logouts.append(1))

        assert await session.refresh_token() is False
        assert logouts == [1]


class TestUpdates:
    @pytest.mark.asyncio
    async def test_update_token_changes_email(self, session, routes, storage, make_token):
        routes.add("POST", "/api/v1/auth/login", 200, {"success": True, "data": {"token": make_token()}})
        await session.login("owner@example.com", "secret")

        assert session.update_token(make_token(email="renamed@example.com")) is True

        assert session.state.user.email == "renamed@example.com"
        assert storage.get_json(AUTH_USER_KEY)["email"] == "renamed@example.com"

    def test_update_token_rejects_garbage(self, session):
        assert session.update_token("garbage") is False
        assert session.state.token is None

    def test_update_user_persists(self, session, storage):
        session.update_user(User(id="u1", email="u1@example.com", phone="555"))
        assert storage.get_json(AUTH_USER_KEY)["phone"] == "555"
