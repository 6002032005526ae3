"""
Per-request console context.

A request carries its session token either as ``Authorization: Bearer ...``
or in the ``auth_token`` cookie, and its session id in the
``kyooar_session`` cookie. get_console_context builds an ApiClient and the
session containers around them and closes the client when the request ends.

A request without a session cookie cannot be found again, so its state is
kept in a per-request dict and never written to Redis or the shared map.
Session storage is synchronous redis; the context is built in the threadpool.

Tests replace the whole context with app.dependency_overrides.
"""

import logging
import uuid
from dataclasses import dataclass
from typing import AsyncIterator, Optional

from fastapi import Request
from fastapi.concurrency import run_in_threadpool

from entitlements.claims import is_token_expired
from kyooar.config.settings import AppConfig
from kyooar.platform.api_client import ApiClient
from kyooar.session.auth import AuthSession
from kyooar.session.storage import AUTH_TOKEN_KEY, SessionStorage
from kyooar.session.subscription import SubscriptionSession

logger = logging.getLogger(__name__)

SESSION_COOKIE = "kyooar_session"


@dataclass
class ConsoleContext:
    config: AppConfig
    client: ApiClient
    storage: SessionStorage
    auth: AuthSession
    subscription: SubscriptionSession


def get_config(request: Request) -> AppConfig:
    config = getattr(request.app.state, "config", None)
    if config is None:
        config = AppConfig.from_env()
        request.app.state.config = config
    return config


def extract_token(request: Request) -> Optional[str]:
    """Bearer header first, then the auth_token cookie."""
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        token = auth_header[len("Bearer "):].strip()
        if token:
            return token
    return request.cookies.get(AUTH_TOKEN_KEY) or None


def build_context(
    config: AppConfig,
    session_id: str,
    token: Optional[str] = None,
    *,
    redis_client=None,
    memory: Optional[dict] = None,
    transport=None,
) -> ConsoleContext:
    """Wire client, storage and sessions for one request and restore auth state."""
    client = ApiClient(config.api_base_url, timeout=config.request_timeout, transport=transport)
    storage = SessionStorage(
        session_id,
        ttl_seconds=config.session_ttl_seconds,
        client=redis_client,
        memory=memory,
    )
    auth = AuthSession(client, storage)
    subscription = SubscriptionSession(client)
    auth.add_logout_listener(subscription.reset)

    if token and not is_token_expired(token):
        if not auth.adopt_token(token):
            logger.info("Ignoring undecodable session token", extra={"session_id": session_id})
    else:
        auth.rehydrate()
        if auth.state.token and is_token_expired(auth.state.token):
            logger.info("Stored session token expired", extra={"session_id": session_id})
            storage.remove(AUTH_TOKEN_KEY)
            auth.rehydrate()

    return ConsoleContext(
        config=config,
        client=client,
        storage=storage,
        auth=auth,
        subscription=subscription,
    )


async def get_console_context(request: Request) -> AsyncIterator[ConsoleContext]:
    config = get_config(request)
    session_id = request.cookies.get(SESSION_COOKIE)
    if session_id:
        redis_client = getattr(request.app.state, "redis", None)
        memory = getattr(request.app.state, "session_memory", None)
    else:
        session_id = str(uuid.uuid4())
        redis_client = None
        memory = {}

    context = await run_in_threadpool(
        build_context,
        config,
        session_id,
        extract_token(request),
        redis_client=redis_client,
        memory=memory,
    )
    try:
        yield context
    finally:
        await context.client.close()
