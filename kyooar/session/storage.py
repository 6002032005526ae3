from __future__ import annotations

import json
import logging
import time
from typing import Any, Dict, Optional

import redis

from kyooar.config.constants import STORAGE_KEYS

logger = logging.getLogger(__name__)

AUTH_TOKEN_KEY = STORAGE_KEYS["auth_token"]
AUTH_USER_KEY = STORAGE_KEYS["auth_user"]

DEFAULT_TTL_SECONDS = 7 * 24 * 3600


class SessionStorage:
    """Redis-backed per-session key/value storage with in-memory fallback."""

    def __init__(
        self,
        session_id: str,
        *,
        redis_url: Optional[str] = None,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        client: Any = None,
        memory: Optional[Dict[str, tuple[int, str]]] = None,
    ) -> None:
        self._session_id = self._require_session_id(session_id)
        self._ttl_seconds = ttl_seconds
        self._redis = client
        # shared across SessionStorage instances when the caller passes one
        self._mem: Dict[str, tuple[int, str]] = memory if memory is not None else {}

        if self._redis is None and redis_url:
            try:
                self._redis = redis.from_url(redis_url, decode_responses=True)
                self._redis.ping()
            except redis.RedisError as e:
                logger.warning(
                    "Redis unavailable, using in-memory session storage",
                    extra={"error": str(e)},
                )
                self._redis = None

    @property
    def session_id(self) -> str:
        return self._session_id

    @property
    def uses_redis(self) -> bool:
        return self._redis is not None

    @staticmethod
    def _require_session_id(session_id: str) -> str:
        normalized = str(session_id).strip()
        if not normalized:
            raise ValueError("session_id is required")
        return normalized

    def _key(self, name: str) -> str:
        return f"kyooar:session:v1:{self._session_id}:{name}"

    def get(self, name: str) -> Optional[str]:
        key = self._key(name)

        if self._redis is not None:
            return self._redis.get(key)

        data = self._mem.get(key)
        if not data:
            return None

        stored_at, value = data
        if int(time.time()) - stored_at > self._ttl_seconds:
            self._mem.pop(key, None)
            return None
        return value

    def set(self, name: str, value: str, *, ttl_seconds: Optional[int] = None) -> None:
        ttl = ttl_seconds or self._ttl_seconds
        key = self._key(name)

        if self._redis is not None:
            self._redis.setex(key, ttl, value)
            return

        self._mem[key] = (int(time.time()), value)

    def remove(self, name: str) -> None:
        key = self._key(name)
        if self._redis is not None:
            self._redis.delete(key)
        self._mem.pop(key, None)

    def get_json(self, name: str) -> Any:
        """Stored JSON value; raises ValueError when the stored text is corrupt."""
        raw = self.get(name)
        if raw is None:
            return None
        return json.loads(raw)

    def set_json(self, name: str, value: Any, *, ttl_seconds: Optional[int] = None) -> None:
        self.set(name, json.dumps(value), ttl_seconds=ttl_seconds)
