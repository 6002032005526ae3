"""
Console configuration loaded from the environment.

Environment variables:
- KYOOAR_API_URL: base URL of the Kyooar API (default http://localhost:8080)
- REDIS_URL: session storage backend; in-memory storage is used when unset
- KYOOAR_REQUEST_TIMEOUT: HTTP timeout in seconds (default 30)
- KYOOAR_SESSION_TTL_SECONDS: lifetime of persisted session keys (default 7 days)
"""

import logging
import os
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "http://localhost:8080"
DEFAULT_REQUEST_TIMEOUT = 30.0
DEFAULT_SESSION_TTL_SECONDS = 7 * 24 * 3600


@dataclass
class AppConfig:
    """Runtime configuration for the console."""
    api_base_url: str = DEFAULT_API_URL
    redis_url: Optional[str] = None
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    session_ttl_seconds: int = DEFAULT_SESSION_TTL_SECONDS

    @classmethod
    def from_env(cls) -> "AppConfig":
        """Load configuration from environment variables."""
        api_base_url = os.getenv("KYOOAR_API_URL")
        if not api_base_url:
            logger.warning(
                "KYOOAR_API_URL not configured, using default",
                extra={"default": DEFAULT_API_URL},
            )
            api_base_url = DEFAULT_API_URL

        return cls(
            api_base_url=api_base_url.rstrip("/"),
            redis_url=os.getenv("REDIS_URL") or None,
            request_timeout=float(os.getenv("KYOOAR_REQUEST_TIMEOUT", DEFAULT_REQUEST_TIMEOUT)),
            session_ttl_seconds=int(os.getenv("KYOOAR_SESSION_TTL_SECONDS", DEFAULT_SESSION_TTL_SECONDS)),
        )
