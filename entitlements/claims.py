from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from jwt.utils import base64url_decode

logger = logging.getLogger(__name__)

UNLIMITED = -1

FEATURES = {
    "BASIC_ANALYTICS": "basic_analytics",
    "ADVANCED_ANALYTICS": "advanced_analytics",
    "FEEDBACK_EXPLORER": "feedback_explorer",
    "CUSTOM_BRANDING": "custom_branding",
    "PRIORITY_SUPPORT": "priority_support",
}

LIMITS = {
    "ORGANIZATIONS": "max_organizations",
    "QR_CODES": "max_qr_codes",
    "FEEDBACKS_PER_MONTH": "max_feedbacks_per_month",
    "TEAM_MEMBERS": "max_team_members",
}

# feature key -> claim name inside subscription_features
_FLAG_CLAIMS = {
    "basic_analytics": "has_basic_analytics",
    "advanced_analytics": "has_advanced_analytics",
    "feedback_explorer": "has_feedback_explorer",
    "custom_branding": "has_custom_branding",
    "priority_support": "has_priority_support",
}

_LIMIT_CLAIMS = frozenset(LIMITS.values())

_REQUIRED_CLAIMS = ("account_id", "email")


@dataclass(frozen=True)
class SubscriptionFeatures:
    """Entitlement snapshot embedded in the token at issuance time."""

    max_organizations: int = 0
    max_qr_codes: int = 0
    max_feedbacks_per_month: int = 0
    max_team_members: int = 0
    has_basic_analytics: bool = False
    has_advanced_analytics: bool = False
    has_feedback_explorer: bool = False
    has_custom_branding: bool = False
    has_priority_support: bool = False

    @classmethod
    def from_claims(cls, raw: Mapping[str, Any]) -> "SubscriptionFeatures":
        values: dict = {}
        for limit_key in _LIMIT_CLAIMS:
            value = raw.get(limit_key)
            if value is not None:
                values[limit_key] = int(value)
        for claim in _FLAG_CLAIMS.values():
            value = raw.get(claim)
            if value is not None:
                values[claim] = bool(value)
        return cls(**values)

    def flag(self, feature_key: str) -> bool:
        claim = _FLAG_CLAIMS.get(str(feature_key).strip())
        if claim is None:
            return False
        return bool(getattr(self, claim))

    def limit(self, limit_key: str) -> int:
        normalized = str(limit_key).strip()
        if normalized not in _LIMIT_CLAIMS:
            return 0
        return int(getattr(self, normalized))

    def is_unlimited(self, limit_key: str) -> bool:
        normalized = str(limit_key).strip()
        if normalized not in _LIMIT_CLAIMS:
            return False
        return self.limit(normalized) == UNLIMITED

    def to_claims(self) -> dict:
        return {
            "max_organizations": self.max_organizations,
            "max_qr_codes": self.max_qr_codes,
            "max_feedbacks_per_month": self.max_feedbacks_per_month,
            "max_team_members": self.max_team_members,
            "has_basic_analytics": self.has_basic_analytics,
            "has_advanced_analytics": self.has_advanced_analytics,
            "has_feedback_explorer": self.has_feedback_explorer,
            "has_custom_branding": self.has_custom_branding,
            "has_priority_support": self.has_priority_support,
        }


@dataclass(frozen=True)
class JwtPayload:
    """Decoded claims of a console session token.

    The signature is never checked here. The backend that issued the token is
    the authority; these claims only drive navigation and display.
    """

    account_id: str
    email: str
    member_id: str = ""
    name: str = ""
    role: str = ""
    subscription_features: Optional[SubscriptionFeatures] = None
    exp: Optional[int] = None
    iat: int = 0
    iss: str = ""
    sub: str = ""

    @classmethod
    def from_claims(cls, raw: Mapping[str, Any]) -> "JwtPayload":
        features_raw = raw.get("subscription_features")
        features = None
        if isinstance(features_raw, Mapping):
            features = SubscriptionFeatures.from_claims(features_raw)
        return cls(
            account_id=str(raw["account_id"]),
            email=str(raw["email"]),
            member_id=str(raw.get("member_id") or ""),
            name=str(raw.get("name") or ""),
            role=str(raw.get("role") or ""),
            subscription_features=features,
            exp=int(raw["exp"]) if raw.get("exp") is not None else None,
            iat=int(raw.get("iat") or 0),
            iss=str(raw.get("iss") or ""),
            sub=str(raw.get("sub") or ""),
        )


def decode_jwt(token: Optional[str]) -> Optional[JwtPayload]:
    """Decode the payload segment of a token, or None when it is unusable."""
    if not token or not isinstance(token, str):
        logger.warning("Failed to decode JWT", extra={"reason": "empty token"})
        return None

    if len(token.split(".")) != 3:
        logger.warning("Failed to decode JWT", extra={"reason": "invalid JWT format"})
        return None

    # only the claims segment is read; header and signature are left to the API
    try:
        raw = json.loads(base64url_decode(token.split(".")[1]))
    except (TypeError, ValueError) as exc:
        logger.warning("Failed to decode JWT", extra={"reason": str(exc)})
        return None

    if not isinstance(raw, dict):
        logger.warning("Failed to decode JWT", extra={"reason": "payload is not an object"})
        return None

    for claim in _REQUIRED_CLAIMS:
        if not raw.get(claim):
            logger.warning("Failed to decode JWT", extra={"reason": f"missing claim {claim}"})
            return None

    try:
        return JwtPayload.from_claims(raw)
    except (TypeError, ValueError) as exc:
        logger.warning("Failed to decode JWT", extra={"reason": str(exc)})
        return None


def is_token_expired(token: Optional[str], now: Optional[float] = None) -> bool:
    payload = decode_jwt(token)
    if payload is None:
        return True
    if payload.exp is None:
        return False
    compare_at = time.time() if now is None else now
    return compare_at >= payload.exp


def get_subscription_features_from_token(token: Optional[str]) -> Optional[SubscriptionFeatures]:
    payload = decode_jwt(token)
    if payload is None:
        return None
    return payload.subscription_features


def has_feature_from_token(token: Optional[str], feature_key: str) -> bool:
    features = get_subscription_features_from_token(token)
    if features is None:
        return False
    return features.flag(feature_key)


def get_limit_from_token(token: Optional[str], limit_key: str) -> int:
    """Numeric limit for the key; 0 when absent, -1 means unlimited."""
    features = get_subscription_features_from_token(token)
    if features is None:
        return 0
    return features.limit(limit_key)
