"""
Route guards evaluated before a console page is loaded.

Every guard returns a GuardResult instead of raising: either ALLOW or a
Redirect naming where navigation should go. The router adapter in
kyooar.api.dependencies.guards turns a Redirect into an HTTP 303.

Guards read an auth view: any object exposing ``is_authenticated``,
``token`` and ``user`` (with ``id``, ``account_id``, ``email`` and
``email_verified``). kyooar.session.auth.AuthState satisfies it.

Decoded claims are a navigation hint only. The API re-checks every
entitlement server-side.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Optional, Protocol, Sequence, Union

from .claims import FEATURES, LIMITS, UNLIMITED, get_limit_from_token, get_subscription_features_from_token, has_feature_from_token
from .roles import has_role

logger = logging.getLogger(__name__)

LOGIN_PATH = "/login"
PRICING_PATH = "/pricing"
DASHBOARD_PATH = "/dashboard"
EMAIL_VERIFICATION_PATH = "/email-verification"


class AuthView(Protocol):
    is_authenticated: bool
    token: Optional[str]
    user: Any


@dataclass(frozen=True)
class Allow:
    """Navigation may continue."""

    @property
    def allowed(self) -> bool:
        return True


@dataclass(frozen=True)
class Redirect:
    """Navigation must go elsewhere."""

    location: str
    status_code: int = 303
    reason: str = ""

    @property
    def allowed(self) -> bool:
        return False


GuardResult = Union[Allow, Redirect]

ALLOW = Allow()


def first_redirect(*results: GuardResult) -> GuardResult:
    for result in results:
        if isinstance(result, Redirect):
            return result
    return ALLOW


def _user_attr(auth: AuthView, name: str, default: Any = None) -> Any:
    user = getattr(auth, "user", None)
    if user is None:
        return default
    if isinstance(user, Mapping):
        return user.get(name, default)
    return getattr(user, name, default)


def require_auth(auth: AuthView, redirect_to: str = LOGIN_PATH) -> GuardResult:
    if not auth.is_authenticated:
        return Redirect(redirect_to, reason="not_authenticated")
    return ALLOW


def require_guest(auth: AuthView, redirect_to: str = DASHBOARD_PATH) -> GuardResult:
    if auth.is_authenticated:
        return Redirect(redirect_to, reason="already_authenticated")
    return ALLOW


def require_verified(auth: AuthView, redirect_to: str = EMAIL_VERIFICATION_PATH) -> GuardResult:
    if not _user_attr(auth, "email_verified", False):
        return Redirect(redirect_to, reason="email_not_verified")
    return ALLOW


def require_owner(auth: AuthView, redirect_to: str = DASHBOARD_PATH) -> GuardResult:
    user_id = _user_attr(auth, "id")
    if not user_id or user_id != _user_attr(auth, "account_id"):
        return Redirect(redirect_to, reason="not_owner")
    return ALLOW


def require_active_subscription(auth: AuthView, redirect_to: str = PRICING_PATH) -> GuardResult:
    if not auth.is_authenticated:
        return Redirect(LOGIN_PATH, reason="not_authenticated")
    if get_subscription_features_from_token(auth.token) is None:
        return Redirect(redirect_to, reason="no_subscription")
    return ALLOW


def require_no_subscription(auth: AuthView, redirect_to: str = DASHBOARD_PATH) -> GuardResult:
    if auth.is_authenticated and get_subscription_features_from_token(auth.token) is not None:
        return Redirect(redirect_to, reason="already_subscribed")
    return ALLOW


def require_feature(auth: AuthView, feature_key: str, redirect_to: Optional[str] = None) -> GuardResult:
    if not has_feature_from_token(auth.token, feature_key):
        logger.info(
            "Route denied - feature not entitled",
            extra={"feature_key": feature_key, "account_id": _user_attr(auth, "account_id")},
        )
        return Redirect(redirect_to or PRICING_PATH, reason="feature_denied")
    return ALLOW


def require_limit(
    auth: AuthView,
    limit_key: str,
    current_usage: int,
    redirect_to: Optional[str] = None,
) -> GuardResult:
    limit = get_limit_from_token(auth.token, limit_key)
    if limit != UNLIMITED and int(current_usage) >= limit:
        logger.info(
            "Route denied - limit reached",
            extra={"limit_key": limit_key, "limit": limit, "usage": current_usage},
        )
        return Redirect(redirect_to or PRICING_PATH, reason="limit_reached")
    return ALLOW


def require_role(
    auth: AuthView,
    team_members: Iterable[Any],
    roles: Sequence[str],
    redirect_to: str = DASHBOARD_PATH,
) -> GuardResult:
    if not roles:
        return ALLOW
    email = _user_attr(auth, "email", "") or ""
    user_id = _user_attr(auth, "id", "") or ""
    if not has_role(team_members, email, user_id, roles):
        return Redirect(redirect_to, reason="role_denied")
    return ALLOW


@dataclass(frozen=True)
class LimitRequirement:
    limit_key: str
    redirect_on_exceeded: bool = True


@dataclass(frozen=True)
class RouteProtection:
    """Declarative protection for one route, checked in a fixed order."""

    require_auth: bool = False
    require_verified: bool = False
    require_owner: bool = False
    require_subscription: bool = False
    require_feature: Optional[str] = None
    require_limit: Optional[LimitRequirement] = None
    roles: Sequence[str] = field(default_factory=tuple)
    redirect_to: Optional[str] = None


def check_route(
    auth: AuthView,
    protection: RouteProtection,
    *,
    team_members: Iterable[Any] = (),
    usage: Optional[Mapping[str, int]] = None,
) -> GuardResult:
    """Run every check a RouteProtection declares; the first redirect wins."""
    if protection.require_auth or protection.require_verified or protection.require_owner or protection.roles:
        result = require_auth(auth, redirect_to=protection.redirect_to or LOGIN_PATH)
        if not result.allowed:
            return result

    if protection.require_verified:
        result = require_verified(auth)
        if not result.allowed:
            return result

    if protection.require_owner:
        result = require_owner(auth)
        if not result.allowed:
            return result

    if protection.require_subscription:
        result = require_active_subscription(auth, redirect_to=protection.redirect_to or PRICING_PATH)
        if not result.allowed:
            return result

    if protection.require_feature:
        result = require_feature(auth, protection.require_feature, redirect_to=protection.redirect_to)
        if not result.allowed:
            return result

    if protection.require_limit is not None and protection.require_limit.redirect_on_exceeded:
        current = int((usage or {}).get(protection.require_limit.limit_key, 0))
        result = require_limit(auth, protection.require_limit.limit_key, current, redirect_to=protection.redirect_to)
        if not result.allowed:
            return result

    if protection.roles:
        result = require_role(auth, team_members, protection.roles)
        if not result.allowed:
            return result

    return ALLOW


_EDITOR_ROLES = ("OWNER", "ADMIN", "MANAGER")

ROUTE_PROTECTION = {
    "/dashboard": RouteProtection(require_subscription=True),
    "/analytics": RouteProtection(require_feature=FEATURES["BASIC_ANALYTICS"]),
    "/analytics/comparison": RouteProtection(require_feature=FEATURES["ADVANCED_ANALYTICS"]),
    "/analytics/grouped": RouteProtection(require_feature=FEATURES["ADVANCED_ANALYTICS"]),
    "/feedback/manage": RouteProtection(require_feature=FEATURES["FEEDBACK_EXPLORER"]),
    "/organizations": RouteProtection(require_subscription=True),
    "/organizations/new": RouteProtection(
        require_verified=True,
        roles=_EDITOR_ROLES,
        require_limit=LimitRequirement(LIMITS["ORGANIZATIONS"]),
    ),
    "/organizations/{id}": RouteProtection(require_auth=True),
    "/organizations/{id}/edit": RouteProtection(require_verified=True, roles=_EDITOR_ROLES),
    "/organizations/{id}/qr-codes": RouteProtection(require_subscription=True),
    "/organizations/{id}/questionnaire/{product_id}": RouteProtection(require_verified=True),
    "/settings": RouteProtection(require_verified=True),
    "/settings/billing": RouteProtection(require_owner=True, roles=("OWNER",), redirect_to="/settings"),
}
