"""
Subscription entitlements read from the console session token.

This module provides:
- decode_jwt / JwtPayload: typed view of the token claims (no signature check)
- has_feature_from_token / get_limit_from_token: flag and limit accessors
- FeatureRegistry: display metadata for limits and flags
- Route guards returning Allow or Redirect
- Team role lookups

Limits use -1 as the unlimited sentinel.
"""

from entitlements.claims import (
    FEATURES,
    LIMITS,
    UNLIMITED,
    JwtPayload,
    SubscriptionFeatures,
    decode_jwt,
    get_limit_from_token,
    get_subscription_features_from_token,
    has_feature_from_token,
    is_token_expired,
)
from entitlements.registry import (
    FeatureDefinition,
    FeatureRegistry,
    FeatureRegistryLoader,
    default_registry,
)
from entitlements.guards import (
    ALLOW,
    ROUTE_PROTECTION,
    Allow,
    GuardResult,
    LimitRequirement,
    Redirect,
    RouteProtection,
    check_route,
    first_redirect,
    require_active_subscription,
    require_auth,
    require_feature,
    require_guest,
    require_limit,
    require_no_subscription,
    require_owner,
    require_role,
    require_verified,
)
from entitlements.roles import (
    ROLE_PERMISSIONS,
    ROLES,
    TeamMember,
    can_perform_action,
    find_member,
    has_role,
)

__all__ = [
    # Claims
    "FEATURES",
    "LIMITS",
    "UNLIMITED",
    "JwtPayload",
    "SubscriptionFeatures",
    "decode_jwt",
    "get_limit_from_token",
    "get_subscription_features_from_token",
    "has_feature_from_token",
    "is_token_expired",
    # Registry
    "FeatureDefinition",
    "FeatureRegistry",
    "FeatureRegistryLoader",
    "default_registry",
    # Guards
    "ALLOW",
    "ROUTE_PROTECTION",
    "Allow",
    "GuardResult",
    "LimitRequirement",
    "Redirect",
    "RouteProtection",
    "check_route",
    "first_redirect",
    "require_active_subscription",
    "require_auth",
    "require_feature",
    "require_guest",
    "require_limit",
    "require_no_subscription",
    "require_owner",
    "require_role",
    "require_verified",
    # Roles
    "ROLE_PERMISSIONS",
    "ROLES",
    "TeamMember",
    "can_perform_action",
    "find_member",
    "has_role",
]
