from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import List, Optional

from entitlements.claims import LIMITS, UNLIMITED
from kyooar.models import PermissionCheck, Plan, PlanFeatures, Subscription, SubscriptionUsage
from kyooar.platform.api_client import ApiClient
from kyooar.platform.errors import ApiError
from kyooar.platform.result import Err

logger = logging.getLogger(__name__)

ACTIVE_STATUSES = frozenset({"active", "SubscriptionActive"})

# limit key -> SubscriptionUsage counter
_USAGE_FIELDS = {
    LIMITS["ORGANIZATIONS"]: "organizations_count",
    LIMITS["QR_CODES"]: "qr_codes_count",
    LIMITS["FEEDBACKS_PER_MONTH"]: "feedbacks_count",
    LIMITS["TEAM_MEMBERS"]: "team_members_count",
}


@dataclass
class SubscriptionState:
    subscription: Optional[Subscription] = None
    plans: List[Plan] = field(default_factory=list)
    usage: Optional[SubscriptionUsage] = None
    is_loading: bool = False
    error: Optional[str] = None


class SubscriptionSession:
    """Subscription, plan catalogue and usage for the signed-in account."""

    def __init__(self, client: ApiClient) -> None:
        self._client = client
        self.state = SubscriptionState()

    async def _load(self, call):
        """Run one fetch; is_loading is cleared even when the session expires mid-call."""
        self.state = replace(self.state, is_loading=True, error=None)
        try:
            return await call()
        finally:
            self.state = replace(self.state, is_loading=False)

    async def fetch_subscription(self) -> Optional[Subscription]:
        result = await self._load(self._client.get_subscription)
        if isinstance(result, Err) or result.value is None:
            self._failed(result, "Failed to fetch subscription")
            return None
        self.state = replace(self.state, subscription=result.value)
        return result.value

    async def fetch_plans(self) -> List[Plan]:
        result = await self._load(self._client.list_plans)
        if isinstance(result, Err) or result.value is None:
            self._failed(result, "Failed to fetch plans")
            return []
        self.state = replace(self.state, plans=list(result.value))
        return self.state.plans

    async def fetch_usage(self) -> Optional[SubscriptionUsage]:
        result = await self._load(self._client.get_usage)
        if isinstance(result, Err) or result.value is None:
            self._failed(result, "Failed to fetch usage")
            return None
        self.state = replace(self.state, usage=result.value)
        return result.value

    async def check_permission(self, resource_type: str) -> PermissionCheck:
        """
        Ask the API whether another resource of this type may be created.

        Raises:
            ApiError: unknown resource type or a failed check
        """
        if resource_type != "organization":
            raise ApiError(f"Unsupported resource type: {resource_type}", code="UNSUPPORTED_RESOURCE")

        result = await self._client.can_create_organization()
        if isinstance(result, Err):
            raise result.error
        if result.value is None:
            raise ApiError("Failed to check permission")
        return result.value

    def reset(self) -> None:
        self.state = SubscriptionState()

    def set_subscription_data(self, subscription: Subscription) -> None:
        self.state = replace(self.state, subscription=subscription, is_loading=False, error=None)

    def _failed(self, result, fallback: str) -> None:
        message = result.error.message if isinstance(result, Err) else fallback
        logger.warning(fallback, extra={"error": message})
        self.state = replace(self.state, is_loading=False, error=message or fallback)

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    @property
    def current_plan(self) -> Optional[Plan]:
        subscription = self.state.subscription
        return subscription.plan if subscription is not None else None

    @property
    def is_subscribed(self) -> bool:
        subscription = self.state.subscription
        return subscription is not None and subscription.status in ACTIVE_STATUSES

    @property
    def plan_limits(self) -> Optional[PlanFeatures]:
        plan = self.current_plan
        return plan.features if plan is not None else None

    def has_feature(self, feature_key: str) -> bool:
        plan = self.current_plan
        if plan is None:
            return False
        return plan.flag_value(feature_key)

    def get_limit(self, limit_key: str) -> int:
        plan = self.current_plan
        if plan is None or limit_key not in _USAGE_FIELDS:
            return 0
        return plan.limit_value(limit_key)

    def is_unlimited(self, limit_key: str) -> bool:
        plan = self.current_plan
        if plan is None or limit_key not in _USAGE_FIELDS:
            return False
        return plan.limit_value(limit_key) == UNLIMITED

    def usage_for(self, limit_key: str) -> int:
        usage = self.state.usage
        usage_field = _USAGE_FIELDS.get(limit_key)
        if usage is None or usage_field is None:
            return 0
        return int(getattr(usage, usage_field))
