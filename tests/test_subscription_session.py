import httpx
import pytest

from kyooar.models import Plan, PlanFeatures, Subscription, SubscriptionUsage
from kyooar.platform.api_client import ApiClient
from kyooar.platform.errors import ApiError, SessionExpiredError
from kyooar.session.subscription import SubscriptionSession


def _session(handler=None):
    handler = handler or (lambda request: httpx.Response(404, json={"success": False}))
    return SubscriptionSession(ApiClient("http://api.test", transport=httpx.MockTransport(handler)))


def _plan(**limits):
    return Plan(code="pro", features=PlanFeatures(limits=limits, flags={"advanced_analytics": True}))


class TestDerivedValues:
    def test_nothing_loaded(self):
        session = _session()
        assert session.current_plan is None
        assert session.is_subscribed is False
        assert session.plan_limits is None
        assert session.has_feature("basic_analytics") is False
        assert session.get_limit("max_qr_codes") == 0
        assert session.is_unlimited("max_qr_codes") is False

    @pytest.mark.parametrize("status,expected", [("active", True), ("SubscriptionActive", True), ("canceled", False)])
    def test_is_subscribed(self, status, expected):
        session = _session()
        session.set_subscription_data(Subscription(status=status, plan=_plan()))
        assert session.is_subscribed is expected

    def test_unlimited_sentinel(self):
        session = _session()
        session.set_subscription_data(Subscription(status="active", plan=_plan(max_qr_codes=-1, max_organizations=3)))

        assert session.is_unlimited("max_qr_codes") is True
        assert session.is_unlimited("max_organizations") is False
        assert session.get_limit("max_organizations") == 3

    def test_flat_plan_fields_are_read(self):
        session = _session()
        session.set_subscription_data(
            Subscription(status="active", plan=Plan(max_team_members=4, has_feedback_explorer=True))
        )

        assert session.get_limit("max_team_members") == 4
        assert session.has_feature("feedback_explorer") is True
        assert session.has_feature("custom_branding") is False

    def test_unknown_keys(self):
        session = _session()
        session.set_subscription_data(Subscription(status="active", plan=_plan(max_qr_codes=-1)))
        assert session.get_limit("max_unicorns") == 0
        assert session.is_unlimited("max_unicorns") is False
        assert session.has_feature("unicorns") is False

    def test_usage_for_maps_limit_to_counter(self):
        session = _session()
        session.state.usage = SubscriptionUsage(organizations_count=2, qr_codes_count=49, feedbacks_count=10)

        assert session.usage_for("max_organizations") == 2
        assert session.usage_for("max_qr_codes") == 49
        assert session.usage_for("max_feedbacks_per_month") == 10
        assert session.usage_for("max_unicorns") == 0


class TestFetching:
    @pytest.mark.asyncio
    async def test_fetch_subscription(self):
        def handler(request):
            return httpx.Response(200, json={"success": True, "data": {"id": "s1", "status": "active"}})

        session = _session(handler)
        subscription = await session.fetch_subscription()

        assert subscription.id == "s1"
        assert session.state.is_loading is False
        assert session.is_subscribed is True

    @pytest.mark.asyncio
    async def test_fetch_failure_records_error(self):
        def handler(request):
            return httpx.Response(500, json={"success": False, "error": {"code": "INTERNAL", "message": "Database down"}})

        session = _session(handler)
        assert await session.fetch_plans() == []
        assert session.state.error == "Database down"
        assert session.state.is_loading is False

    @pytest.mark.asyncio
    async def test_expired_session_clears_loading(self):
        def handler(request):
            return httpx.Response(401, json={"success": False, "error": {"code": "UNAUTHORIZED", "message": "expired"}})

        session = _session(handler)

        with pytest.raises(SessionExpiredError):
            await session.fetch_subscription()
        assert session.state.is_loading is False

    @pytest.mark.asyncio
    async def test_fetch_usage(self):
        def handler(request):
            assert request.url.path == "/api/v1/user/subscription/usage"
            return httpx.Response(200, json={"success": True, "data": {"qr_codes_count": 7}})

        session = _session(handler)
        await session.fetch_usage()
        assert session.usage_for("max_qr_codes") == 7

    @pytest.mark.asyncio
    async def test_check_permission(self):
        def handler(request):
            assert request.url.path == "/api/v1/user/can-create-organization"
            return httpx.Response(
                200,
                json={"success": True, "data": {"can_create": False, "reason": "Limit reached", "current_count": 1, "max_allowed": 1}},
            )

        check = await _session(handler).check_permission("organization")
        assert check.can_create is False
        assert check.max_allowed == 1

    @pytest.mark.asyncio
    async def test_check_permission_unknown_resource(self):
        with pytest.raises(ApiError):
            await _session().check_permission("spaceship")

    def test_reset(self):
        session = _session()
        session.set_subscription_data(Subscription(status="active"))
        session.reset()
        assert session.state.subscription is None
        assert session.state.plans == []
