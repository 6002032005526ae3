"""
FastAPI side of the route guards.

Guards return a GuardResult; this module turns a Redirect into a
NavigationRedirect, which the app renders as a 303.

    @router.get("/analytics", dependencies=[Depends(protect("/analytics"))])
"""

import logging
from typing import Callable, Optional, Sequence

from fastapi import Depends, Request

from entitlements.guards import (
    GuardResult,
    ROUTE_PROTECTION,
    Redirect,
    RouteProtection,
    check_route,
    require_active_subscription,
    require_no_subscription,
)
from kyooar.api.dependencies.context import ConsoleContext, get_console_context
from kyooar.platform.errors import NavigationRedirect
from kyooar.platform.result import Ok

logger = logging.getLogger(__name__)


def enforce(result: GuardResult, path: Optional[str] = None) -> None:
    """Continue on Allow; abort navigation on Redirect."""
    if isinstance(result, Redirect):
        logger.info(
            "Navigation redirected",
            extra={"path": path, "location": result.location, "reason": result.reason},
        )
        raise NavigationRedirect(result.location, status_code=result.status_code)


async def _team_members(context: ConsoleContext) -> list:
    result = await context.client.list_team_members()
    if isinstance(result, Ok) and isinstance(result.value, list):
        return result.value
    return []


def protect(route: str, protection: Optional[RouteProtection] = None) -> Callable:
    """
    Dependency factory enforcing a RouteProtection.

    Args:
        route: Route key, looked up in ROUTE_PROTECTION when protection is omitted
        protection: Explicit protection for routes outside the table
    """
    config = protection or ROUTE_PROTECTION[route]

    async def _check(
        request: Request,
        context: ConsoleContext = Depends(get_console_context),
    ) -> ConsoleContext:
        team_members: Sequence = ()
        if config.roles and context.auth.state.is_authenticated:
            team_members = await _team_members(context)

        usage = None
        if config.require_limit is not None and context.auth.state.is_authenticated:
            await context.subscription.fetch_usage()
            limit_key = config.require_limit.limit_key
            usage = {limit_key: context.subscription.usage_for(limit_key)}

        enforce(
            check_route(context.auth.state, config, team_members=team_members, usage=usage),
            path=request.url.path,
        )
        return context

    return _check


async def active_subscription(
    request: Request,
    context: ConsoleContext = Depends(get_console_context),
) -> ConsoleContext:
    enforce(require_active_subscription(context.auth.state), path=request.url.path)
    return context


async def no_subscription(
    request: Request,
    context: ConsoleContext = Depends(get_console_context),
) -> ConsoleContext:
    enforce(require_no_subscription(context.auth.state), path=request.url.path)
    return context
