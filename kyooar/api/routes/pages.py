"""
Page-load endpoints of the console.

Each endpoint runs the guards for its route, then returns the data the page
needs as JSON. A guard failure becomes a 303 to the guard's redirect target.
"""

import logging

from fastapi import APIRouter, Depends

from kyooar.api.dependencies.context import ConsoleContext, get_console_context
from kyooar.api.dependencies.guards import no_subscription, protect
from kyooar.platform.errors import NotFoundError
from kyooar.platform.result import Ok

logger = logging.getLogger(__name__)

router = APIRouter(tags=["pages"])


def _user_payload(context: ConsoleContext):
    user = context.auth.state.user
    return user.to_dict() if user is not None else None


@router.get("/")
async def home(context: ConsoleContext = Depends(get_console_context)):
    """Landing page: public plan catalogue, empty when the API is unreachable."""
    result = await context.client.list_plans()
    plans = []
    if isinstance(result, Ok) and result.value:
        plans = [plan.model_dump(mode="json") for plan in result.value]
    else:
        logger.warning("Failed to fetch plans for landing page")
    return {"user": _user_payload(context), "plans": plans}


@router.get("/dashboard")
async def dashboard(context: ConsoleContext = Depends(protect("/dashboard"))):
    return {"user": _user_payload(context)}


@router.get("/analytics")
async def analytics(context: ConsoleContext = Depends(protect("/analytics"))):
    return {"user": _user_payload(context)}


@router.get("/analytics/comparison")
async def analytics_comparison(context: ConsoleContext = Depends(protect("/analytics/comparison"))):
    return {"user": _user_payload(context)}


@router.get("/analytics/grouped")
async def analytics_grouped(context: ConsoleContext = Depends(protect("/analytics/grouped"))):
    return {"user": _user_payload(context)}


@router.get("/feedback/manage")
async def feedback_manage(context: ConsoleContext = Depends(protect("/feedback/manage"))):
    return {"user": _user_payload(context)}


@router.get("/organizations")
async def organizations(context: ConsoleContext = Depends(protect("/organizations"))):
    result = await context.client.list_organizations()
    items = result.value if isinstance(result, Ok) and result.value else []
    return {"user": _user_payload(context), "organizations": items}


@router.get("/organizations/new")
async def organization_new(context: ConsoleContext = Depends(protect("/organizations/new"))):
    return {"user": _user_payload(context)}


@router.get("/organizations/{organization_id}")
async def organization_detail(
    organization_id: str,
    context: ConsoleContext = Depends(protect("/organizations/{id}")),
):
    result = await context.client.get_organization(organization_id)
    if not isinstance(result, Ok) or not result.value:
        logger.warning(
            "Error loading organization",
            extra={"organization_id": organization_id},
        )
        raise NotFoundError("Organization", organization_id)
    return {"organization": result.value, "organization_id": organization_id}


@router.get("/organizations/{organization_id}/edit")
async def organization_edit(
    organization_id: str,
    context: ConsoleContext = Depends(protect("/organizations/{id}/edit")),
):
    return {"organization_id": organization_id}


@router.get("/organizations/{organization_id}/qr-codes")
async def organization_qr_codes(
    organization_id: str,
    context: ConsoleContext = Depends(protect("/organizations/{id}/qr-codes")),
):
    result = await context.client.list_qr_codes(organization_id)
    qr_codes = result.value if isinstance(result, Ok) and result.value else []
    return {"organization_id": organization_id, "qr_codes": qr_codes}


@router.get("/organizations/{organization_id}/questionnaire/{product_id}")
async def product_questionnaire(
    organization_id: str,
    product_id: str,
    context: ConsoleContext = Depends(protect("/organizations/{id}/questionnaire/{product_id}")),
):
    return {"organization_id": organization_id, "product_id": product_id}


@router.get("/settings")
async def settings(context: ConsoleContext = Depends(protect("/settings"))):
    return {"user": _user_payload(context)}


@router.get("/settings/billing")
async def settings_billing(context: ConsoleContext = Depends(protect("/settings/billing"))):
    return {"user": _user_payload(context)}


@router.get("/pricing")
async def pricing(context: ConsoleContext = Depends(no_subscription)):
    result = await context.client.list_plans()
    plans = []
    if isinstance(result, Ok) and result.value:
        plans = [plan.model_dump(mode="json") for plan in result.value]
    return {"plans": plans}
