"""
Async client for the Kyooar REST API (/api/v1).

Handles:
- Bearer authentication with the current session token
- Envelope parsing into Ok / Err results
- The session interceptor: a 401/403 that is not EMAIL_NOT_VERIFIED runs the
  on_unauthorized callback (the auth session logs out) and raises
  SessionExpiredError so the page can redirect to /login
- Cancellation of in-flight requests by cancel token

Every endpoint returns a Result; nothing here raises for ordinary API
failures except SessionExpiredError.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional, Type

import httpx
from pydantic import BaseModel, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from kyooar.models import (
    CreateQuestionRequest,
    CreateQuestionnaireRequest,
    Feedback,
    GenerateQuestionnaireRequest,
    GeneratedQuestion,
    PermissionCheck,
    Plan,
    Question,
    Questionnaire,
    Subscription,
    SubscriptionUsage,
    UpdateQuestionRequest,
)
from kyooar.platform.errors import ApiError, SessionExpiredError
from kyooar.platform.result import Err, Ok, Result

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"

UnauthorizedHandler = Callable[[ApiError], Awaitable[None]]


def _payload(body: Any) -> Any:
    if isinstance(body, BaseModel):
        return body.model_dump(exclude_none=True, mode="json")
    return body


class ApiClient:
    """
    Client for the Kyooar API.

    One instance per session. The token is set by the auth session after
    login and cleared on logout.
    """

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        *,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        on_unauthorized: Optional[UnauthorizedHandler] = None,
    ):
        """
        Initialize the client.

        Args:
            base_url: API origin, e.g. http://localhost:8080
            token: Optional bearer token for an existing session
            timeout: Request timeout in seconds
            transport: Optional httpx transport (tests inject MockTransport)
            on_unauthorized: Callback run before SessionExpiredError is raised
        """
        self.base_url = base_url.rstrip("/")
        self._token = token
        self.on_unauthorized = on_unauthorized
        self._abort_controllers: Dict[str, asyncio.Task] = {}
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers={"Content-Type": "application/json"},
            timeout=timeout,
            transport=transport,
        )

    @property
    def token(self) -> Optional[str]:
        return self._token

    def set_token(self, token: Optional[str]) -> None:
        self._token = token

    async def close(self):
        """Close the HTTP client."""
        await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    # ------------------------------------------------------------------
    # Cancellation
    # ------------------------------------------------------------------

    def abort_request(self, cancel_token: str) -> bool:
        """Cancel the in-flight request registered under cancel_token."""
        task = self._abort_controllers.pop(cancel_token, None)
        if task is None or task.done():
            return False
        task.cancel()
        logger.info("Aborted API request", extra={"cancel_token": cancel_token})
        return True

    # ------------------------------------------------------------------
    # Core request
    # ------------------------------------------------------------------

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: Optional[dict] = None,
        secure: bool = True,
        intercept_auth: bool = True,
        cancel_token: Optional[str] = None,
        parse: Optional[Callable[[Any], Any]] = None,
    ) -> Result:
        """
        Send a request and unwrap the response envelope.

        Args:
            method: HTTP method
            path: Path below the API origin, e.g. /api/v1/plans
            json: Request body (pydantic models are dumped)
            params: Query parameters
            secure: Attach the bearer token when one is set
            intercept_auth: Run the session interceptor on 401/403
            cancel_token: Register the call so abort_request() can cancel it
            parse: Converts the envelope ``data`` into a typed value

        Returns:
            Ok(data, meta) or Err(ApiError)

        Raises:
            SessionExpiredError: 401/403 other than EMAIL_NOT_VERIFIED
        """
        headers = {}
        if secure and self._token:
            headers["Authorization"] = f"Bearer {self._token}"

        if cancel_token is not None:
            task = asyncio.current_task()
            if task is not None:
                self._abort_controllers[cancel_token] = task

        try:
            response = await self._client.request(
                method,
                path,
                json=_payload(json),
                params={k: v for k, v in (params or {}).items() if v is not None} or None,
                headers=headers,
            )
        except httpx.HTTPError as e:
            logger.error(
                "Kyooar API request failed",
                extra={"method": method, "path": path, "error": str(e)},
            )
            return Err(ApiError(f"Network error: {e}", code="NETWORK_ERROR"))
        finally:
            if cancel_token is not None:
                self._abort_controllers.pop(cancel_token, None)

        body = self._read_body(response)

        if response.is_error:
            error = ApiError.from_body(body, status_code=response.status_code)
            logger.warning(
                "Kyooar API error",
                extra={
                    "method": method,
                    "path": path,
                    "status_code": response.status_code,
                    "error_code": error.code,
                },
            )
            if intercept_auth and error.is_auth_failure:
                await self._handle_unauthorized(error)
                raise SessionExpiredError(error)
            return Err(error)

        if isinstance(body, dict) and "success" in body:
            if not body.get("success"):
                return Err(ApiError.from_body(body, status_code=response.status_code))
            data = body.get("data")
            meta = body.get("meta")
        else:
            data = body
            meta = None

        if parse is not None and data is not None:
            try:
                data = parse(data)
            except (PydanticValidationError, TypeError, ValueError) as e:
                logger.error(
                    "Invalid response from Kyooar API",
                    extra={"method": method, "path": path, "error": str(e)},
                )
                return Err(ApiError("Invalid response from server", code="INVALID_RESPONSE"))

        return Ok(data, meta)

    @staticmethod
    def _read_body(response: httpx.Response) -> Any:
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return None

    async def _handle_unauthorized(self, error: ApiError) -> None:
        if self.on_unauthorized is None:
            return
        try:
            await self.on_unauthorized(error)
        except Exception:
            logger.exception("Unauthorized handler failed")

    @staticmethod
    def _model(model: Type[BaseModel]) -> Callable[[Any], Any]:
        return model.model_validate

    @staticmethod
    def _list_of(model: Type[BaseModel]) -> Callable[[Any], Any]:
        return TypeAdapter(list[model]).validate_python

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    async def login(self, email: str, password: str) -> Result:
        return await self.request(
            "POST", f"{API_PREFIX}/auth/login",
            json={"email": email, "password": password},
            secure=False, intercept_auth=False,
        )

    async def register(self, payload: dict) -> Result:
        return await self.request(
            "POST", f"{API_PREFIX}/auth/register",
            json=payload, secure=False, intercept_auth=False,
        )

    async def refresh(self) -> Result:
        return await self.request("POST", f"{API_PREFIX}/auth/refresh")

    async def forgot_password(self, email: str) -> Result:
        return await self.request(
            "POST", f"{API_PREFIX}/auth/forgot-password",
            json={"email": email}, secure=False, intercept_auth=False,
        )

    async def reset_password(self, token: str, new_password: str) -> Result:
        return await self.request(
            "POST", f"{API_PREFIX}/auth/reset-password",
            json={"token": token, "new_password": new_password},
            secure=False, intercept_auth=False,
        )

    async def send_verification(self) -> Result:
        return await self.request("POST", f"{API_PREFIX}/auth/send-verification")

    async def verify_email(self, token: str) -> Result:
        return await self.request(
            "GET", f"{API_PREFIX}/auth/verify-email",
            params={"token": token}, secure=False, intercept_auth=False,
        )

    # ------------------------------------------------------------------
    # Plans and subscription
    # ------------------------------------------------------------------

    async def list_plans(self) -> Result:
        return await self.request(
            "GET", f"{API_PREFIX}/plans",
            secure=False, intercept_auth=False, parse=self._list_of(Plan),
        )

    async def get_subscription(self) -> Result:
        return await self.request("GET", f"{API_PREFIX}/user/subscription", parse=self._model(Subscription))

    async def create_subscription(self, plan_id: str) -> Result:
        return await self.request(
            "POST", f"{API_PREFIX}/user/subscription",
            json={"plan_id": plan_id}, parse=self._model(Subscription),
        )

    async def cancel_subscription(self) -> Result:
        return await self.request("DELETE", f"{API_PREFIX}/user/subscription")

    async def get_usage(self) -> Result:
        return await self.request(
            "GET", f"{API_PREFIX}/user/subscription/usage",
            parse=self._model(SubscriptionUsage),
        )

    async def can_create_organization(self) -> Result:
        return await self.request(
            "GET", f"{API_PREFIX}/user/can-create-organization",
            parse=self._model(PermissionCheck),
        )

    # ------------------------------------------------------------------
    # Organizations and products
    # ------------------------------------------------------------------

    async def list_organizations(self) -> Result:
        return await self.request("GET", f"{API_PREFIX}/organizations")

    async def get_organization(self, organization_id: str) -> Result:
        return await self.request("GET", f"{API_PREFIX}/organizations/{organization_id}")

    async def create_organization(self, payload: dict) -> Result:
        return await self.request("POST", f"{API_PREFIX}/organizations", json=payload)

    async def update_organization(self, organization_id: str, payload: dict) -> Result:
        return await self.request("PUT", f"{API_PREFIX}/organizations/{organization_id}", json=payload)

    async def delete_organization(self, organization_id: str) -> Result:
        return await self.request("DELETE", f"{API_PREFIX}/organizations/{organization_id}")

    async def list_products(self, organization_id: str) -> Result:
        return await self.request("GET", f"{API_PREFIX}/organizations/{organization_id}/products")

    # ------------------------------------------------------------------
    # Questionnaires
    # ------------------------------------------------------------------

    async def list_questionnaires(self, organization_id: str) -> Result:
        return await self.request(
            "GET", f"{API_PREFIX}/organizations/{organization_id}/questionnaires",
            parse=self._list_of(Questionnaire),
        )

    async def create_questionnaire(self, organization_id: str, payload: CreateQuestionnaireRequest) -> Result:
        return await self.request(
            "POST", f"{API_PREFIX}/organizations/{organization_id}/questionnaires",
            json=payload, parse=self._model(Questionnaire),
        )

    async def get_questionnaire(self, organization_id: str, questionnaire_id: str) -> Result:
        return await self.request(
            "GET", f"{API_PREFIX}/organizations/{organization_id}/questionnaires/{questionnaire_id}",
            parse=self._model(Questionnaire),
        )

    async def update_questionnaire(self, organization_id: str, questionnaire_id: str, payload: dict) -> Result:
        return await self.request(
            "PUT", f"{API_PREFIX}/organizations/{organization_id}/questionnaires/{questionnaire_id}",
            json=payload, parse=self._model(Questionnaire),
        )

    async def delete_questionnaire(self, organization_id: str, questionnaire_id: str) -> Result:
        return await self.request(
            "DELETE", f"{API_PREFIX}/organizations/{organization_id}/questionnaires/{questionnaire_id}",
        )

    async def generate_questions(self, product_id: str) -> Result:
        return await self.request(
            "POST", f"{API_PREFIX}/ai/generate-questions/{product_id}",
            parse=self._list_of(GeneratedQuestion),
        )

    async def generate_questionnaire(self, product_id: str, payload: GenerateQuestionnaireRequest) -> Result:
        return await self.request(
            "POST", f"{API_PREFIX}/ai/generate-questionnaire/{product_id}",
            json=payload, parse=self._model(Questionnaire),
        )

    # ------------------------------------------------------------------
    # Questions
    # ------------------------------------------------------------------

    def _questions_path(self, organization_id: str, product_id: str) -> str:
        return f"{API_PREFIX}/organizations/{organization_id}/products/{product_id}/questions"

    async def list_questions(self, organization_id: str, product_id: str) -> Result:
        return await self.request(
            "GET", self._questions_path(organization_id, product_id),
            parse=self._list_of(Question),
        )

    async def create_question(self, organization_id: str, product_id: str, payload: CreateQuestionRequest) -> Result:
        return await self.request(
            "POST", self._questions_path(organization_id, product_id),
            json=payload, parse=self._model(Question),
        )

    async def get_question(self, organization_id: str, product_id: str, question_id: str) -> Result:
        return await self.request(
            "GET", f"{self._questions_path(organization_id, product_id)}/{question_id}",
            parse=self._model(Question),
        )

    async def update_question(
        self, organization_id: str, product_id: str, question_id: str, payload: UpdateQuestionRequest,
    ) -> Result:
        return await self.request(
            "PUT", f"{self._questions_path(organization_id, product_id)}/{question_id}",
            json=payload, parse=self._model(Question),
        )

    async def delete_question(self, organization_id: str, product_id: str, question_id: str) -> Result:
        return await self.request(
            "DELETE", f"{self._questions_path(organization_id, product_id)}/{question_id}",
        )

    async def reorder_questions(self, organization_id: str, product_id: str, question_ids: list[str]) -> Result:
        return await self.request(
            "POST", f"{self._questions_path(organization_id, product_id)}/reorder",
            json={"question_ids": list(question_ids)},
        )

    # ------------------------------------------------------------------
    # QR codes
    # ------------------------------------------------------------------

    async def list_qr_codes(self, organization_id: str) -> Result:
        return await self.request("GET", f"{API_PREFIX}/organizations/{organization_id}/qr-codes")

    async def create_qr_code(self, organization_id: str, payload: dict) -> Result:
        return await self.request(
            "POST", f"{API_PREFIX}/organizations/{organization_id}/qr-codes", json=payload,
        )

    async def delete_qr_code(self, qr_code_id: str) -> Result:
        return await self.request("DELETE", f"{API_PREFIX}/qr-codes/{qr_code_id}")

    # ------------------------------------------------------------------
    # Public feedback flow
    # ------------------------------------------------------------------

    async def public_qr(self, code: str) -> Result:
        return await self.request(
            "GET", f"{API_PREFIX}/public/qr/{code}", secure=False, intercept_auth=False,
        )

    async def public_questionnaire(self, organization_id: str, product_id: str) -> Result:
        return await self.request(
            "GET", f"{API_PREFIX}/public/questionnaire/{organization_id}/{product_id}",
            secure=False, intercept_auth=False, parse=self._model(Questionnaire),
        )

    async def submit_feedback(self, payload: dict) -> Result:
        return await self.request(
            "POST", f"{API_PREFIX}/public/feedback",
            json=payload, secure=False, intercept_auth=False,
        )

    # ------------------------------------------------------------------
    # Analytics, feedback and team
    # ------------------------------------------------------------------

    async def organization_analytics(self, organization_id: str) -> Result:
        return await self.request("GET", f"{API_PREFIX}/analytics/organizations/{organization_id}")

    async def list_feedback(self, organization_id: str, page: int = 1, limit: int = 20) -> Result:
        return await self.request(
            "GET", f"{API_PREFIX}/organizations/{organization_id}/feedback",
            params={"page": page, "limit": limit}, parse=self._list_of(Feedback),
        )

    async def list_team_members(self) -> Result:
        return await self.request("GET", f"{API_PREFIX}/team/members")
