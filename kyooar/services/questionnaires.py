"""
Questionnaire and question operations that raise instead of returning Results.

The stores in kyooar.session.questionnaires call these; any failed call
surfaces as ApiRequestError carrying the best display message.
"""

import logging
from typing import Any, List

from kyooar.models import (
    CreateQuestionRequest,
    CreateQuestionnaireRequest,
    GenerateQuestionnaireRequest,
    GeneratedQuestion,
    Question,
    Questionnaire,
    UpdateQuestionRequest,
)
from kyooar.platform.api_client import ApiClient
from kyooar.platform.errors import ApiRequestError, handle_api_error
from kyooar.platform.result import Err, Result

logger = logging.getLogger(__name__)


def _unwrap(result: Result, default: Any = None) -> Any:
    if isinstance(result, Err):
        raise ApiRequestError(handle_api_error(result.error), cause=result.error)
    if result.value is None:
        return default
    return result.value


class QuestionnaireApi:
    """Questionnaires of an organization, plus AI generation per product."""

    def __init__(self, client: ApiClient):
        self._client = client

    async def list_questionnaires(self, organization_id: str) -> List[Questionnaire]:
        return _unwrap(await self._client.list_questionnaires(organization_id), default=[])

    async def get_questionnaire(self, organization_id: str, questionnaire_id: str) -> Questionnaire:
        return _unwrap(await self._client.get_questionnaire(organization_id, questionnaire_id))

    async def create_questionnaire(self, organization_id: str, data: CreateQuestionnaireRequest) -> Questionnaire:
        return _unwrap(await self._client.create_questionnaire(organization_id, data))

    async def update_questionnaire(self, organization_id: str, questionnaire_id: str, data: dict) -> Questionnaire:
        return _unwrap(await self._client.update_questionnaire(organization_id, questionnaire_id, data))

    async def delete_questionnaire(self, organization_id: str, questionnaire_id: str) -> None:
        _unwrap(await self._client.delete_questionnaire(organization_id, questionnaire_id))

    async def generate_questions(self, product_id: str) -> List[GeneratedQuestion]:
        return _unwrap(await self._client.generate_questions(product_id), default=[])

    async def generate_and_save_questionnaire(
        self, product_id: str, data: GenerateQuestionnaireRequest
    ) -> Questionnaire:
        questionnaire = _unwrap(await self._client.generate_questionnaire(product_id, data))
        logger.info(
            "Generated questionnaire",
            extra={"product_id": product_id, "questionnaire_id": getattr(questionnaire, "id", None)},
        )
        return questionnaire


class QuestionApi:
    """Questions attached to a product."""

    def __init__(self, client: ApiClient):
        self._client = client

    async def get_questions_by_product(self, organization_id: str, product_id: str) -> List[Question]:
        return _unwrap(await self._client.list_questions(organization_id, product_id), default=[])

    async def create_question(self, organization_id: str, product_id: str, data: CreateQuestionRequest) -> Question:
        return _unwrap(await self._client.create_question(organization_id, product_id, data))

    async def get_question(self, organization_id: str, product_id: str, question_id: str) -> Question:
        return _unwrap(await self._client.get_question(organization_id, product_id, question_id))

    async def update_question(
        self, organization_id: str, product_id: str, question_id: str, data: UpdateQuestionRequest
    ) -> Question:
        return _unwrap(await self._client.update_question(organization_id, product_id, question_id, data))

    async def delete_question(self, organization_id: str, product_id: str, question_id: str) -> None:
        _unwrap(await self._client.delete_question(organization_id, product_id, question_id))

    async def reorder_questions(self, organization_id: str, product_id: str, question_ids: List[str]) -> None:
        _unwrap(await self._client.reorder_questions(organization_id, product_id, question_ids))
