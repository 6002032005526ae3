from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import List, Optional

from kyooar.models import (
    CreateQuestionRequest,
    CreateQuestionnaireRequest,
    GenerateQuestionnaireRequest,
    GeneratedQuestion,
    Question,
    Questionnaire,
    UpdateQuestionRequest,
)
from kyooar.platform.errors import ApiRequestError
from kyooar.services.questionnaires import QuestionApi, QuestionnaireApi

logger = logging.getLogger(__name__)


@dataclass
class QuestionnaireState:
    questionnaires: List[Questionnaire] = field(default_factory=list)
    current: Optional[Questionnaire] = None
    generated_questions: List[GeneratedQuestion] = field(default_factory=list)
    loading: bool = False
    error: Optional[str] = None


class QuestionnaireStore:
    """Questionnaires of one organization and the one being edited."""

    def __init__(self, api: QuestionnaireApi) -> None:
        self._api = api
        self.state = QuestionnaireState()

    def _start(self) -> None:
        self.state = replace(self.state, loading=True, error=None)

    def _fail(self, error: ApiRequestError) -> None:
        logger.warning("Questionnaire operation failed", extra={"error": error.message})
        self.state = replace(self.state, loading=False, error=error.message)

    def _done(self) -> None:
        self.state = replace(self.state, loading=False)

    async def load_questionnaires(self, organization_id: str) -> List[Questionnaire]:
        """Load the list; a failure is recorded in state, not raised."""
        self._start()
        try:
            questionnaires = await self._api.list_questionnaires(organization_id)
        except ApiRequestError as e:
            self._fail(e)
            return []
        finally:
            self._done()
        self.state = replace(self.state, questionnaires=list(questionnaires), loading=False)
        return self.state.questionnaires

    async def load_questionnaire(self, organization_id: str, questionnaire_id: str) -> Questionnaire:
        self._start()
        try:
            questionnaire = await self._api.get_questionnaire(organization_id, questionnaire_id)
        except ApiRequestError as e:
            self._fail(e)
            raise
        finally:
            self._done()
        self.state = replace(self.state, current=questionnaire, loading=False)
        return questionnaire

    async def create_questionnaire(
        self, organization_id: str, data: CreateQuestionnaireRequest
    ) -> Questionnaire:
        self._start()
        try:
            questionnaire = await self._api.create_questionnaire(organization_id, data)
        except ApiRequestError as e:
            self._fail(e)
            raise
        finally:
            self._done()
        self.state = replace(
            self.state,
            questionnaires=[*self.state.questionnaires, questionnaire],
            current=questionnaire,
            loading=False,
        )
        return questionnaire

    async def update_questionnaire(
        self, organization_id: str, questionnaire_id: str, data: dict
    ) -> Questionnaire:
        self._start()
        try:
            updated = await self._api.update_questionnaire(organization_id, questionnaire_id, data)
        except ApiRequestError as e:
            self._fail(e)
            raise
        finally:
            self._done()
        current = self.state.current
        self.state = replace(
            self.state,
            questionnaires=[updated if q.id == questionnaire_id else q for q in self.state.questionnaires],
            current=updated if current is not None and current.id == questionnaire_id else current,
            loading=False,
        )
        return updated

    async def delete_questionnaire(self, organization_id: str, questionnaire_id: str) -> None:
        self._start()
        try:
            await self._api.delete_questionnaire(organization_id, questionnaire_id)
        except ApiRequestError as e:
            self._fail(e)
            raise
        finally:
            self._done()
        current = self.state.current
        self.state = replace(
            self.state,
            questionnaires=[q for q in self.state.questionnaires if q.id != questionnaire_id],
            current=None if current is not None and current.id == questionnaire_id else current,
            loading=False,
        )

    async def generate_questions(self, product_id: str) -> List[GeneratedQuestion]:
        self._start()
        try:
            questions = await self._api.generate_questions(product_id)
        except ApiRequestError as e:
            self._fail(e)
            raise
        finally:
            self._done()
        self.state = replace(self.state, generated_questions=list(questions), loading=False)
        return self.state.generated_questions

    async def generate_and_save_questionnaire(
        self, product_id: str, data: GenerateQuestionnaireRequest
    ) -> Questionnaire:
        self._start()
        try:
            questionnaire = await self._api.generate_and_save_questionnaire(product_id, data)
        except ApiRequestError as e:
            self._fail(e)
            raise
        finally:
            self._done()
        self.state = replace(
            self.state,
            questionnaires=[*self.state.questionnaires, questionnaire],
            current=questionnaire,
            loading=False,
        )
        return questionnaire

    def clear_current(self) -> None:
        self.state = replace(self.state, current=None)

    def clear_generated(self) -> None:
        self.state = replace(self.state, generated_questions=[])

    def clear_error(self) -> None:
        self.state = replace(self.state, error=None)


@dataclass
class QuestionState:
    questions: List[Question] = field(default_factory=list)
    loading: bool = False
    error: Optional[str] = None


def _by_display_order(questions: List[Question]) -> List[Question]:
    return sorted(questions, key=lambda q: q.display_order or 0)


class QuestionStore:
    """Questions of one product, kept in display order."""

    def __init__(self, api: QuestionApi) -> None:
        self._api = api
        self.state = QuestionState()

    def _start(self) -> None:
        self.state = replace(self.state, loading=True, error=None)

    def _fail(self, error: ApiRequestError) -> None:
        logger.warning("Question operation failed", extra={"error": error.message})
        self.state = replace(self.state, loading=False, error=error.message)

    def _done(self) -> None:
        self.state = replace(self.state, loading=False)

    async def load_questions(self, organization_id: str, product_id: str) -> List[Question]:
        self._start()
        try:
            questions = await self._api.get_questions_by_product(organization_id, product_id)
        except ApiRequestError as e:
            self._fail(e)
            raise
        finally:
            self._done()
        self.state = replace(self.state, questions=list(questions), loading=False)
        return self.state.questions

    async def create_question(
        self, organization_id: str, product_id: str, data: CreateQuestionRequest
    ) -> Question:
        self._start()
        try:
            question = await self._api.create_question(organization_id, product_id, data)
        except ApiRequestError as e:
            self._fail(e)
            raise
        finally:
            self._done()
        self.state = replace(
            self.state,
            questions=_by_display_order([*self.state.questions, question]),
            loading=False,
        )
        return question

    async def update_question(
        self, organization_id: str, product_id: str, question_id: str, data: UpdateQuestionRequest
    ) -> Question:
        self._start()
        try:
            updated = await self._api.update_question(organization_id, product_id, question_id, data)
        except ApiRequestError as e:
            self._fail(e)
            raise
        finally:
            self._done()
        self.state = replace(
            self.state,
            questions=[updated if q.id == question_id else q for q in self.state.questions],
            loading=False,
        )
        return updated

    async def delete_question(self, organization_id: str, product_id: str, question_id: str) -> None:
        self._start()
        try:
            await self._api.delete_question(organization_id, product_id, question_id)
        except ApiRequestError as e:
            self._fail(e)
            raise
        finally:
            self._done()
        self.state = replace(
            self.state,
            questions=[q for q in self.state.questions if q.id != question_id],
            loading=False,
        )

    async def reorder_questions(self, organization_id: str, product_id: str, question_ids: List[str]) -> List[Question]:
        """Persist the new order, then reload so display_order comes from the server."""
        self._start()
        try:
            await self._api.reorder_questions(organization_id, product_id, question_ids)
            questions = await self._api.get_questions_by_product(organization_id, product_id)
        except ApiRequestError as e:
            self._fail(e)
            raise
        finally:
            self._done()
        self.state = replace(self.state, questions=list(questions), loading=False)
        return self.state.questions

    def clear(self) -> None:
        self.state = QuestionState()

    def clear_error(self) -> None:
        self.state = replace(self.state, error=None)
