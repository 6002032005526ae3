"""Service layer over the Kyooar API client."""

from kyooar.services.questionnaires import QuestionApi, QuestionnaireApi

__all__ = ["QuestionApi", "QuestionnaireApi"]
