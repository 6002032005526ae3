"""
Wire models for the Kyooar API (/api/v1).

Every response is wrapped in an envelope:
    {"success": bool, "data": ..., "error": {...}, "meta": {...}}

Models accept unknown fields so a newer API does not break parsing.
"""

from datetime import datetime
from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# Envelope
# =============================================================================

class ErrorBody(BaseModel):
    code: Optional[str] = None
    message: Optional[str] = None
    details: Any = None


class Pagination(BaseModel):
    page: int = 1
    limit: int = 20
    total: int = 0
    total_pages: int = 0


class Meta(BaseModel):
    model_config = ConfigDict(extra="allow")

    pagination: Optional[Pagination] = None
    request_id: Optional[str] = None
    timestamp: Optional[str] = None
    version: Optional[str] = None


class Envelope(BaseModel):
    model_config = ConfigDict(extra="allow")

    success: bool = False
    data: Any = None
    error: Optional[ErrorBody] = None
    meta: Optional[Meta] = None


# =============================================================================
# Questionnaires
# =============================================================================

class QuestionType(str, Enum):
    RATING = "rating"
    SCALE = "scale"
    MULTI_CHOICE = "multi_choice"
    SINGLE_CHOICE = "single_choice"
    TEXT = "text"
    YES_NO = "yes_no"


class Question(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    questionnaire_id: Optional[str] = None
    product_id: Optional[str] = None
    text: str = ""
    type: QuestionType = QuestionType.RATING
    is_required: bool = True
    display_order: int = 0
    options: List[str] = Field(default_factory=list)
    min_value: Optional[int] = None
    max_value: Optional[int] = None
    min_label: str = ""
    max_label: str = ""


class CreateQuestionRequest(BaseModel):
    text: str
    type: QuestionType
    is_required: bool = True
    display_order: Optional[int] = None
    options: List[str] = Field(default_factory=list)
    min_value: Optional[int] = None
    max_value: Optional[int] = None
    min_label: Optional[str] = None
    max_label: Optional[str] = None


class UpdateQuestionRequest(BaseModel):
    text: Optional[str] = None
    type: Optional[QuestionType] = None
    is_required: Optional[bool] = None
    display_order: Optional[int] = None
    options: Optional[List[str]] = None
    min_value: Optional[int] = None
    max_value: Optional[int] = None
    min_label: Optional[str] = None
    max_label: Optional[str] = None


class Questionnaire(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    organization_id: Optional[str] = None
    product_id: Optional[str] = None
    name: str = ""
    description: str = ""
    is_default: bool = False
    is_active: bool = True
    questions: List[Question] = Field(default_factory=list)


class CreateQuestionnaireRequest(BaseModel):
    name: str
    description: str = ""
    product_id: Optional[str] = None
    is_default: bool = False


class GenerateQuestionnaireRequest(BaseModel):
    name: str
    description: str = ""
    is_default: bool = False


class GeneratedQuestion(BaseModel):
    model_config = ConfigDict(extra="allow")

    text: str = ""
    type: QuestionType = QuestionType.RATING
    options: List[str] = Field(default_factory=list)
    min_value: Optional[int] = None
    max_value: Optional[int] = None
    min_label: str = ""
    max_label: str = ""


# =============================================================================
# Subscriptions
# =============================================================================

class PlanFeatures(BaseModel):
    model_config = ConfigDict(extra="allow")

    limits: dict[str, int] = Field(default_factory=dict)
    flags: dict[str, bool] = Field(default_factory=dict)


class Plan(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    code: str = ""
    name: str = ""
    description: str = ""
    price: float = 0.0
    currency: str = "USD"
    interval: str = "month"
    is_active: bool = True
    is_visible: bool = True
    features: PlanFeatures = Field(default_factory=PlanFeatures)
    max_organizations: Optional[int] = None
    max_qr_codes: Optional[int] = None
    max_feedbacks_per_month: Optional[int] = None
    max_team_members: Optional[int] = None
    has_basic_analytics: Optional[bool] = None
    has_advanced_analytics: Optional[bool] = None
    has_feedback_explorer: Optional[bool] = None
    has_custom_branding: Optional[bool] = None
    has_priority_support: Optional[bool] = None

    def limit_value(self, limit_key: str) -> int:
        value = self.features.limits.get(limit_key)
        if value is None:
            value = getattr(self, limit_key, None)
        return int(value or 0)

    def flag_value(self, feature_key: str) -> bool:
        value = self.features.flags.get(feature_key)
        if value is None:
            value = getattr(self, f"has_{feature_key}", None)
        return bool(value)


class Subscription(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    account_id: Optional[str] = None
    plan_id: Optional[str] = None
    plan: Optional[Plan] = None
    status: str = ""
    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
    cancel_at: Optional[datetime] = None


class SubscriptionUsage(BaseModel):
    model_config = ConfigDict(extra="allow")

    feedbacks_count: int = 0
    organizations_count: int = 0
    locations_count: int = 0
    qr_codes_count: int = 0
    team_members_count: int = 0
    period_start: Optional[str] = None
    period_end: Optional[str] = None


class PermissionCheck(BaseModel):
    model_config = ConfigDict(extra="allow")

    can_create: bool = False
    reason: str = ""
    current_count: int = 0
    max_allowed: int = 0


# =============================================================================
# Feedback
# =============================================================================

class Feedback(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    organization_id: Optional[str] = None
    product_id: Optional[str] = None
    qr_code_id: Optional[str] = None
    overall_rating: Optional[int] = None
    rating: Optional[int] = None
    responses: List[dict] = Field(default_factory=list)
    created_at: Optional[datetime] = None
