"""
Client-side analytics over feedback already fetched from the API.

The API returns an analytics payload per organization:

    {
        "feedback": [{"created_at": "...", "rating": 4, ...}, ...],
        "trends": {"daily_feedback": [{"date": "...", "average_rating": 4.1}, ...]},
        "sentiment_summary": {"positive_rate": 60, "negative_rate": 10},
        "question_scores": [{"question_id", "question_text", "average_score",
                             "response_count", "scores": [...]}, ...],
    }

AnalyticsView narrows the feedback list by timeframe and segment and derives
the dashboard metrics from what remains. Nothing here talks to the network
except AnalyticsView.load().
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from kyooar.platform.api_client import ApiClient
from kyooar.platform.result import Err

logger = logging.getLogger(__name__)

TIMEFRAMES = {
    "24h": timedelta(days=1),
    "7d": timedelta(days=7),
    "30d": timedelta(days=30),
    "90d": timedelta(days=90),
}
ALL_TIME = "all"

# [start, end) hours
TIME_OF_DAY_WINDOWS = {
    "breakfast": (6, 11),
    "lunch": (11, 15),
    "dinner": (17, 22),
}
DAY_TYPES = ("weekday", "weekend")

COMPARISON_MODES = ("none", "period", "product", "question")

NEUTRAL_SENTIMENT = 50.0
MAX_RATING = 5


@dataclass
class AnalyticsFilters:
    organization_id: str = ""
    product_id: Optional[str] = None
    timeframe: str = "7d"
    time_of_day: str = ALL_TIME
    day_type: str = ALL_TIME

    def __post_init__(self) -> None:
        if self.timeframe != ALL_TIME and self.timeframe not in TIMEFRAMES:
            raise ValueError(f"Unknown timeframe: {self.timeframe}")
        if self.time_of_day != ALL_TIME and self.time_of_day not in TIME_OF_DAY_WINDOWS:
            raise ValueError(f"Unknown time of day segment: {self.time_of_day}")
        if self.day_type != ALL_TIME and self.day_type not in DAY_TYPES:
            raise ValueError(f"Unknown day type segment: {self.day_type}")


@dataclass
class AnalyticsSelection:
    highlighted_question_id: Optional[str] = None
    highlighted_metric: Optional[str] = None
    comparison_mode: str = "none"
    comparison_target: Optional[str] = None


@dataclass(frozen=True)
class ComputedMetrics:
    satisfaction_index: float
    improvement_rate: float
    response_count: int
    sentiment_score: float


# =============================================================================
# Pure calculations
# =============================================================================

def parse_timestamp(value: Any) -> Optional[datetime]:
    """ISO-8601 string or datetime to an aware UTC datetime; None when unparseable."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value:
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _created_at(item: Dict[str, Any]) -> Optional[datetime]:
    return parse_timestamp(item.get("created_at"))


def _rating(item: Dict[str, Any]) -> float:
    return float(item.get("rating") or 0)


def filter_by_timeframe(feedback: List[dict], timeframe: str, now: Optional[datetime] = None) -> List[dict]:
    if timeframe == ALL_TIME:
        return list(feedback)
    cutoff = (now or datetime.now(timezone.utc)) - TIMEFRAMES[timeframe]
    result = []
    for item in feedback:
        created = _created_at(item)
        if created is not None and created >= cutoff:
            result.append(item)
    return result


def filter_by_time_of_day(feedback: List[dict], segment: str) -> List[dict]:
    if segment == ALL_TIME:
        return list(feedback)
    start, end = TIME_OF_DAY_WINDOWS[segment]
    result = []
    for item in feedback:
        created = _created_at(item)
        if created is not None and start <= created.hour < end:
            result.append(item)
    return result


def filter_by_day_type(feedback: List[dict], day_type: str) -> List[dict]:
    if day_type == ALL_TIME:
        return list(feedback)
    want_weekend = day_type == "weekend"
    result = []
    for item in feedback:
        created = _created_at(item)
        # Saturday=5, Sunday=6
        if created is not None and (created.weekday() >= 5) == want_weekend:
            result.append(item)
    return result


def average_rating(feedback: List[dict]) -> float:
    if not feedback:
        return 0.0
    return sum(_rating(item) for item in feedback) / len(feedback)


def satisfaction_index(feedback: List[dict]) -> float:
    """Average rating normalized to 0-100."""
    if not feedback:
        return 0.0
    return average_rating(feedback) / MAX_RATING * 100


def improvement_rate(daily_feedback: List[dict]) -> float:
    """Percent change in average rating from the first to the last of the last 7 days."""
    recent = list(daily_feedback)[-7:]
    if len(recent) < 2:
        return 0.0
    first = float(recent[0].get("average_rating") or 0)
    last = float(recent[-1].get("average_rating") or 0)
    if first == 0:
        return 0.0
    return (last - first) / first * 100


def sentiment_score(sentiment_summary: Optional[Dict[str, Any]]) -> float:
    """0-100 where 100 is entirely positive; neutral when no summary exists."""
    if not sentiment_summary:
        return NEUTRAL_SENTIMENT
    positive = float(sentiment_summary.get("positive_rate") or 0)
    negative = float(sentiment_summary.get("negative_rate") or 0)
    return (positive - negative + 100) / 2


def variance(scores: List[float]) -> float:
    """Population variance."""
    if not scores:
        return 0.0
    mean = sum(scores) / len(scores)
    return sum((score - mean) ** 2 for score in scores) / len(scores)


def period_comparison(feedback: List[dict], timeframe: str, now: Optional[datetime] = None) -> Optional[dict]:
    """Current period against the one before it; None for timeframes without a fixed length."""
    if timeframe not in ("24h", "7d", "30d"):
        return None

    now = now or datetime.now(timezone.utc)
    length = TIMEFRAMES[timeframe]
    current_start = now - length
    previous_start = now - 2 * length

    current: List[dict] = []
    previous: List[dict] = []
    for item in feedback:
        created = _created_at(item)
        if created is None:
            continue
        if created >= current_start:
            current.append(item)
        elif created >= previous_start:
            previous.append(item)

    count_change = len(current) - len(previous)
    percentage = count_change / len(previous) * 100 if previous else 0.0
    return {
        "current": {"feedback": current, "count": len(current), "average_rating": average_rating(current)},
        "previous": {"feedback": previous, "count": len(previous), "average_rating": average_rating(previous)},
        "change": {"count": count_change, "percentage": percentage},
    }


def question_comparison(question_scores: Optional[List[dict]]) -> Optional[dict]:
    if not question_scores:
        return None

    questions = [
        {
            "id": q.get("question_id"),
            "text": q.get("question_text", ""),
            "average_score": float(q.get("average_score") or 0),
            "response_count": int(q.get("response_count") or 0),
            "variance": variance([float(s) for s in q.get("scores") or []]),
        }
        for q in question_scores
    ]

    best = max(questions, key=lambda q: q["average_score"])
    worst = min(questions, key=lambda q: q["average_score"])
    return {
        "questions": questions,
        "best_performing": best if best["average_score"] > 0 else None,
        "worst_performing": worst if worst["average_score"] < MAX_RATING else None,
    }


# =============================================================================
# View state
# =============================================================================

class AnalyticsView:
    """Filters, selection and fetched data for the analytics pages."""

    def __init__(self, client: Optional[ApiClient] = None) -> None:
        self._client = client
        self.filters = AnalyticsFilters()
        self.selection = AnalyticsSelection()
        self.raw: Optional[dict] = None
        self.loading = False
        self.error: Optional[str] = None

    async def load(self, organization_id: str) -> Optional[dict]:
        if self._client is None:
            raise RuntimeError("AnalyticsView.load requires an ApiClient")

        self.loading = True
        self.error = None
        result = await self._client.organization_analytics(organization_id)
        self.loading = False

        if isinstance(result, Err):
            logger.warning(
                "Failed to load analytics",
                extra={"organization_id": organization_id, "error": result.error.message},
            )
            self.error = result.error.message
            return None

        self.filters = replace(self.filters, organization_id=organization_id)
        self.raw = result.value if isinstance(result.value, dict) else {}
        return self.raw

    def set_data(self, raw: Optional[dict]) -> None:
        self.raw = raw

    def update_filters(self, **changes: Any) -> AnalyticsFilters:
        self.filters = replace(self.filters, **changes)
        return self.filters

    def set_highlighted_question(self, question_id: Optional[str]) -> None:
        self.selection = replace(self.selection, highlighted_question_id=question_id)

    def set_comparison_mode(self, mode: str, target: Optional[str] = None) -> None:
        if mode not in COMPARISON_MODES:
            raise ValueError(f"Unknown comparison mode: {mode}")
        self.selection = replace(self.selection, comparison_mode=mode, comparison_target=target)

    def reset(self) -> None:
        self.filters = AnalyticsFilters()
        self.selection = AnalyticsSelection()
        self.raw = None
        self.loading = False
        self.error = None

    def filtered_data(self, now: Optional[datetime] = None) -> Optional[dict]:
        if self.raw is None:
            return None
        feedback = self.raw.get("feedback")
        if feedback is None:
            return dict(self.raw)

        feedback = filter_by_timeframe(feedback, self.filters.timeframe, now=now)
        feedback = filter_by_time_of_day(feedback, self.filters.time_of_day)
        feedback = filter_by_day_type(feedback, self.filters.day_type)
        return {**self.raw, "feedback": feedback}

    def computed_metrics(self, now: Optional[datetime] = None) -> Optional[ComputedMetrics]:
        data = self.filtered_data(now=now)
        if data is None:
            return None
        feedback = data.get("feedback") or []
        trends = data.get("trends") or {}
        return ComputedMetrics(
            satisfaction_index=satisfaction_index(feedback),
            improvement_rate=improvement_rate(trends.get("daily_feedback") or []),
            response_count=len(feedback),
            sentiment_score=sentiment_score(data.get("sentiment_summary")),
        )

    def comparison_data(self, now: Optional[datetime] = None) -> Optional[dict]:
        mode = self.selection.comparison_mode
        if mode == "none" or self.raw is None:
            return None
        if mode == "period":
            return period_comparison(self.raw.get("feedback") or [], self.filters.timeframe, now=now)
        if mode == "question":
            return question_comparison(self.raw.get("question_scores"))
        if mode == "product" and self.selection.comparison_target:
            # comparison product data is fetched separately by the page
            return {"current": self.raw, "comparison": None}
        return None
