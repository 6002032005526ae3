"""Per-session client state: auth, subscription, questionnaires and analytics."""

from kyooar.session.analytics import AnalyticsView
from kyooar.session.auth import AuthSession, AuthState, AuthStatus, LoginOutcome, User
from kyooar.session.questionnaires import QuestionStore, QuestionnaireStore
from kyooar.session.storage import AUTH_TOKEN_KEY, AUTH_USER_KEY, SessionStorage
from kyooar.session.subscription import SubscriptionSession, SubscriptionState

__all__ = [
    "AUTH_TOKEN_KEY",
    "AUTH_USER_KEY",
    "AnalyticsView",
    "AuthSession",
    "AuthState",
    "AuthStatus",
    "LoginOutcome",
    "QuestionStore",
    "QuestionnaireStore",
    "SessionStorage",
    "SubscriptionSession",
    "SubscriptionState",
    "User",
]
