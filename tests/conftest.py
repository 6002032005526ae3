"""
Shared pytest fixtures for console tests.
"""

import time

import jwt
import pytest

from entitlements.claims import SubscriptionFeatures

TEST_SIGNING_KEY = "test-signing-key-not-verified-client-side"


def _claims(**overrides):
    now = int(time.time())
    claims = {
        "account_id": "acct-1",
        "member_id": "",
        "email": "owner@example.com",
        "name": "Olivia Owner",
        "role": "OWNER",
        "iat": now,
        "exp": now + 3600,
        "iss": "kyooar",
        "sub": "acct-1",
    }
    claims.update(overrides)
    return {k: v for k, v in claims.items() if v is not None}


@pytest.fixture
def make_token():
    """Build an HS256 token; pass a claim as None to drop it."""

    def _make(features=None, **overrides):
        claims = _claims(**overrides)
        if features is not None:
            if isinstance(features, SubscriptionFeatures):
                features = features.to_claims()
            claims["subscription_features"] = features
        return jwt.encode(claims, TEST_SIGNING_KEY, algorithm="HS256")

    return _make


@pytest.fixture
def pro_features():
    return SubscriptionFeatures(
        max_organizations=5,
        max_qr_codes=50,
        max_feedbacks_per_month=-1,
        max_team_members=10,
        has_basic_analytics=True,
        has_advanced_analytics=True,
        has_feedback_explorer=True,
        has_custom_branding=False,
        has_priority_support=False,
    )


@pytest.fixture
def starter_features():
    return SubscriptionFeatures(
        max_organizations=1,
        max_qr_codes=50,
        max_feedbacks_per_month=500,
        max_team_members=2,
        has_basic_analytics=True,
    )


class FakeRedis:
    """Minimal in-memory stand-in for the redis client methods SessionStorage uses."""

    def __init__(self):
        self.store = {}
        self.ttls = {}

    def get(self, key):
        return self.store.get(key)

    def setex(self, key, ttl, value):
        self.store[key] = value
        self.ttls[key] = ttl

    def delete(self, key):
        self.store.pop(key, None)
        self.ttls.pop(key, None)

    def ping(self):
        return True


@pytest.fixture
def fake_redis():
    return FakeRedis()
