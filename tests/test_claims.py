from __future__ import annotations

import time

import pytest

from entitlements.claims import (
    FEATURES,
    LIMITS,
    UNLIMITED,
    SubscriptionFeatures,
    decode_jwt,
    get_limit_from_token,
    get_subscription_features_from_token,
    has_feature_from_token,
    is_token_expired,
)


class TestDecodeJwt:
    def test_valid_token_preserves_identity_claims(self, make_token):
        payload = decode_jwt(make_token(account_id="acct-42", email="a@b.co"))

        assert payload is not None
        assert payload.account_id == "acct-42"
        assert payload.email == "a@b.co"

    def test_optional_claims_are_read(self, make_token):
        payload = decode_jwt(make_token(member_id="mem-9", name="Max", role="MANAGER"))

        assert payload.member_id == "mem-9"
        assert payload.name == "Max"
        assert payload.role == "MANAGER"
        assert payload.iss == "kyooar"

    @pytest.mark.parametrize("missing", ["account_id", "email"])
    def test_missing_required_claim_returns_none(self, make_token, missing):
        assert decode_jwt(make_token(**{missing: None})) is None

    @pytest.mark.parametrize("token", ["", "abc", "a.b", "a.b.c.d", None])
    def test_wrong_segment_count_returns_none(self, token):
        assert decode_jwt(token) is None

    def test_garbage_payload_returns_none(self):
        assert decode_jwt("header.%%%not-base64%%%.sig") is None

    def test_signature_is_not_checked(self, make_token):
        header, payload, _ = make_token().split(".")
        assert decode_jwt(f"{header}.{payload}.forged") is not None

    def test_header_is_not_parsed(self, make_token):
        _, payload, signature = make_token().split(".")

        decoded = decode_jwt(f"xxxx.{payload}.{signature}")

        assert decoded is not None
        assert decoded.account_id == "acct-1"

    def test_payload_must_be_json_object(self):
        assert decode_jwt("h.WzEsIDJd.s") is None

    def test_expired_token_still_decodes(self, make_token):
        token = make_token(exp=int(time.time()) - 60)
        assert decode_jwt(token) is not None


class TestIsTokenExpired:
    def test_future_exp_is_not_expired(self, make_token):
        token = make_token(exp=1_000)
        assert is_token_expired(token, now=999) is False

    def test_exp_boundary_is_expired(self, make_token):
        token = make_token(exp=1_000)
        assert is_token_expired(token, now=1_000) is True
        assert is_token_expired(token, now=1_001) is True

    def test_missing_exp_never_expires(self, make_token):
        token = make_token(exp=None)

        assert decode_jwt(token).exp is None
        assert is_token_expired(token) is False

    def test_undecodable_token_is_expired(self):
        assert is_token_expired("not-a-token") is True


class TestSubscriptionFeatures:
    def test_no_features_claim(self, make_token):
        token = make_token()
        assert get_subscription_features_from_token(token) is None
        assert has_feature_from_token(token, FEATURES["BASIC_ANALYTICS"]) is False
        assert get_limit_from_token(token, LIMITS["ORGANIZATIONS"]) == 0

    def test_flags_follow_claims(self, make_token, pro_features):
        token = make_token(features=pro_features)

        assert has_feature_from_token(token, "advanced_analytics") is True
        assert has_feature_from_token(token, "custom_branding") is False

    def test_unknown_keys_are_false_and_zero(self, make_token, pro_features):
        token = make_token(features=pro_features)

        assert has_feature_from_token(token, "teleportation") is False
        assert get_limit_from_token(token, "max_spaceships") == 0

    def test_unlimited_sentinel_round_trips(self, make_token, pro_features):
        token = make_token(features=pro_features)
        features = get_subscription_features_from_token(token)

        assert get_limit_from_token(token, "max_feedbacks_per_month") == UNLIMITED
        assert features.is_unlimited("max_feedbacks_per_month") is True
        assert features.is_unlimited("max_qr_codes") is False

    def test_partial_claims_default_to_denied(self):
        features = SubscriptionFeatures.from_claims({"max_qr_codes": 10, "has_basic_analytics": True})

        assert features.limit("max_qr_codes") == 10
        assert features.limit("max_organizations") == 0
        assert features.flag("basic_analytics") is True
        assert features.flag("advanced_analytics") is False

    def test_to_claims_uses_claim_names(self, starter_features):
        claims = starter_features.to_claims()

        assert claims["max_organizations"] == 1
        assert claims["has_basic_analytics"] is True
        assert set(claims) == {
            "max_organizations",
            "max_qr_codes",
            "max_feedbacks_per_month",
            "max_team_members",
            "has_basic_analytics",
            "has_advanced_analytics",
            "has_feedback_explorer",
            "has_custom_branding",
            "has_priority_support",
        }
