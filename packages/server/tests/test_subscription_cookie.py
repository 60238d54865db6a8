"""
Tests for the subscription cookie codec.

Covers:
- Parsing well-formed and malformed cookie values
- Validity (status + strict expiry comparison)
- Serialization format
- Subscription-required route matching
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from anuncios.core.subscription import (
    SubscriptionState,
    is_subscription_valid,
    requires_subscription,
)

NOW = datetime(2025, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


class TestParse:
    def test_parses_status_and_timestamp(self):
        state = SubscriptionState.parse("active|2025-12-31T23:59:59.000Z")
        assert state is not None
        assert state.status == "active"
        assert state.expires_at == datetime(2025, 12, 31, 23, 59, 59, tzinfo=timezone.utc)

    def test_offset_timestamp_is_normalized_to_utc(self):
        state = SubscriptionState.parse("active|2025-06-01T12:00:00-03:00")
        assert state.expires_at == datetime(2025, 6, 1, 15, 0, 0, tzinfo=timezone.utc)

    def test_naive_timestamp_is_read_as_utc(self):
        state = SubscriptionState.parse("active|2025-06-01T12:00:00")
        assert state.expires_at.tzinfo is not None
        assert state.expires_at == NOW

    @pytest.mark.parametrize(
        "value",
        [
            None,
            "",
            "active",
            "|2025-12-31T00:00:00Z",
            "active|",
            "active|not-a-date",
            "active|2025-12-31T00:00:00Z|extra",
            "active|0001-01-01T00:00:00+05:00",
            "active|9999-12-31T23:00:00-05:00",
        ],
    )
    def test_malformed_values_return_none(self, value):
        assert SubscriptionState.parse(value) is None


class TestValidity:
    def test_active_future_is_valid(self):
        assert is_subscription_valid("active|2025-06-02T00:00:00Z", NOW)

    def test_active_past_is_invalid(self):
        assert not is_subscription_valid("active|2025-05-31T00:00:00Z", NOW)

    def test_expiry_equal_to_now_is_invalid(self):
        assert not is_subscription_valid("active|2025-06-01T12:00:00.000Z", NOW)

    @pytest.mark.parametrize("status", ["inactive", "expired", "cancelled", "ACTIVE", "trialing"])
    def test_non_active_status_is_invalid(self, status):
        assert not is_subscription_valid(f"{status}|2099-01-01T00:00:00Z", NOW)

    def test_missing_cookie_is_invalid(self):
        assert not is_subscription_valid(None, NOW)

    def test_defaults_to_current_time(self):
        future = datetime.now(timezone.utc) + timedelta(days=1)
        assert SubscriptionState("active", future).is_valid()


class TestSerialize:
    def test_format_uses_milliseconds_and_z(self):
        state = SubscriptionState("active", datetime(2025, 1, 2, 3, 4, 5, 678000, tzinfo=timezone.utc))
        assert state.serialize() == "active|2025-01-02T03:04:05.678Z"

    def test_parse_reads_back_serialized_value(self):
        state = SubscriptionState("active", datetime(2025, 1, 2, 3, 4, 5, 678000, tzinfo=timezone.utc))
        assert SubscriptionState.parse(state.serialize()) == state

    def test_non_utc_input_is_written_as_utc(self):
        brt = timezone(timedelta(hours=-3))
        state = SubscriptionState("inactive", datetime(2025, 1, 1, 21, 0, 0, tzinfo=brt))
        assert state.serialize() == "inactive|2025-01-02T00:00:00.000Z"


class TestRequiresSubscription:
    @pytest.mark.parametrize("path", ["/anuncios", "/anuncios/123/edit", "/casa", "/floodrisk/map"])
    def test_gated_paths(self, path):
        assert requires_subscription(path)

    @pytest.mark.parametrize("path", ["/", "/anunciosx", "/casas", "/subscribe", "/admin", "/planos"])
    def test_ungated_paths(self, path):
        assert not requires_subscription(path)
