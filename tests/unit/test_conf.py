"""
Tests for DJ_SETTLEMENTS configuration loading and validation.
"""

from decimal import Decimal
from types import SimpleNamespace
from unittest import mock

import pytest
from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
from django.test import override_settings

from dj_settlements.conf import SettlementSettings, settlement_settings


def build_settings(**overrides):
    user_settings = {**settings.DJ_SETTLEMENTS, **overrides}
    with mock.patch(
        "dj_settlements.conf.django_settings", SimpleNamespace(DJ_SETTLEMENTS=user_settings)
    ):
        return SettlementSettings()


class TestDefaults:
    def test_defaults_without_user_settings(self):
        with mock.patch("dj_settlements.conf.django_settings", SimpleNamespace()):
            conf = SettlementSettings()
        assert conf.SETTLEMENT_HOLD_PERIOD_DAYS == 3
        assert conf.SETTLEMENT_PLATFORM_COMMISSION_PERCENT == Decimal("5")
        assert conf.SETTLEMENT_PAYOUT_FEE_PERCENT == Decimal("0")
        assert conf.SETTLEMENT_MIN_SETTLEMENT_AMOUNT == Decimal("0.00")
        assert conf.SETTLEMENT_MONEY_DECIMAL_PLACES == 2
        assert conf.SETTLEMENT_ORDER_DELIVERED_STATUS == "delivered"
        assert conf.SETTLEMENT_TRANSACTION_MAX_RETRIES == 3
        assert conf.SETTLEMENT_ACCRUAL_BATCH_SIZE == 100
        assert conf.SETTLEMENT_ORDER_PAYMENT_STATUS_FIELD == ""
        assert conf.SETTLEMENT_ORDER_PAID_STATUS == "paid"

    def test_test_settings_are_loaded(self):
        assert settlement_settings.SETTLEMENT_ORDER_MODEL == "test_app.Order"
        assert settlement_settings.SETTLEMENT_SHOP_MODEL == "test_app.Shop"

    def test_unknown_setting_raises_attribute_error(self):
        with pytest.raises(AttributeError):
            settlement_settings.SETTLEMENT_DOES_NOT_EXIST  # noqa: B018


class TestUserOverrides:
    def test_keys_without_prefix(self):
        conf = build_settings(HOLD_PERIOD_DAYS=7)
        assert conf.SETTLEMENT_HOLD_PERIOD_DAYS == 7

    def test_keys_with_prefix(self):
        conf = build_settings(SETTLEMENT_MIN_SETTLEMENT_AMOUNT="50")
        assert conf.SETTLEMENT_MIN_SETTLEMENT_AMOUNT == Decimal("50")

    def test_percentages_become_decimal(self):
        conf = build_settings(PLATFORM_COMMISSION_PERCENT=7.5)
        assert conf.SETTLEMENT_PLATFORM_COMMISSION_PERCENT == Decimal("7.5")

    def test_payment_gate_disabled_by_empty_field(self):
        conf = build_settings(ORDER_PAYMENT_STATUS_FIELD="", ORDER_PAID_STATUS="")
        assert conf.SETTLEMENT_ORDER_PAYMENT_STATUS_FIELD == ""

    def test_override_settings_reloads_singleton(self):
        with override_settings(DJ_SETTLEMENTS={**settings.DJ_SETTLEMENTS, "HOLD_PERIOD_DAYS": 9}):
            assert settlement_settings.SETTLEMENT_HOLD_PERIOD_DAYS == 9
        assert settlement_settings.SETTLEMENT_HOLD_PERIOD_DAYS == 3


class TestValidation:
    @pytest.mark.parametrize(
        "overrides",
        [
            {"HOLD_PERIOD_DAYS": -1},
            {"HOLD_PERIOD_DAYS": "3"},
            {"TRANSACTION_MAX_RETRIES": -2},
            {"MONEY_DECIMAL_PLACES": 12},
            {"ACCRUAL_BATCH_SIZE": 0},
            {"PLATFORM_COMMISSION_PERCENT": "abc"},
            {"PLATFORM_COMMISSION_PERCENT": 150},
            {"PAYOUT_FEE_PERCENT": -1},
            {"MIN_SETTLEMENT_AMOUNT": -10},
            {"TRANSACTION_RETRY_BASE_SECONDS": "fast"},
            {"ORDER_MODEL": "Order"},
            {"SHOP_MODEL": None},
            {"ORDER_DELIVERED_STATUS": ""},
            {"ORDER_PAYMENT_STATUS_FIELD": 5},
            {"ORDER_PAID_STATUS": ""},
        ],
    )
    def test_invalid_values_raise(self, overrides):
        with pytest.raises(ImproperlyConfigured):
            build_settings(**overrides)
