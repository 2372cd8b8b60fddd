"""Tests for platform configuration loading and validation."""

from decimal import Decimal

import pytest
from django.core.exceptions import ImproperlyConfigured

from settlements.config import (
    PlatformConfig,
    is_valid_payout_email,
    load_platform_config,
    validate_platform_config,
)


def make_config(**overrides) -> PlatformConfig:
    values = {
        "host_payout_destination": "host@example.com",
        "fee_fraction": Decimal("0.20"),
    }
    values.update(overrides)
    return PlatformConfig(**values)


class TestValidatePlatformConfig:
    def test_valid_config_has_no_errors(self):
        assert validate_platform_config(make_config()) == []

    def test_missing_destination_is_error_when_required(self):
        errors = validate_platform_config(make_config(host_payout_destination=""))

        assert errors == ["Invalid host payout destination format"]

    def test_missing_destination_tolerated_at_startup(self):
        config = make_config(host_payout_destination="")

        assert validate_platform_config(config, require_destination=False) == []

    def test_malformed_destination_always_rejected(self):
        config = make_config(host_payout_destination="not-an-email")

        errors = validate_platform_config(config, require_destination=False)

        assert errors == ["Invalid host payout destination format"]

    @pytest.mark.parametrize("fraction", ["-0.01", "1.01"])
    def test_fraction_out_of_range(self, fraction):
        errors = validate_platform_config(make_config(fee_fraction=Decimal(fraction)))

        assert "Fee fraction must be between 0 and 1" in errors

    def test_min_greater_than_max(self):
        errors = validate_platform_config(
            make_config(min_fee_cents=500, max_fee_cents=100)
        )

        assert "Minimum fee cannot be greater than maximum fee" in errors

    def test_negative_bounds(self):
        errors = validate_platform_config(
            make_config(min_fee_cents=-1, max_fee_cents=-1)
        )

        assert "Minimum fee cannot be negative" in errors
        assert "Maximum fee cannot be negative" in errors


class TestLoadPlatformConfig:
    def test_reads_settings(self, settings):
        settings.PLATFORM_HOST_PAYOUT_DESTINATION = "  fees@example.com "
        settings.PLATFORM_FEE_FRACTION = "0.15"
        settings.PLATFORM_MIN_FEE_CENTS = 25
        settings.PLATFORM_MAX_FEE_CENTS = 1000
        settings.PAYMENT_CURRENCY = "USD"

        config = load_platform_config()

        assert config == PlatformConfig(
            host_payout_destination="fees@example.com",
            fee_fraction=Decimal("0.15"),
            min_fee_cents=25,
            max_fee_cents=1000,
            currency="usd",
        )

    def test_bad_fraction_raises(self, settings):
        settings.PLATFORM_FEE_FRACTION = "twenty percent"

        with pytest.raises(ImproperlyConfigured):
            load_platform_config()


class TestIsValidPayoutEmail:
    @pytest.mark.parametrize(
        "value,expected",
        [
            ("recipient@example.com", True),
            ("", False),
            (None, False),
            ("recipient@", False),
            ("no-at-sign", False),
        ],
    )
    def test_validation(self, value, expected):
        assert is_valid_payout_email(value) is expected
