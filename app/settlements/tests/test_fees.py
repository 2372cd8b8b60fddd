"""
Tests for platform fee calculation.

Tests cover:
- Rounding half up to whole cents
- Minimum and maximum fee bounds
- Recipient always keeps at least one cent
- Input validation
"""

from decimal import Decimal

import pytest

from settlements.config import PlatformConfig
from settlements.exceptions import SettlementValidationError
from settlements.fees import calculate_platform_fee


def make_config(fraction="0.20", min_fee=0, max_fee=0) -> PlatformConfig:
    return PlatformConfig(
        host_payout_destination="host@example.com",
        fee_fraction=Decimal(fraction),
        min_fee_cents=min_fee,
        max_fee_cents=max_fee,
    )


# =============================================================================
# Basic Split
# =============================================================================


class TestBasicSplit:
    """Tests for the fraction-only split."""

    def test_twenty_percent_of_ten_dollars(self):
        split = calculate_platform_fee(1000, make_config())

        assert split.platform_fee_cents == 200
        assert split.payout_amount_cents == 800
        assert split.fee_fraction == Decimal("0.20")

    def test_split_sums_to_total(self):
        for total in (1, 2, 3, 7, 99, 101, 12345, 10**9):
            split = calculate_platform_fee(total, make_config("0.175"))
            assert split.total_cents == total

    def test_zero_fraction_gives_zero_fee(self):
        split = calculate_platform_fee(1000, make_config("0"))

        assert split.platform_fee_cents == 0
        assert split.payout_amount_cents == 1000


# =============================================================================
# Rounding
# =============================================================================


class TestRounding:
    """Fee is rounded half up to whole cents."""

    def test_above_half_rounds_up(self):
        # 0.20 * 3 = 0.6 -> 1
        assert calculate_platform_fee(3, make_config()).platform_fee_cents == 1

    def test_exact_half_rounds_up(self):
        # 0.25 * 2 = 0.5 -> 1
        assert calculate_platform_fee(2, make_config("0.25")).platform_fee_cents == 1

    def test_below_half_rounds_down(self):
        # 0.20 * 12 = 2.4 -> 2
        assert calculate_platform_fee(12, make_config()).platform_fee_cents == 2

    def test_odd_amount(self):
        # 0.20 * 1234 = 246.8 -> 247
        split = calculate_platform_fee(1234, make_config())

        assert split.platform_fee_cents == 247
        assert split.payout_amount_cents == 987


# =============================================================================
# Bounds
# =============================================================================


class TestBounds:
    """Tests for min/max fee bounds."""

    def test_minimum_fee_applied(self):
        split = calculate_platform_fee(100, make_config(min_fee=50))

        assert split.platform_fee_cents == 50
        assert split.payout_amount_cents == 50

    def test_maximum_fee_applied(self):
        split = calculate_platform_fee(100_000, make_config(max_fee=500))

        assert split.platform_fee_cents == 500
        assert split.payout_amount_cents == 99_500

    def test_zero_maximum_means_unbounded(self):
        split = calculate_platform_fee(100_000, make_config(max_fee=0))

        assert split.platform_fee_cents == 20_000

    def test_fee_never_consumes_whole_total(self):
        split = calculate_platform_fee(1, make_config("1"))

        assert split.platform_fee_cents == 0
        assert split.payout_amount_cents == 1

    def test_minimum_above_total_leaves_one_cent(self):
        split = calculate_platform_fee(30, make_config(min_fee=50))

        assert split.platform_fee_cents == 29
        assert split.payout_amount_cents == 1


# =============================================================================
# Validation
# =============================================================================


class TestValidation:
    """Non-positive and non-integer totals are rejected."""

    @pytest.mark.parametrize("total", [0, -1, -1000])
    def test_non_positive_total_rejected(self, total):
        with pytest.raises(SettlementValidationError) as exc_info:
            calculate_platform_fee(total, make_config())

        assert exc_info.value.error_code == "INVALID_AMOUNT"

    @pytest.mark.parametrize("total", [10.5, "1000", None, True])
    def test_non_integer_total_rejected(self, total):
        with pytest.raises(SettlementValidationError):
            calculate_platform_fee(total, make_config())
