"""
Platform fee calculation.

Pure function, no I/O. Splits a payment total into the platform fee and
the recipient payout so that the two always add up to the total and the
recipient always receives at least one cent.

Usage:
    from settlements.fees import calculate_platform_fee

    split = calculate_platform_fee(1000, config)
    split.platform_fee_cents   # 200 with a 0.20 fraction
    split.payout_amount_cents  # 800
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING

from settlements.exceptions import SettlementValidationError

if TYPE_CHECKING:
    from settlements.config import PlatformConfig


@dataclass(frozen=True)
class FeeSplit:
    """
    Result of a fee calculation.

    Attributes:
        platform_fee_cents: Amount sent to the platform destination
        payout_amount_cents: Amount sent to the recipient destination
        fee_fraction: Fraction that was applied
    """

    platform_fee_cents: int
    payout_amount_cents: int
    fee_fraction: Decimal

    @property
    def total_cents(self) -> int:
        return self.platform_fee_cents + self.payout_amount_cents


def calculate_platform_fee(
    total_amount_cents: int,
    config: PlatformConfig,
) -> FeeSplit:
    """
    Split a payment total into platform fee and recipient payout.

    1. fee = total * fee_fraction, rounded half up to whole cents
    2. fee is raised to min_fee_cents (if set) and lowered to
       max_fee_cents (if > 0)
    3. a fee that would consume the whole total is reduced to total - 1
    4. payout = total - fee

    Args:
        total_amount_cents: Amount charged to the payer, in cents
        config: Platform configuration supplying the fraction and bounds

    Returns:
        FeeSplit with platform_fee_cents + payout_amount_cents == total

    Raises:
        SettlementValidationError: If total_amount_cents is not a positive integer
    """
    if (
        isinstance(total_amount_cents, bool)
        or not isinstance(total_amount_cents, int)
        or total_amount_cents <= 0
    ):
        raise SettlementValidationError(
            "Total amount must be a positive number of cents",
            error_code="INVALID_AMOUNT",
            details={"total_amount_cents": total_amount_cents},
        )

    raw_fee = Decimal(total_amount_cents) * config.fee_fraction
    platform_fee_cents = int(raw_fee.quantize(Decimal("1"), rounding=ROUND_HALF_UP))

    if config.min_fee_cents and platform_fee_cents < config.min_fee_cents:
        platform_fee_cents = config.min_fee_cents

    if config.max_fee_cents > 0 and platform_fee_cents > config.max_fee_cents:
        platform_fee_cents = config.max_fee_cents

    # Recipient leg keeps at least one cent
    if platform_fee_cents >= total_amount_cents:
        platform_fee_cents = total_amount_cents - 1

    return FeeSplit(
        platform_fee_cents=platform_fee_cents,
        payout_amount_cents=total_amount_cents - platform_fee_cents,
        fee_fraction=config.fee_fraction,
    )
