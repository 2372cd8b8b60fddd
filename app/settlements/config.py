"""
Platform configuration for fee calculation and the platform payout leg.

PlatformConfig is an immutable value built once from Django settings and
passed explicitly to the fee calculator and the payout orchestrator.

Configuration (via settings):
- PLATFORM_HOST_PAYOUT_DESTINATION: where the platform fee leg is sent
- PLATFORM_FEE_FRACTION: decimal fraction in [0, 1] (default: 0.20)
- PLATFORM_MIN_FEE_CENTS: minimum fee, 0 disables (default: 0)
- PLATFORM_MAX_FEE_CENTS: maximum fee, 0 disables (default: 0)
- PAYMENT_CURRENCY: checkout and payout currency (default: usd)

Usage:
    from settlements.config import get_platform_config

    config = get_platform_config()
    split = calculate_platform_fee(1000, config)
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from functools import lru_cache

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
from django.core.exceptions import ValidationError as DjangoValidationError
from django.core.validators import validate_email


@dataclass(frozen=True)
class PlatformConfig:
    """
    Process-wide platform settings, read-only after startup.

    Attributes:
        host_payout_destination: Payout email for the platform fee leg
        fee_fraction: Fraction of each payment kept as platform fee
        min_fee_cents: Lower fee bound in cents (0 = none)
        max_fee_cents: Upper fee bound in cents (0 = unbounded)
        currency: ISO 4217 currency code (lowercase)
    """

    host_payout_destination: str
    fee_fraction: Decimal
    min_fee_cents: int = 0
    max_fee_cents: int = 0
    currency: str = "usd"


def is_valid_payout_email(value: str | None) -> bool:
    """Return True if value is a well-formed payout email address."""
    if not value:
        return False
    try:
        validate_email(value)
    except DjangoValidationError:
        return False
    return True


def validate_platform_config(
    config: PlatformConfig,
    require_destination: bool = True,
) -> list[str]:
    """
    Check a PlatformConfig for problems.

    Args:
        config: The configuration to check
        require_destination: Whether an empty host destination is an error

    Returns:
        List of human-readable problems (empty when valid)
    """
    errors: list[str] = []

    if config.host_payout_destination or require_destination:
        if not is_valid_payout_email(config.host_payout_destination):
            errors.append("Invalid host payout destination format")

    if config.fee_fraction < 0 or config.fee_fraction > 1:
        errors.append("Fee fraction must be between 0 and 1")

    if config.min_fee_cents < 0:
        errors.append("Minimum fee cannot be negative")

    if config.max_fee_cents < 0:
        errors.append("Maximum fee cannot be negative")

    if (
        config.min_fee_cents
        and config.max_fee_cents
        and config.min_fee_cents > config.max_fee_cents
    ):
        errors.append("Minimum fee cannot be greater than maximum fee")

    return errors


def load_platform_config() -> PlatformConfig:
    """
    Build a PlatformConfig from Django settings.

    Raises:
        ImproperlyConfigured: If PLATFORM_FEE_FRACTION is not a decimal
    """
    raw_fraction = getattr(settings, "PLATFORM_FEE_FRACTION", "0.20")
    try:
        fee_fraction = Decimal(str(raw_fraction))
    except InvalidOperation as e:
        raise ImproperlyConfigured(
            f"PLATFORM_FEE_FRACTION must be a decimal, got {raw_fraction!r}"
        ) from e

    return PlatformConfig(
        host_payout_destination=getattr(
            settings, "PLATFORM_HOST_PAYOUT_DESTINATION", ""
        ).strip(),
        fee_fraction=fee_fraction,
        min_fee_cents=int(getattr(settings, "PLATFORM_MIN_FEE_CENTS", 0)),
        max_fee_cents=int(getattr(settings, "PLATFORM_MAX_FEE_CENTS", 0)),
        currency=getattr(settings, "PAYMENT_CURRENCY", "usd").lower(),
    )


@lru_cache(maxsize=1)
def get_platform_config() -> PlatformConfig:
    """Return the process-wide PlatformConfig, loading it on first use."""
    return load_platform_config()
