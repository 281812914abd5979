from __future__ import annotations

import math

from ramp_pricing.core.types import Currency, is_fiat

FIAT_DECIMALS = 2
ASSET_PRECISION = 5
FIAT_MAX_DECIMALS = -1
ASSET_MAX_PRECISION = 3


def round_by_precision(amount: float, precision: int) -> float:
    """Round to `precision` significant digits."""
    if amount == 0 or not math.isfinite(amount):
        return amount
    digits = precision - 1 - int(math.floor(math.log10(abs(amount))))
    return round(amount, digits)


def round_amount(amount: float, currency: Currency) -> float:
    if is_fiat(currency):
        return round(amount, FIAT_DECIMALS)
    return round_by_precision(amount, ASSET_PRECISION)


def round_max_amount(amount: float, currency: Currency) -> float:
    # limits are published coarser than amounts
    if is_fiat(currency):
        return float(round(amount, FIAT_MAX_DECIMALS))
    return round_by_precision(amount, ASSET_MAX_PRECISION)
