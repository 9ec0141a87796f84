"""
Fee Engine.

Pure fee computation from a declared value. Run exactly once, when the
package is created; the result is frozen onto the package.
"""

import math
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from custody.app.core.config import settings
from custody.app.core.exceptions import ValidationError


@dataclass(frozen=True)
class FeeQuote:
    base_fee: int
    protection_fee: int
    total_fee: int
    is_high_value: bool


def _round_currency(amount: Decimal) -> int:
    # Half-up: 127.5 -> 128
    return int(amount.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def compute_fees(
    declared_value: float,
    base_fee: Optional[int] = None,
    protection_threshold: Optional[float] = None,
    protection_rate: Optional[float] = None,
    high_value_threshold: Optional[float] = None,
    max_declared_value: Optional[float] = None,
) -> FeeQuote:
    """
    Compute the fee breakdown for a declared value.
    
    Protection fee is zero up to and including the protection threshold,
    otherwise the protection rate applied to the full declared value,
    rounded to the nearest whole currency unit. A package is high-value
    when its declared value strictly exceeds the high-value threshold.
    
    Args:
        declared_value: Non-negative, finite declared value
        base_fee / protection_threshold / protection_rate / high_value_threshold / max_declared_value:
            Overrides for the configured tariff
    
    Returns:
        FeeQuote with total == base + protection
    
    Raises:
        ValidationError: If declared value is negative, not finite or above the ceiling
    """
    base_fee = settings.base_fee if base_fee is None else base_fee
    protection_threshold = settings.protection_threshold if protection_threshold is None else protection_threshold
    protection_rate = settings.protection_rate if protection_rate is None else protection_rate
    high_value_threshold = settings.high_value_threshold if high_value_threshold is None else high_value_threshold
    max_declared_value = settings.max_declared_value if max_declared_value is None else max_declared_value

    if declared_value is None or declared_value < 0:
        raise ValidationError("Declared value must be a non-negative number", field="declared_value")
    if not math.isfinite(declared_value) or declared_value > max_declared_value:
        raise ValidationError(
            f"Declared value must not exceed {max_declared_value:,.0f}",
            field="declared_value",
            details={"max_declared_value": max_declared_value},
        )

    value = Decimal(str(declared_value))
    if value > Decimal(str(protection_threshold)):
        protection_fee = _round_currency(value * Decimal(str(protection_rate)))
    else:
        protection_fee = 0

    return FeeQuote(
        base_fee=base_fee,
        protection_fee=protection_fee,
        total_fee=base_fee + protection_fee,
        is_high_value=value > Decimal(str(high_value_threshold)),
    )
