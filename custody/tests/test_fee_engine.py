"""
Fee Engine Tests.
"""

import pytest
from custody.app.core.exceptions import ValidationError
from custody.app.domain.custody.fee_engine import compute_fees


def test_low_value_pays_base_fee_only():
    quote = compute_fees(3000)
    assert quote.base_fee == 200
    assert quote.protection_fee == 0
    assert quote.total_fee == 200
    assert quote.is_high_value is False


def test_high_value_package():
    quote = compute_fees(15000)
    assert quote.protection_fee == 225
    assert quote.total_fee == 425
    assert quote.is_high_value is True


def test_protection_fee_rounds_half_up():
    # 8500 * 1.5% = 127.5
    quote = compute_fees(8500)
    assert quote.protection_fee == 128
    assert quote.total_fee == 328
    assert quote.is_high_value is False


@pytest.mark.parametrize("value,protection,high_value", [
    (0, 0, False),
    (5000, 0, False),
    (5001, 75, False),
    (10000, 150, False),
    (10001, 150, True),
])
def test_thresholds_are_strict(value, protection, high_value):
    quote = compute_fees(value)
    assert quote.protection_fee == protection
    assert quote.is_high_value is high_value
    assert quote.total_fee == quote.base_fee + quote.protection_fee


def test_negative_value_rejected():
    with pytest.raises(ValidationError) as exc_info:
        compute_fees(-1)
    assert exc_info.value.details["field"] == "declared_value"


def test_tariff_overrides():
    quote = compute_fees(
        2000, base_fee=150, protection_threshold=1000, protection_rate=0.02, high_value_threshold=1500
    )
    assert quote.protection_fee == 40
    assert quote.total_fee == 190
    assert quote.is_high_value is True


@pytest.mark.parametrize("value", [float("inf"), float("nan"), 1e300])
def test_non_finite_or_huge_value_rejected(value):
    with pytest.raises(ValidationError) as exc_info:
        compute_fees(value)
    assert exc_info.value.details["field"] == "declared_value"


def test_value_ceiling_is_inclusive():
    quote = compute_fees(1_000_000_000, max_declared_value=1_000_000_000)
    assert quote.protection_fee == 15_000_000
    assert quote.total_fee == 15_000_200

    with pytest.raises(ValidationError):
        compute_fees(1_000_000_001, max_declared_value=1_000_000_000)
