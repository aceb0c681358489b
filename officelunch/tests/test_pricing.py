"""
计价引擎与金额换算测试
"""

from decimal import Decimal

import pytest

from ..core.exceptions import InvalidAmountError, ValidationError
from ..core.money import from_cents, quantize, to_cents
from ..schemas.checkout import PricingLine
from ..services.pricing import compute_subtotal, compute_totals


def _line(price: str, quantity: int) -> PricingLine:
    return PricingLine(unit_price=Decimal(price), quantity=quantity)


class TestComputeTotals:
    """金额计算测试"""

    def test_reference_cart(self):
        """A 10.00×2 + B 5.50×1，配送费2.99"""
        totals = compute_totals([_line("10.00", 2), _line("5.50", 1)], Decimal("2.99"))

        assert totals.subtotal == Decimal("25.50")
        assert totals.delivery_fee == Decimal("2.99")
        assert totals.service_fee == Decimal("1.50")
        assert totals.tax == Decimal("2.55")
        assert totals.total == Decimal("32.54")

    def test_tax_applies_to_subtotal_only(self):
        totals = compute_totals([_line("20.00", 1)], Decimal("9.99"))
        assert totals.tax == Decimal("2.00")
        assert totals.total == Decimal("20.00") + Decimal("9.99") + Decimal("1.50") + Decimal("2.00")

    def test_tax_rounds_half_up_to_cent(self):
        # 0.25 × 0.10 = 0.025 -> 0.03
        totals = compute_totals([_line("0.25", 1)], Decimal("0"))
        assert totals.tax == Decimal("0.03")

    def test_no_drift_across_many_lines(self):
        lines = [_line("0.10", 1) for _ in range(30)]
        assert compute_subtotal(lines) == Decimal("3.00")

    def test_repeated_calls_are_identical(self):
        lines = [_line("3.33", 3), _line("7.77", 7)]
        first = compute_totals(lines, Decimal("1.99"))
        for _ in range(5):
            assert compute_totals(lines, Decimal("1.99")) == first

    def test_total_identity(self):
        lines = [_line("12.34", 3), _line("0.99", 4)]
        totals = compute_totals(lines, Decimal("4.25"))
        assert totals.total == totals.subtotal + totals.delivery_fee + totals.service_fee + totals.tax
        assert totals.tax == quantize(totals.subtotal * Decimal("0.10"))

    def test_empty_cart(self):
        totals = compute_totals([], Decimal("2.99"))
        assert totals.subtotal == Decimal("0.00")
        assert totals.total == Decimal("4.49")

    def test_overridden_fee_and_rate(self):
        totals = compute_totals([_line("10.00", 1)], Decimal("0"), service_fee=Decimal("0"), tax_rate=Decimal("0.08"))
        assert totals.total == Decimal("10.80")

    def test_zero_quantity_rejected(self):
        class Line:
            unit_price = Decimal("1.00")
            quantity = 0

        with pytest.raises(ValidationError):
            compute_subtotal([Line()])


class TestMoney:
    """金额换算测试"""

    def test_to_cents_exact(self):
        assert to_cents(Decimal("32.54")) == 3254
        assert to_cents("0.01") == 1
        assert to_cents(5) == 500

    def test_to_cents_rejects_sub_cent(self):
        with pytest.raises(InvalidAmountError):
            to_cents(Decimal("10.005"))

    def test_to_cents_rejects_float(self):
        with pytest.raises(InvalidAmountError):
            to_cents(10.5)

    @pytest.mark.parametrize("value", ["abc", "NaN", "Infinity"])
    def test_to_cents_rejects_garbage(self, value):
        with pytest.raises(InvalidAmountError):
            to_cents(value)

    def test_from_cents(self):
        assert from_cents(3254) == Decimal("32.54")
        assert str(from_cents(100)) == "1.00"
