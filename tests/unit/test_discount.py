"""Unit tests for discounts and the kit minimum-price check."""
from decimal import Decimal

import pytest

from crm.exceptions import BusinessLogicError
from crm.models import Product, ProductPriceKit
from crm.services.pricing_service import PriceResolution, calculate_discount, evaluate_line
from crm.services.sales_service import calculate_sale_totals


def resolution(unit_price_cents, quantity=1):
    return PriceResolution(quantity, unit_price_cents, Decimal('10'), False)


class TestCalculateDiscount:
    """Percentage and fixed discounts."""

    def test_percentage_rounds_half_up(self):
        assert calculate_discount(999, 'percentage', 10) == 100

    def test_percentage_of_round_value(self):
        assert calculate_discount(20000, 'percentage', Decimal('12.5')) == 2500

    def test_fixed_discount_is_capped_at_subtotal(self):
        assert calculate_discount(15000, 'fixed', 20000) == 15000

    def test_no_discount(self):
        assert calculate_discount(15000, None, 10) == 0
        assert calculate_discount(15000, 'percentage', 0) == 0

    def test_percentage_over_100_raises(self):
        with pytest.raises(BusinessLogicError):
            calculate_discount(15000, 'percentage', 101)

    def test_unknown_type_raises(self):
        with pytest.raises(BusinessLogicError):
            calculate_discount(15000, 'coupon', 10)


class TestEvaluateLine:
    """Minimum price verdict per line."""

    def setup_method(self):
        self.product = Product(id=1, category='produto_pronto', minimum_price=0)
        self.kit = ProductPriceKit(id=1, quantity=1, regular_price_cents=10000, minimum_price_cents=8000)

    def test_line_above_minimum(self):
        evaluation = evaluate_line(self.product, resolution(10000), kit=self.kit,
                                   discount_type='percentage', discount_value=10)
        assert evaluation.discount_cents == 1000
        assert evaluation.total_cents == 9000
        assert evaluation.below_minimum is False
        assert evaluation.needs_authorization is False

    def test_discount_below_minimum_needs_authorization(self):
        evaluation = evaluate_line(self.product, resolution(10000), kit=self.kit,
                                   discount_type='percentage', discount_value=25)
        assert evaluation.total_cents == 7500
        assert evaluation.below_minimum is True
        assert evaluation.needs_authorization is True

    def test_authorization_clears_the_requirement(self):
        evaluation = evaluate_line(self.product, resolution(7000), kit=self.kit,
                                   custom_price_cents=7000, authorization_id=42)
        assert evaluation.below_minimum is True
        assert evaluation.needs_authorization is False

    def test_custom_price_below_minimum(self):
        evaluation = evaluate_line(self.product, resolution(7900), kit=self.kit, custom_price_cents=7900)
        assert evaluation.needs_authorization is True

    def test_manipulado_ignores_discount_and_minimum(self):
        product = Product(id=2, category='manipulado', minimum_price=5000)
        evaluation = evaluate_line(product, resolution(1000, quantity=2),
                                   discount_type='percentage', discount_value=50)
        assert evaluation.discount_cents == 0
        assert evaluation.total_cents == 2000
        assert evaluation.needs_authorization is False

    def test_legacy_unit_floor(self):
        product = Product(id=3, category='outro', minimum_price=3000)
        assert evaluate_line(product, resolution(2500)).needs_authorization is True
        assert evaluate_line(product, resolution(3000)).needs_authorization is False


class TestSaleTotals:
    """Sale-level totals."""

    def test_totals_with_discount_and_shipping(self):
        totals = calculate_sale_totals([10000, 5000], 'percentage', 10, 1500)
        assert totals == {
            'subtotal_cents': 15000,
            'discount_cents': 1500,
            'shipping_cost_cents': 1500,
            'total_cents': 15000,
        }

    def test_negative_shipping_raises(self):
        with pytest.raises(BusinessLogicError):
            calculate_sale_totals([10000], None, 0, -1)
