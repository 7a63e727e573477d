"""
Unit tests for price and commission resolution.
No database access: products and kits are transient model instances.
"""
from decimal import Decimal

import pytest

from crm.exceptions import BusinessLogicError
from crm.models import Product, ProductPriceKit, PriceTier
from crm.services.pricing_service import (
    LegacyFixedPricing, ManualPricing, TieredKitPricing,
    commission_value_cents, compare_commission, pricing_model_for, resolve_price, round_cents
)

SELLER_COMMISSION = Decimal('10')


def make_kit(**overrides):
    values = dict(
        id=1, quantity=1, position=0,
        regular_price_cents=10000, promotional_price_cents=9000,
        promotional_price_2_cents=None, minimum_price_cents=8000,
        regular_use_default_commission=True, regular_custom_commission=None,
        promotional_use_default_commission=True, promotional_custom_commission=None,
        promotional_2_use_default_commission=True, promotional_2_custom_commission=None,
        minimum_use_default_commission=False, minimum_custom_commission=Decimal('4'),
    )
    values.update(overrides)
    return ProductPriceKit(**values)


class TestPricingModelSelection:
    """Category decides the pricing model."""

    @pytest.mark.parametrize('category', ['produto_pronto', 'print_on_demand', 'dropshipping'])
    def test_kit_categories_use_tiered_pricing(self, category):
        assert isinstance(pricing_model_for(Product(category=category)), TieredKitPricing)

    def test_manipulado_uses_manual_pricing(self):
        assert isinstance(pricing_model_for(Product(category='manipulado')), ManualPricing)

    @pytest.mark.parametrize('category', ['outro', 'cosmetico', 'suplemento'])
    def test_other_categories_use_legacy_pricing(self, category):
        assert isinstance(pricing_model_for(Product(category=category)), LegacyFixedPricing)


class TestTieredKitPricing:
    """Kit tiers: price and commission per tier."""

    def test_regular_tier_uses_seller_commission(self):
        product = Product(id=1, category='produto_pronto')
        resolution = resolve_price(product, SELLER_COMMISSION, kit=make_kit(quantity=3), tier='regular')

        assert resolution.quantity == 3
        assert resolution.unit_price_cents == 10000
        assert resolution.subtotal_cents == 30000
        assert resolution.commission_percentage == Decimal('10')
        assert resolution.is_custom_commission is False

    def test_tier_custom_commission_overrides_default(self):
        kit = make_kit(promotional_use_default_commission=False, promotional_custom_commission=Decimal('12'))
        resolution = TieredKitPricing().resolve(SELLER_COMMISSION, kit=kit, tier=PriceTier.PROMOTIONAL)

        assert resolution.unit_price_cents == 9000
        assert resolution.commission_percentage == Decimal('12')
        assert resolution.is_custom_commission is True

    def test_missing_tier_price_falls_back_to_regular(self):
        kit = make_kit(promotional_price_2_cents=None)
        resolution = TieredKitPricing().resolve(SELLER_COMMISSION, kit=kit, tier='promotional_2')
        assert resolution.unit_price_cents == 10000

    def test_minimum_tier_uses_its_own_commission(self):
        resolution = TieredKitPricing().resolve(SELLER_COMMISSION, kit=make_kit(), tier='minimum')
        assert resolution.unit_price_cents == 8000
        assert resolution.commission_percentage == Decimal('4')

    def test_missing_kit_raises(self):
        with pytest.raises(BusinessLogicError):
            TieredKitPricing().resolve(SELLER_COMMISSION, kit=None)

    def test_unknown_tier_raises(self):
        with pytest.raises(ValueError):
            TieredKitPricing().resolve(SELLER_COMMISSION, kit=make_kit(), tier='gold')


class TestCommissionInterpolation:
    """Custom prices interpolate between minimum and regular commission."""

    def test_midpoint_price(self):
        resolution = TieredKitPricing().resolve(
            SELLER_COMMISSION, kit=make_kit(), tier='custom', custom_price_cents=9000
        )
        assert resolution.unit_price_cents == 9000
        assert resolution.commission_percentage == Decimal('7.00')
        assert resolution.is_custom_commission is True

    def test_price_below_minimum_clamps_to_minimum_commission(self):
        commission = TieredKitPricing().interpolate_commission(make_kit(), 5000, SELLER_COMMISSION)
        assert commission == Decimal('4')

    def test_price_above_regular_clamps_to_regular_commission(self):
        commission = TieredKitPricing().interpolate_commission(make_kit(), 15000, SELLER_COMMISSION)
        assert commission == Decimal('10')

    def test_kit_without_minimum_pays_regular_commission(self):
        kit = make_kit(minimum_price_cents=None)
        commission = TieredKitPricing().interpolate_commission(kit, 7000, SELLER_COMMISSION)
        assert commission == Decimal('10')

    def test_custom_price_must_be_positive(self):
        with pytest.raises(BusinessLogicError):
            TieredKitPricing().resolve(SELLER_COMMISSION, kit=make_kit(), tier='custom', custom_price_cents=0)


class TestLegacyFixedPricing:
    """1/3/6/12-unit table and free custom prices."""

    def setup_method(self):
        self.product = Product(
            id=7, category='outro',
            price_1_unit=5000, price_3_units=4500, price_6_units=4000, price_12_units=3500,
        )

    @pytest.mark.parametrize('option,quantity,price', [
        ('1', 1, 5000), ('3', 3, 4500), ('6', 6, 4000), ('12', 12, 3500),
    ])
    def test_fixed_options(self, option, quantity, price):
        resolution = resolve_price(self.product, SELLER_COMMISSION, option=option)
        assert resolution.quantity == quantity
        assert resolution.unit_price_cents == price
        assert resolution.commission_percentage == SELLER_COMMISSION

    def test_custom_option(self):
        resolution = resolve_price(self.product, SELLER_COMMISSION, option='custom',
                                   quantity=2, unit_price_cents=4800)
        assert resolution.subtotal_cents == 9600

    def test_invalid_option_raises(self):
        with pytest.raises(BusinessLogicError):
            resolve_price(self.product, SELLER_COMMISSION, option='5')


class TestManualPricing:
    """Manipulado items: seller-entered quantity and price."""

    def test_manual_values_are_kept(self):
        product = Product(id=3, category='manipulado')
        resolution = resolve_price(product, Decimal('8'), quantity=2, unit_price_cents=3000)

        assert resolution.quantity == 2
        assert resolution.subtotal_cents == 6000
        assert resolution.commission_percentage == Decimal('8')
        assert resolution.is_custom_commission is False

    def test_price_is_required(self):
        with pytest.raises(BusinessLogicError):
            resolve_price(Product(id=3, category='manipulado'), Decimal('8'), quantity=2)


class TestCommissionHelpers:
    """Rounding and comparison helpers."""

    def test_round_cents_half_up(self):
        assert round_cents(Decimal('99.5')) == 100
        assert round_cents(Decimal('99.49')) == 99

    def test_commission_value(self):
        assert commission_value_cents(12345, Decimal('10')) == 1235

    def test_compare_commission(self):
        assert compare_commission(Decimal('12'), Decimal('10'), False) == 'higher'
        assert compare_commission(Decimal('8'), Decimal('10'), False) == 'lower'
        assert compare_commission(Decimal('10'), Decimal('10'), False) == 'equal'
        assert compare_commission(Decimal('12'), Decimal('10'), True) == 'equal'
