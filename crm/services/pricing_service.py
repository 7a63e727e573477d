"""
Pricing and commission resolution for sale lines.

Each product category maps to exactly one pricing model:

- ``manipulado``: ManualPricing (seller types quantity and price)
- kit categories: TieredKitPricing (quantity tiers with four price points)
- everything else: LegacyFixedPricing (1/3/6/12-unit fixed prices)

The model is picked once by ``pricing_model_for`` and every caller goes
through its ``resolve``. Nothing here touches the database.
"""
import logging
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Union

from crm.exceptions import BusinessLogicError
from crm.models import PriceTier, MANIPULADO_CATEGORY, KIT_CATEGORIES

logger = logging.getLogger(__name__)

CENT = Decimal('1')
PERCENT = Decimal('0.01')

LEGACY_OPTIONS = {
    '1': ('price_1_unit', 1),
    '3': ('price_3_units', 3),
    '6': ('price_6_units', 6),
    '12': ('price_12_units', 12),
}
LEGACY_CUSTOM = 'custom'


def to_decimal(value) -> Decimal:
    if value is None:
        return Decimal('0')
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round_cents(value) -> int:
    """Round to the nearest cent, halves away from zero (999 * 10% -> 100)."""
    return int(to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP))


def commission_value_cents(total_cents: int, percentage) -> int:
    """Commission earned on a line total."""
    return round_cents(to_decimal(total_cents) * to_decimal(percentage) / 100)


def compare_commission(custom_commission, default_commission, use_default: bool) -> str:
    """Badge shown to the seller: 'higher', 'lower' or 'equal' than their default."""
    if use_default or custom_commission is None:
        return 'equal'
    custom = to_decimal(custom_commission)
    default = to_decimal(default_commission)
    if custom > default:
        return 'higher'
    if custom < default:
        return 'lower'
    return 'equal'


@dataclass(frozen=True)
class PriceResolution:
    """Outcome of pricing one sale line."""
    quantity: int
    unit_price_cents: int
    commission_percentage: Decimal
    is_custom_commission: bool

    @property
    def subtotal_cents(self) -> int:
        return self.unit_price_cents * self.quantity

    def commission_cents(self, total_cents: Optional[int] = None) -> int:
        base = self.subtotal_cents if total_cents is None else total_cents
        return commission_value_cents(base, self.commission_percentage)

    def to_dict(self):
        return {
            'quantity': self.quantity,
            'unit_price_cents': self.unit_price_cents,
            'commission_percentage': str(self.commission_percentage),
            'is_custom_commission': self.is_custom_commission,
        }


def _require_positive(value, label):
    if value is None or int(value) <= 0:
        raise BusinessLogicError(f'{label} deve ser maior que zero')
    return int(value)


@dataclass(frozen=True)
class ManualPricing:
    """Compounded items: free quantity and price, seller default commission."""
    kind = 'manual'

    def resolve(self, seller_commission, quantity=None, unit_price_cents=None, **_) -> PriceResolution:
        return PriceResolution(
            quantity=_require_positive(quantity, 'Quantidade'),
            unit_price_cents=_require_positive(unit_price_cents, 'Preço'),
            commission_percentage=to_decimal(seller_commission),
            is_custom_commission=False,
        )


@dataclass(frozen=True)
class TieredKitPricing:
    """Kit-based categories: the kit fixes quantity, the tier fixes price and commission."""
    kind = 'kit'

    @staticmethod
    def tier_commission(kit, tier, seller_commission):
        """(percentage, is_custom) of a fixed tier."""
        use_default, custom = kit.tier_commission(tier)
        if not use_default and custom is not None:
            return to_decimal(custom), True
        return to_decimal(seller_commission), False

    def interpolate_commission(self, kit, custom_price_cents, seller_commission) -> Decimal:
        """
        Commission for a free price, linear between the minimum and regular tiers.

        The ratio is clamped to [0, 1]. A kit whose regular price does not
        exceed its minimum price (or has no minimum) pays the regular commission.
        """
        regular_price = kit.regular_price_cents
        min_price = kit.minimum_price_cents if kit.minimum_price_cents is not None else regular_price
        regular_commission, _ = self.tier_commission(kit, PriceTier.REGULAR, seller_commission)
        if regular_price <= min_price:
            return regular_commission

        min_commission, _ = self.tier_commission(kit, PriceTier.MINIMUM, seller_commission)
        ratio = to_decimal(custom_price_cents - min_price) / to_decimal(regular_price - min_price)
        ratio = max(Decimal('0'), min(Decimal('1'), ratio))
        commission = min_commission + (regular_commission - min_commission) * ratio
        return commission.quantize(PERCENT, rounding=ROUND_HALF_UP)

    def resolve(self, seller_commission, kit=None, tier=PriceTier.REGULAR,
                custom_price_cents=None, **_) -> PriceResolution:
        if kit is None:
            raise BusinessLogicError('Selecione um kit para este produto')
        tier = PriceTier(tier)

        if tier == PriceTier.CUSTOM:
            price = _require_positive(custom_price_cents, 'Preço personalizado')
            return PriceResolution(
                quantity=kit.quantity,
                unit_price_cents=price,
                commission_percentage=self.interpolate_commission(kit, price, seller_commission),
                is_custom_commission=True,
            )

        price = kit.tier_price(tier)
        if price is None:
            # Missing tier prices fall back to the regular price
            price = kit.regular_price_cents
        commission, is_custom = self.tier_commission(kit, tier, seller_commission)
        return PriceResolution(
            quantity=kit.quantity,
            unit_price_cents=price,
            commission_percentage=commission,
            is_custom_commission=is_custom,
        )


@dataclass(frozen=True)
class LegacyFixedPricing:
    """Products without kits: 1/3/6/12-unit prices or a free custom price."""
    kind = 'legacy'

    def resolve(self, seller_commission, product=None, option='1', quantity=None,
                unit_price_cents=None, **_) -> PriceResolution:
        option = str(option or '1')
        if option == LEGACY_CUSTOM:
            qty = _require_positive(quantity, 'Quantidade')
            price = _require_positive(unit_price_cents, 'Preço')
        elif option in LEGACY_OPTIONS:
            field, qty = LEGACY_OPTIONS[option]
            price = getattr(product, field) or 0
        else:
            raise BusinessLogicError(f'Opção de preço inválida: {option}')
        return PriceResolution(
            quantity=qty,
            unit_price_cents=int(price),
            commission_percentage=to_decimal(seller_commission),
            is_custom_commission=False,
        )


PricingModel = Union[ManualPricing, TieredKitPricing, LegacyFixedPricing]

MANUAL = ManualPricing()
TIERED_KIT = TieredKitPricing()
LEGACY_FIXED = LegacyFixedPricing()


def pricing_model_for(product) -> PricingModel:
    """Pick the pricing model of a product from its category."""
    if product.category == MANIPULADO_CATEGORY:
        return MANUAL
    if product.category in KIT_CATEGORIES:
        return TIERED_KIT
    return LEGACY_FIXED


def resolve_price(product, seller_commission, **selection) -> PriceResolution:
    """Resolve quantity, unit price and commission for a product selection."""
    model = pricing_model_for(product)
    resolution = model.resolve(seller_commission, product=product, **selection)
    logger.debug(
        f"[PRICING] product={product.id} model={model.kind} "
        f"qty={resolution.quantity} unit={resolution.unit_price_cents} "
        f"commission={resolution.commission_percentage}"
    )
    return resolution


# ============================================================================
# DISCOUNT & MINIMUM PRICE
# ============================================================================

@dataclass(frozen=True)
class LineEvaluation:
    """Totals of a priced line after discount, plus the minimum-price verdict."""
    subtotal_cents: int
    discount_cents: int
    total_cents: int
    below_minimum: bool
    needs_authorization: bool


def calculate_discount(subtotal_cents: int, discount_type: Optional[str], discount_value) -> int:
    """
    Discount in cents for a subtotal.

    Percentage discounts round half up to the nearest cent; fixed discounts
    are taken as given. The result is bounded to [0, subtotal].
    """
    value = to_decimal(discount_value)
    if not discount_type or value <= 0:
        return 0
    if discount_type == 'percentage':
        if value > 100:
            raise BusinessLogicError('Desconto percentual não pode passar de 100%')
        discount = round_cents(to_decimal(subtotal_cents) * value / 100)
    elif discount_type == 'fixed':
        discount = round_cents(value)
    else:
        raise BusinessLogicError(f'Tipo de desconto inválido: {discount_type}')
    return max(0, min(discount, max(subtotal_cents, 0)))


def evaluate_line(product, resolution: PriceResolution, kit=None, discount_type=None,
                  discount_value=0, custom_price_cents=None, authorization_id=None) -> LineEvaluation:
    """
    Apply the line discount and check the kit minimum price.

    The kit minimum is a floor on the total kit price. A line is below minimum
    when the custom price itself or the discounted total is under that floor;
    such a line needs a manager authorization until one is attached.
    Manipulado items never carry discounts or minimums.
    """
    subtotal = resolution.subtotal_cents
    if product.category == MANIPULADO_CATEGORY:
        return LineEvaluation(subtotal, 0, subtotal, False, False)

    discount = calculate_discount(subtotal, discount_type, discount_value)
    total = subtotal - discount

    minimum = kit.minimum_price_cents if kit is not None else None
    below_minimum = False
    if minimum:
        below_minimum = (
            (custom_price_cents is not None and custom_price_cents < minimum)
            or total < minimum
        )
    elif kit is None and product.minimum_price:
        # Legacy products carry a per-unit floor
        below_minimum = resolution.unit_price_cents < product.minimum_price

    return LineEvaluation(
        subtotal_cents=subtotal,
        discount_cents=discount,
        total_cents=total,
        below_minimum=below_minimum,
        needs_authorization=below_minimum and authorization_id is None,
    )
