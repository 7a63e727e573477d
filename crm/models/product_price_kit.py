"""Product price kit model - quantity tiers with up to four price points."""
import enum
from sqlalchemy import Column, Integer, Boolean, Numeric, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from crm.database import Base, IdType


class PriceTier(str, enum.Enum):
    """Selectable price tiers of a kit."""
    REGULAR = 'regular'
    PROMOTIONAL = 'promotional'
    PROMOTIONAL_2 = 'promotional_2'
    MINIMUM = 'minimum'
    CUSTOM = 'custom'


class ProductPriceKit(Base):
    """Kit (quantity tier) of a product."""

    __tablename__ = 'product_price_kit'

    id = Column(IdType, primary_key=True, autoincrement=True)
    organization_id = Column(IdType, ForeignKey('organization.id'), nullable=False, index=True)
    product_id = Column(IdType, ForeignKey('product.id', ondelete='CASCADE'), nullable=False, index=True)
    quantity = Column(Integer, nullable=False)

    regular_price_cents = Column(Integer, nullable=False)
    regular_use_default_commission = Column(Boolean, nullable=False, default=True)
    regular_custom_commission = Column(Numeric(5, 2), nullable=True)

    promotional_price_cents = Column(Integer, nullable=True)
    promotional_use_default_commission = Column(Boolean, nullable=False, default=True)
    promotional_custom_commission = Column(Numeric(5, 2), nullable=True)

    promotional_price_2_cents = Column(Integer, nullable=True)
    promotional_2_use_default_commission = Column(Boolean, nullable=False, default=True)
    promotional_2_custom_commission = Column(Numeric(5, 2), nullable=True)

    minimum_price_cents = Column(Integer, nullable=True)
    minimum_use_default_commission = Column(Boolean, nullable=False, default=True)
    minimum_custom_commission = Column(Numeric(5, 2), nullable=True)

    points = Column(Integer, nullable=False, default=0)
    position = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    product = relationship('Product', back_populates='price_kits')

    def tier_price(self, tier):
        """Raw cents for a tier (None when the kit has no such price)."""
        tier = PriceTier(tier)
        return {
            PriceTier.REGULAR: self.regular_price_cents,
            PriceTier.PROMOTIONAL: self.promotional_price_cents,
            PriceTier.PROMOTIONAL_2: self.promotional_price_2_cents,
            PriceTier.MINIMUM: self.minimum_price_cents,
        }.get(tier)

    def tier_commission(self, tier):
        """(use_default, custom_commission) for a tier."""
        tier = PriceTier(tier)
        prefix = 'promotional_2' if tier == PriceTier.PROMOTIONAL_2 else tier.value
        return (
            getattr(self, f'{prefix}_use_default_commission'),
            getattr(self, f'{prefix}_custom_commission'),
        )

    @property
    def offer_price_cents(self):
        """Price first shown to the customer: promotional when set, else regular."""
        return self.promotional_price_cents or self.regular_price_cents

    def __repr__(self):
        return f"<ProductPriceKit(id={self.id}, product_id={self.product_id}, quantity={self.quantity}, position={self.position})>"
