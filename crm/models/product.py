"""Product model."""
from sqlalchemy import Column, String, Integer, Boolean, Text, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from crm.database import Base, IdType


# Category values that select the pricing model
MANIPULADO_CATEGORY = 'manipulado'
KIT_CATEGORIES = frozenset({'produto_pronto', 'print_on_demand', 'dropshipping'})


class Product(Base):
    """Product (catálogo)."""

    __tablename__ = 'product'

    id = Column(IdType, primary_key=True, autoincrement=True)
    organization_id = Column(IdType, ForeignKey('organization.id'), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    sales_script = Column(Text, nullable=True)
    category = Column(String(50), nullable=False, default='outro')
    is_active = Column(Boolean, nullable=False, default=True)
    is_featured = Column(Boolean, nullable=False, default=False)
    usage_period_days = Column(Integer, nullable=True)

    # Legacy fixed tiers (cents per unit)
    price_1_unit = Column(Integer, nullable=False, default=0)
    price_3_units = Column(Integer, nullable=False, default=0)
    price_6_units = Column(Integer, nullable=False, default=0)
    price_12_units = Column(Integer, nullable=False, default=0)
    minimum_price = Column(Integer, nullable=False, default=0)
    cost_cents = Column(Integer, nullable=True)

    # Stock
    track_stock = Column(Boolean, nullable=False, default=False)
    stock_quantity = Column(Integer, nullable=False, default=0)
    stock_reserved = Column(Integer, nullable=False, default=0)
    minimum_stock = Column(Integer, nullable=False, default=0)

    crosssell_product_1_id = Column(IdType, ForeignKey('product.id'), nullable=True)
    crosssell_product_2_id = Column(IdType, ForeignKey('product.id'), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # Relationships
    price_kits = relationship(
        'ProductPriceKit', back_populates='product',
        cascade='all, delete-orphan', order_by='ProductPriceKit.position'
    )
    questions = relationship(
        'ProductQuestion', back_populates='product',
        cascade='all, delete-orphan', order_by='ProductQuestion.position'
    )

    @property
    def available_stock(self):
        """Quantity on hand not held by open sales."""
        return max(0, (self.stock_quantity or 0) - (self.stock_reserved or 0))

    @property
    def is_low_stock(self):
        return bool(self.track_stock) and self.available_stock <= (self.minimum_stock or 0)

    @property
    def crosssell_ids(self):
        return [pid for pid in (self.crosssell_product_1_id, self.crosssell_product_2_id) if pid]

    def __repr__(self):
        return f"<Product(id={self.id}, name='{self.name}', category='{self.category}')>"


class ProductQuestion(Base):
    """Key question asked to every lead interested in a product."""

    __tablename__ = 'product_question'

    id = Column(IdType, primary_key=True, autoincrement=True)
    organization_id = Column(IdType, ForeignKey('organization.id'), nullable=False)
    product_id = Column(IdType, ForeignKey('product.id', ondelete='CASCADE'), nullable=False, index=True)
    question = Column(Text, nullable=False)
    position = Column(Integer, nullable=False, default=0)

    product = relationship('Product', back_populates='questions')

    def __repr__(self):
        return f"<ProductQuestion(id={self.id}, product_id={self.product_id}, position={self.position})>"
