"""Discount authorization model - manager approval for below-minimum prices."""
from sqlalchemy import Column, String, Integer, DateTime, ForeignKey
from sqlalchemy.sql import func
from crm.database import Base, IdType


class DiscountAuthorization(Base):
    """Authorization granted by a manager for one product at one price."""

    __tablename__ = 'discount_authorization'

    id = Column(IdType, primary_key=True, autoincrement=True)
    organization_id = Column(IdType, ForeignKey('organization.id'), nullable=False, index=True)
    product_id = Column(IdType, ForeignKey('product.id'), nullable=False)
    kit_id = Column(IdType, ForeignKey('product_price_kit.id'), nullable=True)
    seller_user_id = Column(IdType, ForeignKey('app_user.id'), nullable=False)
    authorizer_user_id = Column(IdType, ForeignKey('app_user.id'), nullable=False)
    authorization_code = Column(String(20), nullable=False, unique=True)
    minimum_price_cents = Column(Integer, nullable=False)
    authorized_price_cents = Column(Integer, nullable=False)
    discount_amount_cents = Column(Integer, nullable=False, default=0)
    sale_id = Column(IdType, ForeignKey('sale.id', ondelete='SET NULL'), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    @property
    def is_used(self):
        return self.sale_id is not None

    def __repr__(self):
        return f"<DiscountAuthorization(code='{self.authorization_code}', product_id={self.product_id})>"
