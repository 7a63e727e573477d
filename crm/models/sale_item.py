"""Sale item model."""
from sqlalchemy import Column, String, Integer, Numeric, ForeignKey
from sqlalchemy.orm import relationship
from crm.database import Base, IdType


class SaleItem(Base):
    """Sale item (linha de venda). Product name is frozen at sale time."""

    __tablename__ = 'sale_item'

    id = Column(IdType, primary_key=True, autoincrement=True)
    sale_id = Column(IdType, ForeignKey('sale.id', ondelete='CASCADE'), nullable=False, index=True)
    product_id = Column(IdType, ForeignKey('product.id'), nullable=False)
    product_name = Column(String(200), nullable=False)
    quantity = Column(Integer, nullable=False)
    unit_price_cents = Column(Integer, nullable=False)
    discount_cents = Column(Integer, nullable=False, default=0)
    total_cents = Column(Integer, nullable=False)
    requisition_number = Column(String(50), nullable=True)
    commission_percentage = Column(Numeric(5, 2), nullable=True)
    commission_cents = Column(Integer, nullable=True)
    discount_authorization_id = Column(IdType, ForeignKey('discount_authorization.id'), nullable=True)

    sale = relationship('Sale', back_populates='items')
    product = relationship('Product')

    def __repr__(self):
        return f"<SaleItem(id={self.id}, product_id={self.product_id}, quantity={self.quantity}, total_cents={self.total_cents})>"
