"""Stock movement model."""
import enum
from sqlalchemy import Column, String, Integer, Text, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from crm.database import Base, IdType


class StockMovementType(str, enum.Enum):
    """Stock movement type enum."""
    RESERVE = 'reserve'
    UNRESERVE = 'unreserve'
    DEDUCT = 'deduct'
    RESTORE = 'restore'
    ADJUST = 'adjust'


class StockMovement(Base):
    """Stock movement (movimentação de estoque) of a single product."""

    __tablename__ = 'stock_movement'

    id = Column(IdType, primary_key=True, autoincrement=True)
    organization_id = Column(IdType, ForeignKey('organization.id'), nullable=False, index=True)
    product_id = Column(IdType, ForeignKey('product.id'), nullable=False, index=True)
    movement_type = Column(String(20), nullable=False)
    quantity = Column(Integer, nullable=False)
    previous_quantity = Column(Integer, nullable=False)
    new_quantity = Column(Integer, nullable=False)
    reference_type = Column(String(20), nullable=True)
    reference_id = Column(IdType, nullable=True)
    created_by = Column(IdType, ForeignKey('app_user.id'), nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    product = relationship('Product')

    def __repr__(self):
        return f"<StockMovement(id={self.id}, type='{self.movement_type}', product_id={self.product_id}, quantity={self.quantity})>"
