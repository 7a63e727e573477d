"""Delivery settings models: regions, carriers and return reasons."""
from sqlalchemy import Column, String, Integer, Boolean, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from crm.database import Base, IdType


class DeliveryRegion(Base):
    """Motoboy delivery region with its default courier."""

    __tablename__ = 'delivery_region'

    id = Column(IdType, primary_key=True, autoincrement=True)
    organization_id = Column(IdType, ForeignKey('organization.id'), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    assigned_user_id = Column(IdType, ForeignKey('app_user.id'), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    assigned_user = relationship('AppUser')

    def __repr__(self):
        return f"<DeliveryRegion(id={self.id}, name='{self.name}')>"


class ShippingCarrier(Base):
    """Transportadora."""

    __tablename__ = 'shipping_carrier'

    id = Column(IdType, primary_key=True, autoincrement=True)
    organization_id = Column(IdType, ForeignKey('organization.id'), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    cost_cents = Column(Integer, nullable=False, default=0)
    estimated_days = Column(Integer, nullable=False, default=1)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    def __repr__(self):
        return f"<ShippingCarrier(id={self.id}, name='{self.name}')>"


class DeliveryReturnReason(Base):
    """Reason picked by the courier when a sale comes back."""

    __tablename__ = 'delivery_return_reason'

    id = Column(IdType, primary_key=True, autoincrement=True)
    organization_id = Column(IdType, ForeignKey('organization.id'), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    position = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    is_system = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    def __repr__(self):
        return f"<DeliveryReturnReason(id={self.id}, name='{self.name}')>"
