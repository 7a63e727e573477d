"""Sale status history model."""
from sqlalchemy import Column, String, Text, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from crm.database import Base, IdType


class SaleStatusHistory(Base):
    """One row per status transition of a sale (including creation)."""

    __tablename__ = 'sale_status_history'

    id = Column(IdType, primary_key=True, autoincrement=True)
    sale_id = Column(IdType, ForeignKey('sale.id', ondelete='CASCADE'), nullable=False, index=True)
    organization_id = Column(IdType, ForeignKey('organization.id'), nullable=False)
    previous_status = Column(String(30), nullable=True)
    new_status = Column(String(30), nullable=False)
    changed_by = Column(IdType, ForeignKey('app_user.id'), nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    sale = relationship('Sale', back_populates='status_history')

    def __repr__(self):
        return f"<SaleStatusHistory(sale_id={self.sale_id}, {self.previous_status} -> {self.new_status})>"
