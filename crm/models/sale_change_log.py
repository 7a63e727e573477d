"""Sale change log model - field-level audit of sale edits."""
import enum
from sqlalchemy import Column, String, Text, DateTime, ForeignKey
from sqlalchemy.sql import func
from crm.database import Base, IdType


class SaleChangeType(str, enum.Enum):
    ITEM_ADDED = 'item_added'
    ITEM_REMOVED = 'item_removed'
    ITEM_QUANTITY_CHANGED = 'item_quantity_changed'
    ITEM_PRICE_CHANGED = 'item_price_changed'
    DISCOUNT_CHANGED = 'discount_changed'
    DELIVERY_CHANGED = 'delivery_changed'
    PAYMENT_CHANGED = 'payment_changed'
    STATUS_CHANGED = 'status_changed'
    GENERAL_EDIT = 'general_edit'


class SaleChangeLog(Base):
    """Audit entry for a non-status edit on a sale."""

    __tablename__ = 'sale_change_log'

    id = Column(IdType, primary_key=True, autoincrement=True)
    sale_id = Column(IdType, ForeignKey('sale.id', ondelete='CASCADE'), nullable=False, index=True)
    organization_id = Column(IdType, ForeignKey('organization.id'), nullable=False)
    changed_by = Column(IdType, ForeignKey('app_user.id'), nullable=True)
    change_type = Column(String(30), nullable=False)
    field_name = Column(String(50), nullable=True)
    old_value = Column(Text, nullable=True)
    new_value = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    def __repr__(self):
        return f"<SaleChangeLog(sale_id={self.sale_id}, change_type='{self.change_type}', field='{self.field_name}')>"
