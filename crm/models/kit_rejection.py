"""Kit rejection model - append-only record of declined kit offers."""
from sqlalchemy import Column, Integer, Text, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from crm.database import Base, IdType


class KitRejection(Base):
    """A customer declined a kit offered by a seller."""

    __tablename__ = 'kit_rejection'

    id = Column(IdType, primary_key=True, autoincrement=True)
    organization_id = Column(IdType, ForeignKey('organization.id'), nullable=False, index=True)
    lead_id = Column(IdType, ForeignKey('lead.id'), nullable=False, index=True)
    product_id = Column(IdType, ForeignKey('product.id'), nullable=False)
    kit_id = Column(IdType, ForeignKey('product_price_kit.id'), nullable=False)
    rejected_by = Column(IdType, ForeignKey('app_user.id'), nullable=False)
    rejection_reason = Column(Text, nullable=False)
    kit_quantity = Column(Integer, nullable=False)
    kit_price_cents = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    kit = relationship('ProductPriceKit')

    def __repr__(self):
        return f"<KitRejection(id={self.id}, lead_id={self.lead_id}, kit_id={self.kit_id})>"
