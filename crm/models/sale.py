"""Sale model and its lifecycle enums."""
import enum
from sqlalchemy import Column, String, Integer, Numeric, Text, Date, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from crm.database import Base, IdType


class SaleStatus(str, enum.Enum):
    """Sale status enum."""
    DRAFT = 'draft'
    PENDING_EXPEDITION = 'pending_expedition'
    DISPATCHED = 'dispatched'
    DELIVERED = 'delivered'
    PAYMENT_PENDING = 'payment_pending'
    PAYMENT_CONFIRMED = 'payment_confirmed'
    CANCELLED = 'cancelled'
    RETURNED = 'returned'


class DeliveryStatus(str, enum.Enum):
    """Delivery outcome, orthogonal to the sale status."""
    PENDING = 'pending'
    DELIVERED_NORMAL = 'delivered_normal'
    DELIVERED_MISSING_PRESCRIPTION = 'delivered_missing_prescription'
    DELIVERED_NO_MONEY = 'delivered_no_money'
    DELIVERED_NO_CARD_LIMIT = 'delivered_no_card_limit'
    DELIVERED_CUSTOMER_ABSENT = 'delivered_customer_absent'
    DELIVERED_CUSTOMER_DENIED = 'delivered_customer_denied'
    DELIVERED_CUSTOMER_GAVE_UP = 'delivered_customer_gave_up'
    DELIVERED_WRONG_PRODUCT = 'delivered_wrong_product'
    DELIVERED_MISSING_PRODUCT = 'delivered_missing_product'
    DELIVERED_INSUFFICIENT_ADDRESS = 'delivered_insufficient_address'
    DELIVERED_WRONG_TIME = 'delivered_wrong_time'
    DELIVERED_OTHER = 'delivered_other'


class DeliveryType(str, enum.Enum):
    PICKUP = 'pickup'
    MOTOBOY = 'motoboy'
    CARRIER = 'carrier'


class DeliveryShift(str, enum.Enum):
    MORNING = 'morning'
    AFTERNOON = 'afternoon'
    FULL_DAY = 'full_day'


class DiscountType(str, enum.Enum):
    PERCENTAGE = 'percentage'
    FIXED = 'fixed'


class Sale(Base):
    """Sale (venda)."""

    __tablename__ = 'sale'

    id = Column(IdType, primary_key=True, autoincrement=True)
    organization_id = Column(IdType, ForeignKey('organization.id'), nullable=False, index=True)
    lead_id = Column(IdType, ForeignKey('lead.id'), nullable=False, index=True)
    seller_user_id = Column(IdType, ForeignKey('app_user.id'), nullable=True)
    created_by = Column(IdType, ForeignKey('app_user.id'), nullable=False)
    romaneio_number = Column(Integer, nullable=False)

    # Money (cents)
    subtotal_cents = Column(Integer, nullable=False, default=0)
    discount_type = Column(String(20), nullable=True)
    discount_value = Column(Numeric(10, 2), nullable=False, default=0)
    discount_cents = Column(Integer, nullable=False, default=0)
    shipping_cost_cents = Column(Integer, nullable=False, default=0)
    total_cents = Column(Integer, nullable=False, default=0)

    status = Column(String(30), nullable=False, default=SaleStatus.DRAFT.value, index=True)

    # Delivery
    delivery_type = Column(String(20), nullable=False, default=DeliveryType.PICKUP.value)
    delivery_status = Column(String(40), nullable=False, default=DeliveryStatus.PENDING.value)
    delivery_region_id = Column(IdType, ForeignKey('delivery_region.id'), nullable=True)
    shipping_carrier_id = Column(IdType, ForeignKey('shipping_carrier.id'), nullable=True)
    scheduled_delivery_date = Column(Date, nullable=True)
    scheduled_delivery_shift = Column(String(20), nullable=True)
    assigned_delivery_user_id = Column(IdType, ForeignKey('app_user.id'), nullable=True, index=True)
    delivery_notes = Column(Text, nullable=True)

    # Payment
    payment_method_id = Column(IdType, ForeignKey('payment_method.id'), nullable=True)
    payment_installments = Column(Integer, nullable=False, default=1)
    payment_status = Column(String(20), nullable=False, default='not_paid')
    payment_notes = Column(Text, nullable=True)
    payment_proof_url = Column(String(500), nullable=True)
    invoice_pdf_url = Column(String(500), nullable=True)
    invoice_xml_url = Column(String(500), nullable=True)

    # Lifecycle stamps
    expedition_validated_at = Column(DateTime(timezone=True), nullable=True)
    expedition_validated_by = Column(IdType, ForeignKey('app_user.id'), nullable=True)
    dispatched_at = Column(DateTime(timezone=True), nullable=True)
    delivered_at = Column(DateTime(timezone=True), nullable=True)
    payment_confirmed_at = Column(DateTime(timezone=True), nullable=True)
    payment_confirmed_by = Column(IdType, ForeignKey('app_user.id'), nullable=True)

    # Return
    returned_at = Column(DateTime(timezone=True), nullable=True)
    returned_by = Column(IdType, ForeignKey('app_user.id'), nullable=True)
    return_reason_id = Column(IdType, ForeignKey('delivery_return_reason.id'), nullable=True)
    return_notes = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # Relationships
    lead = relationship('Lead', back_populates='sales')
    items = relationship('SaleItem', back_populates='sale', cascade='all, delete-orphan', order_by='SaleItem.id')
    status_history = relationship(
        'SaleStatusHistory', back_populates='sale',
        cascade='all, delete-orphan', order_by='SaleStatusHistory.id'
    )
    seller = relationship('AppUser', foreign_keys=[seller_user_id])
    creator = relationship('AppUser', foreign_keys=[created_by])
    delivery_user = relationship('AppUser', foreign_keys=[assigned_delivery_user_id])
    delivery_region = relationship('DeliveryRegion')
    shipping_carrier = relationship('ShippingCarrier')
    payment_method = relationship('PaymentMethod')
    return_reason = relationship('DeliveryReturnReason')

    @property
    def is_paid(self):
        return self.status == SaleStatus.PAYMENT_CONFIRMED.value or self.payment_status == 'paid_now'

    def __repr__(self):
        return f"<Sale(id={self.id}, total_cents={self.total_cents}, status='{self.status}')>"
