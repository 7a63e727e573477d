"""Payment method models (settings-owned, read by the sale flow)."""
import enum
from sqlalchemy import Column, String, Integer, Boolean, Numeric, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from crm.database import Base, IdType


class PaymentCategory(str, enum.Enum):
    CASH = 'cash'
    PIX = 'pix'
    CARD_MACHINE = 'card_machine'
    PAYMENT_LINK = 'payment_link'
    ECOMMERCE = 'ecommerce'
    BOLETO_PREPAID = 'boleto_prepaid'
    BOLETO_POSTPAID = 'boleto_postpaid'
    BOLETO_INSTALLMENT = 'boleto_installment'
    GIFT = 'gift'


class PaymentTiming(str, enum.Enum):
    CASH = 'cash'
    TERM = 'term'
    INSTALLMENTS = 'installments'


class InstallmentFlow(str, enum.Enum):
    ANTICIPATION = 'anticipation'
    RECEIVE_PER_INSTALLMENT = 'receive_per_installment'


class TransactionType(str, enum.Enum):
    DEBIT = 'debit'
    CREDIT_CASH = 'credit_cash'
    CREDIT_INSTALLMENT = 'credit_installment'
    CREDIT_PREDATE = 'credit_predate'
    PIX = 'pix'


PAYMENT_CATEGORY_LABELS = {
    PaymentCategory.CASH.value: 'Dinheiro',
    PaymentCategory.PIX.value: 'Chave Pix',
    PaymentCategory.CARD_MACHINE.value: 'Maquina de Cartão / TEF',
    PaymentCategory.PAYMENT_LINK.value: 'Link de Pagamento',
    PaymentCategory.ECOMMERCE.value: 'Ecommerce/Site',
    PaymentCategory.BOLETO_PREPAID.value: 'Boleto à vista pré-pago',
    PaymentCategory.BOLETO_POSTPAID.value: 'Boleto pós-pago',
    PaymentCategory.BOLETO_INSTALLMENT.value: 'Boleto parcelado',
    PaymentCategory.GIFT.value: 'Presente/Grátis',
}

# Categories whose sales must carry NSU / card brand data
CATEGORIES_REQUIRING_TRANSACTION_DATA = frozenset({
    PaymentCategory.CARD_MACHINE.value,
    PaymentCategory.PAYMENT_LINK.value,
    PaymentCategory.ECOMMERCE.value,
})


class PaymentMethod(Base):
    """Forma de pagamento."""

    __tablename__ = 'payment_method'

    id = Column(IdType, primary_key=True, autoincrement=True)
    organization_id = Column(IdType, ForeignKey('organization.id'), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    category = Column(String(30), nullable=True)
    payment_timing = Column(String(20), nullable=False, default=PaymentTiming.CASH.value)
    installment_flow = Column(String(30), nullable=True)
    max_installments = Column(Integer, nullable=False, default=1)
    min_installment_value_cents = Column(Integer, nullable=False, default=0)

    # Settlement references
    destination_bank = Column(String(100), nullable=True)
    destination_cnpj = Column(String(18), nullable=True)
    cost_center = Column(String(100), nullable=True)
    acquirer = Column(String(100), nullable=True)

    # Default fee when no per-transaction-type row applies
    fee_percentage = Column(Numeric(5, 2), nullable=False, default=0)
    fee_fixed_cents = Column(Integer, nullable=False, default=0)
    settlement_days = Column(Integer, nullable=False, default=0)
    anticipation_fee_percentage = Column(Numeric(5, 2), nullable=False, default=0)

    requires_proof = Column(Boolean, nullable=False, default=False)
    display_order = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    fees = relationship('PaymentMethodFee', back_populates='payment_method', cascade='all, delete-orphan')

    @property
    def category_label(self):
        return PAYMENT_CATEGORY_LABELS.get(self.category, self.category or '')

    @property
    def requires_transaction_data(self):
        return self.category in CATEGORIES_REQUIRING_TRANSACTION_DATA

    def __repr__(self):
        return f"<PaymentMethod(id={self.id}, name='{self.name}', category='{self.category}')>"


class PaymentMethodFee(Base):
    """Fee schedule of a payment method for one card transaction type."""

    __tablename__ = 'payment_method_fee'
    __table_args__ = (
        UniqueConstraint('payment_method_id', 'transaction_type', name='uq_fee_method_type'),
    )

    id = Column(IdType, primary_key=True, autoincrement=True)
    payment_method_id = Column(IdType, ForeignKey('payment_method.id', ondelete='CASCADE'), nullable=False)
    transaction_type = Column(String(30), nullable=False)
    fee_percentage = Column(Numeric(5, 2), nullable=False, default=0)
    fee_fixed_cents = Column(Integer, nullable=False, default=0)
    settlement_days = Column(Integer, nullable=False, default=0)
    is_enabled = Column(Boolean, nullable=False, default=True)

    payment_method = relationship('PaymentMethod', back_populates='fees')

    def __repr__(self):
        return f"<PaymentMethodFee(method_id={self.payment_method_id}, type='{self.transaction_type}')>"
