"""Payment methods: settings CRUD, fee calculation and installment rules."""
import logging
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, Dict, List, Optional

from crm.exceptions import BusinessLogicError, NotFoundError
from crm.models import (
    InstallmentFlow, PaymentCategory, PaymentMethod, PaymentMethodFee, PaymentTiming, TransactionType
)
from crm.services.pricing_service import round_cents, to_decimal

logger = logging.getLogger(__name__)

METHOD_FIELDS = (
    'name', 'category', 'payment_timing', 'installment_flow', 'max_installments',
    'min_installment_value_cents', 'destination_bank', 'destination_cnpj', 'cost_center', 'acquirer',
    'fee_percentage', 'fee_fixed_cents', 'settlement_days', 'anticipation_fee_percentage',
    'requires_proof', 'display_order', 'is_active',
)


@dataclass(frozen=True)
class FeeBreakdown:
    fee_cents: int
    net_cents: int
    settlement_date: date

    def to_dict(self) -> Dict[str, Any]:
        return {
            'fee_cents': self.fee_cents,
            'net_cents': self.net_cents,
            'settlement_date': self.settlement_date.isoformat(),
        }


def _fee_row(method: PaymentMethod, transaction_type: Optional[str]) -> Optional[PaymentMethodFee]:
    if not transaction_type:
        return None
    for fee in method.fees:
        if fee.transaction_type == transaction_type and fee.is_enabled:
            return fee
    return None


def calculate_fee(method: PaymentMethod, transaction_type: Optional[str], amount_cents: int,
                  on: Optional[date] = None) -> FeeBreakdown:
    """
    Acquirer fee for a charge of ``amount_cents``.

    Uses the enabled fee row of the transaction type, or the method's own
    defaults. Installment credit with anticipation adds the anticipation
    percentage. The fee never exceeds the amount.
    """
    if amount_cents < 0:
        raise BusinessLogicError('Valor não pode ser negativo')

    row = _fee_row(method, transaction_type)
    if row is not None:
        percentage, fixed, days = row.fee_percentage, row.fee_fixed_cents, row.settlement_days
    else:
        percentage, fixed, days = method.fee_percentage, method.fee_fixed_cents, method.settlement_days

    percentage = to_decimal(percentage)
    if transaction_type == TransactionType.CREDIT_INSTALLMENT.value \
            and method.installment_flow == InstallmentFlow.ANTICIPATION.value:
        percentage += to_decimal(method.anticipation_fee_percentage)

    fee = 0
    if amount_cents > 0:
        fee = min(amount_cents, round_cents(to_decimal(amount_cents) * percentage / 100) + int(fixed or 0))
    return FeeBreakdown(
        fee_cents=fee,
        net_cents=amount_cents - fee,
        settlement_date=(on or date.today()) + timedelta(days=int(days or 0)),
    )


def installment_value_allowed(method: PaymentMethod, total_cents: int, installments: int) -> bool:
    """Whether ``total_cents`` may be split in ``installments`` with this method."""
    if installments < 1 or installments > (method.max_installments or 1):
        return False
    if installments == 1:
        return True
    minimum = method.min_installment_value_cents or 0
    return total_cents // installments >= minimum


def installment_options(method: PaymentMethod, total_cents: int) -> List[int]:
    return [n for n in range(1, (method.max_installments or 1) + 1)
            if installment_value_allowed(method, total_cents, n)]


def list_payment_methods(session, organization_id: int, active_only: bool = True) -> List[PaymentMethod]:
    query = session.query(PaymentMethod).filter(PaymentMethod.organization_id == organization_id)
    if active_only:
        query = query.filter(PaymentMethod.is_active.is_(True))
    return query.order_by(PaymentMethod.display_order, PaymentMethod.name).all()


def get_payment_method(session, organization_id: int, method_id: int) -> PaymentMethod:
    method = session.query(PaymentMethod).filter_by(id=method_id, organization_id=organization_id).first()
    if not method:
        raise NotFoundError('Forma de pagamento não encontrada')
    return method


def _validate_method(values: Dict[str, Any]) -> None:
    categories = {c.value for c in PaymentCategory}
    if values.get('category') and values['category'] not in categories:
        raise BusinessLogicError(f"Categoria inválida: {values['category']}")
    if values.get('payment_timing') and values['payment_timing'] not in {t.value for t in PaymentTiming}:
        raise BusinessLogicError(f"Prazo inválido: {values['payment_timing']}")
    if values.get('installment_flow') and values['installment_flow'] not in {f.value for f in InstallmentFlow}:
        raise BusinessLogicError(f"Fluxo de parcelas inválido: {values['installment_flow']}")
    if int(values.get('max_installments') or 1) < 1:
        raise BusinessLogicError('Máximo de parcelas deve ser pelo menos 1')
    for field in ('fee_percentage', 'anticipation_fee_percentage'):
        if field in values and not (0 <= to_decimal(values[field]) <= 100):
            raise BusinessLogicError('Taxa deve estar entre 0 e 100%')


def _apply_fees(method: PaymentMethod, fees: List[Dict[str, Any]]) -> None:
    types = {t.value for t in TransactionType}
    existing = {f.transaction_type: f for f in method.fees}
    for data in fees:
        transaction_type = data.get('transaction_type')
        if transaction_type not in types:
            raise BusinessLogicError(f'Tipo de transação inválido: {transaction_type}')
        fee = existing.get(transaction_type)
        if fee is None:
            fee = PaymentMethodFee(transaction_type=transaction_type)
            method.fees.append(fee)
            existing[transaction_type] = fee
        fee.fee_percentage = data.get('fee_percentage', 0)
        fee.fee_fixed_cents = int(data.get('fee_fixed_cents') or 0)
        fee.settlement_days = int(data.get('settlement_days') or 0)
        fee.is_enabled = bool(data.get('is_enabled', True))


def save_payment_method(session, organization_id: int, data: Dict[str, Any],
                        method_id: Optional[int] = None) -> PaymentMethod:
    """Create (no ``method_id``) or update a payment method with its fee rows."""
    values = {k: data[k] for k in METHOD_FIELDS if k in data}
    if method_id is None and not (values.get('name') or '').strip():
        raise BusinessLogicError('Nome da forma de pagamento é obrigatório')
    _validate_method(values)

    try:
        if method_id is None:
            method = PaymentMethod(organization_id=organization_id)
            session.add(method)
        else:
            method = get_payment_method(session, organization_id, method_id)
        for key, value in values.items():
            setattr(method, key, value)
        _apply_fees(method, data.get('fees') or [])
        session.commit()
    except (BusinessLogicError, NotFoundError):
        session.rollback()
        raise

    logger.info(f"[PAYMENTS] Payment method {method.id} saved (org {organization_id})")
    return method
