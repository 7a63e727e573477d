"""
Sale lifecycle rules: allowed transitions, stock effects, permissions, labels.

Pure functions over status strings. ``sales_service`` applies them.
"""
from typing import Optional, Tuple

from crm.exceptions import InvalidTransitionError
from crm.models import SaleStatus, DeliveryStatus, DeliveryType, DeliveryShift, StockOperationType

S = SaleStatus

ALLOWED_TRANSITIONS = {
    S.DRAFT.value: {S.PENDING_EXPEDITION.value, S.RETURNED.value, S.CANCELLED.value},
    S.PENDING_EXPEDITION.value: {S.DISPATCHED.value, S.DRAFT.value, S.RETURNED.value, S.CANCELLED.value},
    S.DISPATCHED.value: {S.DELIVERED.value, S.RETURNED.value, S.CANCELLED.value},
    S.DELIVERED.value: {
        S.PAYMENT_PENDING.value, S.PAYMENT_CONFIRMED.value, S.RETURNED.value, S.CANCELLED.value,
    },
    S.PAYMENT_PENDING.value: {S.PAYMENT_CONFIRMED.value, S.RETURNED.value, S.CANCELLED.value},
    S.PAYMENT_CONFIRMED.value: {S.RETURNED.value, S.CANCELLED.value},
    S.RETURNED.value: {S.DRAFT.value, S.CANCELLED.value},
    S.CANCELLED.value: set(),
}

# Statuses reached only after stock was deducted at delivery
POST_DELIVERY_STATUSES = frozenset({
    S.DELIVERED.value, S.PAYMENT_PENDING.value, S.PAYMENT_CONFIRMED.value,
})

PRE_DELIVERY_STATUSES = frozenset({
    S.DRAFT.value, S.PENDING_EXPEDITION.value, S.DISPATCHED.value,
})

# Sale statuses in which a stock operation still matches what the sale should hold
OPERATION_STATUSES = {
    StockOperationType.RESERVE.value: PRE_DELIVERY_STATUSES | {S.RETURNED.value},
    StockOperationType.DEDUCT.value: POST_DELIVERY_STATUSES,
    StockOperationType.UNRESERVE.value: frozenset({S.CANCELLED.value}),
    StockOperationType.RESTORE.value: frozenset(s.value for s in S) - POST_DELIVERY_STATUSES,
}

TRANSITION_PERMISSIONS = {
    S.PENDING_EXPEDITION.value: 'validate_expedition',
    S.DISPATCHED.value: 'dispatch',
    S.DELIVERED.value: 'mark_delivered',
    S.PAYMENT_PENDING.value: 'mark_delivered',
    S.PAYMENT_CONFIRMED.value: 'confirm_payment',
    S.CANCELLED.value: 'cancel_sale',
    S.RETURNED.value: 'return_sale',
}

STATUS_LABELS = {
    S.DRAFT.value: 'Rascunho',
    S.PENDING_EXPEDITION.value: 'Aguardando Expedição',
    S.DISPATCHED.value: 'Despachado',
    S.DELIVERED.value: 'Entregue',
    S.PAYMENT_PENDING.value: 'Aguardando Pagamento',
    S.PAYMENT_CONFIRMED.value: 'Pagamento Confirmado',
    S.CANCELLED.value: 'Cancelado',
    S.RETURNED.value: 'Devolvido',
}

DELIVERY_STATUS_LABELS = {
    DeliveryStatus.PENDING.value: 'Pendente',
    DeliveryStatus.DELIVERED_NORMAL.value: 'Normal',
    DeliveryStatus.DELIVERED_MISSING_PRESCRIPTION.value: 'Falta receita',
    DeliveryStatus.DELIVERED_NO_MONEY.value: 'Cliente sem dinheiro',
    DeliveryStatus.DELIVERED_NO_CARD_LIMIT.value: 'Cliente sem limite cartão',
    DeliveryStatus.DELIVERED_CUSTOMER_ABSENT.value: 'Cliente ausente',
    DeliveryStatus.DELIVERED_CUSTOMER_DENIED.value: 'Cliente disse que não pediu',
    DeliveryStatus.DELIVERED_CUSTOMER_GAVE_UP.value: 'Cliente desistiu',
    DeliveryStatus.DELIVERED_WRONG_PRODUCT.value: 'Produto enviado errado',
    DeliveryStatus.DELIVERED_MISSING_PRODUCT.value: 'Produto faltante',
    DeliveryStatus.DELIVERED_INSUFFICIENT_ADDRESS.value: 'Endereço insuficiente',
    DeliveryStatus.DELIVERED_WRONG_TIME.value: 'Motoboy foi em horário errado',
    DeliveryStatus.DELIVERED_OTHER.value: 'Outros',
}

DELIVERY_TYPE_LABELS = {
    DeliveryType.PICKUP.value: 'Retirada no balcão',
    DeliveryType.MOTOBOY.value: 'Tele-entrega (motoboy)',
    DeliveryType.CARRIER.value: 'Transportadora',
}

DELIVERY_SHIFT_LABELS = {
    DeliveryShift.MORNING.value: 'Manhã',
    DeliveryShift.AFTERNOON.value: 'Tarde',
    DeliveryShift.FULL_DAY.value: 'Dia todo',
}


def get_status_label(status: str) -> str:
    return STATUS_LABELS.get(status, status)


def get_delivery_status_label(status: str) -> str:
    return DELIVERY_STATUS_LABELS.get(status, status)


def is_valid_status(status: str) -> bool:
    return status in ALLOWED_TRANSITIONS


def can_transition(from_status: str, to_status: str) -> bool:
    return to_status in ALLOWED_TRANSITIONS.get(from_status, set())


def validate_transition(from_status: str, to_status: str) -> None:
    if not can_transition(from_status, to_status):
        raise InvalidTransitionError(from_status, to_status)


def operation_matches_status(operation: str, status: str) -> bool:
    """Whether a pending stock operation is still wanted for a sale in ``status``."""
    return status in OPERATION_STATUSES.get(operation, ())


def required_permission(from_status: str, to_status: str) -> Optional[str]:
    """Capability a user needs to move a sale between two statuses."""
    if from_status == S.RETURNED.value and to_status == S.DRAFT.value:
        return 'reschedule_sale'
    if from_status == S.PENDING_EXPEDITION.value and to_status == S.DRAFT.value:
        return 'edit_sales'
    return TRANSITION_PERMISSIONS.get(to_status)


def stock_effects(from_status: Optional[str], to_status: str) -> Tuple[str, ...]:
    """
    Stock operations a transition triggers, in order.

    Creation reserves. Delivery turns the reservation into consumption.
    Cancelling after delivery restores the consumed stock; cancelling before
    it only releases the reservation. A return after delivery puts the goods
    back and holds them again, so a returned sale always holds a reservation.
    """
    if from_status is None:
        return (StockOperationType.RESERVE.value,)
    if to_status == S.DELIVERED.value:
        return (StockOperationType.DEDUCT.value,)
    if to_status == S.CANCELLED.value:
        if from_status in POST_DELIVERY_STATUSES:
            return (StockOperationType.RESTORE.value,)
        return (StockOperationType.UNRESERVE.value,)
    if to_status == S.RETURNED.value and from_status in POST_DELIVERY_STATUSES:
        return (StockOperationType.RESTORE.value, StockOperationType.RESERVE.value)
    return ()
