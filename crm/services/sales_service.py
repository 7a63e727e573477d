"""
Sales service with transactional logic - multi-tenant.

Handles sale creation (pricing, minimum-price authorization, stock
reservation), status transitions with their side effects, field edits and
the delivery/lead listings.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import func

from crm.blueprints.metrics import sale_transitions_total
from crm.exceptions import (
    AuthorizationRequiredError, BusinessLogicError, InvalidTransitionError, NotFoundError
)
from crm.models import (
    KIT_CATEGORIES, AppUser, DeliveryRegion, DeliveryReturnReason, DeliveryShift, DeliveryStatus, DeliveryType,
    DiscountAuthorization, DiscountType, Lead, OrganizationMember, PaymentMethod, Product,
    ProductPriceKit, Sale, SaleChangeLog, SaleChangeType, SaleItem, SaleStatus,
    SaleStatusHistory, ShippingCarrier, StockOperation
)
from crm.services import sale_lifecycle
from crm.services.price_authorization_service import verify_authorization
from crm.services.pricing_service import (
    LEGACY_CUSTOM, calculate_discount, evaluate_line, resolve_price
)
from crm.services.stock_service import apply_sale_stock_operation

logger = logging.getLogger(__name__)

DOMAIN_ERRORS = (BusinessLogicError, NotFoundError, AuthorizationRequiredError)

# Fields editable through update_sale besides the status
DELIVERY_FIELDS = (
    'delivery_type', 'delivery_region_id', 'shipping_carrier_id', 'scheduled_delivery_date',
    'scheduled_delivery_shift', 'assigned_delivery_user_id', 'delivery_notes', 'delivery_status',
)
PAYMENT_FIELDS = ('payment_method_id', 'payment_installments', 'payment_status', 'payment_notes')
MONEY_FIELDS = ('discount_type', 'discount_value', 'shipping_cost_cents')

# Money can only change before the sale leaves the building
MONEY_EDITABLE_STATUSES = frozenset({SaleStatus.DRAFT.value, SaleStatus.PENDING_EXPEDITION.value})


def _now():
    return datetime.now(timezone.utc)


def _int_or_none(value):
    if value in (None, ''):
        return None
    return int(value)


def _parse_date(value):
    if value in (None, ''):
        return None
    if hasattr(value, 'year'):
        return value
    try:
        return datetime.strptime(str(value), '%Y-%m-%d').date()
    except ValueError:
        raise BusinessLogicError(f'Data inválida: {value}')


def get_sale(session, organization_id: int, sale_id: int) -> Sale:
    sale = session.query(Sale).filter_by(id=sale_id, organization_id=organization_id).first()
    if not sale:
        raise NotFoundError('Venda não encontrada')
    return sale


def _get_member(session, organization_id: int, user_id: int) -> Optional[OrganizationMember]:
    return session.query(OrganizationMember).filter_by(
        organization_id=organization_id, user_id=user_id, active=True
    ).first()


def _ensure_member(session, organization_id: int, user_id, label='Usuário'):
    if user_id is None:
        return None
    if not _get_member(session, organization_id, user_id):
        raise BusinessLogicError(f'{label} não pertence a esta organização')
    return int(user_id)


def _seller_commission(session, organization_id: int, seller_user_id: int):
    member = _get_member(session, organization_id, seller_user_id)
    return member.default_commission_percentage if member else 0


def _next_romaneio_number(session, organization_id: int) -> int:
    current = session.query(func.max(Sale.romaneio_number)).filter(
        Sale.organization_id == organization_id
    ).scalar()
    return (current or 0) + 1


def _record_history(session, sale, previous_status, new_status, user_id, notes=None):
    session.add(SaleStatusHistory(
        sale_id=sale.id,
        organization_id=sale.organization_id,
        previous_status=previous_status,
        new_status=new_status,
        changed_by=user_id,
        notes=notes,
    ))
    sale_transitions_total.labels(from_status=previous_status or 'none', to_status=new_status).inc()


def _record_change(session, sale, user_id, change_type, field_name, old_value, new_value):
    session.add(SaleChangeLog(
        sale_id=sale.id,
        organization_id=sale.organization_id,
        changed_by=user_id,
        change_type=change_type,
        field_name=field_name,
        old_value=None if old_value is None else str(old_value),
        new_value=None if new_value is None else str(new_value),
    ))


# ============================================================================
# PRICING OF ITEMS
# ============================================================================

def price_item(session, organization_id: int, seller_user_id: int, item: Dict[str, Any]) -> Dict[str, Any]:
    """
    Price one requested item.

    Accepted keys: product_id, kit_id, tier, custom_price_cents, option,
    quantity, unit_price_cents, discount_type, discount_value, discount_cents,
    requisition_number, authorization_code.
    """
    product = session.query(Product).filter_by(
        id=_int_or_none(item.get('product_id')), organization_id=organization_id
    ).first()
    if not product:
        raise NotFoundError('Produto não encontrado')
    if not product.is_active:
        raise BusinessLogicError(f'O produto "{product.name}" não está ativo')

    kit = None
    selection = {}
    if product.category in KIT_CATEGORIES:
        kit = session.query(ProductPriceKit).filter_by(
            id=_int_or_none(item.get('kit_id')), product_id=product.id
        ).first()
        if not kit:
            raise BusinessLogicError(f'Selecione um kit para "{product.name}"')
        selection = {
            'kit': kit,
            'tier': item.get('tier') or 'regular',
            'custom_price_cents': _int_or_none(item.get('custom_price_cents')),
        }
    else:
        option = item.get('option')
        if option is None:
            option = LEGACY_CUSTOM if item.get('unit_price_cents') is not None else '1'
        selection = {
            'option': option,
            'quantity': _int_or_none(item.get('quantity')),
            'unit_price_cents': _int_or_none(item.get('unit_price_cents')),
        }

    resolution = resolve_price(
        product, _seller_commission(session, organization_id, seller_user_id), **selection
    )

    discount_type = item.get('discount_type')
    discount_value = item.get('discount_value') or 0
    if not discount_type and item.get('discount_cents'):
        discount_type, discount_value = DiscountType.FIXED.value, item.get('discount_cents')

    custom_price = selection.get('custom_price_cents') if selection.get('tier') == 'custom' else None
    evaluation = evaluate_line(
        product, resolution, kit=kit,
        discount_type=discount_type, discount_value=discount_value,
        custom_price_cents=custom_price,
    )

    authorization = None
    if evaluation.needs_authorization:
        code = item.get('authorization_code')
        if not code:
            raise AuthorizationRequiredError(payload={
                'product_id': product.id,
                'kit_id': kit.id if kit else None,
                'total_cents': evaluation.total_cents,
            })
        authorization = verify_authorization(
            session, organization_id, code, product.id, evaluation.total_cents, seller_user_id
        )
        evaluation = evaluate_line(
            product, resolution, kit=kit,
            discount_type=discount_type, discount_value=discount_value,
            custom_price_cents=custom_price, authorization_id=authorization.id,
        )

    return {
        'product': product,
        'quantity': resolution.quantity,
        'unit_price_cents': resolution.unit_price_cents,
        'discount_cents': evaluation.discount_cents,
        'total_cents': evaluation.total_cents,
        'commission_percentage': resolution.commission_percentage,
        'commission_cents': resolution.commission_cents(evaluation.total_cents),
        'requisition_number': item.get('requisition_number'),
        'authorization': authorization,
    }


def calculate_sale_totals(item_totals: List[int], discount_type: Optional[str], discount_value,
                          shipping_cost_cents: int) -> Dict[str, int]:
    """subtotal = sum of item totals; total = subtotal - discount + shipping (never negative)."""
    subtotal = sum(item_totals)
    discount = calculate_discount(subtotal, discount_type, discount_value)
    shipping = int(shipping_cost_cents or 0)
    if shipping < 0:
        raise BusinessLogicError('Frete não pode ser negativo')
    total = subtotal - discount + shipping
    if total < 0:
        raise BusinessLogicError('O total da venda não pode ser negativo')
    return {
        'subtotal_cents': subtotal,
        'discount_cents': discount,
        'shipping_cost_cents': shipping,
        'total_cents': total,
    }


# ============================================================================
# DELIVERY / PAYMENT REFERENCES
# ============================================================================

def _validate_choice(value, enum_cls, label):
    if value in (None, ''):
        return None
    allowed = {e.value for e in enum_cls}
    if value not in allowed:
        raise BusinessLogicError(f'{label} inválido: {value}')
    return value


def _resolve_region(session, organization_id, region_id):
    if region_id is None:
        return None
    region = session.query(DeliveryRegion).filter_by(id=region_id, organization_id=organization_id).first()
    if not region:
        raise NotFoundError('Região de entrega não encontrada')
    return region


def _resolve_carrier(session, organization_id, carrier_id):
    if carrier_id is None:
        return None
    carrier = session.query(ShippingCarrier).filter_by(id=carrier_id, organization_id=organization_id).first()
    if not carrier:
        raise NotFoundError('Transportadora não encontrada')
    return carrier


def _resolve_payment_method(session, organization_id, method_id):
    if method_id is None:
        return None
    method = session.query(PaymentMethod).filter_by(
        id=method_id, organization_id=organization_id, is_active=True
    ).first()
    if not method:
        raise NotFoundError('Forma de pagamento não encontrada')
    return method


def _validate_installments(method, installments):
    installments = int(installments or 1)
    if installments < 1:
        raise BusinessLogicError('Número de parcelas inválido')
    if method is not None and installments > (method.max_installments or 1):
        raise BusinessLogicError(f'{method.name} permite no máximo {method.max_installments} parcelas')
    return installments


# ============================================================================
# CREATE
# ============================================================================

def create_sale(session, organization_id: int, user_id: int, data: Dict[str, Any]) -> Sale:
    """
    Create a sale in draft, reserve its stock and log the initial status.

    A stock reservation failure does not abort the sale: it is recorded in
    the stock operation ledger for replay.
    """
    items_data = data.get('items') or []
    if not items_data:
        raise BusinessLogicError('A venda precisa de pelo menos um item')

    try:
        lead = session.query(Lead).filter_by(
            id=_int_or_none(data.get('lead_id')), organization_id=organization_id
        ).first()
        if not lead:
            raise NotFoundError('Lead não encontrado')

        seller_user_id = _ensure_member(
            session, organization_id, _int_or_none(data.get('seller_user_id')) or user_id, 'Vendedor'
        )

        priced_items = [price_item(session, organization_id, seller_user_id, item) for item in items_data]

        delivery_type = _validate_choice(
            data.get('delivery_type') or DeliveryType.PICKUP.value, DeliveryType, 'Tipo de entrega'
        )
        shift = _validate_choice(data.get('scheduled_delivery_shift'), DeliveryShift, 'Turno')
        region = _resolve_region(session, organization_id, _int_or_none(data.get('delivery_region_id')))
        carrier = _resolve_carrier(session, organization_id, _int_or_none(data.get('shipping_carrier_id')))
        method = _resolve_payment_method(session, organization_id, _int_or_none(data.get('payment_method_id')))

        shipping = data.get('shipping_cost_cents')
        if shipping is None:
            shipping = carrier.cost_cents if carrier and delivery_type == DeliveryType.CARRIER.value else 0

        discount_type = _validate_choice(data.get('discount_type'), DiscountType, 'Tipo de desconto')
        totals = calculate_sale_totals(
            [i['total_cents'] for i in priced_items], discount_type, data.get('discount_value') or 0, shipping
        )

        assigned_delivery_user_id = None
        if delivery_type == DeliveryType.MOTOBOY.value and region is not None:
            assigned_delivery_user_id = region.assigned_user_id

        sale = Sale(
            organization_id=organization_id,
            lead_id=lead.id,
            seller_user_id=seller_user_id,
            created_by=user_id,
            romaneio_number=_next_romaneio_number(session, organization_id),
            discount_type=discount_type,
            discount_value=data.get('discount_value') or 0,
            status=SaleStatus.DRAFT.value,
            delivery_type=delivery_type,
            delivery_status=DeliveryStatus.PENDING.value,
            delivery_region_id=region.id if region else None,
            shipping_carrier_id=carrier.id if carrier else None,
            scheduled_delivery_date=_parse_date(data.get('scheduled_delivery_date')),
            scheduled_delivery_shift=shift,
            assigned_delivery_user_id=assigned_delivery_user_id,
            delivery_notes=data.get('delivery_notes'),
            payment_method_id=method.id if method else None,
            payment_installments=_validate_installments(method, data.get('payment_installments')),
            payment_status=data.get('payment_status') or 'not_paid',
            payment_notes=data.get('payment_notes'),
            **totals,
        )
        session.add(sale)
        session.flush()

        for priced in priced_items:
            authorization = priced['authorization']
            sale.items.append(SaleItem(
                product_id=priced['product'].id,
                product_name=priced['product'].name,
                quantity=priced['quantity'],
                unit_price_cents=priced['unit_price_cents'],
                discount_cents=priced['discount_cents'],
                total_cents=priced['total_cents'],
                requisition_number=priced['requisition_number'],
                commission_percentage=priced['commission_percentage'],
                commission_cents=priced['commission_cents'],
                discount_authorization_id=authorization.id if authorization else None,
            ))
            if authorization is not None:
                authorization.sale_id = sale.id
        session.flush()

        _record_history(session, sale, None, SaleStatus.DRAFT.value, user_id)
        for operation in sale_lifecycle.stock_effects(None, SaleStatus.DRAFT.value):
            apply_sale_stock_operation(session, sale, operation, user_id)

        session.commit()
        logger.info(f"[SALES] Sale {sale.id} created (org {organization_id}, total {sale.total_cents})")
        return sale

    except DOMAIN_ERRORS:
        session.rollback()
        raise
    except Exception as e:
        session.rollback()
        logger.exception(f"[SALES] Error creating sale: {e}")
        raise


# ============================================================================
# UPDATE / TRANSITIONS
# ============================================================================

def _stamp_transition(session, sale, from_status, to_status, user_id, data):
    """Set the timestamps and actors a transition carries."""
    now = _now()
    if to_status == SaleStatus.PENDING_EXPEDITION.value:
        sale.expedition_validated_at = now
        sale.expedition_validated_by = user_id

    elif to_status == SaleStatus.DISPATCHED.value:
        sale.dispatched_at = now
        courier = _int_or_none(data.get('assigned_delivery_user_id'))
        if courier is None and sale.assigned_delivery_user_id is None \
                and sale.delivery_type == DeliveryType.MOTOBOY.value and sale.delivery_region is not None:
            courier = sale.delivery_region.assigned_user_id
        if courier is not None:
            sale.assigned_delivery_user_id = _ensure_member(session, sale.organization_id, courier, 'Entregador')

    elif to_status == SaleStatus.DELIVERED.value:
        sale.delivered_at = now
        outcome = _validate_choice(data.get('delivery_status'), DeliveryStatus, 'Status de entrega')
        if outcome is None or outcome == DeliveryStatus.PENDING.value:
            outcome = DeliveryStatus.DELIVERED_NORMAL.value
        sale.delivery_status = outcome

    elif to_status == SaleStatus.PAYMENT_CONFIRMED.value:
        sale.payment_confirmed_at = now
        sale.payment_confirmed_by = user_id
        sale.payment_status = 'paid'

    elif to_status == SaleStatus.RETURNED.value:
        reason_id = _int_or_none(data.get('return_reason_id'))
        if reason_id is not None:
            reason = session.query(DeliveryReturnReason).filter_by(
                id=reason_id, organization_id=sale.organization_id
            ).first()
            if not reason:
                raise NotFoundError('Motivo de devolução não encontrado')
        sale.returned_at = now
        sale.returned_by = user_id
        sale.return_reason_id = reason_id
        sale.return_notes = data.get('return_notes')

    elif to_status == SaleStatus.DRAFT.value:
        if from_status == SaleStatus.RETURNED.value:
            # Reschedule: the sale goes back through expedition and delivery
            sale.dispatched_at = None
            sale.delivered_at = None
            sale.returned_at = None
            sale.returned_by = None
            sale.return_reason_id = None
            sale.return_notes = None
            sale.delivery_status = DeliveryStatus.PENDING.value
            if 'scheduled_delivery_date' in data:
                sale.scheduled_delivery_date = _parse_date(data.get('scheduled_delivery_date'))
            if 'scheduled_delivery_shift' in data:
                sale.scheduled_delivery_shift = _validate_choice(
                    data.get('scheduled_delivery_shift'), DeliveryShift, 'Turno'
                )
        sale.expedition_validated_at = None
        sale.expedition_validated_by = None


def _apply_field_edits(session, sale, user_id, data):
    """Apply non-status edits and log each changed field."""
    changed_money = False

    for field in MONEY_FIELDS:
        if field in data and data[field] != getattr(sale, field):
            if sale.status not in MONEY_EDITABLE_STATUSES:
                raise BusinessLogicError('Valores só podem ser alterados antes do despacho')
            _record_change(session, sale, user_id, SaleChangeType.DISCOUNT_CHANGED.value,
                           field, getattr(sale, field), data[field])
            changed_money = True

    if changed_money:
        discount_type = _validate_choice(
            data.get('discount_type', sale.discount_type), DiscountType, 'Tipo de desconto'
        )
        discount_value = data.get('discount_value', sale.discount_value) or 0
        shipping = data.get('shipping_cost_cents', sale.shipping_cost_cents)
        totals = calculate_sale_totals([i.total_cents for i in sale.items], discount_type, discount_value, shipping)
        sale.discount_type = discount_type
        sale.discount_value = discount_value
        for key, value in totals.items():
            setattr(sale, key, value)

    for field in DELIVERY_FIELDS:
        if field not in data or (field == 'delivery_status' and 'status' in data):
            continue
        value = data[field]
        if field == 'delivery_type':
            value = _validate_choice(value, DeliveryType, 'Tipo de entrega')
        elif field == 'scheduled_delivery_shift':
            value = _validate_choice(value, DeliveryShift, 'Turno')
        elif field == 'delivery_status':
            value = _validate_choice(value, DeliveryStatus, 'Status de entrega')
        elif field == 'scheduled_delivery_date':
            value = _parse_date(value)
        elif field == 'delivery_region_id':
            region = _resolve_region(session, sale.organization_id, _int_or_none(value))
            value = region.id if region else None
        elif field == 'shipping_carrier_id':
            carrier = _resolve_carrier(session, sale.organization_id, _int_or_none(value))
            value = carrier.id if carrier else None
        elif field == 'assigned_delivery_user_id':
            value = _ensure_member(session, sale.organization_id, _int_or_none(value), 'Entregador')
        if value != getattr(sale, field):
            _record_change(session, sale, user_id, SaleChangeType.DELIVERY_CHANGED.value,
                           field, getattr(sale, field), value)
            setattr(sale, field, value)

    for field in PAYMENT_FIELDS:
        if field not in data:
            continue
        value = data[field]
        if field == 'payment_method_id':
            method = _resolve_payment_method(session, sale.organization_id, _int_or_none(value))
            value = method.id if method else None
        elif field == 'payment_installments':
            method = _resolve_payment_method(
                session, sale.organization_id, _int_or_none(data.get('payment_method_id', sale.payment_method_id))
            )
            value = _validate_installments(method, value)
        if value != getattr(sale, field):
            _record_change(session, sale, user_id, SaleChangeType.PAYMENT_CHANGED.value,
                           field, getattr(sale, field), value)
            setattr(sale, field, value)


def update_sale(session, organization_id: int, sale_id: int, user_id: int,
                data: Dict[str, Any], notes: Optional[str] = None) -> Sale:
    """
    Update a sale: optional status transition plus field edits.

    A status change is validated against the transition table, stamps its
    fields, runs its stock effects (soft-fail, recorded in the ledger) and
    appends a status history row.
    """
    try:
        sale = get_sale(session, organization_id, sale_id)
        previous_status = sale.status
        new_status = data.get('status')

        if new_status is not None and not sale_lifecycle.is_valid_status(new_status):
            raise BusinessLogicError(f'Status inválido: {new_status}')

        transition = new_status is not None and new_status != previous_status
        if transition:
            sale_lifecycle.validate_transition(previous_status, new_status)

        _apply_field_edits(session, sale, user_id, data)

        if transition:
            _stamp_transition(session, sale, previous_status, new_status, user_id, data)
            sale.status = new_status
            session.flush()
            for operation in sale_lifecycle.stock_effects(previous_status, new_status):
                apply_sale_stock_operation(session, sale, operation, user_id)
            _record_history(session, sale, previous_status, new_status, user_id, notes or data.get('notes'))

        session.commit()
        if transition:
            logger.info(f"[SALES] Sale {sale.id}: {previous_status} -> {new_status} by user {user_id}")
        return sale

    except (InvalidTransitionError,) + DOMAIN_ERRORS:
        session.rollback()
        raise
    except Exception as e:
        session.rollback()
        logger.exception(f"[SALES] Error updating sale {sale_id}: {e}")
        raise


def delete_sale(session, organization_id: int, sale_id: int, user_id: int) -> None:
    """
    Delete a sale (admin action).

    Stock still held by the sale is released first: pre-delivery sales are
    unreserved, delivered ones restored.
    """
    try:
        sale = get_sale(session, organization_id, sale_id)
        if sale.status != SaleStatus.CANCELLED.value:
            for operation in sale_lifecycle.stock_effects(sale.status, SaleStatus.CANCELLED.value):
                apply_sale_stock_operation(session, sale, operation, user_id)
            session.flush()

        session.query(StockOperation).filter_by(sale_id=sale.id).delete(synchronize_session=False)
        session.query(SaleChangeLog).filter_by(sale_id=sale.id).delete(synchronize_session=False)
        session.query(DiscountAuthorization).filter_by(sale_id=sale.id).update(
            {'sale_id': None}, synchronize_session=False
        )
        session.delete(sale)
        session.commit()
        logger.info(f"[SALES] Sale {sale_id} deleted by user {user_id}")
    except DOMAIN_ERRORS:
        session.rollback()
        raise


# ============================================================================
# LISTINGS
# ============================================================================

def list_sales(session, organization_id: int, status: Optional[str] = None,
               seller_user_id: Optional[int] = None, limit: int = 100, offset: int = 0) -> List[Sale]:
    query = session.query(Sale).filter(Sale.organization_id == organization_id)
    if status:
        query = query.filter(Sale.status == status)
    if seller_user_id:
        query = query.filter(Sale.seller_user_id == seller_user_id)
    return query.order_by(Sale.created_at.desc(), Sale.id.desc()).offset(offset).limit(limit).all()


def list_my_deliveries(session, organization_id: int, user_id: int) -> List[Sale]:
    """Sales assigned to a courier that are out for delivery or delivered."""
    return session.query(Sale).filter(
        Sale.organization_id == organization_id,
        Sale.assigned_delivery_user_id == user_id,
        Sale.status.in_([SaleStatus.DISPATCHED.value, SaleStatus.DELIVERED.value]),
    ).order_by(Sale.dispatched_at.desc(), Sale.id.desc()).all()


def list_lead_sales(session, organization_id: int, lead_id: int) -> List[Sale]:
    return session.query(Sale).filter(
        Sale.organization_id == organization_id,
        Sale.lead_id == lead_id,
    ).order_by(Sale.created_at.desc(), Sale.id.desc()).all()


def list_change_log(session, organization_id: int, sale_id: int) -> List[SaleChangeLog]:
    get_sale(session, organization_id, sale_id)
    return session.query(SaleChangeLog).filter_by(
        organization_id=organization_id, sale_id=sale_id
    ).order_by(SaleChangeLog.id).all()


def get_user_names(session, user_ids) -> Dict[int, str]:
    """Display names for a set of user ids."""
    ids = {uid for uid in user_ids if uid}
    if not ids:
        return {}
    users = session.query(AppUser).filter(AppUser.id.in_(ids)).all()
    return {u.id: (u.full_name or u.email) for u in users}


# ============================================================================
# ATTACHMENTS
# ============================================================================

def attach_payment_proof(session, organization_id: int, sale_id: int, user_id: int, file) -> Sale:
    """Upload a payment proof (image or PDF) and link it to the sale."""
    from crm.services.storage_service import get_storage_service

    sale = get_sale(session, organization_id, sale_id)
    storage = get_storage_service()
    url = storage.upload_sale_document(file, organization_id, sale.id, 'payment-proof')
    _record_change(session, sale, user_id, SaleChangeType.PAYMENT_CHANGED.value,
                   'payment_proof_url', sale.payment_proof_url, url)
    sale.payment_proof_url = url
    session.commit()
    return sale


def attach_invoice(session, organization_id: int, sale_id: int, user_id: int, file, kind: str) -> Sale:
    """Upload an invoice file; ``kind`` is 'pdf' or 'xml'."""
    from crm.services.storage_service import get_storage_service

    if kind not in ('pdf', 'xml'):
        raise BusinessLogicError('Tipo de nota fiscal inválido')
    sale = get_sale(session, organization_id, sale_id)
    storage = get_storage_service()
    url = storage.upload_sale_document(file, organization_id, sale.id, f'invoice-{kind}')
    field = f'invoice_{kind}_url'
    _record_change(session, sale, user_id, SaleChangeType.GENERAL_EDIT.value, field, getattr(sale, field), url)
    setattr(sale, field, url)
    session.commit()
    return sale
