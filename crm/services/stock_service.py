"""
Stock service - reservation, consumption and restoration of inventory.

Only products with ``track_stock`` enabled are touched. Every change writes a
StockMovement row. Sale-level operations go through
``apply_sale_stock_operation`` which isolates them in a SAVEPOINT and records
the outcome in the StockOperation ledger.
"""
import logging
from typing import Optional, Tuple

from crm.blueprints.metrics import stock_operation_failures_total
from crm.exceptions import BusinessLogicError, InsufficientStockError, NotFoundError
from crm.models import (
    Product, Sale, StockMovement, StockMovementType,
    StockOperation, StockOperationStatus, StockOperationType
)
from crm.services import sale_lifecycle

logger = logging.getLogger(__name__)


def _lock_products(session, organization_id: int, product_ids):
    """Load tracked products of a sale, row-locked for the rest of the transaction."""
    if not product_ids:
        return {}
    products = session.query(Product).filter(
        Product.id.in_(product_ids),
        Product.organization_id == organization_id,
    ).with_for_update().all()
    return {p.id: p for p in products}


def _sale_quantities(sale):
    """Quantity per product id across the sale items."""
    quantities = {}
    for item in sale.items:
        quantities[item.product_id] = quantities.get(item.product_id, 0) + item.quantity
    return quantities


def _record_movement(session, product, movement_type, quantity, previous, new,
                     sale_id=None, user_id=None, notes=None):
    session.add(StockMovement(
        organization_id=product.organization_id,
        product_id=product.id,
        movement_type=movement_type,
        quantity=quantity,
        previous_quantity=previous,
        new_quantity=new,
        reference_type='sale' if sale_id else 'manual',
        reference_id=sale_id,
        created_by=user_id,
        notes=notes,
    ))


def _tracked(session, sale):
    quantities = _sale_quantities(sale)
    products = _lock_products(session, sale.organization_id, list(quantities))
    for product_id, qty in quantities.items():
        product = products.get(product_id)
        if product is not None and product.track_stock:
            yield product, qty


def reserve_stock_for_sale(session, sale, user_id=None) -> None:
    """Hold stock for every tracked item of a sale."""
    for product, qty in _tracked(session, sale):
        if product.available_stock < qty:
            raise InsufficientStockError(product.name, qty, product.available_stock)
        previous = product.stock_reserved
        product.stock_reserved = previous + qty
        _record_movement(session, product, StockMovementType.RESERVE.value, qty,
                         previous, product.stock_reserved, sale.id, user_id)


def unreserve_stock_for_sale(session, sale, user_id=None) -> None:
    """Release the reservation of a sale that will not be delivered."""
    for product, qty in _tracked(session, sale):
        previous = product.stock_reserved
        product.stock_reserved = max(0, previous - qty)
        _record_movement(session, product, StockMovementType.UNRESERVE.value, qty,
                         previous, product.stock_reserved, sale.id, user_id)


def deduct_stock_for_delivered_sale(session, sale, user_id=None, release_reservation=True) -> None:
    """
    Turn the reservation into consumption of real stock.

    Without a held reservation the units come out of the available stock
    and the reserved counter is left alone.
    """
    for product, qty in _tracked(session, sale):
        on_hand = product.stock_quantity if release_reservation else product.available_stock
        if on_hand < qty:
            raise InsufficientStockError(product.name, qty, on_hand)
        previous = product.stock_quantity
        product.stock_quantity = previous - qty
        if release_reservation:
            product.stock_reserved = max(0, product.stock_reserved - qty)
        _record_movement(session, product, StockMovementType.DEDUCT.value, qty,
                         previous, product.stock_quantity, sale.id, user_id)


def restore_stock_for_cancelled_delivered_sale(session, sale, user_id=None) -> None:
    """Put back stock consumed by a sale that was delivered."""
    for product, qty in _tracked(session, sale):
        previous = product.stock_quantity
        product.stock_quantity = previous + qty
        _record_movement(session, product, StockMovementType.RESTORE.value, qty,
                         previous, product.stock_quantity, sale.id, user_id)


SALE_OPERATIONS = {
    StockOperationType.RESERVE.value: reserve_stock_for_sale,
    StockOperationType.UNRESERVE.value: unreserve_stock_for_sale,
    StockOperationType.DEDUCT.value: deduct_stock_for_delivered_sale,
    StockOperationType.RESTORE.value: restore_stock_for_cancelled_delivered_sale,
}

# Compensating operation -> the operation whose effect it undoes
REVERSES = {
    StockOperationType.UNRESERVE.value: StockOperationType.RESERVE.value,
    StockOperationType.RESTORE.value: StockOperationType.DEDUCT.value,
}


def sale_stock_state(session, sale_id: int) -> Tuple[bool, bool]:
    """
    What a sale currently holds according to its applied ledger rows.

    Returns ``(reservation_held, stock_consumed)``.
    """
    held = consumed = False
    rows = session.query(StockOperation.operation).filter(
        StockOperation.sale_id == sale_id,
        StockOperation.status == StockOperationStatus.APPLIED.value,
    ).order_by(StockOperation.id).all()
    for (operation,) in rows:
        if operation == StockOperationType.RESERVE.value:
            held = True
        elif operation == StockOperationType.UNRESERVE.value:
            held = False
        elif operation == StockOperationType.DEDUCT.value:
            held, consumed = False, True
        elif operation == StockOperationType.RESTORE.value:
            consumed = False
    return held, consumed


def _redundancy(operation: str, held: bool, consumed: bool) -> Optional[str]:
    """Reason an operation has nothing to do given the sale's stock state."""
    if operation == StockOperationType.RESERVE.value and held:
        return 'Reserva já aplicada'
    if operation == StockOperationType.UNRESERVE.value and not held:
        return 'Reserva nunca foi aplicada'
    if operation == StockOperationType.DEDUCT.value and consumed:
        return 'Baixa já aplicada'
    if operation == StockOperationType.RESTORE.value and not consumed:
        return 'Baixa nunca foi aplicada'
    return None


def _supersede_pending(session, sale_id: int, operation: str, reason: str) -> None:
    """Retire failed rows of ``operation`` a compensation made pointless."""
    rows = session.query(StockOperation).filter_by(
        sale_id=sale_id, operation=operation, status=StockOperationStatus.FAILED.value
    ).all()
    for row in rows:
        row.status = StockOperationStatus.SUPERSEDED.value
        row.error_message = reason


def _save_outcome(session, sale, operation, user_id, record, status, error) -> StockOperation:
    if record is None:
        record = StockOperation(
            organization_id=sale.organization_id,
            sale_id=sale.id,
            operation=operation,
            created_by=user_id,
            attempts=1,
        )
        session.add(record)
    else:
        record.attempts = (record.attempts or 0) + 1
    record.status = status
    record.error_message = error
    return record


def apply_sale_stock_operation(session, sale, operation: str, user_id=None,
                               record: Optional[StockOperation] = None) -> StockOperation:
    """
    Run one stock operation of a sale without failing the caller.

    The ledger is read first: an operation whose effect is already in place,
    or a compensation for an effect that never happened, is recorded as
    superseded and nothing moves. Otherwise the operation runs inside a
    SAVEPOINT. On error the savepoint is rolled back, the error is logged and
    the ledger row is marked failed; the outer transaction (the sale status
    change) carries on. Passing ``record`` retries an existing failed row
    instead of creating a new one.
    """
    handler = SALE_OPERATIONS.get(operation)
    if handler is None:
        raise BusinessLogicError(f'Operação de estoque inválida: {operation}')

    session.flush()
    held, consumed = sale_stock_state(session, sale.id)
    reason = _redundancy(operation, held, consumed)
    if reason is not None:
        if operation in REVERSES:
            _supersede_pending(session, sale.id, REVERSES[operation], f'Compensada por {operation}')
        logger.warning(f"[STOCK] {operation} skipped for sale {sale.id}: {reason}")
        return _save_outcome(session, sale, operation, user_id, record,
                             StockOperationStatus.SUPERSEDED.value, reason)

    savepoint = session.begin_nested()
    try:
        if operation == StockOperationType.DEDUCT.value:
            handler(session, sale, user_id, release_reservation=held)
        else:
            handler(session, sale, user_id)
        savepoint.commit()
        status, error = StockOperationStatus.APPLIED.value, None
        logger.info(f"[STOCK] {operation} applied for sale {sale.id}")
    except Exception as e:
        savepoint.rollback()
        status, error = StockOperationStatus.FAILED.value, str(e)
        stock_operation_failures_total.labels(operation=operation).inc()
        logger.error(f"[STOCK] {operation} failed for sale {sale.id}: {e}")

    return _save_outcome(session, sale, operation, user_id, record, status, error)


def list_failed_operations(session, organization_id: Optional[int] = None):
    query = session.query(StockOperation).filter(
        StockOperation.status == StockOperationStatus.FAILED.value
    )
    if organization_id is not None:
        query = query.filter(StockOperation.organization_id == organization_id)
    return query.order_by(StockOperation.id).all()


def replay_failed_operations(session, organization_id: Optional[int] = None) -> dict:
    """
    Retry every failed stock operation, oldest first, and commit the outcome.

    An operation that no longer fits the sale's current status (a reservation
    of a sale since cancelled, say) is marked superseded instead of applied.
    """
    summary = {'applied': 0, 'failed': 0, 'superseded': 0}
    for record in list_failed_operations(session, organization_id):
        if record.status != StockOperationStatus.FAILED.value:
            continue
        sale = session.query(Sale).filter_by(id=record.sale_id).first()
        if sale is None:
            continue
        if sale_lifecycle.operation_matches_status(record.operation, sale.status):
            apply_sale_stock_operation(session, sale, record.operation, record.created_by, record=record)
        else:
            record.status = StockOperationStatus.SUPERSEDED.value
            record.error_message = f'Venda em {sale.status}'
            logger.warning(f"[STOCK] {record.operation} superseded for sale {sale.id} ({sale.status})")
        summary[record.status] += 1
    session.commit()
    logger.info(f"[STOCK] Replay finished: {summary}")
    return summary


def adjust_stock(session, organization_id: int, product_id: int, new_quantity: int,
                 user_id: int, notes: Optional[str] = None) -> Product:
    """Set the on-hand quantity of a product (inventory count)."""
    if new_quantity is None or int(new_quantity) < 0:
        raise BusinessLogicError('Quantidade em estoque não pode ser negativa')

    try:
        product = session.query(Product).filter_by(
            id=product_id, organization_id=organization_id
        ).with_for_update().first()
        if not product:
            raise NotFoundError('Produto não encontrado')

        previous = product.stock_quantity
        product.stock_quantity = int(new_quantity)
        product.track_stock = True
        _record_movement(session, product, StockMovementType.ADJUST.value,
                         abs(product.stock_quantity - previous), previous,
                         product.stock_quantity, None, user_id, notes)
        session.commit()
        return product
    except (BusinessLogicError, NotFoundError):
        session.rollback()
        raise


def list_movements(session, organization_id: int, product_id: int, limit: int = 50):
    return session.query(StockMovement).filter_by(
        organization_id=organization_id, product_id=product_id
    ).order_by(StockMovement.id.desc()).limit(limit).all()
