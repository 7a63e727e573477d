"""Sales blueprint - lifecycle, deliveries, attachments and romaneio (JSON)."""
import logging
from typing import Tuple

from flask import Blueprint, request, jsonify, send_file, current_app, g, Response

from crm.database import get_session
from crm.decorators.permissions import admin_required, current_user_can, ensure_permission, require_permission
from crm.exceptions import BusinessLogicError, UnauthorizedError
from crm.middleware import require_login, require_organization
from crm.models import OrganizationMember, StockOperation
from crm.services import sales_service
from crm.services.romaneio_service import build_romaneio, render_romaneio_pdf
from crm.services.sale_lifecycle import required_permission
from crm.utils.serializers import (
    change_log_to_dict, sale_to_dict, status_history_to_dict, stock_operation_to_dict
)

logger = logging.getLogger(__name__)

sales_bp = Blueprint('sales', __name__, url_prefix='/sales')

# Keys that count as a field edit (as opposed to a pure status change)
EDIT_KEYS = frozenset(
    sales_service.DELIVERY_FIELDS + sales_service.PAYMENT_FIELDS + sales_service.MONEY_FIELDS
) - {'delivery_status'}


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise BusinessLogicError('Corpo da requisição inválido')
    return data


def _ensure_any_permission(*names):
    if not any(current_user_can(name) for name in names):
        raise UnauthorizedError('Você não tem permissão para esta ação')


def _paging():
    limit = min(max(request.args.get('limit', 50, type=int), 1), 200)
    offset = max(request.args.get('offset', 0, type=int), 0)
    return limit, offset


@sales_bp.route('/', methods=['GET'])
@require_login
@require_organization
@require_permission('view_sales')
def list_sales() -> Response:
    db_session = get_session()
    limit, offset = _paging()
    sales = sales_service.list_sales(
        db_session, g.organization_id,
        status=request.args.get('status') or None,
        seller_user_id=request.args.get('seller_user_id', type=int),
        limit=limit, offset=offset,
    )
    return jsonify({'sales': [sale_to_dict(s, include_items=False) for s in sales]})


@sales_bp.route('/', methods=['POST'])
@require_login
@require_organization
@require_permission('create_sales')
def create_sale() -> Tuple[Response, int]:
    sale = sales_service.create_sale(get_session(), g.organization_id, g.user_id, _json_body())
    return jsonify({'status': 'ok', 'sale': sale_to_dict(sale)}), 201


@sales_bp.route('/price-preview', methods=['POST'])
@require_login
@require_organization
@require_permission('create_sales')
def price_preview() -> Response:
    """Price the items of a sale being assembled, without saving anything."""
    db_session = get_session()
    data = _json_body()
    seller_user_id = data.get('seller_user_id') or g.user_id
    priced = [
        sales_service.price_item(db_session, g.organization_id, seller_user_id, item)
        for item in data.get('items') or []
    ]
    totals = sales_service.calculate_sale_totals(
        [p['total_cents'] for p in priced],
        data.get('discount_type'), data.get('discount_value') or 0,
        data.get('shipping_cost_cents') or 0,
    )
    items = [
        {
            'product_id': p['product'].id,
            'product_name': p['product'].name,
            'quantity': p['quantity'],
            'unit_price_cents': p['unit_price_cents'],
            'discount_cents': p['discount_cents'],
            'total_cents': p['total_cents'],
            'commission_cents': p['commission_cents'],
        }
        for p in priced
    ]
    return jsonify({'items': items, **totals})


@sales_bp.route('/my-deliveries', methods=['GET'])
@require_login
@require_organization
def my_deliveries() -> Response:
    """Sales assigned to the logged-in courier."""
    sales = sales_service.list_my_deliveries(get_session(), g.organization_id, g.user_id)
    return jsonify({'sales': [sale_to_dict(s) for s in sales]})


@sales_bp.route('/lead/<int:lead_id>', methods=['GET'])
@require_login
@require_organization
@require_permission('view_sales')
def lead_sales(lead_id: int) -> Response:
    sales = sales_service.list_lead_sales(get_session(), g.organization_id, lead_id)
    return jsonify({'sales': [sale_to_dict(s) for s in sales]})


@sales_bp.route('/<int:sale_id>', methods=['GET'])
@require_login
@require_organization
@require_permission('view_sales')
def get_sale(sale_id: int) -> Response:
    db_session = get_session()
    sale = sales_service.get_sale(db_session, g.organization_id, sale_id)
    data = sale_to_dict(sale)
    data['stock_operations'] = [
        stock_operation_to_dict(op) for op in
        db_session.query(StockOperation).filter_by(sale_id=sale.id).order_by(StockOperation.id).all()
    ]
    return jsonify({'sale': data})


@sales_bp.route('/<int:sale_id>', methods=['PATCH'])
@require_login
@require_organization
def update_sale(sale_id: int) -> Response:
    """
    Edit a sale and/or move it to another status.

    A status change needs the capability of that transition; field edits
    need ``edit_sales``. The delivery outcome needs ``mark_delivered`` or
    ``edit_sales``.
    """
    db_session = get_session()
    data = _json_body()
    sale = sales_service.get_sale(db_session, g.organization_id, sale_id)

    new_status = data.get('status')
    if new_status and new_status != sale.status:
        permission = required_permission(sale.status, new_status)
        if permission:
            ensure_permission(permission)
    if EDIT_KEYS.intersection(data):
        ensure_permission('edit_sales')
    if 'delivery_status' in data:
        _ensure_any_permission('mark_delivered', 'edit_sales')

    sale = sales_service.update_sale(
        db_session, g.organization_id, sale_id, g.user_id, data, notes=data.get('notes')
    )
    return jsonify({'status': 'ok', 'sale': sale_to_dict(sale)})


@sales_bp.route('/<int:sale_id>', methods=['DELETE'])
@require_login
@require_organization
@admin_required
def delete_sale(sale_id: int) -> Response:
    sales_service.delete_sale(get_session(), g.organization_id, sale_id, g.user_id)
    return jsonify({'status': 'ok'})


@sales_bp.route('/<int:sale_id>/history', methods=['GET'])
@require_login
@require_organization
@require_permission('view_sales')
def sale_history(sale_id: int) -> Response:
    sale = sales_service.get_sale(get_session(), g.organization_id, sale_id)
    return jsonify({'history': [status_history_to_dict(h) for h in sale.status_history]})


@sales_bp.route('/<int:sale_id>/changes', methods=['GET'])
@require_login
@require_organization
@require_permission('view_sales')
def sale_changes(sale_id: int) -> Response:
    entries = sales_service.list_change_log(get_session(), g.organization_id, sale_id)
    return jsonify({'changes': [change_log_to_dict(e) for e in entries]})


@sales_bp.route('/<int:sale_id>/payment-proof', methods=['POST'])
@require_login
@require_organization
def upload_payment_proof(sale_id: int) -> Response:
    _ensure_any_permission('edit_sales', 'confirm_payment', 'mark_delivered')
    sale = sales_service.attach_payment_proof(
        get_session(), g.organization_id, sale_id, g.user_id, request.files.get('file')
    )
    return jsonify({'status': 'ok', 'payment_proof_url': sale.payment_proof_url})


@sales_bp.route('/<int:sale_id>/invoice/<kind>', methods=['POST'])
@require_login
@require_organization
def upload_invoice(sale_id: int, kind: str) -> Response:
    _ensure_any_permission('edit_sales', 'confirm_payment')
    sale = sales_service.attach_invoice(
        get_session(), g.organization_id, sale_id, g.user_id, request.files.get('file'), kind
    )
    return jsonify({'status': 'ok', f'invoice_{kind}_url': getattr(sale, f'invoice_{kind}_url')})


def _romaneio_document(sale_id: int):
    db_session = get_session()
    sale = sales_service.get_sale(db_session, g.organization_id, sale_id)
    names = sales_service.get_user_names(
        db_session, [sale.seller_user_id, sale.created_by, sale.assigned_delivery_user_id]
    )
    return build_romaneio(
        sale,
        current_app.config.get('APP_BASE_URL', ''),
        seller_name=names.get(sale.seller_user_id),
        typist_name=names.get(sale.created_by),
        delivery_user_name=names.get(sale.assigned_delivery_user_id),
    )


@sales_bp.route('/<int:sale_id>/romaneio', methods=['GET'])
@require_login
@require_organization
@require_permission('view_sales')
def romaneio(sale_id: int) -> Response:
    return jsonify({'romaneio': _romaneio_document(sale_id).to_dict()})


@sales_bp.route('/<int:sale_id>/romaneio.pdf', methods=['GET'])
@require_login
@require_organization
@require_permission('view_sales')
def romaneio_pdf(sale_id: int) -> Response:
    document = _romaneio_document(sale_id)
    pdf_buffer = render_romaneio_pdf(document, current_app.config.get('BUSINESS_NAME', ''))
    logger.info(f"[SALES] Romaneio {document.romaneio_number} printed by user {g.user_id}")
    return send_file(
        pdf_buffer,
        mimetype='application/pdf',
        as_attachment=True,
        download_name=f"romaneio_{document.romaneio_number}.pdf"
    )


@sales_bp.route('/delivery-users', methods=['GET'])
@require_login
@require_organization
@require_permission('dispatch')
def delivery_users() -> Response:
    """Members that can be assigned as couriers."""
    db_session = get_session()
    members = db_session.query(OrganizationMember).filter_by(
        organization_id=g.organization_id, role='delivery', active=True
    ).all()
    names = sales_service.get_user_names(db_session, [m.user_id for m in members])
    return jsonify({'users': [{'id': m.user_id, 'name': names.get(m.user_id, '')} for m in members]})
