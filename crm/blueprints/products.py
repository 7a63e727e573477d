"""Products blueprint - catalog, kit disclosure, stock and price authorizations."""
import logging
from typing import Tuple

from flask import Blueprint, request, jsonify, g, Response

from crm.database import get_session
from crm.decorators.permissions import admin_required, require_permission
from crm.exceptions import BusinessLogicError
from crm.middleware import require_login, require_organization
from crm.services import kit_disclosure_service, product_service, stock_service
from crm.services.price_authorization_service import grant_authorization
from crm.utils.serializers import (
    kit_to_dict, movement_to_dict, product_to_dict, rejection_to_dict, stock_operation_to_dict
)

logger = logging.getLogger(__name__)

products_bp = Blueprint('products', __name__, url_prefix='/products')


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise BusinessLogicError('Corpo da requisição inválido')
    return data


def _flag(name: str) -> bool:
    return request.args.get(name, '').lower() in ('1', 'true', 'yes')


@products_bp.route('/', methods=['GET'])
@require_login
@require_organization
@require_permission('view_products')
def list_products() -> Response:
    products = product_service.list_products(
        get_session(), g.organization_id,
        active_only=_flag('active'),
        category=request.args.get('category') or None,
    )
    return jsonify({'products': [product_to_dict(p, include_kits=False) for p in products]})


@products_bp.route('/low-stock', methods=['GET'])
@require_login
@require_organization
@require_permission('view_products')
def low_stock() -> Response:
    products = product_service.list_low_stock(get_session(), g.organization_id)
    return jsonify({'products': [product_to_dict(p, include_kits=False) for p in products]})


@products_bp.route('/', methods=['POST'])
@require_login
@require_organization
@require_permission('edit_products')
def create_product() -> Tuple[Response, int]:
    product = product_service.save_product(get_session(), g.organization_id, _json_body())
    return jsonify({'status': 'ok', 'product': product_to_dict(product)}), 201


@products_bp.route('/<int:product_id>', methods=['GET'])
@require_login
@require_organization
@require_permission('view_products')
def get_product(product_id: int) -> Response:
    product = product_service.get_product(get_session(), g.organization_id, product_id)
    data = product_to_dict(product)
    data['questions'] = [q.question for q in product.questions]
    return jsonify({'product': data})


@products_bp.route('/<int:product_id>', methods=['PUT'])
@require_login
@require_organization
@require_permission('edit_products')
def update_product(product_id: int) -> Response:
    product = product_service.save_product(get_session(), g.organization_id, _json_body(), product_id)
    return jsonify({'status': 'ok', 'product': product_to_dict(product)})


@products_bp.route('/<int:product_id>/disclosure', methods=['GET'])
@require_login
@require_organization
@require_permission('view_products')
def disclosure(product_id: int) -> Response:
    """
    Kits the seller may show a lead right now.

    Rejected kits plus the current one; later kits stay out of the payload.
    ``show_promotional_2`` / ``show_minimum`` reveal the hidden price points.
    """
    lead_id = request.args.get('lead_id', type=int)
    if not lead_id:
        raise BusinessLogicError('lead_id é obrigatório')
    state = kit_disclosure_service.load_disclosure(
        get_session(), g.organization_id, lead_id, product_id,
        show_promotional_2=_flag('show_promotional_2'),
        show_minimum=_flag('show_minimum'),
    )
    shown = state.previous_kits + ([state.current_kit] if state.current_kit else [])
    return jsonify({
        'disclosure': state.to_dict(),
        'kits': [kit_to_dict(k, visible_tiers=state.visible_tiers(k)) for k in shown],
    })


@products_bp.route('/<int:product_id>/kits/<int:kit_id>/reject', methods=['POST'])
@require_login
@require_organization
@require_permission('reject_kits')
def reject_kit(product_id: int, kit_id: int) -> Response:
    data = _json_body()
    state = kit_disclosure_service.reject_kit(
        get_session(), g.organization_id, g.user_id,
        data.get('lead_id'), product_id, kit_id, data.get('reason') or '',
    )
    return jsonify({'status': 'ok', 'disclosure': state.to_dict()})


@products_bp.route('/<int:product_id>/rejections', methods=['GET'])
@require_login
@require_organization
@require_permission('view_products')
def rejections(product_id: int) -> Response:
    lead_id = request.args.get('lead_id', type=int)
    if not lead_id:
        raise BusinessLogicError('lead_id é obrigatório')
    rows = kit_disclosure_service.list_rejections(get_session(), g.organization_id, lead_id, product_id)
    return jsonify({'rejections': [rejection_to_dict(r) for r in rows]})


@products_bp.route('/<int:product_id>/stock', methods=['POST'])
@require_login
@require_organization
@require_permission('edit_products')
def adjust_stock(product_id: int) -> Response:
    data = _json_body()
    try:
        quantity = int(data.get('quantity'))
    except (TypeError, ValueError):
        raise BusinessLogicError('Quantidade inválida')
    product = stock_service.adjust_stock(
        get_session(), g.organization_id, product_id, quantity, g.user_id, data.get('notes')
    )
    return jsonify({'status': 'ok', 'product': product_to_dict(product, include_kits=False)})


@products_bp.route('/<int:product_id>/movements', methods=['GET'])
@require_login
@require_organization
@require_permission('view_products')
def movements(product_id: int) -> Response:
    db_session = get_session()
    product_service.get_product(db_session, g.organization_id, product_id)
    rows = stock_service.list_movements(
        db_session, g.organization_id, product_id, limit=request.args.get('limit', 50, type=int)
    )
    return jsonify({'movements': [movement_to_dict(m) for m in rows]})


@products_bp.route('/<int:product_id>/authorizations', methods=['POST'])
@require_login
@require_organization
@require_permission('authorize_discount')
def authorize_price(product_id: int) -> Tuple[Response, int]:
    """Issue a code that lets a seller sell below the kit minimum."""
    data = _json_body()
    authorization = grant_authorization(
        get_session(), g.organization_id, g.user_id,
        data.get('seller_user_id'), product_id, data.get('authorized_price_cents'),
        kit_id=data.get('kit_id'),
    )
    return jsonify({
        'status': 'ok',
        'authorization_code': authorization.authorization_code,
        'authorized_price_cents': authorization.authorized_price_cents,
        'minimum_price_cents': authorization.minimum_price_cents,
    }), 201


@products_bp.route('/stock-operations/failed', methods=['GET'])
@require_login
@require_organization
@require_permission('edit_products')
def failed_stock_operations() -> Response:
    rows = stock_service.list_failed_operations(get_session(), g.organization_id)
    return jsonify({'operations': [stock_operation_to_dict(r) for r in rows]})


@products_bp.route('/stock-operations/replay', methods=['POST'])
@require_login
@require_organization
@admin_required
def replay_stock_operations() -> Response:
    summary = stock_service.replay_failed_operations(get_session(), g.organization_id)
    return jsonify({'status': 'ok', **summary})
