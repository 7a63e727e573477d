"""Payment methods blueprint - settings and fee simulation."""
from datetime import datetime
from typing import Tuple

from flask import Blueprint, request, jsonify, g, Response

from crm.database import get_session
from crm.decorators.permissions import require_permission
from crm.exceptions import BusinessLogicError
from crm.middleware import require_login, require_organization
from crm.services import payment_method_service
from crm.utils.serializers import payment_method_to_dict

payment_methods_bp = Blueprint('payment_methods', __name__, url_prefix='/payment-methods')


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise BusinessLogicError('Corpo da requisição inválido')
    return data


@payment_methods_bp.route('/', methods=['GET'])
@require_login
@require_organization
def list_methods() -> Response:
    """Active methods for the sale form; ``all=1`` includes inactive ones."""
    methods = payment_method_service.list_payment_methods(
        get_session(), g.organization_id, active_only=request.args.get('all') != '1'
    )
    return jsonify({'payment_methods': [payment_method_to_dict(m) for m in methods]})


@payment_methods_bp.route('/', methods=['POST'])
@require_login
@require_organization
@require_permission('manage_payment_methods')
def create_method() -> Tuple[Response, int]:
    method = payment_method_service.save_payment_method(get_session(), g.organization_id, _json_body())
    return jsonify({'status': 'ok', 'payment_method': payment_method_to_dict(method)}), 201


@payment_methods_bp.route('/<int:method_id>', methods=['PUT'])
@require_login
@require_organization
@require_permission('manage_payment_methods')
def update_method(method_id: int) -> Response:
    method = payment_method_service.save_payment_method(
        get_session(), g.organization_id, _json_body(), method_id
    )
    return jsonify({'status': 'ok', 'payment_method': payment_method_to_dict(method)})


@payment_methods_bp.route('/<int:method_id>/fee', methods=['GET'])
@require_login
@require_organization
def simulate_fee(method_id: int) -> Response:
    """Fee, net amount and allowed installments for an amount in cents."""
    method = payment_method_service.get_payment_method(get_session(), g.organization_id, method_id)
    amount = request.args.get('amount_cents', type=int)
    if amount is None:
        raise BusinessLogicError('amount_cents é obrigatório')

    on = None
    if request.args.get('date'):
        try:
            on = datetime.strptime(request.args['date'], '%Y-%m-%d').date()
        except ValueError:
            raise BusinessLogicError('Data inválida')

    breakdown = payment_method_service.calculate_fee(
        method, request.args.get('transaction_type'), amount, on=on
    )
    return jsonify({
        **breakdown.to_dict(),
        'installment_options': payment_method_service.installment_options(method, amount),
    })
