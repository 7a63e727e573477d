"""Leads blueprint - CRUD and search (JSON)."""
from typing import Tuple

from flask import Blueprint, request, jsonify, g, Response

from crm.database import get_session
from crm.decorators.permissions import require_permission
from crm.exceptions import BusinessLogicError
from crm.middleware import require_login, require_organization
from crm.services import lead_service
from crm.utils.serializers import lead_to_dict

leads_bp = Blueprint('leads', __name__, url_prefix='/leads')


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise BusinessLogicError('Corpo da requisição inválido')
    return data


@leads_bp.route('/', methods=['GET'])
@require_login
@require_organization
@require_permission('view_leads')
def list_leads() -> Response:
    leads = lead_service.list_leads(
        get_session(), g.organization_id,
        stage=request.args.get('stage') or None,
        limit=min(request.args.get('limit', 100, type=int), 500),
        offset=request.args.get('offset', 0, type=int),
    )
    return jsonify({'leads': [lead_to_dict(l) for l in leads]})


@leads_bp.route('/search', methods=['GET'])
@require_login
@require_organization
@require_permission('view_leads')
def search_leads() -> Response:
    leads = lead_service.search_leads(get_session(), g.organization_id, request.args.get('q', ''))
    return jsonify({'leads': [lead_to_dict(l) for l in leads]})


@leads_bp.route('/', methods=['POST'])
@require_login
@require_organization
@require_permission('edit_leads')
def create_lead() -> Tuple[Response, int]:
    lead = lead_service.create_lead(get_session(), g.organization_id, g.user_id, _json_body())
    return jsonify({'status': 'ok', 'lead': lead_to_dict(lead)}), 201


@leads_bp.route('/<int:lead_id>', methods=['GET'])
@require_login
@require_organization
@require_permission('view_leads')
def get_lead(lead_id: int) -> Response:
    lead = lead_service.get_lead(get_session(), g.organization_id, lead_id)
    return jsonify({'lead': lead_to_dict(lead)})


@leads_bp.route('/<int:lead_id>', methods=['PATCH'])
@require_login
@require_organization
@require_permission('edit_leads')
def update_lead(lead_id: int) -> Response:
    lead = lead_service.update_lead(get_session(), g.organization_id, lead_id, _json_body())
    return jsonify({'status': 'ok', 'lead': lead_to_dict(lead)})
