"""Onboarding blueprint - first-access questionnaire."""
from flask import Blueprint, request, jsonify, g, Response

from crm.database import get_session
from crm.middleware import require_login, require_organization
from crm.services.onboarding_service import FIELDS, get_onboarding, save_onboarding_data

onboarding_bp = Blueprint('onboarding', __name__, url_prefix='/onboarding')


@onboarding_bp.route('', methods=['GET'])
@require_login
@require_organization
def show() -> Response:
    record = get_onboarding(get_session(), g.organization_id, g.user_id)
    answers = {field: getattr(record, field) if record else None for field in FIELDS}
    return jsonify({
        'completed': bool(record and record.completed_at),
        'answers': answers,
    })


@onboarding_bp.route('', methods=['POST'])
@require_login
@require_organization
def submit() -> Response:
    """Save the answers; an empty body skips the questionnaire."""
    save_onboarding_data(get_session(), g.organization_id, g.user_id, request.get_json(silent=True) or {})
    return jsonify({'status': 'ok', 'completed': True})
