"""WhatsApp instance blueprint - connection status and pairing QR code."""
from flask import Blueprint, jsonify, current_app, Response

from crm.decorators.permissions import admin_required
from crm.middleware import require_login, require_organization
from crm.services.zapi_client import ZAPIClient

whatsapp_bp = Blueprint('whatsapp', __name__, url_prefix='/whatsapp')


def _polling_config() -> dict:
    config = current_app.config
    return {
        'status_poll_seconds': config.get('WHATSAPP_STATUS_POLL_SECONDS', 8),
        'qr_refresh_seconds': config.get('WHATSAPP_QR_REFRESH_SECONDS', 35),
        'qr_max_attempts': config.get('WHATSAPP_QR_MAX_ATTEMPTS', 3),
    }


@whatsapp_bp.route('/status', methods=['GET'])
@require_login
@require_organization
@admin_required
def status() -> Response:
    return jsonify({'instance': ZAPIClient().get_status(), 'polling': _polling_config()})


@whatsapp_bp.route('/qr-code', methods=['GET'])
@require_login
@require_organization
@admin_required
def qr_code() -> Response:
    return jsonify({'qr_code': ZAPIClient().get_qr_code(), 'polling': _polling_config()})
