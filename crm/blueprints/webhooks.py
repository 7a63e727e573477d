"""
Webhooks Blueprint for Z-API (WhatsApp) notifications.
Inbound messages feed the WhatsApp lead assistant.
"""
import hmac
import logging

from flask import Blueprint, request, jsonify, current_app

from crm.database import get_session
from crm.services.whatsapp_assistant_service import handle_incoming_message

logger = logging.getLogger(__name__)

webhooks_bp = Blueprint('webhooks', __name__, url_prefix='/webhooks')


def verify_zapi_token(received: str) -> bool:
    """
    Compare the Client-Token header with ZAPI_WEBHOOK_TOKEN.

    Verification is skipped when no token is configured.
    """
    expected = current_app.config.get('ZAPI_WEBHOOK_TOKEN')
    if not expected:
        return True
    if not received:
        logger.warning("[ZAPI] Missing Client-Token header in webhook")
        return False
    return hmac.compare_digest(received, expected)


@webhooks_bp.route('/zapi', methods=['POST'])
def zapi_webhook():
    """
    Handle Z-API message notifications.

    Payload: {"phone": "...", "text": {"message": "..."}, "fromMe": false}
    """
    if not verify_zapi_token(request.headers.get('Client-Token', '')):
        return jsonify({'error': 'Invalid token'}), 401

    payload = request.get_json(silent=True) or {}
    try:
        result = handle_incoming_message(get_session(), payload)
        return jsonify(result), 200
    except Exception as e:
        get_session().rollback()
        logger.exception(f"[ZAPI] Error processing webhook: {e}")
        return jsonify({'error': str(e)}), 500
