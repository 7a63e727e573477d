"""Z-API client for outbound WhatsApp messages."""
from typing import Any, Dict, Optional

import requests
from flask import current_app


class ZAPIClient:
    """Cliente da API Z-API (WhatsApp)."""

    def __init__(self, instance_id: Optional[str] = None, token: Optional[str] = None,
                 client_token: Optional[str] = None, base_url: Optional[str] = None):
        config = current_app.config
        self.instance_id = instance_id or config.get('ZAPI_INSTANCE_ID')
        self.token = token or config.get('ZAPI_TOKEN')
        if not self.instance_id or not self.token:
            raise ValueError("ZAPI_INSTANCE_ID and ZAPI_TOKEN are required")
        self.base_url = (base_url or config.get('ZAPI_BASE_URL', 'https://api.z-api.io')).rstrip('/')

        self.headers = {'Content-Type': 'application/json'}
        client_token = client_token or config.get('ZAPI_CLIENT_TOKEN')
        if client_token:
            self.headers['Client-Token'] = client_token

    @property
    def instance_url(self) -> str:
        return f"{self.base_url}/instances/{self.instance_id}/token/{self.token}"

    def send_text(self, phone: str, message: str) -> Dict[str, Any]:
        """
        Send a text message.

        Raises:
            requests.HTTPError: Z-API returned an error status
        """
        url = f"{self.instance_url}/send-text"
        try:
            response = requests.post(
                url, json={'phone': phone, 'message': message}, headers=self.headers, timeout=10
            )
            response.raise_for_status()
            data = response.json()
            current_app.logger.info(f"[ZAPI] Message sent to {phone}: {data.get('messageId')}")
            return data
        except requests.HTTPError as e:
            current_app.logger.error(f"[ZAPI] Error sending message to {phone}: {e.response.text}")
            raise

    def get_status(self) -> Dict[str, Any]:
        """Connection status of the instance (polled by the settings screen)."""
        response = requests.get(f"{self.instance_url}/status", headers=self.headers, timeout=10)
        response.raise_for_status()
        return response.json()

    def get_qr_code(self) -> Dict[str, Any]:
        """QR code image (base64) to pair the instance."""
        response = requests.get(f"{self.instance_url}/qr-code/image", headers=self.headers, timeout=10)
        response.raise_for_status()
        return response.json()
