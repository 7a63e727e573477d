"""
Redis-backed conversation context for the WhatsApp assistant.

Keys pattern: {prefix}:org:{organization_id}:conversation:{phone}
Entries expire after CONVERSATION_TTL seconds of inactivity. When Redis is
unavailable every read returns an empty context and writes are dropped.
"""
import json
import logging
from typing import Any, Dict, List, Optional

import redis
from redis.exceptions import ConnectionError, RedisError, TimeoutError
from flask import Flask

logger = logging.getLogger(__name__)


def empty_context() -> Dict[str, Any]:
    return {'history': [], 'pending_action': None, 'pending_lead': None}


class ConversationStore:
    """Per organization + phone conversation state with TTL."""

    def __init__(self, app: Optional[Flask] = None, client: Optional[redis.Redis] = None):
        self.client: Optional[redis.Redis] = client
        self._enabled: bool = client is not None
        self._prefix: str = 'crm'
        self.ttl: int = 86400
        self.history_limit: int = 20

        if app:
            self.init_app(app)

    def init_app(self, app: Flask) -> None:
        """Initialize Redis client from Flask app config."""
        self._prefix = app.config.get('CONVERSATION_KEY_PREFIX', 'crm')
        self.ttl = app.config.get('CONVERSATION_TTL', 86400)
        self.history_limit = app.config.get('CONVERSATION_HISTORY_LIMIT', 20)

        if self.client is not None:
            self._enabled = True
            return

        self._enabled = app.config.get('CONVERSATION_STORE_ENABLED', True)
        if not self._enabled:
            logger.info("[CONVERSATION] Store is DISABLED via config")
            return

        redis_url = app.config.get('REDIS_URL', 'redis://redis:6379/0')
        try:
            self.client = redis.from_url(
                redis_url,
                decode_responses=True,
                socket_connect_timeout=3,
                socket_timeout=3,
                retry_on_timeout=True,
                health_check_interval=30
            )
            self.client.ping()
            logger.info(f"[CONVERSATION] Redis connected: {redis_url}")
        except (ConnectionError, TimeoutError, RedisError) as e:
            logger.warning(f"[CONVERSATION] Redis connection failed: {e}. Running stateless.")
            self._enabled = False
            self.client = None

    def is_available(self) -> bool:
        return self._enabled and self.client is not None

    def _build_key(self, organization_id: int, phone: str) -> str:
        return f"{self._prefix}:org:{organization_id}:conversation:{phone}"

    def load(self, organization_id: int, phone: str) -> Dict[str, Any]:
        """Return the stored context or a fresh one."""
        if not self.is_available():
            return empty_context()
        try:
            raw = self.client.get(self._build_key(organization_id, phone))
            if not raw:
                return empty_context()
            context = empty_context()
            context.update(json.loads(raw))
            return context
        except (RedisError, json.JSONDecodeError) as e:
            logger.warning(f"[CONVERSATION] Load error: {e}")
            return empty_context()

    def save(self, organization_id: int, phone: str, context: Dict[str, Any]) -> bool:
        """Persist the context, trimming the history and refreshing the TTL."""
        history: List[str] = list(context.get('history') or [])
        if len(history) > self.history_limit:
            history = history[-self.history_limit:]
        context['history'] = history

        if not self.is_available():
            return False
        try:
            self.client.setex(self._build_key(organization_id, phone), self.ttl, json.dumps(context))
            return True
        except (RedisError, TypeError) as e:
            logger.warning(f"[CONVERSATION] Save error: {e}")
            return False

    def clear(self, organization_id: int, phone: str) -> bool:
        if not self.is_available():
            return False
        try:
            self.client.delete(self._build_key(organization_id, phone))
            return True
        except RedisError as e:
            logger.warning(f"[CONVERSATION] Delete error: {e}")
            return False


_conversation_store: Optional[ConversationStore] = None


def init_conversation_store(app: Flask) -> None:
    """Initialize conversation store singleton."""
    global _conversation_store
    _conversation_store = ConversationStore(app)
    app.extensions['conversation_store'] = _conversation_store


def get_conversation_store() -> ConversationStore:
    if _conversation_store is None:
        raise RuntimeError("Conversation store not initialized.")
    return _conversation_store
