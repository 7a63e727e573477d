"""
Prometheus metrics blueprint.

Exposes /metrics with HTTP request metrics plus the sale, stock and WhatsApp
counters incremented by the services. Restrict it to the monitoring network.
"""
import os
import time

from flask import Blueprint, Response, request, g
from prometheus_client import Counter, Histogram, Gauge, generate_latest, CollectorRegistry, CONTENT_TYPE_LATEST
from prometheus_client import multiprocess, REGISTRY

metrics_bp = Blueprint('metrics', __name__)

# Gunicorn workers share metrics through PROMETHEUS_MULTIPROC_DIR
MULTIPROCESS_MODE = os.environ.get('PROMETHEUS_MULTIPROC_DIR') is not None


def _build_registry():
    if not MULTIPROCESS_MODE:
        return REGISTRY
    collector_registry = CollectorRegistry()
    multiprocess.MultiProcessCollector(collector_registry)
    return collector_registry


registry = _build_registry()

# Metrics register in the default registry unless workers aggregate them
_metric_registry = None if MULTIPROCESS_MODE else registry

http_requests_total = Counter(
    'crm_http_requests_total',
    'HTTP requests by endpoint and status',
    ['method', 'endpoint', 'http_status'],
    registry=_metric_registry
)

http_request_duration_seconds = Histogram(
    'crm_http_request_duration_seconds',
    'HTTP request latency in seconds',
    ['method', 'endpoint'],
    registry=_metric_registry,
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0)
)

http_requests_in_flight = Gauge(
    'crm_http_requests_in_flight',
    'HTTP requests being processed',
    registry=_metric_registry
)

sale_transitions_total = Counter(
    'crm_sale_transitions_total',
    'Sale status transitions',
    ['from_status', 'to_status'],
    registry=_metric_registry
)

stock_operation_failures_total = Counter(
    'crm_stock_operation_failures_total',
    'Stock side effects that failed and were recorded for replay',
    ['operation'],
    registry=_metric_registry
)

whatsapp_messages_total = Counter(
    'crm_whatsapp_messages_total',
    'Inbound WhatsApp messages by outcome',
    ['outcome'],
    registry=_metric_registry
)


def _observe_request(response):
    started = g.pop('_metrics_started_at', None)
    if started is None:
        return
    endpoint = request.endpoint or 'unknown'
    http_request_duration_seconds.labels(method=request.method, endpoint=endpoint).observe(
        time.time() - started
    )
    http_requests_total.labels(
        method=request.method, endpoint=endpoint, http_status=response.status_code
    ).inc()
    http_requests_in_flight.dec()


def setup_metrics_instrumentation(app):
    """Register the request hooks that feed the HTTP metrics."""

    @app.before_request
    def start_request_timer():
        g._metrics_started_at = time.time()
        http_requests_in_flight.inc()

    @app.after_request
    def record_request_metrics(response):
        try:
            _observe_request(response)
        except Exception as e:
            app.logger.warning(f"[METRICS] Failed to record request: {e}")
        return response


@metrics_bp.route('/metrics')
def metrics():
    """Prometheus exposition format. Not authenticated."""
    return Response(generate_latest(registry), mimetype=CONTENT_TYPE_LATEST)
