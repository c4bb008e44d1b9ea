"""
Prometheus counters for the sales API.

/metrics serves request traffic per endpoint plus the sale workflow and
analytics tool counters. It has no authentication; keep it off the public
network.
"""
from flask import Blueprint, Response, request, g
from prometheus_client import Counter, Histogram, Gauge, generate_latest, CollectorRegistry, CONTENT_TYPE_LATEST
from prometheus_client import multiprocess, REGISTRY
import time
import os

metrics_bp = Blueprint('metrics', __name__)

# gunicorn workers write to PROMETHEUS_MULTIPROC_DIR and are merged on scrape
MULTIPROCESS_MODE = os.environ.get('PROMETHEUS_MULTIPROC_DIR') is not None

if MULTIPROCESS_MODE:
    registry = CollectorRegistry()
    multiprocess.MultiProcessCollector(registry)
else:
    registry = REGISTRY

_metric_registry = registry if not MULTIPROCESS_MODE else None

http_requests_total = Counter(
    'http_requests_total',
    'API requests by endpoint and status',
    ['method', 'endpoint', 'http_status'],
    registry=_metric_registry
)

http_request_duration_seconds = Histogram(
    'http_request_duration_seconds',
    'API request latency in seconds',
    ['method', 'endpoint'],
    registry=_metric_registry,
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0)
)

http_requests_in_flight = Gauge(
    'http_requests_in_flight',
    'API requests being served',
    registry=_metric_registry
)

sales_created_total = Counter(
    'sales_created_total',
    'Sales committed with stock decremented',
    registry=_metric_registry
)

sales_cancelled_total = Counter(
    'sales_cancelled_total',
    'Sales cancelled with stock restored',
    registry=_metric_registry
)

# tool is 'unknown' for names outside the registry, keeping label values bounded
tool_calls_total = Counter(
    'tool_calls_total',
    'Analytics tool calls by tool and outcome',
    ['tool', 'outcome'],
    registry=_metric_registry
)


def record_tool_call(tool: str, known: bool, failed: bool) -> None:
    tool_calls_total.labels(
        tool=tool if known else 'unknown',
        outcome='error' if failed else 'ok'
    ).inc()


def setup_metrics_instrumentation(app):
    """Time every request and count it under its blueprint endpoint name."""

    @app.before_request
    def start_request_timer():
        g._request_started = time.perf_counter()
        http_requests_in_flight.inc()

    @app.after_request
    def observe_request(response):
        # Requests rejected before the timer started are not counted
        if not hasattr(g, '_request_started'):
            return response

        elapsed = time.perf_counter() - g._request_started
        endpoint = request.endpoint or 'unknown'

        http_request_duration_seconds.labels(method=request.method, endpoint=endpoint).observe(elapsed)
        http_requests_total.labels(
            method=request.method,
            endpoint=endpoint,
            http_status=response.status_code
        ).inc()
        http_requests_in_flight.dec()
        return response


@metrics_bp.route('/metrics')
def metrics():
    return Response(generate_latest(registry), mimetype=CONTENT_TYPE_LATEST)
