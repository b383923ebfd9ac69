"""Prometheus metrics module with optional multiprocess support."""

import os

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    REGISTRY,
    CollectorRegistry,
    generate_latest,
    multiprocess,
)
from starlette.responses import Response


def get_metrics_response() -> Response:
    """Generate Prometheus metrics in text format.

    When PROMETHEUS_MULTIPROC_DIR is set (several uvicorn workers), metrics
    from all worker processes are aggregated; otherwise the default registry
    of this process is served.
    """
    if os.environ.get("PROMETHEUS_MULTIPROC_DIR"):
        registry = CollectorRegistry()
        multiprocess.MultiProcessCollector(registry)
    else:
        registry = REGISTRY
    return Response(
        content=generate_latest(registry),
        media_type=CONTENT_TYPE_LATEST,
    )
