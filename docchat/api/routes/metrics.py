"""Prometheus metrics endpoint."""

from fastapi import APIRouter, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

router = APIRouter()


@router.get("/metrics")
async def metrics() -> Response:
    """Prometheus metrics endpoint.

    Exposes:
    - questions_total{outcome}
    - completion_latency_ms{outcome}
    - document_transitions_total{status}
    - deletion_step_failures_total{step}
    - upstream_errors_total{store}
    """
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
