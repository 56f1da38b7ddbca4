"""Prometheus metrics endpoint."""

from fastapi import APIRouter, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

router = APIRouter()


@router.get("/metrics")
async def metrics() -> Response:
    """Prometheus metrics endpoint.

    Exposes pipeline_stage_latency_ms{stage, outcome},
    pipeline_stage_failures_total{stage, reason} and
    storage_write_failures_total{key_kind}.
    """
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
