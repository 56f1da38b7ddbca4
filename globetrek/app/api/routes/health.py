"""Health check endpoints."""

from typing import Annotated, Any

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from globetrek.app.api.deps import get_planner
from globetrek.app.llm.client import OpenAIClient
from globetrek.app.planner import TripPlanner
from globetrek.app.storage.store import RedisKeyValueStore

router = APIRouter()


def check_storage(planner: TripPlanner) -> tuple[bool, str]:
    """Check key-value store reachability.

    Returns:
        (is_ok, status_message)
    """
    store = planner.store
    if not isinstance(store, RedisKeyValueStore):
        return (True, "memory")
    try:
        store.ping()
        return (True, "ok")
    except Exception as e:
        return (False, f"error: {type(e).__name__}")


@router.get("/health")
async def health() -> dict[str, str]:
    """Liveness probe; 200 whenever the process is serving."""
    return {"status": "ok"}


@router.get("/healthz", response_model=None)
async def healthz(
    planner: Annotated[TripPlanner, Depends(get_planner)],
) -> dict[str, Any] | JSONResponse:
    """Readiness probe.

    Returns:
        200 with component status if storage is reachable, 503 otherwise
    """
    storage_ok, storage_status = check_storage(planner)
    generator = "openai" if isinstance(planner.orchestrator.generator, OpenAIClient) else "stub"

    body = {
        "status": "ok" if storage_ok else "degraded",
        "components": {"storage": storage_status, "generator": generator},
    }
    if not storage_ok:
        return JSONResponse(content=body, status_code=503)
    return body
