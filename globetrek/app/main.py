"""FastAPI application."""

from fastapi import FastAPI

from globetrek.app.api.routes.health import router as health_router
from globetrek.app.api.routes.metrics import router as metrics_router
from globetrek.app.api.routes.trips import router as trips_router

app = FastAPI(title="GlobeTrek Itinerary API", version="0.1.0")

# Register routes
app.include_router(health_router, tags=["health"])
app.include_router(metrics_router, tags=["metrics"])
app.include_router(trips_router, tags=["trips"])


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint."""
    return {"message": "GlobeTrek Itinerary API", "version": "0.1.0"}
