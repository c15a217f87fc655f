"""FastAPI application."""

from fastapi import FastAPI

from backend.drafting.api.routes.documents import router as documents_router
from backend.drafting.api.routes.health import router as health_router
from backend.drafting.api.routes.metrics import router as metrics_router

app = FastAPI(title="Document Drafting API", version="0.1.0")

# Register routes
app.include_router(health_router, tags=["health"])
app.include_router(metrics_router, tags=["metrics"])
app.include_router(documents_router, tags=["documents"])


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint."""
    return {"message": "Document Drafting API", "version": "0.1.0"}
