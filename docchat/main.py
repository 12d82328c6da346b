"""FastAPI application."""

from fastapi import FastAPI

from docchat.api.routes.chat import router as chat_router
from docchat.api.routes.documents import router as documents_router
from docchat.api.routes.health import router as health_router
from docchat.api.routes.metrics import router as metrics_router

app = FastAPI(title="Docchat API", version="0.1.0")

# Register routes
app.include_router(health_router, tags=["health"])
app.include_router(metrics_router, tags=["metrics"])
app.include_router(documents_router)
app.include_router(chat_router)


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint."""
    return {"message": "Docchat API", "version": "0.1.0"}
