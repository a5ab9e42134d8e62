"""FastAPI web application for the statistics engine.

This module defines the FastAPI application, registers the error
handler for invalid engine input and includes the API routes.  It also
provides a convenience function to launch the server via Uvicorn.
"""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
import uvicorn

from .routes import router
from ..config.settings import settings
from ..core.errors import InvalidInputError
from ..utils.logging import get_logger

logger = get_logger(__name__)

# Create FastAPI app
app = FastAPI(
    title="Evistat",
    description="Deterministic meta-analysis, power and clinical score engine",
    version="0.1.0",
)

# Include API routes
app.include_router(router)


@app.exception_handler(InvalidInputError)
async def invalid_input_handler(request: Request, exc: InvalidInputError) -> JSONResponse:
    logger.warning(f"Rejected {request.url.path}: {exc}", extra={"path": request.url.path, "error": type(exc).__name__})
    return JSONResponse(
        status_code=422,
        content={"error": type(exc).__name__, "detail": str(exc)},
    )


def start_server(host: str = settings.api_host, port: int = settings.api_port, reload: bool = False) -> None:
    """Start the Uvicorn web server.

    Parameters
    ----------
    host: str
        Host to bind the server to.
    port: int
        Port to listen on.
    reload: bool
        Whether to enable auto-reload. Useful during development.
    """
    uvicorn.run(
        "evistat.web.app:app",
        host=host,
        port=port,
        reload=reload,
    )


if __name__ == "__main__":
    start_server()
