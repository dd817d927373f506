"""Lando GUI Web Backend - FastAPI Application."""

import logging
import os
import time

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from backend.web.core.config import DEFAULT_HOST, DEFAULT_PORT, LOG_LEVEL
from backend.web.core.lifespan import lifespan
from backend.web.routers import operations, settings, sites

logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(title="Lando GUI Backend", lifespan=lifespan)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(sites.router)
app.include_router(operations.router)
app.include_router(settings.router)


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message})


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code == 404 and exc.detail == "Not Found":
        return _error(404, f"Route {request.url.path} not found")
    return _error(exc.status_code, str(exc.detail))


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    if not errors:
        return _error(400, "Invalid request")
    first = errors[0]
    field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    return _error(400, f"{field}: {first.get('msg')}" if field else str(first.get("msg")))


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return _error(500, "Internal server error")


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.monotonic()
    response = await call_next(request)
    duration_ms = (time.monotonic() - start) * 1000
    level = logging.WARNING if response.status_code >= 400 else logging.INFO
    logger.log(level, "%s %s %s %.0fms", request.method, request.url.path, response.status_code, duration_ms)
    return response


@app.get("/api/health")
async def health() -> dict:
    return {"success": True}


def _resolve_port() -> int:
    """Resolve backend port: LANDO_GUI_PORT > PORT > 3000."""
    port = os.environ.get("LANDO_GUI_PORT") or os.environ.get("PORT")
    if port:
        try:
            return int(port)
        except ValueError:
            logger.warning("Ignoring invalid port %r, using %d", port, DEFAULT_PORT)
    return DEFAULT_PORT


def main() -> None:
    logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    port = _resolve_port()
    logger.info("Lando GUI running at http://localhost:%d", port)
    # Package-qualified target keeps module launch (`python -m backend.web.main`) import-safe.
    uvicorn.run("backend.web.main:app", host=DEFAULT_HOST, port=port)


if __name__ == "__main__":
    main()
