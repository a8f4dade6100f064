#!/usr/bin/env python3
"""RUP Satker FastAPI backend: proxies, caches and filters RUP procurement data."""

import os
import sys
import threading
import time
import uuid
from typing import Callable, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

# Add backend dir to path for flat module imports
sys.path.insert(0, os.path.dirname(__file__))
from logging_config import setup_logging
from errors import RupError
from fetcher import probe_source
from settings import Settings
from services.data_loader import RupDataService
from routers.core import build_core_router
from routers.rup import build_rup_router

logger = setup_logging("rup", level=os.environ.get("RUP_LOG_LEVEL", "INFO"))

ENDPOINTS = [
    "GET /health - Health check",
    "GET /api/validate?klpd=&tahun= - Validate KLPD and tahun",
    "GET /api/test-connection?klpd=&tahun= - Probe the data source",
    "GET /api/debug - Debug info & sample data",
    "GET /api/config - Current KLPD & tahun",
    "POST /api/config - Change KLPD & tahun",
    "GET /api/klpd/list - Available KLPD",
    "GET /api/search-satker/:partial - Search kd_satker",
    "GET /api/rup/:kd_satker?klpd=&tahun= - Satker data",
    "GET /api/rup?klpd=&tahun=&search= - All data",
    "GET /api/:klpd/:tahun/rup/:kd_satker - Satker data for a KLPD/tahun",
    "GET /api/:klpd/:tahun/rup?search= - All data for a KLPD/tahun",
    "GET /api/satker/list - Satker list",
    "GET /api/stats - Data statistics",
    "GET /api/columns - Column info",
    "POST /api/refresh - Manual data refresh",
]


def _error_response(request: Request, status_code: int, message: str) -> JSONResponse:
    rid = getattr(request.state, "request_id", None) or uuid.uuid4().hex[:12]
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "message": message, "requestId": rid},
        headers={"X-Request-Id": rid},
    )


def create_app(
    settings: Optional[Settings] = None,
    service: Optional[RupDataService] = None,
    probe_fn: Optional[Callable] = None,
) -> FastAPI:
    settings = settings or Settings.from_env()
    service = service or RupDataService(settings)
    probe_fn = probe_fn or (lambda klpd, tahun: probe_source(klpd, tahun, settings=settings))

    app = FastAPI(title="RUP Satker API")
    app.state.settings = settings
    app.state.service = service
    app.state.api_error_counters = {"4xx": 0, "5xx": 0}

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["Content-Type", "Authorization"],
    )

    @app.exception_handler(RupError)
    async def rup_error_handler(request: Request, exc: RupError):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        return _error_response(request, exc.status_code, exc.message)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        message = "Endpoint not found" if exc.status_code == 404 else str(exc.detail)
        return _error_response(request, exc.status_code, message)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        parts = []
        for err in exc.errors():
            loc = ".".join(str(x) for x in err.get("loc", ()) if x not in ("query", "path", "body"))
            parts.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
        return _error_response(request, 400, "Invalid parameters: " + "; ".join(parts))

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        rid = getattr(request.state, "request_id", None) or uuid.uuid4().hex[:12]
        logger.exception(f"Unhandled error rid={rid}: {exc}")
        return _error_response(request, 500, "Internal server error")

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Log API requests with method, path, and response time."""
        start_time = time.time()
        request_id = request.headers.get("X-Request-Id") or uuid.uuid4().hex[:12]
        request.state.request_id = request_id

        response = await call_next(request)

        duration_ms = (time.time() - start_time) * 1000
        response.headers["X-Request-Id"] = request_id

        counters = app.state.api_error_counters
        if 400 <= response.status_code < 500:
            counters["4xx"] += 1
        elif response.status_code >= 500:
            counters["5xx"] += 1

        # Skip logging routine polling endpoints to reduce noise
        skip_paths = ['/health']
        if request.url.path not in skip_paths or response.status_code >= 400:
            logger.info(
                f"{request.method} {request.url.path} - {response.status_code} - {duration_ms:.2f}ms - rid={request_id}"
            )

        return response

    @app.on_event("startup")
    async def startup_event():
        """Log startup information and start the initial data load."""
        logger.info("RUP Satker API server starting")
        logger.info(f"Data URL: {service.state.url}")
        logger.info(f"KLPD: {service.state.klpd}, Tahun: {service.state.tahun}, policy: {settings.klpd_policy}")
        for line in ENDPOINTS:
            logger.info(f"  {line}")
        if settings.init_on_startup:
            # Background so the listener is up while the upstream is slow.
            threading.Thread(target=service.initialize, name="rup-init", daemon=True).start()

    app.include_router(build_core_router(
        service=service,
        settings=settings,
        probe_fn=probe_fn,
        logger=logger,
    ))
    app.include_router(build_rup_router(service=service, logger=logger))

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=app.state.settings.port)
