import logging
import time

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from sqlalchemy import text

from ..config import settings
from ..errors import NotAssignedDriver, RideCoreError, RideNotFound, StateConflict, ValidationError
from .database import engine
from .middleware import RequestIDMiddleware
from .models import Base
from .routers import driver as driver_router
from .routers import rides as rides_router

logger = logging.getLogger("gocomet.server")

REQ = Counter("http_requests_total", "HTTP requests", ["method", "path", "status"])
REQ_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "path"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10),
)


def status_for(exc: RideCoreError) -> int:
    if isinstance(exc, ValidationError):
        return 400
    if isinstance(exc, NotAssignedDriver):
        return 403
    if isinstance(exc, RideNotFound):
        return 404
    if isinstance(exc, StateConflict):
        return 409
    return 500


def create_app() -> FastAPI:
    app = FastAPI(title="GoComet Rides API", version="0.1.0")

    allowed_origins = settings.ALLOWED_ORIGINS or ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials="*" not in allowed_origins,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "X-Request-ID"],
    )
    app.add_middleware(RequestIDMiddleware)

    if settings.AUTO_CREATE_SCHEMA:
        Base.metadata.create_all(bind=engine)

    @app.exception_handler(RideCoreError)
    async def _ride_error(request: Request, exc: RideCoreError):
        code = status_for(exc)
        if code >= 500:
            logger.error("unhandled ride error on %s: %s", request.url.path, exc.message)
        return JSONResponse(status_code=code, content={"success": False, "message": exc.message, "code": exc.code})

    @app.exception_handler(RequestValidationError)
    async def _validation_error(request: Request, exc: RequestValidationError):
        first = (exc.errors() or [{}])[0]
        where = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
        message = f"Invalid {where}: {first.get('msg', 'invalid value')}" if where else "Invalid request."
        return JSONResponse(
            status_code=400,
            content={"success": False, "message": message, "code": ValidationError.code},
        )

    @app.get("/health", tags=["health"])
    def health():
        with engine.connect() as conn:
            conn.execute(text("select 1"))
        return {"status": "ok", "env": settings.ENV}

    @app.middleware("http")
    async def _metrics_mw(request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        duration = time.perf_counter() - start
        try:
            route = getattr(request.scope.get("route"), "path", None) or request.url.path
            REQ.labels(request.method, route, str(response.status_code)).inc()
            REQ_DURATION.labels(request.method, route).observe(duration)
        except Exception:
            pass
        return response

    @app.get("/metrics")
    def metrics():
        return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)

    app.include_router(rides_router.router)
    app.include_router(driver_router.router)
    return app


app = create_app()
