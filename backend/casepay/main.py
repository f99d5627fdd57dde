"""
Case Filing Payments — FastAPI Application Entry Point

Aggregates all routers, configures middleware and error rendering, and
initializes the database on startup.
"""
import time

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from casepay.config import get_settings
from casepay.database import init_db, SessionLocal
from casepay.exceptions import PaymentSystemError, RateLimited
from casepay.logging_config import configure_logging
from casepay.routes import cases_router, payment_router, admin_router
from casepay.schemas.schemas import ErrorResponse, HealthResponse

settings = get_settings()
logger = structlog.get_logger("casepay")

# ─── Application Instance ───────────────────────────────────────────
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description=(
        "Payment and case consistency API for a case-filing portal: case numbering, "
        "gateway orders, signed payment callbacks, admin corrections and audit trail."
    ),
    docs_url="/docs",
    redoc_url="/redoc",
)

# ─── Startup ─────────────────────────────────────────────────────────
BOOT_TIME = time.time()


def warn_if_callbacks_unverifiable(cfg) -> bool:
    """Warn when no key secret is set; every callback would then fail verification."""
    if cfg.RAZORPAY_KEY_SECRET:
        return False
    logger.warning(
        "gateway_secret_missing",
        gateway_mode=cfg.GATEWAY_MODE,
        detail="RAZORPAY_KEY_SECRET is empty, payment callbacks will be rejected",
    )
    return True


@app.on_event("startup")
def on_startup():
    """Configure logging, create tables and log boot info."""
    configure_logging(settings.LOG_LEVEL, json_logs=settings.JSON_LOGS, log_dir=settings.LOG_DIR)
    init_db()

    logger.info(
        "service_started",
        app=settings.APP_NAME,
        version=settings.APP_VERSION,
        gateway_mode=settings.GATEWAY_MODE,
        gateway_keys="loaded" if settings.RAZORPAY_KEY_ID and settings.RAZORPAY_KEY_SECRET else "missing",
        debug=settings.DEBUG,
    )
    warn_if_callbacks_unverifiable(settings)


# ─── Middleware ──────────────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log every API request with timing."""
    start = time.time()
    response = await call_next(request)
    duration = round((time.time() - start) * 1000, 1)

    if request.url.path.startswith("/api"):
        logger.info(
            "request",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_ms=duration,
        )

    return response


# ─── Error Rendering ─────────────────────────────────────────────────
@app.exception_handler(PaymentSystemError)
async def payment_system_error_handler(request: Request, exc: PaymentSystemError):
    body = ErrorResponse(
        detail=exc.message,
        error_code=exc.error_code,
        rule=exc.rule,
        retryable=exc.retryable,
    )
    headers = {"Retry-After": str(exc.retry_after)} if isinstance(exc, RateLimited) else None
    return JSONResponse(status_code=exc.status_code, content=body.model_dump(), headers=headers)


# ─── API Routers ─────────────────────────────────────────────────────
app.include_router(cases_router)
app.include_router(payment_router)
app.include_router(admin_router)


@app.get("/health", tags=["Health"], response_model=HealthResponse)
def deep_health():
    """Detailed health check including dependency statuses."""
    db_ok = False
    db = SessionLocal()
    try:
        db.execute(text("SELECT 1"))
        db_ok = True
    except SQLAlchemyError as exc:
        logger.warning("health_database_unreachable", error=str(exc))
    finally:
        db.close()

    return HealthResponse(
        status="healthy" if db_ok else "degraded",
        database="connected" if db_ok else "disconnected",
        gateway_mode=settings.GATEWAY_MODE,
        version=settings.APP_VERSION,
        uptime_seconds=round(time.time() - BOOT_TIME, 1),
    )
