import logging
import os
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

# Import all models to ensure they're registered with SQLAlchemy Base
from . import (
    models,  # noqa: F401
    models_booking,  # noqa: F401
    models_pipeline,  # noqa: F401
)
from .config import UPLOADS_DIR
from .csrf import CSRFMiddleware, csrf_token_handler
from .database import Base, engine
from .domain.accounts.router import router as accounts_router
from .domain.billing.router import router as billing_router
from .domain.booking.router import router as booking_router
from .domain.dashboard.router import router as dashboard_router
from .domain.pipeline.router import router as pipeline_router
from .domain.softphone.router import router as softphone_router
from .domain.telephony.router import router as telephony_router
from .domain.voice_ai.router import router as voice_ai_router
from .realtime.router import router as realtime_router
from .security_headers import SecurityHeadersMiddleware

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Reduce verbosity of third-party libraries
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)

# CSRF is ENABLED by default, set CSRF_ENABLED=false only for development/testing
CSRF_ENABLED = os.getenv("CSRF_ENABLED", "true").lower() == "true"
SECURITY_HEADERS_ENABLED = os.getenv("SECURITY_HEADERS_ENABLED", "true").lower() == "true"

UPLOAD_SUBDIRS = ("ivr", "receipts")


def ensure_upload_dirs() -> None:
    for subdir in UPLOAD_SUBDIRS:
        os.makedirs(os.path.join(UPLOADS_DIR, subdir), exist_ok=True)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("🚀 Application starting up...")
    try:
        Base.metadata.create_all(bind=engine, checkfirst=True)
        logger.info("✅ Database tables created successfully")
    except Exception as e:
        # Ignore "already exists" errors from race conditions between workers
        error_msg = str(e)
        if "already exists" in error_msg or "duplicate key" in error_msg:
            logger.info("Database tables already exist (created by another worker)")
        else:
            logger.error(f"❌ Failed to create database tables: {e}")

    try:
        from .rate_limiter import get_redis_client

        get_redis_client().ping()
        logger.info("✅ Redis connection established")
    except Exception as e:
        logger.warning(f"⚠️ Redis connection failed - cache disabled, rate limiting will fail closed: {e}")

    ensure_upload_dirs()

    yield
    logger.info("Application shutting down...")


# StaticFiles checks its directory at mount time, before lifespan runs
ensure_upload_dirs()

app = FastAPI(title="Gueswi Console API", version="1.0.0", lifespan=lifespan)


def jsonable_errors(exc: RequestValidationError) -> list:
    # ctx may carry the raw ValueError raised by a field validator
    errors = []
    for error in exc.errors():
        error = dict(error)
        if "ctx" in error:
            error["ctx"] = {key: str(value) for key, value in error["ctx"].items()}
        errors.append(error)
    return errors


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Bad payloads and query params are client errors: 400 with the pydantic error list"""
    logger.warning(f"⚠️ Validation error for {request.url.path}: {exc.errors()}")
    return JSONResponse(status_code=400, content={"detail": jsonable_errors(exc)})


@app.middleware("http")
async def log_requests(request: Request, call_next):
    try:
        response = await call_next(request)
        return response
    except Exception as e:
        logger.error(f"❌ {request.method} {request.url.path} - Error: {str(e)}")
        raise


if SECURITY_HEADERS_ENABLED:
    app.add_middleware(SecurityHeadersMiddleware, exclude_paths=["/health", "/docs", "/openapi.json"])
    logger.info("Security headers enabled")
else:
    logger.warning("⚠️ Security headers DISABLED - only use in development!")

if CSRF_ENABLED:
    app.add_middleware(CSRFMiddleware)
    logger.info("CSRF protection enabled")
else:
    logger.info("CSRF protection disabled")


# Credentialed CORS (session cookie) needs explicit origins
ALLOWED_ORIGINS = os.getenv(
    "ALLOWED_ORIGINS",
    "http://localhost:5173,http://localhost:5000,http://localhost:3000",
).split(",")

logger.info(f"CORS allowed origins: {ALLOWED_ORIGINS}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["*"],
    expose_headers=["*"],
)

# Routes
app.include_router(accounts_router)
app.include_router(telephony_router)
app.include_router(softphone_router)
app.include_router(pipeline_router)
app.include_router(booking_router)
app.include_router(billing_router)
app.include_router(dashboard_router)
app.include_router(voice_ai_router)
app.include_router(realtime_router)

# Receipts and generated IVR audio
app.mount("/uploads", StaticFiles(directory=UPLOADS_DIR), name="uploads")


@app.get("/")
def root():
    return {"message": "Gueswi Console API is running"}


@app.get("/health")
def health():
    return {"status": "healthy"}


@app.get("/health/redis")
async def redis_health_check():
    """Redis backs the cache and rate limiter, report whether it answers"""
    from .rate_limiter import get_redis_client

    try:
        started = time.perf_counter()
        get_redis_client().ping()
    except Exception as e:
        logger.warning(f"⚠️ Redis health check failed: {e}")
        return {"status": "unhealthy", "redis": {"connected": False, "error": str(e)}}
    elapsed_ms = (time.perf_counter() - started) * 1000
    return {"status": "healthy", "redis": {"connected": True, "response_time_ms": round(elapsed_ms, 2)}}


@app.get("/csrf-token")
async def get_csrf_token(request: Request, response: Response):
    """
    Get a CSRF token for the frontend.
    The frontend echoes it in the X-CSRF-Token header on state-changing requests.
    """
    return await csrf_token_handler(request, response)
