"""
Academy Match API Server

FastAPI server for the academy match board and player join requests.
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
import logging
import os
import uvicorn
from dotenv import load_dotenv
from slowapi import _rate_limit_exceeded_handler  # type: ignore
from slowapi.errors import RateLimitExceeded  # type: ignore

load_dotenv()

from academy_backend.api.routes import router, limiter as routes_limiter  # noqa: E402
from academy_backend.database import db  # noqa: E402
from academy_backend.services.deferred_deletion import get_deferred_deletion_scheduler  # noqa: E402
from academy_backend.services.match_cleanup_service import get_match_cleanup_service  # noqa: E402
from academy_backend.utils.errors import LifecycleError  # noqa: E402

# Log level is configured via environment variable (default: INFO)
log_level = os.getenv("LOG_LEVEL", "INFO").upper()
numeric_level = getattr(logging, log_level, logging.INFO)
logging.basicConfig(
    level=numeric_level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan handler for startup and shutdown events."""
    logger.info("Starting up Academy Match API...")

    # Tables normally come from alembic; create_all covers fresh dev databases
    try:
        await db.init_database()
        logger.info("Database initialized")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}", exc_info=True)

    # Start finished-match / expired-request sweeper
    try:
        cleanup_service = get_match_cleanup_service()
        cleanup_service.start()
        logger.info("‚úì Match cleanup worker started")
    except Exception as e:
        logger.error(f"Failed to start match cleanup worker: {e}", exc_info=True)

    yield  # App is running

    logger.info("Shutting down Academy Match API...")

    try:
        cleanup_service = get_match_cleanup_service()
        cleanup_service.stop()
        logger.info("‚úì Match cleanup worker stopped")
    except Exception as e:
        logger.error(f"Error stopping match cleanup worker: {e}", exc_info=True)

    # Pending deletions are dropped; the sweeper catches them on next start
    get_deferred_deletion_scheduler().shutdown()


app = FastAPI(
    title="Academy Match API",
    description="Match scheduling between sports academies and player join requests",
    version="1.0.0",
    lifespan=lifespan,
)

# Setup rate limiter
app.state.limiter = routes_limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(LifecycleError)
async def lifecycle_error_handler(request: Request, exc: LifecycleError):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{field}: {first.get('msg')}" if field else first.get("msg")
    else:
        message = "Invalid request"
    return JSONResponse(status_code=400, content={"error": message})


# Add CORS middleware; origins configured via ALLOWED_ORIGINS env var
allowed_origins = os.getenv("ALLOWED_ORIGINS", "http://localhost:3000").split(",")
app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

app.include_router(router)


@app.get("/api/health")
async def health():
    return {"status": "ok"}


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
