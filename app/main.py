"""Checklist Audit Web Application."""
import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse

from app.audits.errors import (
    AuditEngineError,
    AuditNotFound,
    EvidenceNotFound,
    ItemNotFound,
    NotAuditAssignee,
    PersistenceFailure,
)
from app.audits.sessions import audit_sessions
from app.core.config import settings
from app.core.database import create_db_and_tables
from app.core.scheduler import shutdown_scheduler, start_scheduler
from app.routes import audits, auth, items

# Configure logging
log_dir = Path(settings.log_dir).expanduser()
log_dir.mkdir(parents=True, exist_ok=True)
log_file = log_dir / "latest.log"

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    filename=str(log_file),
)
logger = logging.getLogger(__name__)

ERROR_STATUS_CODES = {
    AuditNotFound: 404,
    ItemNotFound: 404,
    EvidenceNotFound: 404,
    NotAuditAssignee: 403,
    PersistenceFailure: 503,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown lifecycle."""
    # Startup
    logger.info("Starting Checklist Audit application")
    create_db_and_tables()
    start_scheduler()
    yield
    # Shutdown: write pending edits before the timers go away
    await audit_sessions.close()
    shutdown_scheduler()
    logger.info("Checklist Audit application shut down")


app = FastAPI(
    title=settings.app_name,
    description="Import checklist spreadsheets as audits, fill them out and submit them for review",
    version="0.1.0",
    lifespan=lifespan,
)

# Configure CORS for external access
origins = (
    ["*"]
    if settings.allowed_origins == "*"
    else [o.strip() for o in settings.allowed_origins.split(",")]
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(auth.router)
app.include_router(audits.router)
app.include_router(items.router)


@app.exception_handler(AuditEngineError)
async def audit_engine_error_handler(request: Request, exc: AuditEngineError):
    """Map engine errors to HTTP responses; anything not listed is a 400."""
    status_code = next(
        (code for error_type, code in ERROR_STATUS_CODES.items() if isinstance(exc, error_type)),
        400,
    )
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
    return JSONResponse(
        status_code=status_code,
        content={"detail": str(exc), "error": type(exc).__name__},
    )


@app.get("/")
async def root(request: Request):
    """Redirect root to the audit list."""
    rp = request.scope.get("root_path", "")
    return RedirectResponse(f"{rp}/audits")


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy", "app": settings.app_name}
