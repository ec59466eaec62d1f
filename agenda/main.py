import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

# Import all models to ensure they're registered with SQLAlchemy Base
from . import (
    models,  # noqa: F401
    models_google_calendar,  # noqa: F401
)
from .database import Base, engine
from .domain.scheduling.errors import (
    ClientNotFound,
    MissingServiceDuration,
    NotConnected,
    NotFound,
    SchedulingConflict,
    SchedulingError,
    ServiceNotFound,
    SyncAdvisory,
    ValidationError,
)
from .domain.scheduling.router import router as appointments_router
from .routes.google_calendar import router as google_calendar_router

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Reduce verbosity of third-party libraries
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application starting up...")
    try:
        Base.metadata.create_all(bind=engine, checkfirst=True)
        logger.info("Database tables created successfully")
    except Exception as e:
        # Ignore "already exists" errors from race conditions between workers
        error_msg = str(e)
        if "already exists" in error_msg or "duplicate key" in error_msg:
            logger.info("Database tables already exist (created by another worker)")
        else:
            logger.error(f"Failed to create database tables: {e}")
            raise
    yield
    logger.info("Application shutting down...")


app = FastAPI(title="Agenda API", version="1.0.0", lifespan=lifespan)


def status_code_for(exc: SchedulingError) -> int:
    """HTTP status for a scheduling error"""
    if isinstance(exc, SchedulingConflict):
        return 409
    if isinstance(exc, (ServiceNotFound, ClientNotFound, NotFound, NotConnected)):
        return 404
    if isinstance(exc, (MissingServiceDuration, ValidationError)):
        return 422
    if isinstance(exc, SyncAdvisory):
        return 502
    return 400


@app.exception_handler(SchedulingError)
async def scheduling_exception_handler(request: Request, exc: SchedulingError):
    status_code = status_code_for(exc)
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} - {exc.__class__.__name__}: {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} - {exc.__class__.__name__}: {exc.message}")

    content = {"detail": exc.message, "error": exc.__class__.__name__}
    if isinstance(exc, SchedulingConflict):
        content["conflicting_ids"] = exc.conflicting_ids
    return JSONResponse(status_code=status_code, content=content)


# CORS Configuration
ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", "http://localhost:5173,http://localhost:3000").split(",")

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["*"],
)

# Routes
app.include_router(appointments_router)
app.include_router(google_calendar_router)


@app.get("/")
def root():
    return {"message": "Agenda API is running"}


@app.get("/health")
def health():
    return {"status": "healthy"}
