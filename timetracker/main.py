"""FastAPI application entry point."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from timetracker.config import settings
from timetracker.database import database
from timetracker.errors import TimeTrackingError
from timetracker.routers import auth, tasks, timers
from timetracker.utils.logging import configure_logging

configure_logging(settings.log_level)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan - startup and shutdown events."""
    # Startup
    await database.connect()
    yield
    # Shutdown
    await database.disconnect()


app = FastAPI(
    title="Task Time Tracker API",
    description="Authoritative timers, manual entries and approvals for task time tracking",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(TimeTrackingError)
async def time_tracking_error_handler(request: Request, exc: TimeTrackingError):
    """Render service errors with their code so clients can type them."""
    logger.info(
        "%s %s rejected: %s (%s)", request.method, request.url.path, exc.message, exc.code
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


# Include routers
app.include_router(auth.router)
app.include_router(tasks.router)
app.include_router(timers.router)


@app.get("/")
async def root():
    """Root endpoint - health check."""
    return {"status": "ok", "message": "Task Time Tracker API"}


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy"}
