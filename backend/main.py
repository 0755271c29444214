"""
Focus Detection - FastAPI Application Entry Point
Session recorder for interview/exam monitoring.
"""

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from app.core.config import settings
from app.core.database import init_db
from app.utils.logger import setup_logging

# Setup logging
setup_logging("DEBUG" if settings.DEBUG else "INFO", log_file=settings.LOG_FILE)
logger = logging.getLogger("focus.main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle manager"""
    logger.info("=" * 60)
    logger.info("  Focus Detection Recorder - Starting")
    logger.info("=" * 60)

    init_db()
    logger.info("Database initialized")

    logger.info(f"Environment: {settings.FOCUS_ENV}")
    logger.info(f"CORS Origins: {settings.cors_origins_list}")
    logger.info("Focus Detection is ready!")
    logger.info("=" * 60)

    yield

    logger.info("Focus Detection shutting down...")


# Create FastAPI app
app = FastAPI(
    title="Focus Detection - Session Recorder",
    description="Stores interview sessions and anomaly events reported by the live monitor",
    version="1.0.0",
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

# Include routers
from app.routers import event, session

app.include_router(session.router)
app.include_router(event.router)


# Health check endpoint
@app.get("/health")
def health_check():
    return {
        "status": "healthy",
        "service": settings.APP_NAME,
        "version": "1.0.0",
    }


@app.get("/api/info")
def api_info():
    return {
        "name": "Focus Detection API",
        "version": "1.0.0",
        "description": "Interview session recorder",
        "endpoints": {
            "session_start": "/api/session/start",
            "session_end": "/api/session/end",
            "session_details": "/api/session/details/{id}",
            "event": "/api/event",
            "session_events": "/api/event/session/{sessionId}",
            "health": "/health",
        }
    }


# Serve the frontend last so API routes take precedence
if settings.public_path is not None:
    app.mount("/", StaticFiles(directory=str(settings.public_path), html=True), name="public")
