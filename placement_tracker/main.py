"""
Placement Tracker - Main Application

FastAPI backend with:
- PostgreSQL for placements (one row per application)
- LLM extraction from pasted recruiter emails
- Bearer tokens from the hosted auth provider

Run: uvicorn placement_tracker.main:app --reload
"""

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from placement_tracker.api.routes import api_router
from placement_tracker.core.config import get_settings
from placement_tracker.core.errors import TrackerError
from placement_tracker.core.logging import setup_logging
from placement_tracker.db.postgres import check_postgres_connection

settings = get_settings()
setup_logging()
logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title="Placement Tracker",
    description="""
    Track campus placement applications from registration to offer.

    ## Features
    - **Placements**: Create, edit, bulk update and delete applications
    - **Eligibility**: Marking a drive not eligible locks its status
    - **Email extraction**: Paste a recruiter email, verify, save
    - **Views**: Search, filters, sorting, kanban, upcoming tests and interviews
    - **Export**: Complete or filtered CSV
    """,
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

# CORS middleware (allow all for development)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(TrackerError)
async def tracker_error_handler(request: Request, exc: TrackerError):
    """Typed tracker errors become JSON with the error's status code."""
    if exc.status_code >= 500:
        logger.warning("%s %s -> %s: %s", request.method, request.url.path, exc.status_code, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


# Include API routes
app.include_router(api_router, prefix="/api")


@app.on_event("startup")
async def startup_event():
    if not settings.llm_api_key:
        logger.warning("LLM_API_KEY is not set, email extraction will fail")
    logger.info("Placement Tracker started (model %s)", settings.llm_model)


@app.get("/health", tags=["Health"])
async def health_check():
    """Detailed health check."""
    return {
        "status": "healthy",
        "postgres": "connected" if check_postgres_connection() else "disconnected",
        "extraction": "configured" if settings.llm_api_key else "not configured",
    }
