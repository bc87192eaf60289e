"""
Buyer Lead Lifecycle API - Main Application.

FastAPI application exposing the lifecycle triggers and the scheduled sweep.
"""

from fastapi import FastAPI

from api import __version__

# Create FastAPI application
app = FastAPI(
    title="Buyer Lead Lifecycle API",
    description="Stage transitions for buyer leads: activity triggers and the daily time-decay sweep",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
)


@app.get("/health", tags=["Health"])
def health_check():
    """
    Health check endpoint.

    Returns the API status and version.
    """
    return {
        "status": "healthy",
        "version": __version__,
        "service": "lead-lifecycle-api"
    }


# Import and include routers
from api.routers import lifecycle

app.include_router(lifecycle.router, prefix="/api/v1", tags=["Lead Lifecycle"])
app.include_router(lifecycle.cron_router, prefix="/api/cron", tags=["Cron"])
