"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from movescore import __version__
from movescore.config import get_settings
from movescore.api import api_router

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info(f"Starting {settings.app_name}")
    yield
    logger.info(f"Shutting down {settings.app_name}")


app = FastAPI(
    title=settings.app_name,
    description="""
    Move Score API

    Scores recorded accelerometer moves against binary choreography classifiers.

    ## Key Features

    - **Statistical Scoring**: Naive Bayes or Mahalanobis distance mapped to a 0-100 score
    - **Energy Check**: Movement energy compared with the classifier's expectations
    - **Shake Detection**: Autocorrelation flags rhythmic shaking instead of dancing
    - **Direction Check**: Detects moves performed backwards
    """,
    version=__version__,
    lifespan=lifespan
)

# Include API routes
app.include_router(api_router, prefix=settings.api_prefix)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "app": settings.app_name,
        "version": __version__
    }


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "app": settings.app_name,
        "docs": "/docs",
        "health": "/health"
    }


def run():
    """Serve the API with uvicorn (`movescore-api` console script)."""
    uvicorn.run(
        "movescore.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )


if __name__ == "__main__":
    run()
