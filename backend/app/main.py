"""
Headcount FastAPI Application Entry Point.

Configures FastAPI, sets up middleware, registers routes and manages the
MongoDB connection lifecycle.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config import settings
from app.dal.database import connect_to_mongo, close_mongo_connection, ensure_indexes, get_database
from app.routes.health import router as health_router
from app.routes.games import router as games_router
from app.routes.participants import router as participants_router
from app.routes.notifications import router as notifications_router

logger = logging.getLogger("headcount.app")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan context manager.
    Handles startup and shutdown of the MongoDB connection.
    """
    try:
        await connect_to_mongo()
        db = get_database()
        await ensure_indexes(db)
        logger.info("Headcount v%s started with database connection", settings.APP_VERSION)
    except Exception as e:
        # Health checks must pass while MongoDB is still unavailable.
        logger.warning(
            "Failed to connect to MongoDB during startup: %s. "
            "Application will start but database operations will fail until connection is established.",
            str(e)
        )
        logger.info("Headcount v%s started WITHOUT database connection", settings.APP_VERSION)

    yield

    await close_mongo_connection()
    logger.info("Headcount shutdown complete")


app = FastAPI(
    title="Headcount API",
    description="Pickup game sign-ups with rosters, waitlists and guests - REST API",
    version=settings.APP_VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "X-Request-ID", "X-User-Token"],
    expose_headers=["X-Request-ID"],
    max_age=600,  # Cache preflight requests for 10 minutes
)

app.include_router(health_router)  # Health endpoint at root level
app.include_router(health_router, prefix="/api")
app.include_router(games_router, prefix="/api")
app.include_router(participants_router, prefix="/api")
app.include_router(notifications_router, prefix="/api")


@app.get("/")
async def root():
    """Root endpoint - API information."""
    return {
        "name": "Headcount API",
        "version": settings.APP_VERSION,
        "status": "operational",
        "docs": "/docs",
        "health": "/health",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level="info",
    )
