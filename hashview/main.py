"""
Main FastAPI application for the HashView review service
"""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import logging

from hashview import __version__
from hashview.config import settings
from hashview.api import (
    system,
    reviews,
    coupons,
    admin
)

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.APP_DEBUG else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    # Startup
    logger.info("Starting HashView review service...")
    if settings.AUTO_CREATE_TABLES:
        from hashview.db.database import Base, engine
        from hashview.db import models  # noqa: F401  registers tables

        try:
            Base.metadata.create_all(bind=engine)
            logger.info("Database tables ready")
        except Exception as e:
            logger.error(f"Error creating database tables: {e}")

    yield

    # Shutdown
    logger.info("Shutting down HashView review service...")


app = FastAPI(
    title="HashView Review Service",
    description="Location-verified review submission with reward coupons",
    version=__version__,
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(system.router, tags=["System"])
app.include_router(reviews.router, prefix="/reviews", tags=["Reviews"])
app.include_router(coupons.router, prefix="/coupons", tags=["Coupons"])
app.include_router(admin.router, prefix="/admin", tags=["Admin"])


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "service": "HashView Reviews",
        "version": __version__,
        "status": "running"
    }
