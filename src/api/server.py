#!/usr/bin/env python
"""FastAPI server for the reelforge reel generation service."""

import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path

# Add src directory to Python path for imports
src_dir = Path(__file__).parent.parent
if str(src_dir) not in sys.path:
    sys.path.insert(0, str(src_dir))

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api import dependencies
from api.routers import core, photos, reels
from utils.config import validate_config
from utils.logging import setup_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    config = dependencies.get_config()
    setup_logging(config["log_level"], json_output=config["log_json"])

    for error in validate_config(config):
        logger.warning(f"Configuration problem: {error}")

    await dependencies.start_services()
    logger.info("Reelforge API started")
    try:
        yield
    finally:
        await dependencies.stop_services()
        logger.info("Reelforge API stopped")


def create_app(use_lifespan: bool = True) -> FastAPI:
    """Build the FastAPI application.

    Args:
        use_lifespan: Start the store and worker pool with the app; tests
            disable this and override dependencies instead
    """
    app = FastAPI(
        title="Reelforge API",
        version="1.0.0",
        lifespan=lifespan if use_lifespan else None,
    )

    # CORS middleware for development
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:5173", "http://localhost:3000"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(core.router)
    app.include_router(reels.router)
    app.include_router(photos.router)
    return app


app = create_app()
