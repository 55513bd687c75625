"""FastAPI application entry point."""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from api.responses import (
    request_validation_error_handler,
    scrape_hub_error_handler,
    unhandled_error_handler,
)
from api.v1 import router as api_router
from config.settings import settings
from crawlers.core.exceptions import ScrapeHubError
from crawlers.core.service import ScrapingService, build_service
from models.base import isoformat, utc_now
from storage.connection import close_db, init_db
from utils.logging import get_logger, setup_logging

logger = get_logger("api")


def create_app(service: Optional[ScrapingService] = None,
               auto_start: Optional[bool] = None) -> FastAPI:
    """앱 생성 (service를 넘기면 DB 초기화와 종료 처리를 호출자가 맡음)"""
    owns_service = service is None
    auto_start = settings.processor.auto_start if auto_start is None else auto_start

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application startup and shutdown."""
        logger.info(f"Starting {settings.app_name}...")
        if owns_service:
            setup_logging()
            await init_db()
            app.state.service = build_service()

        if auto_start:
            app.state.service.processor.start()

        yield

        logger.info("Shutting down...")
        if owns_service:
            await app.state.service.shutdown()
            await close_db()
        else:
            app.state.service.processor.stop()

    app = FastAPI(
        title=settings.app_name,
        description="Scraping job lifecycle and dispatch engine",
        version=settings.app_version,
        lifespan=lifespan,
    )
    if service is not None:
        app.state.service = service

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.api.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(ScrapeHubError, scrape_hub_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    app.include_router(api_router)

    @app.get("/health")
    async def health_check():
        database_ok = await app.state.service.database.check_connection()
        return {
            "success": True,
            "status": "healthy" if database_ok else "degraded",
            "app": settings.app_name,
            "timestamp": isoformat(utc_now()),
            "checks": {
                "database": {"ok": database_ok},
                "processor": {"running": app.state.service.processor.is_processing},
            },
        }

    return app
