import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config import settings
from app.database import Base, engine
from app.exception_handlers import register_exception_handlers
from app.middleware.logging import StructuredLoggingMiddleware, setup_structured_logging
from app.routes import delivery_plans, drafts, ideas, organizations
from app.scheduler import scheduler

setup_structured_logging(log_level=settings.log_level, json_format=settings.json_logs)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Tasks to run at application startup and shutdown."""
    logger.info("Starting up %s in %s mode", settings.app_name, settings.environment)
    if settings.debug:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables created (if not existing).")

    if settings.enable_scheduler:
        scheduler.start()
        logger.info("Publish scheduler started")

    yield

    if scheduler.running:
        scheduler.shutdown(wait=False)
    logger.info("Shutting down the application...")


def create_app() -> FastAPI:
    """Create the FastAPI application."""
    app = FastAPI(
        title=settings.app_name,
        description="Multi-tenant content workflow: ideas, drafts, client review and publishing",
        debug=settings.debug,
        version=settings.app_version,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(StructuredLoggingMiddleware)

    register_exception_handlers(app)

    # Include routers
    app.include_router(organizations.router, prefix="/api/v1")
    app.include_router(ideas.router, prefix="/api/v1")
    app.include_router(drafts.router, prefix="/api/v1")
    app.include_router(delivery_plans.router, prefix="/api/v1")

    @app.get("/health", tags=["Root"])
    async def health():
        return {"status": "ok", "version": settings.app_version}

    if settings.debug:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO)

    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=settings.debug)
