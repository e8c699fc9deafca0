import logging
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.ext.asyncio import AsyncEngine

from auth.dependencies import limiter
from auth.router import router as auth_operation
from cats.router import router as cats_operation
from config import Settings
from database import create_database, create_engine, create_sessionmaker
from exceptions import register_exception_handlers
from photos.router import router as photos_operation
from photos.storage import GoogleDriveStorage

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    engine: Optional[AsyncEngine] = None,
    image_storage=None,
) -> FastAPI:
    """
    Build the application around explicit settings and collaborators.
    """
    if settings is None:
        settings = Settings.from_env()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    app = FastAPI(title="Cattery")

    app.state.settings = settings
    app.state.engine = engine if engine is not None else create_engine(settings)
    app.state.sessionmaker = create_sessionmaker(app.state.engine)
    app.state.image_storage = (
        image_storage if image_storage is not None else GoogleDriveStorage(settings)
    )

    # One limiter per process; each app starts with fresh counters
    limiter.enabled = settings.rate_limit_enabled
    limiter.reset()
    app.state.limiter = limiter

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_exception_handlers(app)

    @app.on_event("startup")
    async def startup():
        if settings.db_sync:
            logger.info("Creating missing tables")
            await create_database(app.state.engine)

    @app.on_event("shutdown")
    async def shutdown():
        await app.state.engine.dispose()

    @app.get("/healthz", tags=["Health"])
    async def healthz():
        return {"ok": True}

    app.include_router(auth_operation)
    app.include_router(cats_operation)
    app.include_router(photos_operation)

    return app
