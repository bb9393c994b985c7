# backend/visionquest/main.py
import asyncio
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy import select

from . import config, db
from .engine.loader import seed_item_catalog
from .errors import NotFoundError
from .models import Base, Item
from .routes import quests_router

logger = logging.getLogger(__name__)


def create_app(database_url: Optional[str] = None) -> FastAPI:
    """
    Build the API application.

    ``database_url`` overrides config.DATABASE_URL (tests point it at a
    temporary SQLite file).
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        - Create tables (dev-time; migrations handle upgrades).
        - Seed the item catalog if it is empty.
        - Prepare the per-user core cache.
        """
        # Startup
        if database_url is None:
            engine, session_factory = db.engine, db.AsyncSessionLocal
        else:
            engine, session_factory = db.make_session_factory(database_url)

        # 1) Create tables
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

        # 2) Seed the catalog if empty
        async with session_factory() as session:
            result = await session.execute(select(Item).limit(1))
            if result.scalar_one_or_none() is None:
                added = await seed_item_catalog(session, Path(config.WORLD_DATA_DIR) / "items")
                logger.info("Seeded %d catalog items", added)

        app.state.session_factory = session_factory
        app.state.cores = {}
        app.state.cores_lock = asyncio.Lock()
        logger.info("Vision Quest API ready")

        yield

        # Shutdown
        app.state.cores = {}
        if database_url is not None:
            await engine.dispose()
        logger.info("Vision Quest API stopped")

    app = FastAPI(title="Vision Quest", lifespan=lifespan)
    app.include_router(quests_router)

    @app.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError):
        return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": str(exc)})

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError):
        return JSONResponse(
            status_code=422, content={"detail": str(exc)}
        )

    @app.get("/")
    async def root():
        return {"message": "Vision Quest"}

    return app


app = create_app()
