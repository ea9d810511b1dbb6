from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api import api_router
from .core.config import settings
from .db import init
from .db.mongo import MongoConnectionManager
from .db.redis import RedisConnectionManager
from .services.submissions import SubmissionEngine

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    logging.basicConfig(format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    logging.getLogger("backend.spothunt").setLevel(settings.log_level.upper())


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    db = MongoConnectionManager.get_database()
    redis = RedisConnectionManager.get_client()
    try:
        await init.ensure_indexes(db)
        logger.info("database indexes ensured")
    except Exception as exc:  # pragma: no cover - index creation is retried on next start
        logger.warning("index creation failed: %s", exc)
    app.state.engine = SubmissionEngine(db, redis, settings)
    yield
    await RedisConnectionManager.close()
    await MongoConnectionManager.close()


app = FastAPI(title=settings.project_name, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router, prefix=settings.api_prefix)
