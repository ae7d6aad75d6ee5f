from contextlib import asynccontextmanager
from typing import AsyncIterator

import certifi
from fastapi import FastAPI
from mongoengine import connect, disconnect

from nexus.utils.config import settings
from nexus.utils.logging import get_logger


logger = get_logger(__name__)


def init_mongo() -> None:
    options = {"tz_aware": True}
    if settings.mongo_srv:
        options["tlsCAFile"] = certifi.where()
    connect(host=settings.mongo_uri, alias="default", **options)
    logger.info("mongo_connected", host=settings.mongo_host, db=settings.mongo_db)


def close_mongo() -> None:
    disconnect(alias="default")


@asynccontextmanager
async def mongo_lifespan(app: FastAPI) -> AsyncIterator[None]:
    init_mongo()
    try:
        yield
    finally:
        close_mongo()
