import logging

from fastapi import FastAPI

from app.core.config import settings
from app.core.db import Base, engine
from app.api.v1.health import router as health_router
from app.api.v1.metrics import router as metrics_router

from app import models  # noqa: F401  registers tables on Base

logging.basicConfig(level=settings.LOG_LEVEL)

app = FastAPI(title="LifeTracker", version="1.0.0")

if engine:
    Base.metadata.create_all(bind=engine)

app.include_router(health_router, prefix="/v1")
app.include_router(metrics_router, prefix="/v1")
