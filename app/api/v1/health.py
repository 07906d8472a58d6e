from fastapi import APIRouter
from app.core import db
from app.core.config import settings

router = APIRouter(tags=["health"])


@router.get("/health")
def health():
    return {
        "status": "ok",
        "environment": settings.ENVIRONMENT,
        "db": db.engine is not None,
    }
