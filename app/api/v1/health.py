"""
Health check and status endpoints.
"""
import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core import settings
from app.core.datetime_utils import utc_now
from app.models import get_db

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/health")
def health_check(db: Session = Depends(get_db)):
    """
    Health check endpoint.

    Reports the service version and whether the database answers a trivial
    query. Returns 503 when it does not.
    """
    database = "ok"
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.error(f"Health check database probe failed: {e}")
        database = "unavailable"

    body = {
        "status": "healthy" if database == "ok" else "degraded",
        "database": database,
        "timestamp": utc_now().isoformat(),
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
    }
    return JSONResponse(status_code=200 if database == "ok" else 503, content=body)


@router.get("/ping")
async def ping():
    """Liveness probe; never touches the database."""
    return {"message": "pong"}
