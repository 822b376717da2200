"""
Health and readiness checks: database connectivity.
"""
from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from causas_ledger.core.config import settings
from causas_ledger.core.logger import logger
from causas_ledger.db.database import get_db
from causas_ledger.db.models import PARTITION_MODELS

router = APIRouter()


def _check_database(db: Session) -> tuple[str, str]:
    """Returns (status, detail). Status is 'ok' or 'error'."""
    try:
        db.execute(text("SELECT 1"))
        return "ok", f"Database reachable ({db.get_bind().dialect.name})"
    except SQLAlchemyError as e:
        logger.warning("Database health check failed: %s", e)
        return "error", f"Database: {str(e)}"


@router.get("")
def health(db: Session = Depends(get_db)):
    db_status, db_detail = _check_database(db)
    return {
        "status": "healthy" if db_status == "ok" else "degraded",
        "version": settings.APP_VERSION,
        "checks": {"database": {"status": db_status, "detail": db_detail}},
        "partitions": [p.value for p in PARTITION_MODELS],
    }
