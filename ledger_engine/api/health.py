"""
Health check endpoint.

Used by load balancers, monitoring systems, and humans
to verify the application is running and responsive.
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ledger_engine.config import get_settings
from ledger_engine.models.base import get_db

settings = get_settings()
router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check(request: Request, db: Session = Depends(get_db)):
    """
    Return application health status including database connectivity
    and whether the background scheduler is running.
    """
    try:
        db.execute(text("SELECT 1"))
        db_status = "healthy"
    except SQLAlchemyError:
        db_status = "unhealthy"

    scheduler = getattr(request.app.state, "scheduler", None)

    return {
        "status": "healthy" if db_status == "healthy" else "degraded",
        "service": "ledger-engine",
        "environment": settings.ENVIRONMENT,
        "database": db_status,
        "scheduler": "running" if scheduler is not None and scheduler.is_running else "stopped",
    }
