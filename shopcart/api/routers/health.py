# shopcart/api/routers/health.py
import time

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from shopcart.data.database import get_db
from shopcart.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health")
def health(db: Session = Depends(get_db)):
    """Liveness plus a database ping; always 200 so the load balancer keeps routing."""
    database_status = "healthy"
    started = time.time()
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.error(f"Database health check failed: {e}")
        database_status = "unhealthy"

    return {
        "status": "healthy",
        "service": "cart-engine",
        "database": {
            "status": database_status,
            "latency_ms": round((time.time() - started) * 1000, 2),
        },
    }
