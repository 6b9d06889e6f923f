# shopcart/tasks/cleanup.py
from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from shopcart.celery_worker import celery_app
from shopcart.data.database import SessionLocal, utcnow
from shopcart.repos.cart_repo import CartRepo
from shopcart.services.expiry import expired_cutoff
from shopcart.utils.logging import get_logger

logger = get_logger(__name__)


def purge_expired_anonymous_carts(
    db: Session,
    now: datetime | None = None,
    threshold: timedelta | None = None,
) -> int:
    """
    Retention policy for anonymous carts past their expires_at.
    A cart touched while the purge runs fails the version check and survives.
    """
    repo = CartRepo(db)
    cutoff = expired_cutoff(now or utcnow(), threshold)
    carts = repo.list_expired_anonymous_carts(cutoff)

    logger.info(f"Found {len(carts)} expired anonymous carts")

    purged = 0
    for cart in carts:
        if repo.update_cart_version(cart, {"version": cart.version + 1}) == 0:
            logger.info(f"Cart {cart.id} changed during purge, keeping it")
            continue
        repo.delete_cart(cart)
        purged += 1

    repo.commit()
    return purged


@celery_app.task(name="shopcart.tasks.cleanup.purge_expired_anonymous_carts_task")
def purge_expired_anonymous_carts_task():
    logger.info("Purge expired anonymous carts task started")

    db = SessionLocal()
    try:
        purged = purge_expired_anonymous_carts(db)
        logger.info(f"Purged {purged} anonymous carts")
        return {"purged": purged}
    finally:
        db.close()
