# shopcart/services/expiry.py
from datetime import datetime, timedelta

from shopcart.utils.settings import ANONYMOUS_CART_TTL_SECONDS


def expiry_threshold() -> timedelta:
    return timedelta(seconds=ANONYMOUS_CART_TTL_SECONDS)


def compute_expiry(cart, threshold: timedelta | None = None) -> datetime | None:
    """
    Expiration of an anonymous cart: updated_at + threshold.
    Account carts never expire (None). Recomputed on every read, never stored.
    """
    if cart.account_id is not None:
        return None
    return cart.updated_at + (threshold if threshold is not None else expiry_threshold())


def expired_cutoff(now: datetime, threshold: timedelta | None = None) -> datetime:
    """Anonymous carts last updated before this moment have expired."""
    return now - (threshold if threshold is not None else expiry_threshold())
