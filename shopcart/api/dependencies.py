# shopcart/api/dependencies.py
from typing import Optional

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from shopcart.data.database import get_db
from shopcart.services.cart_service import CartService
from shopcart.services.catalog_client import CatalogClient
from shopcart.services.lock_service import CartLockService
from shopcart.services.reconciliation_service import ReconciliationService

_lock_service: Optional[CartLockService] = None


def get_catalog() -> CatalogClient:
    return CatalogClient()


def get_lock_service() -> CartLockService:
    # jeden klient redis (pula polaczen) na proces
    global _lock_service
    if _lock_service is None:
        _lock_service = CartLockService()
    return _lock_service


def get_account_id(
    account_id: Optional[str] = Header(None, alias="X-Account-ID"),
) -> Optional[str]:
    """Authenticated account, resolved upstream by the identity service."""
    return account_id or None


def get_cart_service(
    db: Session = Depends(get_db),
    catalog: CatalogClient = Depends(get_catalog),
    lock_service: CartLockService = Depends(get_lock_service),
) -> CartService:
    return CartService(db=db, catalog=catalog, lock_service=lock_service)


def get_reconciliation_service(
    db: Session = Depends(get_db),
    lock_service: CartLockService = Depends(get_lock_service),
) -> ReconciliationService:
    return ReconciliationService(db=db, lock_service=lock_service)
