# shopcart/services/reconciliation_service.py
from typing import Any, Dict

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from shopcart.data.database import utcnow
from shopcart.data.models.cart import CartModel
from shopcart.domain.types import ReconciliationMode
from shopcart.exceptions import (
    CartNotFoundError,
    ConcurrencyConflictError,
    InvalidInputError,
    PermissionDeniedError,
)
from shopcart.repos.cart_repo import CartRepo
from shopcart.services.authorization import CartAuthorizer
from shopcart.services.serializers import serialize_cart
from shopcart.utils.retry import conflict_retry
from shopcart.utils.logging import get_logger

logger = get_logger(__name__)


class ReconciliationService:
    """
    Merges an anonymous cart into the account cart once the shopper logs in.

    All modes share one skeleton: load both carts, compute the account cart's
    item set, write it and delete the anonymous cart in a single transaction.
    Reconciliation never re-validates against the catalog.
    """

    def __init__(self, db: Session, lock_service, authorizer: CartAuthorizer | None = None):
        self.repo = CartRepo(db)
        self.lock_service = lock_service
        self.authorizer = authorizer or CartAuthorizer()

    def reconcile_carts(
        self,
        anonymous_cart_id: str,
        anonymous_token: str,
        account_id: str,
        shop_id: str,
        mode: ReconciliationMode = ReconciliationMode.MERGE,
    ) -> Dict[str, Any]:
        if not account_id:
            raise PermissionDeniedError("Reconciliation requires an authenticated account")
        mode = ReconciliationMode(mode)

        # bledy zadania (404/403/400) zanim cokolwiek zablokujemy
        self._load_anonymous(anonymous_cart_id, anonymous_token, shop_id)

        @conflict_retry()
        def attempt() -> CartModel:
            account_cart = self.repo.get_cart_by_account(account_id, shop_id, fresh=True)
            lock_ids = [anonymous_cart_id] + ([account_cart.id] if account_cart else [])

            with self.lock_service.hold(*lock_ids):
                anonymous_cart = self._load_anonymous(
                    anonymous_cart_id, anonymous_token, shop_id, fresh=True
                )
                account_cart = self.repo.get_cart_by_account(account_id, shop_id)
                if account_cart is not None and account_cart.id not in lock_ids:
                    # konto dostalo koszyk miedzy odczytem a lockiem
                    raise ConcurrencyConflictError(account_cart.id)

                if account_cart is None:
                    return self._adopt(anonymous_cart, account_id)
                return self._reconcile_into(anonymous_cart, account_cart, mode)

        cart = attempt()
        return {"cart": serialize_cart(cart)}

    def _load_anonymous(
        self,
        cart_id: str,
        token: str,
        shop_id: str,
        fresh: bool = False,
    ) -> CartModel:
        cart = self.repo.get_cart(cart_id, fresh=fresh)
        # koszyk konta nie istnieje jako anonimowy (tez po adopcji), bez zdradzania wlasciciela
        if not cart or not cart.is_anonymous:
            raise CartNotFoundError(cart_id)
        self.authorizer.authorize(cart, token=token)
        if cart.shop_id != shop_id:
            raise InvalidInputError(f"Cart {cart_id} does not belong to shop {shop_id}")
        return cart

    def _adopt(self, anonymous_cart: CartModel, account_id: str) -> CartModel:
        """No account cart yet: the anonymous cart becomes it, token association dropped."""
        try:
            rowcount = self.repo.update_cart_version(
                anonymous_cart,
                {
                    "version": anonymous_cart.version + 1,
                    "account_id": account_id,
                    "anonymous_token_hash": None,
                },
            )
        except IntegrityError:
            # unique (account_id, shop_id): konto ma juz koszyk, nastepna proba zrobi merge
            self.repo.rollback()
            raise ConcurrencyConflictError(anonymous_cart.id)

        if rowcount == 0:
            self.repo.rollback()
            raise ConcurrencyConflictError(anonymous_cart.id)

        self.repo.commit()
        logger.info(f"Anonymous cart {anonymous_cart.id} assigned to account {account_id}")
        return anonymous_cart

    def _reconcile_into(
        self,
        anonymous_cart: CartModel,
        account_cart: CartModel,
        mode: ReconciliationMode,
    ) -> CartModel:
        now = utcnow()
        anonymous_cart_id = anonymous_cart.id

        if mode is ReconciliationMode.MERGE:
            self._merge(anonymous_cart, account_cart, now)
        elif mode is ReconciliationMode.KEEP_ANONYMOUS_CART:
            self._replace(anonymous_cart, account_cart)
        # KEEP_ACCOUNT_CART: account cart untouched, anonymous items go with their cart

        # anonimowy koszyk nie mogl sie zmienic od odczytu, inaczej zgubimy jego zmiany
        if self.repo.update_cart_version(anonymous_cart, {"version": anonymous_cart.version + 1}) == 0:
            self.repo.rollback()
            raise ConcurrencyConflictError(anonymous_cart.id)

        if mode is not ReconciliationMode.KEEP_ACCOUNT_CART:
            rowcount = self.repo.update_cart_version(
                account_cart,
                {"version": account_cart.version + 1, "updated_at": now},
            )
            if rowcount == 0:
                self.repo.rollback()
                raise ConcurrencyConflictError(account_cart.id)

        self.repo.delete_cart(anonymous_cart)
        self.repo.commit()

        logger.info(
            f"Reconciled anonymous cart {anonymous_cart_id} into {account_cart.id} "
            f"(mode={mode.value}), anonymous cart deleted"
        )
        return account_cart

    def _merge(self, anonymous_cart: CartModel, account_cart: CartModel, now) -> None:
        """
        Same configuration: quantities summed, price taken from the item updated
        most recently (ties keep the account cart's price, so a retry gives the
        same result). Other anonymous items move over with their added_at.
        """
        by_key = {item.configuration_key: item for item in account_cart.items}

        for anonymous_item in list(anonymous_cart.items):
            target = by_key.get(anonymous_item.configuration_key)
            if target is None:
                self.repo.move_cart_item(anonymous_item, anonymous_cart, account_cart)
                continue

            target.quantity += anonymous_item.quantity
            if anonymous_item.updated_at > target.updated_at:
                target.price_amount = anonymous_item.price_amount
                target.currency_code = anonymous_item.currency_code
            target.updated_at = now
            self.repo.delete_cart_item(anonymous_cart, anonymous_item)

    def _replace(self, anonymous_cart: CartModel, account_cart: CartModel) -> None:
        """Account cart keeps its identity and created_at, items come wholesale from the anonymous cart."""
        for item in list(account_cart.items):
            self.repo.delete_cart_item(account_cart, item)
        # stare wiersze musza zniknac przed przeniesieniem (unique na konfiguracji)
        self.repo.flush()

        for item in list(anonymous_cart.items):
            self.repo.move_cart_item(item, anonymous_cart, account_cart)
