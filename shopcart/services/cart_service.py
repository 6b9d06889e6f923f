# shopcart/services/cart_service.py
from typing import Any, Callable, Dict, List, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from shopcart.data.database import utcnow
from shopcart.data.models.cart import CartModel
from shopcart.data.models.cart_item import CartItemModel
from shopcart.domain.types import CartItemInput, CartItemQuantityInput
from shopcart.exceptions import (
    CartAlreadyExistsError,
    CartNotFoundError,
    ConcurrencyConflictError,
    InvalidInputError,
)
from shopcart.repos.cart_repo import CartRepo
from shopcart.services.authorization import CartAuthorizer, generate_token, hash_token
from shopcart.services.price_validator import BatchValidation, PriceValidator, ValidatedItem
from shopcart.services.serializers import serialize_cart
from shopcart.utils.retry import conflict_retry
from shopcart.utils.logging import get_logger

logger = get_logger(__name__)


def _check_quantities(items: List[CartItemInput]) -> None:
    for item in items:
        if item.quantity <= 0:
            raise InvalidInputError(
                f"Quantity must be greater than 0 for {item.product_configuration.key}"
            )


def _failures(batch: BatchValidation) -> Dict[str, Any]:
    return {
        "incorrect_price_failures": batch.incorrect_price_failures,
        "min_order_quantity_failures": batch.min_order_quantity_failures,
    }


class CartService:
    """
    Cart Mutation Service plus the read side (cqrs-lite):
    commands (create, add, remove, update quantity) change state,
    queries (anonymous cart, account cart) only read.

    Every command is one atomic read-modify-write per cart: per-cart lock,
    fresh read, optimistic version check on write, retried on conflict.
    """

    def __init__(
        self,
        db: Session,
        catalog,
        lock_service,
        authorizer: CartAuthorizer | None = None,
    ):
        self.repo = CartRepo(db)
        self.validator = PriceValidator(catalog)
        self.lock_service = lock_service
        self.authorizer = authorizer or CartAuthorizer()

    #query - odczyt
    def get_anonymous_cart(
        self,
        cart_id: str,
        token: str | None,
        sort_by: str = "added_at",
        descending: bool = False,
    ) -> Dict[str, Any]:
        cart = self._load_authorized(cart_id, token=token)
        return serialize_cart(cart, sort_by=sort_by, descending=descending)

    def get_account_cart(
        self,
        account_id: str,
        shop_id: str,
        sort_by: str = "added_at",
        descending: bool = False,
    ) -> Dict[str, Any]:
        cart = self.repo.get_cart_by_account(account_id, shop_id)
        if not cart:
            raise CartNotFoundError(
                message=f"Account {account_id} has no cart in shop {shop_id}"
            )
        return serialize_cart(cart, sort_by=sort_by, descending=descending)

    #commands
    def create_cart(
        self,
        shop_id: str,
        items: List[CartItemInput],
        account_id: str | None = None,
    ) -> Dict[str, Any]:
        """
        Creates a cart from its first items. Nothing is persisted when every
        item fails validation; anonymous carts get their token here, once.
        """
        if not items:
            raise InvalidInputError("A cart cannot be created without items")
        _check_quantities(items)

        if account_id and self.repo.get_cart_by_account(account_id, shop_id):
            raise CartAlreadyExistsError(account_id, shop_id)

        batch = self.validator.validate_batch(items, shop_id)
        if not batch.accepted:
            logger.info(f"No valid items for new cart in shop {shop_id}, nothing created")
            return {"cart": None, "token": None, **_failures(batch)}

        token = None if account_id else generate_token()
        now = utcnow()
        cart = self.repo.create_cart(
            CartModel(
                shop_id=shop_id,
                account_id=account_id,
                anonymous_token_hash=hash_token(token) if token else None,
                version=1,
                created_at=now,
                updated_at=now,
            )
        )
        self._apply_validated(cart, batch.accepted, now)

        try:
            self.repo.commit()
        except IntegrityError:
            # unique (account_id, shop_id): rownolegle createCart tego samego konta
            self.repo.rollback()
            raise CartAlreadyExistsError(account_id, shop_id)

        logger.info(
            f"Created {'anonymous' if token else 'account'} cart {cart.id} "
            f"in shop {shop_id} with {len(batch.accepted)} item(s)"
        )
        return {"cart": serialize_cart(cart), "token": token, **_failures(batch)}

    def add_cart_items(
        self,
        cart_id: str,
        items: List[CartItemInput],
        token: str | None = None,
        account_id: str | None = None,
    ) -> Dict[str, Any]:
        if not items:
            raise InvalidInputError("No items to add")
        _check_quantities(items)

        cart = self._load_authorized(cart_id, token=token, account_id=account_id)

        # walidacja (catalog I/O) przed zapisem i poza lockiem
        batch = self.validator.validate_batch(items, cart.shop_id)

        def apply(cart: CartModel, now) -> Tuple[bool, None]:
            if not batch.accepted:
                return False, None
            self._apply_validated(cart, batch.accepted, now)
            return True, None

        cart, _ = self._write(cart_id, apply, token=token, account_id=account_id)
        return {"cart": serialize_cart(cart), **_failures(batch)}

    def remove_cart_items(
        self,
        cart_id: str,
        cart_item_ids: List[str],
        token: str | None = None,
        account_id: str | None = None,
    ) -> Dict[str, Any]:
        """Idempotent: ids not found in the cart are ignored. The cart itself is never deleted."""
        self._load_authorized(cart_id, token=token, account_id=account_id)
        wanted = set(cart_item_ids)

        def apply(cart: CartModel, now) -> Tuple[bool, None]:
            targets = [item for item in cart.items if item.id in wanted]
            for item in targets:
                self.repo.delete_cart_item(cart, item)
            return bool(targets), None

        cart, _ = self._write(cart_id, apply, token=token, account_id=account_id)
        return {"cart": serialize_cart(cart)}

    def update_cart_items_quantity(
        self,
        cart_id: str,
        items: List[CartItemQuantityInput],
        token: str | None = None,
        account_id: str | None = None,
    ) -> Dict[str, Any]:
        """
        Sets absolute quantities. 0 removes the item; unknown cart item ids
        are per-item failures reported in missing_cart_item_ids.
        """
        for entry in items:
            if entry.quantity < 0:
                raise InvalidInputError(f"Quantity cannot be negative for item {entry.cart_item_id}")

        self._load_authorized(cart_id, token=token, account_id=account_id)

        # ostatni wpis dla danego id wygrywa
        requested = {entry.cart_item_id: entry.quantity for entry in items}

        def apply(cart: CartModel, now) -> Tuple[bool, List[str]]:
            by_id = {item.id: item for item in cart.items}
            missing = [item_id for item_id in requested if item_id not in by_id]
            changed = False
            for item_id, quantity in requested.items():
                item = by_id.get(item_id)
                if item is None:
                    continue
                if quantity == 0:
                    self.repo.delete_cart_item(cart, item)
                    changed = True
                elif item.quantity != quantity:
                    item.quantity = quantity
                    item.updated_at = now
                    changed = True
            return changed, missing

        cart, missing = self._write(cart_id, apply, token=token, account_id=account_id)
        if missing:
            logger.info(f"Cart {cart_id}: unknown cart item ids {missing}")
        return {"cart": serialize_cart(cart), "missing_cart_item_ids": missing}

    # helpers
    def _load_authorized(
        self,
        cart_id: str,
        token: str | None = None,
        account_id: str | None = None,
    ) -> CartModel:
        cart = self.repo.get_cart(cart_id)
        if not cart:
            raise CartNotFoundError(cart_id)
        self.authorizer.authorize(cart, token=token, account_id=account_id)
        return cart

    def _apply_validated(self, cart: CartModel, accepted: List[ValidatedItem], now) -> None:
        # ta sama konfiguracja => jedna linia, ilosci sie sumuja
        by_key = {item.configuration_key: item for item in cart.items}

        for validated in accepted:
            submitted = validated.input
            key = submitted.product_configuration.key
            existing = by_key.get(key)

            if existing:
                logger.info(
                    f"{key} already in cart {cart.id}, quantity "
                    f"{existing.quantity} -> {existing.quantity + submitted.quantity}"
                )
                existing.quantity += submitted.quantity
                existing.price_amount = validated.price.amount
                existing.currency_code = validated.price.currency_code
                if submitted.metafields is not None:
                    existing.metafields = [m.model_dump() for m in submitted.metafields]
                existing.updated_at = now
                continue

            item = CartItemModel(
                shop_id=cart.shop_id,
                product_id=submitted.product_configuration.product_id,
                product_variant_id=submitted.product_configuration.product_variant_id,
                quantity=submitted.quantity,
                price_amount=validated.price.amount,
                price_when_added_amount=validated.price.amount,
                currency_code=validated.price.currency_code,
                metafields=[m.model_dump() for m in submitted.metafields] if submitted.metafields else None,
                added_at=now,
                created_at=now,
                updated_at=now,
            )
            self.repo.add_cart_item(cart, item)
            by_key[key] = item

    def _write(
        self,
        cart_id: str,
        apply: Callable,
        token: str | None = None,
        account_id: str | None = None,
    ):
        """
        Locked, version-checked read-modify-write of a single cart.
        apply(cart, now) mutates the loaded cart and returns (changed, extra).
        """

        @conflict_retry()
        def attempt():
            with self.lock_service.hold(cart_id):
                cart = self.repo.get_cart(cart_id, fresh=True)
                if not cart:
                    raise CartNotFoundError(cart_id)
                # wlasciciel mogl sie zmienic (reconcile)
                self.authorizer.authorize(cart, token=token, account_id=account_id)

                now = utcnow()
                changed, extra = apply(cart, now)
                if not changed:
                    return cart, extra

                # Optimistic locking
                # np w bazie update set version 2 where id X and version 1
                new_version = cart.version + 1
                rowcount = self.repo.update_cart_version(
                    cart,
                    {"version": new_version, "updated_at": now},
                )
                if rowcount == 0:
                    self.repo.rollback()
                    raise ConcurrencyConflictError(cart_id)

                try:
                    self.repo.commit()
                except IntegrityError:
                    # konfiguracja dodana rownolegle przez pisarza bez locka
                    self.repo.rollback()
                    raise ConcurrencyConflictError(cart_id)
                logger.info(f"Cart {cart_id} committed, version {new_version}")
                return cart, extra

        return attempt()
