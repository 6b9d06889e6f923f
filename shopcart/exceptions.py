"""
Exceptions raised by the cart engine.

Request-fatal conditions are exceptions; per-item validation failures are
not (see shopcart.domain.types.IncorrectPriceFailure and
MinOrderQuantityFailure), they travel back inside the payload.
"""


class CartError(Exception):
    """Base exception for cart operations"""
    pass


class CartNotFoundError(CartError, LookupError):
    """Raised when a cart does not exist"""
    def __init__(self, cart_id: str | None = None, message: str | None = None):
        self.cart_id = cart_id
        super().__init__(message or f"Cart not found: {cart_id}")


class PermissionDeniedError(CartError, PermissionError):
    """Raised when the token or account does not own the cart"""
    pass


class InvalidInputError(CartError, ValueError):
    """Raised when a request is malformed as a whole"""
    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class CartAlreadyExistsError(InvalidInputError):
    """Raised when an account already owns a cart in the shop"""
    def __init__(self, account_id: str, shop_id: str):
        self.account_id = account_id
        self.shop_id = shop_id
        super().__init__(f"Account {account_id} already has a cart in shop {shop_id}")


class CatalogItemNotFoundError(InvalidInputError):
    """Raised when the catalog does not know a product configuration"""
    def __init__(self, product_id: str, product_variant_id: str):
        self.product_id = product_id
        self.product_variant_id = product_variant_id
        super().__init__(
            f"Product configuration not found in catalog: {product_id}/{product_variant_id}"
        )


class CatalogUnavailableError(CartError):
    """Raised when the catalog cannot be reached"""
    pass


class ConcurrencyConflictError(CartError):
    """Raised when the cart version changed between read and write"""
    def __init__(self, cart_id: str):
        self.cart_id = cart_id
        super().__init__(f"Cart {cart_id} was modified by another operation")


class TransientCartError(CartError):
    """Raised when a mutation keeps conflicting after all retries"""
    pass
