# shopcart/services/authorization.py
import hashlib
import hmac
import secrets

from shopcart.exceptions import PermissionDeniedError


def generate_token() -> str:
    return secrets.token_urlsafe(32)


def hash_token(token: str) -> str:
    # token is bearer-equivalent to a password, only the hash is stored
    return hashlib.sha256(token.encode()).hexdigest()


class CartAuthorizer:
    """
    Ownership check for a cart.

    Anonymous carts: possession of (cart id, token) is enough.
    Account carts: the authenticated account must own the cart.
    """

    def can_access(self, cart, token: str | None = None, account_id: str | None = None) -> bool:
        if cart.account_id is None:
            if not token or not cart.anonymous_token_hash:
                return False
            return hmac.compare_digest(hash_token(token), cart.anonymous_token_hash)
        return account_id is not None and account_id == cart.account_id

    def authorize(self, cart, token: str | None = None, account_id: str | None = None) -> None:
        if not self.can_access(cart, token=token, account_id=account_id):
            raise PermissionDeniedError(f"Access denied to cart {cart.id}")
