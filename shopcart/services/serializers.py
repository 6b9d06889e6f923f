# shopcart/services/serializers.py
from datetime import timedelta
from decimal import Decimal
from typing import Any, Dict

from shopcart.data.models.cart import CartModel
from shopcart.data.models.cart_item import CartItemModel
from shopcart.exceptions import InvalidInputError
from shopcart.services.expiry import compute_expiry

ITEM_SORT_KEYS = {
    "added_at": lambda i: (i.added_at, i.created_at),
    "updated_at": lambda i: i.updated_at,
    "price": lambda i: i.price_amount,
    "quantity": lambda i: i.quantity,
    "product_id": lambda i: (i.product_id, i.product_variant_id),
}


def _money(amount: Decimal, currency_code: str) -> Dict[str, Any]:
    return {"amount": amount, "currency_code": currency_code}


def serialize_item(item: CartItemModel) -> Dict[str, Any]:
    return {
        "id": item.id,
        "product_configuration": {
            "product_id": item.product_id,
            "product_variant_id": item.product_variant_id,
        },
        "quantity": item.quantity,
        "price": _money(item.price_amount, item.currency_code),
        "price_when_added": _money(item.price_when_added_amount, item.currency_code),
        "price_changed": item.price_amount != item.price_when_added_amount,
        "subtotal": _money(item.price_amount * item.quantity, item.currency_code),
        "metafields": item.metafields,
        "added_at": item.added_at,
        "created_at": item.created_at,
        "updated_at": item.updated_at,
    }


def serialize_cart(
    cart: CartModel,
    sort_by: str = "added_at",
    descending: bool = False,
    threshold: timedelta | None = None,
) -> Dict[str, Any]:
    """Cart as a plain dict, with the derived (never persisted) fields filled in."""
    if sort_by not in ITEM_SORT_KEYS:
        raise InvalidInputError(f"Unknown sort field: {sort_by}")

    items = sorted(cart.items, key=ITEM_SORT_KEYS[sort_by], reverse=descending)

    item_total = None
    if items:
        currency_code = items[0].currency_code
        item_total = _money(
            sum(
                (i.price_amount * i.quantity for i in items if i.currency_code == currency_code),
                Decimal("0.00"),
            ),
            currency_code,
        )

    return {
        "id": cart.id,
        "shop_id": cart.shop_id,
        "account_id": cart.account_id,
        "checkout_id": cart.checkout_id,
        "items": [serialize_item(i) for i in items],
        "total_item_quantity": sum(i.quantity for i in items),
        "item_total": item_total,
        "created_at": cart.created_at,
        "updated_at": cart.updated_at,
        "expires_at": compute_expiry(cart, threshold),
    }
