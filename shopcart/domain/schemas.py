# shopcart/domain/schemas.py
from datetime import datetime
from typing import List, Optional

from pydantic import Field

from shopcart.domain.types import (
    CamelModel,
    CartItemInput,
    CartItemQuantityInput,
    IncorrectPriceFailure,
    Metafield,
    MinOrderQuantityFailure,
    Money,
    ProductConfiguration,
    ReconciliationMode,
)


# requests

class CreateCartIn(CamelModel):
    """Schema dla tworzenia koszyka (createCart)."""

    shop_id: str = Field(..., min_length=1)
    items: List[CartItemInput]
    client_mutation_id: Optional[str] = None


class AddCartItemsIn(CamelModel):
    items: List[CartItemInput]
    token: Optional[str] = None
    client_mutation_id: Optional[str] = None


class RemoveCartItemsIn(CamelModel):
    cart_item_ids: List[str]
    token: Optional[str] = None
    client_mutation_id: Optional[str] = None


class UpdateCartItemsQuantityIn(CamelModel):
    items: List[CartItemQuantityInput]
    token: Optional[str] = None
    client_mutation_id: Optional[str] = None


class ReconcileCartsIn(CamelModel):
    anonymous_cart_id: str
    anonymous_cart_token: str
    shop_id: str
    mode: ReconciliationMode = ReconciliationMode.MERGE
    client_mutation_id: Optional[str] = None


# responses

class CartItemOut(CamelModel):
    id: str
    product_configuration: ProductConfiguration
    quantity: int
    price: Money
    price_when_added: Money
    price_changed: bool
    subtotal: Money
    metafields: Optional[List[Metafield]] = None
    added_at: datetime
    created_at: datetime
    updated_at: datetime


class CartOut(CamelModel):
    id: str
    shop_id: str
    account_id: Optional[str] = None
    checkout_id: Optional[str] = None
    items: List[CartItemOut]
    total_item_quantity: int
    item_total: Optional[Money] = None
    created_at: datetime
    updated_at: datetime
    expires_at: Optional[datetime] = None


class CreateCartPayload(CamelModel):
    cart: Optional[CartOut] = None
    incorrect_price_failures: List[IncorrectPriceFailure] = []
    min_order_quantity_failures: List[MinOrderQuantityFailure] = []
    token: Optional[str] = None
    client_mutation_id: Optional[str] = None


class AddCartItemsPayload(CamelModel):
    cart: Optional[CartOut] = None
    incorrect_price_failures: List[IncorrectPriceFailure] = []
    min_order_quantity_failures: List[MinOrderQuantityFailure] = []
    client_mutation_id: Optional[str] = None


class RemoveCartItemsPayload(CamelModel):
    cart: CartOut
    client_mutation_id: Optional[str] = None


class UpdateCartItemsQuantityPayload(CamelModel):
    cart: CartOut
    missing_cart_item_ids: List[str] = []
    client_mutation_id: Optional[str] = None


class ReconcileCartsPayload(CamelModel):
    cart: CartOut
    client_mutation_id: Optional[str] = None


class ErrorOut(CamelModel):
    error: str
    message: str
