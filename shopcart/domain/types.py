# shopcart/domain/types.py
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ProductConfiguration(CamelModel):
    """(product, variant) pair identifying what was selected."""

    model_config = ConfigDict(frozen=True)

    product_id: str = Field(..., min_length=1)
    product_variant_id: str = Field(..., min_length=1)

    @property
    def key(self) -> tuple[str, str]:
        return (self.product_id, self.product_variant_id)


class Money(CamelModel):
    model_config = ConfigDict(frozen=True)

    amount: Decimal
    currency_code: str = Field("USD", min_length=3, max_length=3)


class Metafield(CamelModel):
    key: str
    value: str
    namespace: Optional[str] = None


class CartItemInput(CamelModel):
    product_configuration: ProductConfiguration
    price: Money
    quantity: int
    metafields: Optional[List[Metafield]] = None


class CartItemQuantityInput(CamelModel):
    cart_item_id: str
    quantity: int


class IncorrectPriceFailure(CamelModel):
    current_price: Money
    product_configuration: ProductConfiguration
    provided_price: Money


class MinOrderQuantityFailure(CamelModel):
    min_order_quantity: int
    product_configuration: ProductConfiguration
    quantity: int


class ReconciliationMode(str, Enum):
    MERGE = "merge"
    KEEP_ACCOUNT_CART = "keepAccountCart"
    KEEP_ANONYMOUS_CART = "keepAnonymousCart"
