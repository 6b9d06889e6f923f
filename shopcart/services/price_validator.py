# shopcart/services/price_validator.py
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import List, Union

from shopcart.domain.types import (
    CartItemInput,
    IncorrectPriceFailure,
    MinOrderQuantityFailure,
    Money,
)
from shopcart.utils.settings import VALIDATION_WORKERS
from shopcart.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class ValidatedItem:
    """Submitted item that passed validation, with the authoritative price."""

    input: CartItemInput
    price: Money


ValidationResult = Union[ValidatedItem, IncorrectPriceFailure, MinOrderQuantityFailure]


@dataclass
class BatchValidation:
    accepted: List[ValidatedItem] = field(default_factory=list)
    incorrect_price_failures: List[IncorrectPriceFailure] = field(default_factory=list)
    min_order_quantity_failures: List[MinOrderQuantityFailure] = field(default_factory=list)


class PriceValidator:
    """
    Checks proposed items against the catalog.
    The catalog provides get_current_price, get_min_order_quantity and fetch_scope().
    Failures are returned, never raised, so a whole batch can be validated at once.
    """

    def __init__(self, catalog, max_workers: int = VALIDATION_WORKERS):
        self.catalog = catalog
        self.max_workers = max_workers

    def validate(self, item: CartItemInput, shop_id: str) -> ValidationResult:
        # cena i MOQ z jednego odczytu katalogu
        with self.catalog.fetch_scope():
            return self._validate(item, shop_id)

    def _validate(self, item: CartItemInput, shop_id: str) -> ValidationResult:
        configuration = item.product_configuration
        current_price = self.catalog.get_current_price(configuration, shop_id)

        if item.price != current_price:
            logger.info(
                f"Incorrect price for {configuration.key}: "
                f"provided {item.price.amount} {item.price.currency_code}, "
                f"current {current_price.amount} {current_price.currency_code}"
            )
            return IncorrectPriceFailure(
                current_price=current_price,
                product_configuration=configuration,
                provided_price=item.price,
            )

        min_order_quantity = self.catalog.get_min_order_quantity(configuration, shop_id)
        if item.quantity < min_order_quantity:
            logger.info(
                f"Quantity {item.quantity} below minimum {min_order_quantity} for {configuration.key}"
            )
            return MinOrderQuantityFailure(
                min_order_quantity=min_order_quantity,
                product_configuration=configuration,
                quantity=item.quantity,
            )

        return ValidatedItem(input=item, price=current_price)

    def validate_batch(self, items: List[CartItemInput], shop_id: str) -> BatchValidation:
        # lookupy sa read-only, mozna je puscic rownolegle
        workers = max(1, min(self.max_workers, len(items)))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            results = list(pool.map(lambda item: self.validate(item, shop_id), items))

        batch = BatchValidation()
        for result in results:
            if isinstance(result, IncorrectPriceFailure):
                batch.incorrect_price_failures.append(result)
            elif isinstance(result, MinOrderQuantityFailure):
                batch.min_order_quantity_failures.append(result)
            else:
                batch.accepted.append(result)
        return batch
