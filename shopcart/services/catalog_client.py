# shopcart/services/catalog_client.py
import threading
from contextlib import contextmanager
from decimal import Decimal

import requests
from requests import RequestException

from shopcart.domain.types import Money, ProductConfiguration
from shopcart.exceptions import CatalogItemNotFoundError, CatalogUnavailableError
from shopcart.utils.retry import http_retry
from shopcart.utils.settings import CATALOG_SERVICE_URL, CATALOG_TIMEOUT_SECONDS
from shopcart.utils.logging import get_logger

logger = get_logger(__name__)


class CatalogClient:
    """HTTP client for the catalog/pricing service."""

    def __init__(self, base_url: str | None = None, timeout: float = CATALOG_TIMEOUT_SECONDS):
        self.base_url = (base_url or CATALOG_SERVICE_URL).rstrip("/")
        self.timeout = timeout
        # walidacja leci w wielu watkach, kazdy ma wlasny scope
        self._local = threading.local()

    @contextmanager
    def fetch_scope(self):
        """Inside the scope each variant is fetched at most once (per thread)."""
        outer = getattr(self._local, "variants", None)
        if outer is None:
            self._local.variants = {}
        try:
            yield
        finally:
            if outer is None:
                self._local.variants = None

    @http_retry()
    def _fetch_variant(self, configuration: ProductConfiguration, shop_id: str) -> dict:
        url = (
            f"{self.base_url}/shops/{shop_id}/products/{configuration.product_id}"
            f"/variants/{configuration.product_variant_id}"
        )
        logger.info(f"CatalogClient GET {url}")

        resp = requests.get(url, timeout=self.timeout)
        if resp.status_code == 404:
            raise CatalogItemNotFoundError(configuration.product_id, configuration.product_variant_id)
        resp.raise_for_status()
        return resp.json()

    def fetch_variant(self, configuration: ProductConfiguration, shop_id: str) -> dict:
        cache = getattr(self._local, "variants", None)
        key = (shop_id, configuration.product_id, configuration.product_variant_id)
        if cache is not None and key in cache:
            return cache[key]

        try:
            data = self._fetch_variant(configuration, shop_id)
        except RequestException as e:
            logger.error(f"Catalog unavailable for {configuration.key}: {e}")
            raise CatalogUnavailableError(f"Catalog unavailable: {e}") from e

        if cache is not None:
            cache[key] = data
        return data

    def get_current_price(self, configuration: ProductConfiguration, shop_id: str) -> Money:
        data = self.fetch_variant(configuration, shop_id)
        price = data["price"]
        return Money(amount=Decimal(str(price["amount"])), currency_code=price["currencyCode"])

    def get_min_order_quantity(self, configuration: ProductConfiguration, shop_id: str) -> int:
        data = self.fetch_variant(configuration, shop_id)
        return int(data.get("minOrderQuantity") or 1)
