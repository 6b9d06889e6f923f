"""
Shared fixtures: a SQLite database file per test, an in-memory catalog and
an in-process stand-in for the Redis cart lock.
"""
import os

# przed importem shopcart, zeby globalny engine nie wymagal postgresa
os.environ["DATABASE_URL"] = "sqlite://"

import threading
from collections import defaultdict
from contextlib import contextmanager, nullcontext
from decimal import Decimal

import pytest
from sqlalchemy.orm import sessionmaker

from shopcart.data import models  # noqa: F401
from shopcart.data.database import Base, make_engine
from shopcart.domain.types import CartItemInput, Money, ProductConfiguration
from shopcart.exceptions import CatalogItemNotFoundError
from shopcart.services.cart_service import CartService
from shopcart.services.reconciliation_service import ReconciliationService

SHOP = "shop-1"


class FakeCatalog:
    """Catalog collaborator backed by a dict: (shop, product, variant) -> (price, MOQ)."""

    def __init__(self):
        self.variants = {}
        self.lookups = 0
        self._lock = threading.Lock()

    def set_variant(self, product_id, variant_id, amount, min_order_quantity=1, shop_id=SHOP, currency_code="USD"):
        self.variants[(shop_id, product_id, variant_id)] = (
            Money(amount=Decimal(amount), currency_code=currency_code),
            min_order_quantity,
        )

    def _lookup(self, configuration, shop_id):
        with self._lock:
            self.lookups += 1
        key = (shop_id, configuration.product_id, configuration.product_variant_id)
        if key not in self.variants:
            raise CatalogItemNotFoundError(configuration.product_id, configuration.product_variant_id)
        return self.variants[key]

    def fetch_scope(self):
        return nullcontext()

    def get_current_price(self, configuration, shop_id):
        return self._lookup(configuration, shop_id)[0]

    def get_min_order_quantity(self, configuration, shop_id):
        return self._lookup(configuration, shop_id)[1]


class FakeLockService:
    """Same hold() contract as CartLockService, with threading locks instead of Redis."""

    def __init__(self):
        self._locks = defaultdict(threading.Lock)
        self._guard = threading.Lock()
        self.held = []

    @contextmanager
    def hold(self, *cart_ids):
        keys = sorted(set(cart_ids))
        with self._guard:
            locks = [self._locks[key] for key in keys]
        for lock in locks:
            lock.acquire()
        self.held.append(tuple(keys))
        try:
            yield
        finally:
            for lock in reversed(locks):
                lock.release()


def item_input(product_id, variant_id, amount, quantity, currency_code="USD", metafields=None):
    return CartItemInput(
        product_configuration=ProductConfiguration(product_id=product_id, product_variant_id=variant_id),
        price=Money(amount=Decimal(amount), currency_code=currency_code),
        quantity=quantity,
        metafields=metafields,
    )


def quantities(cart: dict) -> dict:
    return {
        (i["product_configuration"]["product_id"], i["product_configuration"]["product_variant_id"]): i["quantity"]
        for i in cart["items"]
    }


@pytest.fixture
def engine(tmp_path):
    engine = make_engine(f"sqlite:///{tmp_path / 'carts.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def catalog():
    catalog = FakeCatalog()
    catalog.set_variant("p-a", "v-a", "10.00")
    catalog.set_variant("p-b", "v-b", "25.50")
    catalog.set_variant("p-c", "v-c", "3.00", min_order_quantity=5)
    return catalog


@pytest.fixture
def locks():
    return FakeLockService()


@pytest.fixture
def cart_service(db, catalog, locks):
    return CartService(db=db, catalog=catalog, lock_service=locks)


@pytest.fixture
def reconciliation_service(db, locks):
    return ReconciliationService(db=db, lock_service=locks)
