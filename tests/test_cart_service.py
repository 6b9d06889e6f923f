"""
Cart Mutation Service: create / add / remove / update quantity.
"""
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from shopcart.data.models.cart import CartModel
from shopcart.domain.types import CartItemQuantityInput, Metafield
from shopcart.exceptions import (
    CartAlreadyExistsError,
    CartNotFoundError,
    CatalogItemNotFoundError,
    InvalidInputError,
    PermissionDeniedError,
)
from tests.conftest import SHOP, item_input, quantities


def _cart_count(db):
    return db.execute(select(func.count()).select_from(CartModel)).scalar_one()


class TestCreateCart:
    def test_anonymous_cart_gets_token_once(self, cart_service):
        result = cart_service.create_cart(SHOP, [item_input("p-a", "v-a", "10.00", 2)])

        assert result["token"]
        cart = result["cart"]
        assert cart["account_id"] is None
        assert cart["shop_id"] == SHOP
        assert quantities(cart) == {("p-a", "v-a"): 2}
        assert result["incorrect_price_failures"] == []
        assert result["min_order_quantity_failures"] == []

    def test_token_is_stored_hashed(self, cart_service, db):
        result = cart_service.create_cart(SHOP, [item_input("p-a", "v-a", "10.00", 1)])

        stored = db.get(CartModel, result["cart"]["id"])
        assert stored.anonymous_token_hash
        assert stored.anonymous_token_hash != result["token"]

    def test_account_cart_has_no_token(self, cart_service):
        result = cart_service.create_cart(SHOP, [item_input("p-a", "v-a", "10.00", 1)], account_id="acc-1")

        assert result["token"] is None
        assert result["cart"]["account_id"] == "acc-1"
        assert result["cart"]["expires_at"] is None

    def test_empty_items_rejected_and_nothing_persisted(self, cart_service, db):
        with pytest.raises(InvalidInputError):
            cart_service.create_cart(SHOP, [])

        assert _cart_count(db) == 0

    def test_non_positive_quantity_rejected(self, cart_service, db):
        with pytest.raises(InvalidInputError):
            cart_service.create_cart(SHOP, [item_input("p-a", "v-a", "10.00", 0)])

        assert _cart_count(db) == 0

    def test_every_item_failing_creates_no_cart(self, cart_service, db):
        result = cart_service.create_cart(SHOP, [item_input("p-a", "v-a", "9.99", 1)])

        assert result["cart"] is None
        assert result["token"] is None
        assert len(result["incorrect_price_failures"]) == 1
        assert _cart_count(db) == 0

    def test_partial_failure_still_creates_cart(self, cart_service):
        result = cart_service.create_cart(
            SHOP,
            [
                item_input("p-a", "v-a", "10.00", 1),
                item_input("p-b", "v-b", "1.00", 1),
                item_input("p-c", "v-c", "3.00", 2),
            ],
        )

        assert quantities(result["cart"]) == {("p-a", "v-a"): 1}

        [price_failure] = result["incorrect_price_failures"]
        assert price_failure.current_price.amount == Decimal("25.50")
        assert price_failure.provided_price.amount == Decimal("1.00")
        assert price_failure.product_configuration.key == ("p-b", "v-b")

        [moq_failure] = result["min_order_quantity_failures"]
        assert moq_failure.min_order_quantity == 5
        assert moq_failure.quantity == 2

    def test_duplicate_configurations_in_one_batch_collapse(self, cart_service):
        result = cart_service.create_cart(
            SHOP,
            [item_input("p-a", "v-a", "10.00", 1), item_input("p-a", "v-a", "10.00", 4)],
        )

        assert len(result["cart"]["items"]) == 1
        assert quantities(result["cart"]) == {("p-a", "v-a"): 5}

    def test_second_account_cart_in_same_shop_rejected(self, cart_service):
        cart_service.create_cart(SHOP, [item_input("p-a", "v-a", "10.00", 1)], account_id="acc-1")

        with pytest.raises(CartAlreadyExistsError):
            cart_service.create_cart(SHOP, [item_input("p-b", "v-b", "25.50", 1)], account_id="acc-1")

    def test_unknown_product_configuration_is_request_error(self, cart_service, db):
        with pytest.raises(CatalogItemNotFoundError):
            cart_service.create_cart(SHOP, [item_input("nope", "nope", "1.00", 1)])

        assert _cart_count(db) == 0

    def test_new_item_fields(self, cart_service):
        result = cart_service.create_cart(
            SHOP,
            [item_input("p-a", "v-a", "10.00", 3, metafields=[Metafield(key="gift", value="yes")])],
        )
        cart = result["cart"]
        [item] = cart["items"]

        assert item["price"] == {"amount": Decimal("10.00"), "currency_code": "USD"}
        assert item["price_when_added"] == item["price"]
        assert item["price_changed"] is False
        assert item["subtotal"]["amount"] == Decimal("30.00")
        assert item["metafields"] == [{"key": "gift", "value": "yes", "namespace": None}]
        assert item["added_at"] == item["created_at"]
        assert cart["created_at"] == cart["updated_at"]
        assert cart["total_item_quantity"] == 3
        assert cart["item_total"]["amount"] == Decimal("30.00")


class TestAddCartItems:
    def test_same_configuration_sums_into_one_line(self, cart_service, catalog):
        created = cart_service.create_cart(SHOP, [item_input("p-a", "v-a", "10.00", 2)])
        cart_id, token = created["cart"]["id"], created["token"]
        [first] = created["cart"]["items"]

        catalog.set_variant("p-a", "v-a", "12.00")
        result = cart_service.add_cart_items(cart_id, [item_input("p-a", "v-a", "12.00", 3)], token=token)

        [item] = result["cart"]["items"]
        assert item["id"] == first["id"]
        assert item["quantity"] == 5
        assert item["price"]["amount"] == Decimal("12.00")
        assert item["price_when_added"]["amount"] == Decimal("10.00")
        assert item["price_changed"] is True
        assert item["added_at"] == first["added_at"]
        assert item["created_at"] == first["created_at"]

    def test_updated_at_bumped(self, cart_service):
        created = cart_service.create_cart(SHOP, [item_input("p-a", "v-a", "10.00", 1)])

        result = cart_service.add_cart_items(
            created["cart"]["id"], [item_input("p-b", "v-b", "25.50", 1)], token=created["token"]
        )

        assert result["cart"]["updated_at"] > created["cart"]["updated_at"]
        assert result["cart"]["created_at"] == created["cart"]["created_at"]

    def test_failed_items_do_not_abort_batch(self, cart_service):
        created = cart_service.create_cart(SHOP, [item_input("p-a", "v-a", "10.00", 1)])

        result = cart_service.add_cart_items(
            created["cart"]["id"],
            [item_input("p-b", "v-b", "25.50", 2), item_input("p-a", "v-a", "11.00", 1)],
            token=created["token"],
        )

        assert quantities(result["cart"]) == {("p-a", "v-a"): 1, ("p-b", "v-b"): 2}
        [failure] = result["incorrect_price_failures"]
        assert failure.current_price.amount == Decimal("10.00")
        assert failure.provided_price.amount == Decimal("11.00")

    def test_all_failed_leaves_cart_untouched(self, cart_service):
        created = cart_service.create_cart(SHOP, [item_input("p-a", "v-a", "10.00", 1)])

        result = cart_service.add_cart_items(
            created["cart"]["id"], [item_input("p-c", "v-c", "3.00", 1)], token=created["token"]
        )

        assert result["cart"]["updated_at"] == created["cart"]["updated_at"]
        assert len(result["min_order_quantity_failures"]) == 1

    def test_wrong_token_denied(self, cart_service):
        created = cart_service.create_cart(SHOP, [item_input("p-a", "v-a", "10.00", 1)])

        with pytest.raises(PermissionDeniedError):
            cart_service.add_cart_items(
                created["cart"]["id"], [item_input("p-a", "v-a", "10.00", 1)], token="not-the-token"
            )

    def test_account_cart_requires_owner(self, cart_service):
        created = cart_service.create_cart(SHOP, [item_input("p-a", "v-a", "10.00", 1)], account_id="acc-1")
        cart_id = created["cart"]["id"]

        with pytest.raises(PermissionDeniedError):
            cart_service.add_cart_items(cart_id, [item_input("p-a", "v-a", "10.00", 1)], account_id="acc-2")

        result = cart_service.add_cart_items(cart_id, [item_input("p-a", "v-a", "10.00", 1)], account_id="acc-1")
        assert quantities(result["cart"]) == {("p-a", "v-a"): 2}

    def test_missing_cart(self, cart_service):
        with pytest.raises(CartNotFoundError):
            cart_service.add_cart_items("missing", [item_input("p-a", "v-a", "10.00", 1)], token="t")


class TestRemoveCartItems:
    def test_removing_all_items_keeps_cart(self, cart_service, db):
        created = cart_service.create_cart(SHOP, [item_input("p-a", "v-a", "10.00", 1)])
        cart_id = created["cart"]["id"]
        item_id = created["cart"]["items"][0]["id"]

        result = cart_service.remove_cart_items(cart_id, [item_id], token=created["token"])

        assert result["cart"]["id"] == cart_id
        assert result["cart"]["items"] == []
        assert result["cart"]["item_total"] is None
        assert db.get(CartModel, cart_id) is not None

    def test_unknown_ids_ignored_without_bump(self, cart_service):
        created = cart_service.create_cart(SHOP, [item_input("p-a", "v-a", "10.00", 1)])

        result = cart_service.remove_cart_items(created["cart"]["id"], ["nope"], token=created["token"])

        assert quantities(result["cart"]) == {("p-a", "v-a"): 1}
        assert result["cart"]["updated_at"] == created["cart"]["updated_at"]

    def test_remove_then_add_creates_new_line(self, cart_service):
        created = cart_service.create_cart(SHOP, [item_input("p-a", "v-a", "10.00", 1)])
        cart_id, token = created["cart"]["id"], created["token"]
        [original] = created["cart"]["items"]

        cart_service.remove_cart_items(cart_id, [original["id"]], token=token)
        result = cart_service.add_cart_items(cart_id, [item_input("p-a", "v-a", "10.00", 1)], token=token)

        [readded] = result["cart"]["items"]
        assert readded["id"] != original["id"]
        assert readded["added_at"] != original["added_at"]
        assert readded["created_at"] != original["created_at"]

    def test_removal_is_idempotent(self, cart_service):
        created = cart_service.create_cart(
            SHOP, [item_input("p-a", "v-a", "10.00", 1), item_input("p-b", "v-b", "25.50", 1)]
        )
        cart_id, token = created["cart"]["id"], created["token"]
        item_id = created["cart"]["items"][0]["id"]

        first = cart_service.remove_cart_items(cart_id, [item_id], token=token)
        second = cart_service.remove_cart_items(cart_id, [item_id], token=token)

        assert first["cart"]["items"] == second["cart"]["items"]
        assert first["cart"]["updated_at"] == second["cart"]["updated_at"]


class TestUpdateCartItemsQuantity:
    def test_sets_absolute_quantity(self, cart_service):
        created = cart_service.create_cart(SHOP, [item_input("p-a", "v-a", "10.00", 2)])
        [item] = created["cart"]["items"]

        result = cart_service.update_cart_items_quantity(
            created["cart"]["id"],
            [CartItemQuantityInput(cart_item_id=item["id"], quantity=7)],
            token=created["token"],
        )

        [updated] = result["cart"]["items"]
        assert updated["quantity"] == 7
        assert updated["added_at"] == item["added_at"]
        assert result["missing_cart_item_ids"] == []
        assert result["cart"]["updated_at"] > created["cart"]["updated_at"]

    def test_zero_quantity_removes_item(self, cart_service):
        created = cart_service.create_cart(
            SHOP, [item_input("p-a", "v-a", "10.00", 2), item_input("p-b", "v-b", "25.50", 1)]
        )
        item_id = next(i["id"] for i in created["cart"]["items"] if i["product_configuration"]["product_id"] == "p-a")

        result = cart_service.update_cart_items_quantity(
            created["cart"]["id"],
            [CartItemQuantityInput(cart_item_id=item_id, quantity=0)],
            token=created["token"],
        )

        assert quantities(result["cart"]) == {("p-b", "v-b"): 1}

    def test_unknown_item_is_per_item_failure(self, cart_service):
        created = cart_service.create_cart(SHOP, [item_input("p-a", "v-a", "10.00", 2)])
        [item] = created["cart"]["items"]

        result = cart_service.update_cart_items_quantity(
            created["cart"]["id"],
            [
                CartItemQuantityInput(cart_item_id="ghost", quantity=3),
                CartItemQuantityInput(cart_item_id=item["id"], quantity=4),
            ],
            token=created["token"],
        )

        assert result["missing_cart_item_ids"] == ["ghost"]
        assert quantities(result["cart"]) == {("p-a", "v-a"): 4}

    def test_same_quantity_is_no_change(self, cart_service):
        created = cart_service.create_cart(SHOP, [item_input("p-a", "v-a", "10.00", 2)])
        [item] = created["cart"]["items"]

        result = cart_service.update_cart_items_quantity(
            created["cart"]["id"],
            [CartItemQuantityInput(cart_item_id=item["id"], quantity=2)],
            token=created["token"],
        )

        assert result["cart"]["updated_at"] == created["cart"]["updated_at"]

    def test_negative_quantity_rejected(self, cart_service):
        created = cart_service.create_cart(SHOP, [item_input("p-a", "v-a", "10.00", 2)])
        [item] = created["cart"]["items"]

        with pytest.raises(InvalidInputError):
            cart_service.update_cart_items_quantity(
                created["cart"]["id"],
                [CartItemQuantityInput(cart_item_id=item["id"], quantity=-1)],
                token=created["token"],
            )


class TestQueries:
    def test_anonymous_cart_expiry_derived_from_updated_at(self, cart_service):
        from shopcart.services.expiry import expiry_threshold

        created = cart_service.create_cart(SHOP, [item_input("p-a", "v-a", "10.00", 1)])

        cart = cart_service.get_anonymous_cart(created["cart"]["id"], created["token"])

        assert cart["expires_at"] == cart["updated_at"] + expiry_threshold()

    def test_custom_sort(self, cart_service):
        created = cart_service.create_cart(
            SHOP, [item_input("p-a", "v-a", "10.00", 5), item_input("p-b", "v-b", "25.50", 1)]
        )

        by_price = cart_service.get_anonymous_cart(
            created["cart"]["id"], created["token"], sort_by="price", descending=True
        )
        by_quantity = cart_service.get_anonymous_cart(created["cart"]["id"], created["token"], sort_by="quantity")

        assert [i["product_configuration"]["product_id"] for i in by_price["items"]] == ["p-b", "p-a"]
        assert [i["quantity"] for i in by_quantity["items"]] == [1, 5]

    def test_unknown_sort_field(self, cart_service):
        created = cart_service.create_cart(SHOP, [item_input("p-a", "v-a", "10.00", 1)])

        with pytest.raises(InvalidInputError):
            cart_service.get_anonymous_cart(created["cart"]["id"], created["token"], sort_by="colour")

    def test_account_cart_lookup(self, cart_service):
        cart_service.create_cart(SHOP, [item_input("p-a", "v-a", "10.00", 1)], account_id="acc-1")

        cart = cart_service.get_account_cart("acc-1", SHOP)
        assert cart["account_id"] == "acc-1"

        with pytest.raises(CartNotFoundError):
            cart_service.get_account_cart("acc-1", "other-shop")
