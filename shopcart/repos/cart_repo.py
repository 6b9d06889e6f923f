# shopcart/repos/cart_repo.py
from datetime import datetime
from typing import List

from sqlalchemy import select, update
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import set_committed_value

from shopcart.data.models.cart import CartModel
from shopcart.data.models.cart_item import CartItemModel


class CartRepo:
    """
    Cart Store: persisted carts and their items.
    Nothing here commits on its own; the services decide the transaction boundary.
    """

    def __init__(self, db: Session):
        self.db = db

    # odczyt
    def get_cart(self, cart_id: str, fresh: bool = False) -> CartModel | None:
        if fresh:
            self.db.expire_all()
        return self.db.get(CartModel, cart_id)

    def get_cart_by_account(self, account_id: str, shop_id: str, fresh: bool = False) -> CartModel | None:
        if fresh:
            self.db.expire_all()
        return self.db.execute(
            select(CartModel).where(
                CartModel.account_id == account_id,
                CartModel.shop_id == shop_id,
            )
        ).scalar_one_or_none()

    def list_expired_anonymous_carts(self, cutoff: datetime) -> List[CartModel]:
        return list(
            self.db.execute(
                select(CartModel).where(
                    CartModel.account_id.is_(None),
                    CartModel.updated_at < cutoff,
                )
            ).scalars().all()
        )

    # zapis
    def create_cart(self, cart: CartModel) -> CartModel:
        self.db.add(cart)
        return cart

    def add_cart_item(self, cart: CartModel, item: CartItemModel) -> CartItemModel:
        cart.items.append(item)
        return item

    def delete_cart_item(self, cart: CartModel, item: CartItemModel) -> None:
        # delete-orphan usuwa wiersz przy flushu
        cart.items.remove(item)

    def move_cart_item(self, item: CartItemModel, source: CartModel, target: CartModel) -> None:
        source.items.remove(item)
        target.items.append(item)

    def delete_cart(self, cart: CartModel) -> None:
        self.db.delete(cart)

    def update_cart_version(self, cart: CartModel, new_data: dict) -> int:
        """
        UPDATE carts SET ... WHERE id = :id AND version = :loaded_version
        Returns the affected row count; 0 means someone else wrote first.
        """
        result = self.db.execute(
            update(CartModel)
            .where(CartModel.id == cart.id, CartModel.version == cart.version)
            .values(**new_data)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount:
            # stan w pamieci zgodny z baza, bez oznaczania obiektu jako dirty
            for key, value in new_data.items():
                set_committed_value(cart, key, value)
        return result.rowcount

    def flush(self) -> None:
        self.db.flush()

    def commit(self) -> None:
        self.db.commit()

    def rollback(self) -> None:
        self.db.rollback()
