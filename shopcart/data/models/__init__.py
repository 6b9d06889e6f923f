#import wszystkich modeli zeby SQLAlchemy je zarejestrowal w base metadata

from shopcart.data.models.cart import CartModel
from shopcart.data.models.cart_item import CartItemModel

__all__ = ["CartModel", "CartItemModel"]
