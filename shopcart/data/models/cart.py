# shopcart/data/models/cart.py
import uuid

from sqlalchemy import Column, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship

from shopcart.data.database import Base, UTCDateTime, utcnow


class CartModel(Base):
    __tablename__ = "carts"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    shop_id = Column(String(64), nullable=False, index=True)

    # null => anonymous cart, accessed by id + token
    account_id = Column(String(64), nullable=True, index=True)
    anonymous_token_hash = Column(String(64), nullable=True)

    # owned by the checkout subsystem, the cart only references it
    checkout_id = Column(String(64), nullable=True)

    version = Column(Integer, nullable=False, default=1)
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime, nullable=False, default=utcnow, index=True)

    items = relationship(
        "CartItemModel",
        back_populates="cart",
        cascade="all, delete-orphan",
        order_by="CartItemModel.added_at",
    )

    __table_args__ = (
        UniqueConstraint("account_id", "shop_id", name="u_cart_account_shop"),
    )

    @property
    def is_anonymous(self) -> bool:
        return self.account_id is None
