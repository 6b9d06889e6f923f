# shopcart/data/models/cart_item.py
import uuid

from sqlalchemy import Column, Integer, ForeignKey, Numeric, String, JSON, UniqueConstraint
from sqlalchemy.orm import relationship

from shopcart.data.database import Base, UTCDateTime, utcnow


class CartItemModel(Base):
    __tablename__ = "cart_items"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    cart_id = Column(String(36), ForeignKey("carts.id", ondelete="CASCADE"), nullable=False, index=True)
    shop_id = Column(String(64), nullable=False)

    product_id = Column(String(64), nullable=False)
    product_variant_id = Column(String(64), nullable=False)

    quantity = Column(Integer, nullable=False)
    price_amount = Column(Numeric(12, 2), nullable=False)
    price_when_added_amount = Column(Numeric(12, 2), nullable=False)
    currency_code = Column(String(3), nullable=False)

    metafields = Column(JSON, nullable=True)

    added_at = Column(UTCDateTime, nullable=False, default=utcnow)
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime, nullable=False, default=utcnow)

    cart = relationship("CartModel", back_populates="items")

    __table_args__ = (
        UniqueConstraint("cart_id", "product_id", "product_variant_id", name="u_cart_configuration"),
    )

    @property
    def configuration_key(self) -> tuple[str, str]:
        return (self.product_id, self.product_variant_id)
