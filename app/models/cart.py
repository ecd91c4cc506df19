import uuid
from datetime import datetime

from sqlmodel import SQLModel, Field

from app.models.product import Product


class Cart(SQLModel):
    """
    Row of the `carts` table.

    A cart belongs to one user. The schema also allows a session_id key
    for anonymous carts; those are never addressed by this service.
    Carts are created lazily and never deleted here.
    """

    id: uuid.UUID
    user_id: uuid.UUID | None = None
    session_id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class CartItem(SQLModel):
    """
    Row of the `cart_items` table joined with `product:products(*)`.

    One row per (cart_id, product_id). A quantity below 1 is never
    stored: the row is deleted instead.

    `product` is a snapshot taken at read time. It is None when the join
    did not resolve (product deleted or hidden by RLS); such an item
    contributes 0 to every price aggregate.
    """

    id: uuid.UUID
    cart_id: uuid.UUID
    product_id: uuid.UUID
    quantity: int = Field(ge=1)
    created_at: datetime | None = None
    updated_at: datetime | None = None

    product: Product | None = None

    @property
    def unit_price(self) -> float:
        if self.product is None:
            return 0.0
        return self.product.price

    @property
    def line_total(self) -> float:
        return self.unit_price * self.quantity
