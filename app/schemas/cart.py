import uuid
from typing import Literal

from sqlmodel import SQLModel, Field

from app.schemas.settings import PriceQuote


class CartItemCreate(SQLModel):
    """
    Payload for adding to cart.
    """

    product_id: uuid.UUID
    quantity: int = Field(default=1, gt=0)


class CartItemUpdate(SQLModel):
    """
    Payload for updating quantity of a cart item.

    A quantity below 1 removes the item.
    """

    quantity: int


class CartNotice(SQLModel):
    """
    Short human-readable outcome of a cart action (a "toast").
    """

    level: Literal["success", "error"]
    message: str


class CartItemRead(SQLModel):
    """
    Read model for a single cart item, including line_total.

    product_* fields are None when the product no longer resolves.
    """

    id: uuid.UUID
    product_id: uuid.UUID
    quantity: int
    product_name: str | None = None
    product_slug: str | None = None
    product_image_url: str | None = None
    stock_quantity: int | None = None
    unit_price: float
    line_total: float


class CartSummary(SQLModel):
    """
    Full cart snapshot with derived totals.
    """

    cart_id: uuid.UUID | None = None
    items: list[CartItemRead]
    item_count: int
    subtotal: float
    loading: bool = False


class CartView(SQLModel):
    """
    Cart page payload: summary plus shipping quote.
    """

    cart: CartSummary
    quote: PriceQuote


class CartActionResult(SQLModel):
    """
    Response of every cart mutation endpoint.

    ok is False when the notice is an error; the cart is always the
    current (possibly unchanged) snapshot.
    """

    ok: bool
    notice: CartNotice | None = None
    cart: CartSummary
