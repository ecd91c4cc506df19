import uuid
from typing import Literal

from pydantic import ConfigDict, field_validator, model_validator
from sqlmodel import SQLModel, Field

from app.models.product import Category, Product, ProductImage

SortKey = Literal["newest", "price-low", "price-high", "name"]

DEFAULT_MIN_PRICE = 0.0
DEFAULT_MAX_PRICE = 5000.0


class ProductQuery(SQLModel):
    """
    Filters for the product listing page.

    - q: case-insensitive match on name or description
    - category_id: restrict to one category
    - featured / organic: only flagged products
    - min_price / max_price: inclusive price range (the listing page
      sends 0..5000 unless the shopper narrows it)
    - sort: newest (default), price-low, price-high, name
    """

    model_config = ConfigDict(extra="forbid")

    q: str | None = None
    category_id: uuid.UUID | None = None
    featured: bool = False
    organic: bool = False
    min_price: float | None = Field(default=None, ge=0)
    max_price: float | None = Field(default=None, ge=0)
    sort: SortKey = "newest"
    limit: int | None = Field(default=None, gt=0, le=100)

    @field_validator("q")
    @classmethod
    def blank_to_none(cls, v: str | None) -> str | None:
        if v is None:
            return None
        # PostgREST filter syntax uses ',' and parentheses as separators
        v = v.replace(",", " ").replace("(", " ").replace(")", " ").strip()
        return v or None

    @model_validator(mode="after")
    def check_price_range(self) -> "ProductQuery":
        if (
            self.min_price is not None
            and self.max_price is not None
            and self.min_price > self.max_price
        ):
            raise ValueError("min_price cannot be greater than max_price")
        return self

    @property
    def has_active_filters(self) -> bool:
        return bool(
            self.q
            or self.category_id
            or self.featured
            or self.organic
            or (self.min_price or DEFAULT_MIN_PRICE) > DEFAULT_MIN_PRICE
            or (self.max_price is not None and self.max_price < DEFAULT_MAX_PRICE)
        )


class ProductCard(SQLModel):
    """
    Product as rendered on grid/list cards.
    """

    id: uuid.UUID
    name: str
    slug: str
    short_description: str | None = None
    price: float
    price_display: str
    compare_at_price: float | None = None
    compare_at_price_display: str | None = None
    discount_percent: int | None = None
    stock_quantity: int
    in_stock: bool
    is_low_stock: bool
    is_featured: bool
    is_organic: bool
    weight: float | None = None
    weight_unit: str | None = None
    image_url: str | None = None
    category_name: str | None = None


class ProductList(SQLModel):
    items: list[ProductCard]
    count: int
    has_active_filters: bool


class ProductDetail(SQLModel):
    """
    Product detail page: the product with its gallery ordered primary first.
    """

    product: Product
    price_display: str
    compare_at_price_display: str | None = None
    discount_percent: int | None = None
    images: list[ProductImage]


class CategoryPage(SQLModel):
    category: Category
    products: list[ProductCard]


class HomePage(SQLModel):
    """
    Landing page sections.
    """

    store_name: str
    categories: list[Category]
    featured: list[ProductCard]
    organic: list[ProductCard]
    newest: list[ProductCard]
