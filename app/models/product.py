import uuid
from datetime import datetime

from sqlmodel import SQLModel, Field

DEFAULT_LOW_STOCK_THRESHOLD = 10


class Category(SQLModel):
    """
    Row of the `categories` table.

    Top-level categories have no parent_id; the storefront orders them
    by sort_order.
    """

    id: uuid.UUID
    name: str
    slug: str
    description: str | None = None
    image_url: str | None = None
    parent_id: uuid.UUID | None = None
    sort_order: int = 0
    is_active: bool = True
    created_at: datetime | None = None
    updated_at: datetime | None = None


class ProductImage(SQLModel):
    """
    Row of the `product_images` table.
    """

    id: uuid.UUID
    product_id: uuid.UUID
    url: str
    alt_text: str | None = None
    sort_order: int = 0
    is_primary: bool = False
    created_at: datetime | None = None


class Product(SQLModel):
    """
    Row of the `products` table, optionally joined with its category
    and images (`category:categories(*)`, `images:product_images(*)`).

    Read-only from this service's point of view. `stock_quantity` is the
    ceiling every cart mutation is checked against.
    """

    id: uuid.UUID
    name: str
    slug: str
    description: str | None = None
    short_description: str | None = None

    price: float = Field(ge=0)
    compare_at_price: float | None = None
    cost_price: float | None = None

    sku: str | None = None
    barcode: str | None = None

    stock_quantity: int = 0
    low_stock_threshold: int | None = None

    weight: float | None = None
    weight_unit: str | None = None

    category_id: uuid.UUID | None = None
    brand: str | None = None

    is_active: bool = True
    is_featured: bool = False
    is_organic: bool = False
    tags: list[str] | None = None

    meta_title: str | None = None
    meta_description: str | None = None

    created_at: datetime | None = None
    updated_at: datetime | None = None

    # joined relations
    category: Category | None = None
    images: list[ProductImage] = Field(default_factory=list)

    def sorted_images(self) -> list[ProductImage]:
        """Gallery order: primary image first, then by sort_order."""
        return sorted(self.images, key=lambda image: (not image.is_primary, image.sort_order))

    @property
    def primary_image(self) -> ProductImage | None:
        images = self.sorted_images()
        return images[0] if images else None

    @property
    def discount_percent(self) -> int | None:
        """Rounded saving vs. compare_at_price, or None if not on sale."""
        if not self.compare_at_price or self.compare_at_price <= self.price:
            return None
        return round((1 - self.price / self.compare_at_price) * 100)

    @property
    def is_low_stock(self) -> bool:
        threshold = self.low_stock_threshold or DEFAULT_LOW_STOCK_THRESHOLD
        return 0 < self.stock_quantity <= threshold

    @property
    def in_stock(self) -> bool:
        return self.stock_quantity > 0
