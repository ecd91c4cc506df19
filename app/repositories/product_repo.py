import uuid
from typing import Any, Awaitable, Callable

import httpx
from supabase import AsyncClient, PostgrestAPIError

from app.core.errors import RemoteOperationFailed
from app.core.supabase_client import supabase_public
from app.models.product import Category, Product
from app.schemas.product import ProductQuery

PRODUCT_SELECT = "*, category:categories(*), images:product_images(*)"

# sort key -> (column, descending)
SORT_ORDERS: dict[str, tuple[str, bool]] = {
    "newest": ("created_at", True),
    "price-low": ("price", False),
    "price-high": ("price", True),
    "name": ("name", False),
}


class ProductRepository:
    """
    Read-only access to `products`, `product_images` and `categories`.

    - Only active rows are returned.
    - Products are always joined with their category and images.
    - No FastAPI, no business logic.
    """

    def __init__(
        self,
        client_factory: Callable[[], Awaitable[AsyncClient]] = supabase_public,
    ):
        self._client_factory = client_factory

    async def _execute(self, operation: str, build: Callable[[AsyncClient], Any]) -> list[dict]:
        try:
            client = await self._client_factory()
            response = await build(client).execute()
        except (PostgrestAPIError, httpx.HTTPError, RuntimeError) as e:
            raise RemoteOperationFailed(operation, e) from e
        return response.data or []

    # ----- Products -----

    async def list_products(self, query: ProductQuery) -> list[Product]:
        def build(client: AsyncClient):
            stmt = (
                client.table("products")
                .select(PRODUCT_SELECT)
                .eq("is_active", True)
            )
            if query.min_price is not None:
                stmt = stmt.gte("price", query.min_price)
            if query.max_price is not None:
                stmt = stmt.lte("price", query.max_price)
            if query.q:
                pattern = f"%{query.q}%"
                stmt = stmt.or_(f"name.ilike.{pattern},description.ilike.{pattern}")
            if query.category_id:
                stmt = stmt.eq("category_id", str(query.category_id))
            if query.featured:
                stmt = stmt.eq("is_featured", True)
            if query.organic:
                stmt = stmt.eq("is_organic", True)

            column, desc = SORT_ORDERS[query.sort]
            stmt = stmt.order(column, desc=desc)
            if query.limit:
                stmt = stmt.limit(query.limit)
            return stmt

        rows = await self._execute("list_products", build)
        return [Product.model_validate(row) for row in rows]

    async def get_product(self, product_id: uuid.UUID) -> Product | None:
        rows = await self._execute(
            "get_product",
            lambda c: c.table("products")
            .select(PRODUCT_SELECT)
            .eq("id", str(product_id))
            .eq("is_active", True)
            .limit(1),
        )
        return Product.model_validate(rows[0]) if rows else None

    async def get_product_by_slug(self, slug: str) -> Product | None:
        rows = await self._execute(
            "get_product_by_slug",
            lambda c: c.table("products")
            .select(PRODUCT_SELECT)
            .eq("slug", slug)
            .eq("is_active", True)
            .limit(1),
        )
        return Product.model_validate(rows[0]) if rows else None

    # ----- Categories -----

    async def list_categories(self, top_level_only: bool = False) -> list[Category]:
        def build(client: AsyncClient):
            stmt = client.table("categories").select("*").eq("is_active", True)
            if top_level_only:
                stmt = stmt.is_("parent_id", "null")
            return stmt.order("sort_order")

        rows = await self._execute("list_categories", build)
        return [Category.model_validate(row) for row in rows]

    async def get_category_by_slug(self, slug: str) -> Category | None:
        rows = await self._execute(
            "get_category_by_slug",
            lambda c: c.table("categories")
            .select("*")
            .eq("slug", slug)
            .eq("is_active", True)
            .limit(1),
        )
        return Category.model_validate(rows[0]) if rows else None
