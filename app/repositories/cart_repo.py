import uuid
from typing import Any, Awaitable, Callable, Protocol

import httpx
from supabase import AsyncClient, PostgrestAPIError

from app.core.errors import RemoteOperationFailed
from app.core.supabase_client import supabase_admin
from app.models.cart import Cart, CartItem

CART_ITEM_SELECT = "*, product:products(*, images:product_images(*))"


class CartStore(Protocol):
    """
    Remote Cart Store contract used by the cart engine.

    Every operation is one request/response round trip and may fail
    independently with RemoteOperationFailed.
    """

    async def find_cart(self, user_id: uuid.UUID) -> Cart | None: ...

    async def create_cart(self, user_id: uuid.UUID) -> Cart: ...

    async def list_items(self, cart_id: uuid.UUID) -> list[CartItem]: ...

    async def insert_item(
        self, cart_id: uuid.UUID, product_id: uuid.UUID, quantity: int
    ) -> CartItem: ...

    async def update_item_quantity(
        self, cart_id: uuid.UUID, item_id: uuid.UUID, quantity: int
    ) -> None: ...

    async def delete_item(self, cart_id: uuid.UUID, item_id: uuid.UUID) -> None: ...

    async def delete_items(self, cart_id: uuid.UUID) -> None: ...


class SupabaseCartStore:
    """
    CartStore backed by the `carts` / `cart_items` tables.

    - Pure remote operations, no business logic.
    - Uses the service-role client, so every item query is scoped by
      cart_id as well as by item id.
    """

    def __init__(
        self,
        client_factory: Callable[[], Awaitable[AsyncClient]] = supabase_admin,
    ):
        self._client_factory = client_factory

    async def _execute(self, operation: str, build: Callable[[AsyncClient], Any]) -> list[dict]:
        try:
            client = await self._client_factory()
            response = await build(client).execute()
        except (PostgrestAPIError, httpx.HTTPError, RuntimeError) as e:
            raise RemoteOperationFailed(operation, e) from e
        return response.data or []

    # ----- Carts -----

    async def find_cart(self, user_id: uuid.UUID) -> Cart | None:
        rows = await self._execute(
            "find_cart",
            lambda c: c.table("carts")
            .select("*")
            .eq("user_id", str(user_id))
            .limit(1),
        )
        return Cart.model_validate(rows[0]) if rows else None

    async def create_cart(self, user_id: uuid.UUID) -> Cart:
        rows = await self._execute(
            "create_cart",
            lambda c: c.table("carts").insert({"user_id": str(user_id)}),
        )
        if not rows:
            raise RemoteOperationFailed("create_cart")
        return Cart.model_validate(rows[0])

    # ----- Cart items -----

    async def list_items(self, cart_id: uuid.UUID) -> list[CartItem]:
        rows = await self._execute(
            "list_items",
            lambda c: c.table("cart_items")
            .select(CART_ITEM_SELECT)
            .eq("cart_id", str(cart_id))
            .order("created_at"),
        )
        return [CartItem.model_validate(row) for row in rows]

    async def insert_item(
        self, cart_id: uuid.UUID, product_id: uuid.UUID, quantity: int
    ) -> CartItem:
        rows = await self._execute(
            "insert_item",
            lambda c: c.table("cart_items").insert(
                {
                    "cart_id": str(cart_id),
                    "product_id": str(product_id),
                    "quantity": quantity,
                }
            ),
        )
        if not rows:
            raise RemoteOperationFailed("insert_item")
        return CartItem.model_validate(rows[0])

    async def update_item_quantity(
        self, cart_id: uuid.UUID, item_id: uuid.UUID, quantity: int
    ) -> None:
        await self._execute(
            "update_item_quantity",
            lambda c: c.table("cart_items")
            .update({"quantity": quantity})
            .eq("id", str(item_id))
            .eq("cart_id", str(cart_id)),
        )

    async def delete_item(self, cart_id: uuid.UUID, item_id: uuid.UUID) -> None:
        await self._execute(
            "delete_item",
            lambda c: c.table("cart_items")
            .delete()
            .eq("id", str(item_id))
            .eq("cart_id", str(cart_id)),
        )

    async def delete_items(self, cart_id: uuid.UUID) -> None:
        await self._execute(
            "delete_items",
            lambda c: c.table("cart_items").delete().eq("cart_id", str(cart_id)),
        )
