import uuid

from fastapi import APIRouter, Depends

from app.core.auth import get_current_identity
from app.dependencies import (
    get_cart_sessions,
    get_product_service,
    get_settings_service,
)
from app.models.identity import Identity
from app.schemas.cart import (
    CartActionResult,
    CartItemCreate,
    CartItemUpdate,
    CartNotice,
    CartView,
)
from app.services.cart_service import CartService
from app.services.cart_sessions import CartSessionRegistry
from app.services.product_service import ProductService
from app.services.settings_service import SettingsService

router = APIRouter(prefix="/cart", tags=["Cart"])


async def get_cart(
    identity: Identity | None = Depends(get_current_identity),
    sessions: CartSessionRegistry = Depends(get_cart_sessions),
) -> CartService:
    """
    Resolve the caller's cart engine.

    Guests get the shared guest engine: reads are empty and every
    mutation answers with a "please sign in" notice.
    """
    return await sessions.session_for(identity)


def _result(cart: CartService, notice: CartNotice | None) -> CartActionResult:
    return CartActionResult(
        ok=notice is None or notice.level == "success",
        notice=notice,
        cart=cart.summary(),
    )


@router.get("", response_model=CartView)
async def get_my_cart(
    cart: CartService = Depends(get_cart),
    settings_service: SettingsService = Depends(get_settings_service),
):
    """
    Reconcile and return the current user's cart with its shipping quote.

    A failed reconciliation is not an error: the last good snapshot is
    returned.
    """
    await cart.refresh()
    store_settings = await settings_service.get_settings()
    return CartView(
        cart=cart.summary(),
        quote=SettingsService.quote(store_settings, cart.subtotal),
    )


@router.post("/items", response_model=CartActionResult)
async def add_to_cart(
    payload: CartItemCreate,
    cart: CartService = Depends(get_cart),
    product_service: ProductService = Depends(get_product_service),
):
    """
    Add a product to the current user's cart.

    Stock is checked against the product's current stock_quantity.
    """
    product = await product_service.get_product(payload.product_id)
    notice = await cart.add_to_cart(product, payload.quantity)
    return _result(cart, notice)


@router.patch("/items/{item_id}", response_model=CartActionResult)
async def update_cart_item(
    item_id: uuid.UUID,
    payload: CartItemUpdate,
    cart: CartService = Depends(get_cart),
):
    """
    Set the quantity of a cart item. A quantity below 1 removes it.
    """
    notice = await cart.update_quantity(item_id, payload.quantity)
    return _result(cart, notice)


@router.delete("/items/{item_id}", response_model=CartActionResult)
async def remove_cart_item(
    item_id: uuid.UUID,
    cart: CartService = Depends(get_cart),
):
    """
    Remove an item from the cart.
    """
    notice = await cart.remove_from_cart(item_id)
    return _result(cart, notice)


@router.delete("", response_model=CartActionResult)
async def clear_cart(cart: CartService = Depends(get_cart)):
    """
    Clear the entire cart.
    """
    notice = await cart.clear_cart()
    return _result(cart, notice)
