import asyncio
import logging
import uuid
from typing import Callable

from app.core.errors import (
    CartError,
    CartNotResolved,
    CartOutOfSync,
    InsufficientStock,
    NotAuthenticated,
)
from app.models.cart import CartItem
from app.models.identity import Identity
from app.models.product import Product
from app.repositories.cart_repo import CartStore
from app.schemas.cart import CartItemRead, CartNotice, CartSummary
from app.services.identity import IdentityProvider

logger = logging.getLogger(__name__)

# --- User-visible notices ---

SIGN_IN_TO_ADD = "Please sign in to add items to cart"
SIGN_IN_TO_MANAGE = "Please sign in to manage your cart"
NOT_ENOUGH_STOCK = "Not enough stock available"
CANNOT_EXCEED_STOCK = "Cannot add more items than available in stock"
INVALID_QUANTITY = "Quantity must be at least 1"
ADDED = "Added to cart"
ADD_FAILED = "Failed to add to cart"
UPDATE_FAILED = "Failed to update quantity"
REMOVED = "Item removed from cart"
REMOVE_FAILED = "Failed to remove item"
CLEAR_FAILED = "Failed to clear cart"

NoticeSink = Callable[[CartNotice], None]


class CartService:
    """
    Server-backed view of one identity's shopping cart.

    Responsibilities:
      - reconcile local state (items, cart_id) with the remote cart store
      - expose derived totals (item_count, subtotal)
      - add / update / remove / clear, with stock checks
      - turn every failure into a CartNotice instead of raising

    Rules:
      - items is always the result of one full reconciliation pass; no
        mutation patches it locally (clear_cart excepted)
      - mutations are serialized, so the insert-vs-merge decision of
        add_to_cart always sees the previous mutation's reconciled state
      - if the refresh after a write failed, add_to_cart refreshes again
        before deciding, and fails rather than decide on stale items
      - results of work started under another identity are discarded
    """

    def __init__(
        self,
        store: CartStore,
        identity: IdentityProvider,
        notify: NoticeSink | None = None,
    ):
        self.store = store
        self.identity = identity
        self._notify = notify

        self._items: list[CartItem] = []
        self._cart_id: uuid.UUID | None = None
        self._in_flight = 0

        # bumped on every identity change
        self._epoch = 0
        # ordering of overlapping refreshes
        self._refresh_seq = 0
        self._applied_seq = 0
        # highest refresh seq that may predate the last write
        self._dirty_seq = -1

        self._mutation_lock = asyncio.Lock()
        self._resolve_lock = asyncio.Lock()
        self._unsubscribe: Callable[[], None] | None = None

    # ---- lifecycle ----

    async def start(self) -> None:
        """Subscribe to identity changes and run the first reconciliation."""
        if self._unsubscribe is None:
            self._unsubscribe = self.identity.subscribe(self._on_identity_change)
        await self.refresh()

    def close(self) -> None:
        """Stop following the identity and drop all cart state."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self._reset()

    async def _on_identity_change(self, identity: Identity | None) -> None:
        self._reset()
        await self.refresh()

    def _reset(self) -> None:
        self._epoch += 1
        self._dirty_seq = -1
        self._items = []
        self._cart_id = None

    # ---- read access ----

    @property
    def items(self) -> tuple[CartItem, ...]:
        return tuple(self._items)

    @property
    def cart_id(self) -> uuid.UUID | None:
        return self._cart_id

    @property
    def loading(self) -> bool:
        return self._in_flight > 0

    @property
    def item_count(self) -> int:
        return sum(item.quantity for item in self._items)

    @property
    def subtotal(self) -> float:
        # unresolved products contribute 0 (see CartItem.unit_price)
        return sum(item.line_total for item in self._items)

    def summary(self) -> CartSummary:
        items: list[CartItemRead] = []
        for it in self._items:
            product = it.product
            image = product.primary_image if product is not None else None
            items.append(
                CartItemRead(
                    id=it.id,
                    product_id=it.product_id,
                    quantity=it.quantity,
                    product_name=product.name if product else None,
                    product_slug=product.slug if product else None,
                    product_image_url=image.url if image else None,
                    stock_quantity=product.stock_quantity if product else None,
                    unit_price=it.unit_price,
                    line_total=it.line_total,
                )
            )
        return CartSummary(
            cart_id=self._cart_id,
            items=items,
            item_count=self.item_count,
            subtotal=self.subtotal,
            loading=self.loading,
        )

    # ---- reconciliation ----

    async def refresh(self) -> None:
        """
        Replace local state with a fresh read of the remote cart.

        Steps:
          1. No identity => clear items and cart_id, no remote call.
          2. Find the identity's cart, creating it if missing.
          3. Fetch its items joined with products.
          4. Replace items wholesale.

        Remote failures are logged and leave the previous state in place.
        A snapshot is dropped if the identity changed while it was being
        fetched, or if a later refresh has already been applied.
        """
        identity = self.identity.current
        if identity is None:
            self._items = []
            self._cart_id = None
            return

        epoch = self._epoch
        self._refresh_seq += 1
        seq = self._refresh_seq

        self._in_flight += 1
        try:
            cart_id = await self._resolve_cart(identity)
            items = await self.store.list_items(cart_id)
        except CartError as e:
            logger.warning("Error fetching cart for %s: %s", identity.user_id, e)
            return
        finally:
            self._in_flight -= 1

        if epoch != self._epoch:
            logger.info("Discarding cart snapshot of a previous identity session")
            return
        if seq < self._applied_seq:
            return

        self._applied_seq = seq
        self._cart_id = cart_id
        self._items = list(items)

    async def _resolve_cart(self, identity: Identity) -> uuid.UUID:
        # serialized so two overlapping refreshes cannot both create a cart
        async with self._resolve_lock:
            cart = await self.store.find_cart(identity.user_id)
            if cart is None:
                cart = await self.store.create_cart(identity.user_id)
                logger.info("Created cart %s for %s", cart.id, identity.user_id)
            return cart.id

    # ---- helpers ----

    def _require_session(self, epoch: int) -> Identity:
        # the identity that started the operation must still be current
        identity = self.identity.current
        if identity is None or epoch != self._epoch:
            raise NotAuthenticated()
        return identity

    async def _require_cart(self) -> uuid.UUID:
        if self._cart_id is None:
            # first mutation for this identity: get or create the cart
            await self.refresh()
        if self._cart_id is None:
            raise CartNotResolved()
        return self._cart_id

    async def _require_in_sync(self) -> None:
        # no refresh applied since the last write: items may be behind the store
        if self._applied_seq <= self._dirty_seq:
            await self.refresh()
        if self._applied_seq <= self._dirty_seq:
            raise CartOutOfSync()

    def _mark_dirty(self) -> None:
        self._dirty_seq = self._refresh_seq

    def _find_item(self, product_id: uuid.UUID) -> CartItem | None:
        for item in self._items:
            if item.product_id == product_id:
                return item
        return None

    def _emit(self, epoch: int, level: str, message: str) -> CartNotice | None:
        if epoch != self._epoch:
            # identity changed mid-operation; the caller's session is gone
            logger.info("Dropping cart notice of a previous identity session: %s", message)
            return None
        notice = CartNotice(level=level, message=message)
        logger.info("Cart notice (%s): %s", level, message)
        if self._notify is not None:
            self._notify(notice)
        return notice

    # ---- mutations ----

    async def add_to_cart(self, product: Product, quantity: int = 1) -> CartNotice | None:
        """
        Add `quantity` units of `product`, merging into an existing line.

        Rules:
          - needs a signed-in identity
          - quantity <= product.stock_quantity
          - existing quantity + quantity <= product.stock_quantity
        """
        epoch = self._epoch
        if self.identity.current is None:
            return self._emit(epoch, "error", SIGN_IN_TO_ADD)
        if quantity < 1:
            return self._emit(epoch, "error", INVALID_QUANTITY)

        try:
            async with self._mutation_lock:
                self._require_session(epoch)
                if quantity > product.stock_quantity:
                    raise InsufficientStock(product.id, quantity, product.stock_quantity)

                cart_id = await self._require_cart()
                await self._require_in_sync()
                existing = self._find_item(product.id)

                if existing is not None:
                    new_quantity = existing.quantity + quantity
                    if new_quantity > product.stock_quantity:
                        raise InsufficientStock(
                            product.id, new_quantity, product.stock_quantity, merged=True
                        )
                    self._mark_dirty()
                    await self.store.update_item_quantity(cart_id, existing.id, new_quantity)
                else:
                    self._mark_dirty()
                    await self.store.insert_item(cart_id, product.id, quantity)

                await self.refresh()
        except NotAuthenticated:
            return self._emit(epoch, "error", SIGN_IN_TO_ADD)
        except InsufficientStock as e:
            logger.info("Rejected add to cart: %s", e)
            return self._emit(
                epoch, "error", CANNOT_EXCEED_STOCK if e.merged else NOT_ENOUGH_STOCK
            )
        except CartError as e:
            logger.error("Error adding to cart: %r", e)
            return self._emit(epoch, "error", ADD_FAILED)

        return self._emit(epoch, "success", ADDED)

    async def update_quantity(self, item_id: uuid.UUID, quantity: int) -> CartNotice | None:
        """
        Set an item's quantity; anything below 1 removes the item.

        The stock ceiling is not re-checked here: callers bound the value
        by the product's stock before calling.
        """
        if quantity < 1:
            return await self.remove_from_cart(item_id)

        epoch = self._epoch
        try:
            async with self._mutation_lock:
                self._require_session(epoch)
                cart_id = await self._require_cart()
                self._mark_dirty()
                await self.store.update_item_quantity(cart_id, item_id, quantity)
                await self.refresh()
        except NotAuthenticated:
            return self._emit(epoch, "error", SIGN_IN_TO_MANAGE)
        except CartError as e:
            logger.error("Error updating quantity: %r", e)
            return self._emit(epoch, "error", UPDATE_FAILED)

        return None

    async def remove_from_cart(self, item_id: uuid.UUID) -> CartNotice | None:
        """
        Delete an item row. Unknown ids delete nothing.
        """
        epoch = self._epoch
        try:
            async with self._mutation_lock:
                self._require_session(epoch)
                cart_id = await self._require_cart()
                self._mark_dirty()
                await self.store.delete_item(cart_id, item_id)
                await self.refresh()
        except NotAuthenticated:
            return self._emit(epoch, "error", SIGN_IN_TO_MANAGE)
        except CartError as e:
            logger.error("Error removing from cart: %r", e)
            return self._emit(epoch, "error", REMOVE_FAILED)

        return self._emit(epoch, "success", REMOVED)

    async def clear_cart(self) -> CartNotice | None:
        """
        Delete every item of the resolved cart and empty the local list
        directly, without a reconciliation pass.

        No-op when no cart has been resolved. On failure the local items
        are left as they were.
        """
        epoch = self._epoch
        async with self._mutation_lock:
            cart_id = self._cart_id
            if cart_id is None or epoch != self._epoch:
                return None
            self._mark_dirty()
            try:
                await self.store.delete_items(cart_id)
            except CartError as e:
                logger.error("Error clearing cart: %r", e)
                return self._emit(epoch, "error", CLEAR_FAILED)

            if epoch == self._epoch:
                self._items = []
                # the empty list is exact; drop snapshots taken before the delete
                self._refresh_seq += 1
                self._applied_seq = self._refresh_seq
        return None
