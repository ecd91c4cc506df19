"""
Cart engine tests.

No Supabase, no HTTP: the engine runs against FakeCartStore.
"""
import asyncio
import uuid

from app.models.identity import Identity
from app.services import cart_service as messages
from app.services.cart_service import CartService
from app.services.identity import IdentityProvider
from tests.fakes import make_product


class TestReconciliation:
    async def test_signed_out_refresh_makes_no_remote_calls(self, engine, store):
        await engine.refresh()

        assert store.calls == []
        assert engine.items == ()
        assert engine.cart_id is None
        assert engine.item_count == 0
        assert engine.subtotal == 0

    async def test_sign_in_creates_cart_lazily_once(self, engine, provider, user, store):
        await provider.sign_in(user)

        assert len(store.carts) == 1
        cart = next(iter(store.carts.values()))
        assert cart.user_id == user.user_id
        assert engine.cart_id == cart.id

        await engine.refresh()
        assert len(store.carts) == 1
        assert engine.cart_id == cart.id

    async def test_existing_cart_is_reused(self, engine, provider, user, store):
        existing = await store.create_cart(user.user_id)
        store.put_row(existing.id, make_product(), 2)
        store.calls.clear()

        await provider.sign_in(user)

        assert "create_cart" not in store.calls
        assert engine.cart_id == existing.id
        assert engine.item_count == 2

    async def test_refresh_failure_keeps_previous_state(self, signed_in, store, notices):
        product = store.add_product(make_product(stock=5))
        await signed_in.add_to_cart(product, 2)
        before = signed_in.items
        notices.clear()

        store.fail.add("list_items")
        await signed_in.refresh()

        assert signed_in.items == before
        assert signed_in.cart_id is not None
        assert signed_in.loading is False
        assert notices == []

    async def test_loading_is_true_while_fetch_in_flight(self, signed_in, store):
        entered, release = store.hold("list_items")
        task = asyncio.create_task(signed_in.refresh())

        await entered.wait()
        assert signed_in.loading is True

        release.set()
        await task
        assert signed_in.loading is False

    async def test_concurrent_refreshes_create_one_cart(self, user, store):
        engine = CartService(store, IdentityProvider(user))

        await asyncio.gather(engine.refresh(), engine.refresh())

        assert len(store.carts) == 1

    async def test_older_snapshot_never_overwrites_newer(self, signed_in, store):
        entered, release = store.hold("list_items")
        stale = asyncio.create_task(signed_in.refresh())
        await entered.wait()

        store.put_row(signed_in.cart_id, make_product(), 3)
        await signed_in.refresh()
        assert signed_in.item_count == 3

        release.set()
        await stale
        assert signed_in.item_count == 3

    async def test_snapshot_of_signed_out_identity_is_discarded(
        self, signed_in, provider, store
    ):
        store.put_row(signed_in.cart_id, make_product(), 1)
        entered, release = store.hold("list_items")
        task = asyncio.create_task(signed_in.refresh())
        await entered.wait()

        await provider.sign_out()
        release.set()
        await task

        assert signed_in.items == ()
        assert signed_in.cart_id is None

    async def test_switching_identity_shows_only_new_users_cart(
        self, signed_in, provider, store
    ):
        await signed_in.add_to_cart(store.add_product(make_product()), 1)
        other = Identity(user_id=uuid.uuid4(), email="ravi@example.com")

        await provider.sign_in(other)

        assert signed_in.items == ()
        assert store.carts[signed_in.cart_id].user_id == other.user_id

    async def test_close_stops_following_identity(self, engine, provider, user, store):
        engine.close()

        await provider.sign_in(user)

        assert store.calls == []
        assert engine.items == ()


class TestAddToCart:
    async def test_signed_out_add_asks_to_sign_in(self, engine, store, notices):
        product = store.add_product(make_product(stock=5))

        notice = await engine.add_to_cart(product, 1)

        assert notice.level == "error"
        assert notice.message == messages.SIGN_IN_TO_ADD
        assert notices == [notice]
        assert store.calls == []
        assert engine.items == ()

    async def test_add_more_than_stock_is_rejected(self, signed_in, store):
        product = store.add_product(make_product(stock=3))

        notice = await signed_in.add_to_cart(product, 5)

        assert notice.message == messages.NOT_ENOUGH_STOCK
        assert store.calls == []
        assert store.rows == {}

    async def test_add_new_item(self, signed_in, store):
        product = store.add_product(make_product(stock=5))

        notice = await signed_in.add_to_cart(product)

        assert notice.level == "success"
        assert notice.message == messages.ADDED
        assert [(i.product_id, i.quantity) for i in signed_in.items] == [(product.id, 1)]
        assert store.calls[-1] == "list_items"

    async def test_sequential_adds_merge_into_one_item(self, signed_in, store):
        product = store.add_product(make_product(stock=5))

        await signed_in.add_to_cart(product, 2)
        await signed_in.add_to_cart(product, 2)

        assert len(signed_in.items) == 1
        assert signed_in.items[0].quantity == 4
        assert len(store.rows) == 1

    async def test_merge_past_stock_is_rejected(self, signed_in, store):
        product = store.add_product(make_product(stock=5))
        await signed_in.add_to_cart(product, 4)
        store.calls.clear()

        notice = await signed_in.add_to_cart(product, 2)

        assert notice.message == messages.CANNOT_EXCEED_STOCK
        assert store.calls == []
        assert signed_in.items[0].quantity == 4

    async def test_concurrent_adds_of_same_product_merge(self, signed_in, store):
        product = store.add_product(make_product(stock=5))

        first, second = await asyncio.gather(
            signed_in.add_to_cart(product, 2),
            signed_in.add_to_cart(product, 2),
        )

        assert first.message == second.message == messages.ADDED
        assert len(store.rows) == 1
        assert signed_in.items[0].quantity == 4

    async def test_distinct_products_sum_to_item_count(self, signed_in, store):
        requested = {}
        for stock, qty in [(5, 2), (3, 3), (10, 1), (7, 4)]:
            product = store.add_product(make_product(name=f"Item {stock}", stock=stock))
            requested[product.id] = (qty, stock)
            await signed_in.add_to_cart(product, qty)

        assert signed_in.item_count == sum(qty for qty, _ in requested.values())
        for item in signed_in.items:
            qty, stock = requested[item.product_id]
            assert item.quantity == qty <= stock

    async def test_quantity_below_one_is_rejected(self, signed_in, store):
        product = store.add_product(make_product())

        notice = await signed_in.add_to_cart(product, 0)

        assert notice.message == messages.INVALID_QUANTITY
        assert store.calls == []

    async def test_remote_failure_leaves_state_unchanged(self, signed_in, store):
        product = store.add_product(make_product())
        store.fail.add("insert_item")

        notice = await signed_in.add_to_cart(product, 1)

        assert notice.level == "error"
        assert notice.message == messages.ADD_FAILED
        assert signed_in.items == ()

    async def test_add_after_failed_refresh_still_merges(self, signed_in, store):
        product = store.add_product(make_product(stock=5))
        store.fail.add("list_items")
        first = await signed_in.add_to_cart(product, 2)
        assert first.message == messages.ADDED
        assert signed_in.items == ()

        store.fail.discard("list_items")
        second = await signed_in.add_to_cart(product, 2)

        assert second.message == messages.ADDED
        rows = store.rows_for(signed_in.cart_id)
        assert [(r["product_id"], r["quantity"]) for r in rows] == [(product.id, 4)]
        assert signed_in.items[0].quantity == 4

    async def test_add_after_failed_refresh_keeps_updated_quantity(self, signed_in, store):
        product = store.add_product(make_product(stock=10))
        await signed_in.add_to_cart(product, 2)
        item_id = signed_in.items[0].id

        store.fail.add("list_items")
        await signed_in.update_quantity(item_id, 5)
        assert signed_in.items[0].quantity == 2

        store.fail.discard("list_items")
        await signed_in.add_to_cart(product, 1)

        assert store.rows[item_id]["quantity"] == 6
        assert len(store.rows) == 1

    async def test_add_fails_while_cart_cannot_be_reloaded(self, signed_in, store):
        product = store.add_product(make_product(stock=5))
        store.fail.add("list_items")
        await signed_in.add_to_cart(product, 2)
        store.calls.clear()

        notice = await signed_in.add_to_cart(product, 1)

        assert notice.message == messages.ADD_FAILED
        assert "insert_item" not in store.calls
        assert "update_item_quantity" not in store.calls
        assert [r["quantity"] for r in store.rows.values()] == [2]

    async def test_clear_leaves_cart_in_sync(self, signed_in, store):
        product = store.add_product(make_product(stock=5))
        await signed_in.add_to_cart(product, 2)
        await signed_in.clear_cart()
        store.calls.clear()

        await signed_in.add_to_cart(product, 1)

        assert store.calls[0] == "insert_item"
        assert [r["quantity"] for r in store.rows.values()] == [1]

    async def test_unresolved_cart_is_a_generic_failure(self, engine, provider, user, store):
        store.fail.add("find_cart")
        await provider.sign_in(user)
        assert engine.cart_id is None

        notice = await engine.add_to_cart(store.add_product(make_product()), 1)

        assert notice.message == messages.ADD_FAILED
        assert store.rows == {}


class TestUpdateAndRemove:
    async def test_update_sets_quantity(self, signed_in, store, notices):
        product = store.add_product(make_product(stock=10))
        await signed_in.add_to_cart(product, 1)
        notices.clear()

        notice = await signed_in.update_quantity(signed_in.items[0].id, 6)

        assert notice is None
        assert notices == []
        assert signed_in.items[0].quantity == 6

    async def test_update_to_zero_removes_item(self, signed_in, store):
        keep = store.add_product(make_product(name="Basmati Rice"))
        drop = store.add_product(make_product(name="Paneer"))
        await signed_in.add_to_cart(keep, 2)
        await signed_in.add_to_cart(drop, 1)
        item = next(i for i in signed_in.items if i.product_id == drop.id)
        count_before = signed_in.item_count

        notice = await signed_in.update_quantity(item.id, 0)

        assert notice.message == messages.REMOVED
        assert signed_in.item_count == count_before - 1
        assert [i.product_id for i in signed_in.items] == [keep.id]

    async def test_update_to_negative_behaves_like_remove(self, signed_in, store):
        product = store.add_product(make_product())
        await signed_in.add_to_cart(product, 1)

        notice = await signed_in.update_quantity(signed_in.items[0].id, -1)

        assert notice.message == messages.REMOVED
        assert signed_in.items == ()

    async def test_update_failure_reports_and_keeps_state(self, signed_in, store):
        product = store.add_product(make_product())
        await signed_in.add_to_cart(product, 1)
        store.fail.add("update_item_quantity")

        notice = await signed_in.update_quantity(signed_in.items[0].id, 3)

        assert notice.message == messages.UPDATE_FAILED
        assert signed_in.items[0].quantity == 1

    async def test_remove_unknown_item_keeps_other_items(self, signed_in, store):
        product = store.add_product(make_product())
        await signed_in.add_to_cart(product, 2)
        before = signed_in.items

        await signed_in.remove_from_cart(uuid.uuid4())

        assert signed_in.items == before

    async def test_remove_failure_reports_and_keeps_state(self, signed_in, store):
        product = store.add_product(make_product())
        await signed_in.add_to_cart(product, 2)
        store.fail.add("delete_item")

        notice = await signed_in.remove_from_cart(signed_in.items[0].id)

        assert notice.message == messages.REMOVE_FAILED
        assert len(signed_in.items) == 1

    async def test_signed_out_update_makes_no_remote_calls(self, engine, store):
        notice = await engine.update_quantity(uuid.uuid4(), 2)

        assert notice.message == messages.SIGN_IN_TO_MANAGE
        assert store.calls == []

    async def test_cannot_touch_items_of_another_cart(self, signed_in, store):
        other_cart = await store.create_cart(uuid.uuid4())
        foreign = store.put_row(other_cart.id, make_product(), 1)

        await signed_in.remove_from_cart(foreign)

        assert foreign in store.rows


class TestClearCart:
    async def test_clear_without_cart_is_noop(self, engine, store, notices):
        notice = await engine.clear_cart()

        assert notice is None
        assert store.calls == []
        assert notices == []

    async def test_clear_empties_without_refetch(self, signed_in, store):
        for name in ("Tomatoes", "Onions"):
            await signed_in.add_to_cart(store.add_product(make_product(name=name)), 1)
        store.calls.clear()

        notice = await signed_in.clear_cart()

        assert notice is None
        assert store.calls == ["delete_items"]
        assert signed_in.items == ()
        assert store.rows == {}

    async def test_clear_failure_keeps_items(self, signed_in, store):
        await signed_in.add_to_cart(store.add_product(make_product()), 1)
        store.fail.add("delete_items")

        notice = await signed_in.clear_cart()

        assert notice.message == messages.CLEAR_FAILED
        assert len(signed_in.items) == 1


class TestTotals:
    async def test_subtotal_of_two_items(self, signed_in, store):
        await signed_in.add_to_cart(store.add_product(make_product(name="Ghee", price=100)), 2)
        await signed_in.add_to_cart(store.add_product(make_product(name="Honey", price=250)), 1)

        assert signed_in.subtotal == 450
        assert signed_in.item_count == 3

    async def test_unresolved_product_contributes_zero(self, signed_in, store):
        await signed_in.add_to_cart(store.add_product(make_product(price=80)), 2)
        ghost = make_product(name="Discontinued", price=999)
        store.put_row(signed_in.cart_id, ghost, 1)
        del store.products[ghost.id]

        await signed_in.refresh()

        assert signed_in.item_count == 3
        assert signed_in.subtotal == 160
        unresolved = next(i for i in signed_in.items if i.product is None)
        assert unresolved.line_total == 0

    async def test_summary_matches_items(self, signed_in, store):
        product = store.add_product(make_product(name="Atta", price=55.5, stock=4))
        await signed_in.add_to_cart(product, 2)

        summary = signed_in.summary()

        assert summary.cart_id == signed_in.cart_id
        assert summary.item_count == 2
        assert summary.subtotal == 111.0
        line = summary.items[0]
        assert line.product_name == "Atta"
        assert line.stock_quantity == 4
        assert line.line_total == 111.0
