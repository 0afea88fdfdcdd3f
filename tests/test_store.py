import httpx
import pytest

from storefront.client.backends import GuestCartBackend, RemoteCartBackend
from storefront.client.cart_service import CartService
from storefront.client.guest_cart import GuestCart
from storefront.client.optimistic import OptimisticUpdate
from storefront.client.reducer import SetCart, SetGuestCart
from storefront.client.storage import MemoryStorage
from storefront.client.store import CartStore, Toast
from storefront.domain.enums import CouponType, MutationKind
from storefront.services.exceptions import CartRequestError


def _guest_store(toasts: list[Toast]) -> tuple[CartStore, GuestCart]:
    guest = GuestCart(MemoryStorage())
    return CartStore(GuestCartBackend(guest), notify=toasts.append), guest


@pytest.mark.asyncio
async def test_guest_add_update_remove_clear():
    toasts: list[Toast] = []
    store, guest = _guest_store(toasts)

    assert await store.add_item(product_id="p1", quantity=2) is True
    assert await store.add_item(product_id="p1", quantity=3) is True
    assert len(store.state.guest_cart) == 1
    assert store.state.guest_cart[0].quantity == 5
    assert store.state.guest_cart == guest.items
    assert toasts[-1] == Toast("Added to cart")

    item_id = store.state.guest_cart[0].id
    assert await store.update_quantity(item_id, 7) is True
    assert guest.items[0].quantity == 7

    assert await store.update_quantity(item_id, 0) is True
    assert store.state.guest_cart == ()

    await store.add_item(service_id="s1")
    assert await store.clear() is True
    assert store.state.guest_cart == ()
    assert guest.items == ()


@pytest.mark.asyncio
async def test_add_without_target_is_rejected():
    store, _ = _guest_store([])
    assert await store.add_item() is False
    assert await store.add_item(product_id="p1", quantity=0) is False
    assert store.state.guest_cart == ()


@pytest.mark.asyncio
async def test_refresh_loads_from_backend():
    storage = MemoryStorage()
    GuestCart(storage).add(product_id="p1", quantity=2)
    store = CartStore(GuestCartBackend(GuestCart(storage)))
    states = []
    store.subscribe(states.append)

    assert await store.refresh() is True

    assert store.state.guest_cart[0].quantity == 2
    assert states[0].is_loading is True
    assert states[-1].is_loading is False


@pytest.mark.asyncio
async def test_failed_remote_add_rolls_back_and_toasts(client: httpx.AsyncClient, make_product):
    toasts: list[Toast] = []
    lamp = make_product(price=100.0, stock=3)
    service = CartService(client)
    store = CartStore(RemoteCartBackend(service), notify=toasts.append)
    assert await store.add_item(product_id=lamp.id) is True
    before = store.state.cart
    assert before.items[0].unit_price == 100.0

    ok = await store.add_item(product_id=lamp.id, quantity=5)

    assert ok is False
    assert store.state.cart == before
    assert store.state.error == "Insufficient stock"
    assert toasts[-1] == Toast("Could not add item", "Insufficient stock", "destructive")
    assert store.in_flight == frozenset()


@pytest.mark.asyncio
async def test_successful_mutation_clears_previous_error(client: httpx.AsyncClient, make_product):
    lamp = make_product(stock=10)
    store = CartStore(RemoteCartBackend(CartService(client)), notify=lambda toast: None)
    await store.add_item(product_id="missing")
    assert store.state.error == "Product not found"

    assert await store.add_item(product_id=lamp.id, quantity=2) is True
    assert store.state.error is None
    item_id = store.state.cart.items[0].id

    assert await store.update_quantity(item_id, 4) is True
    assert store.state.cart.items[0].quantity == 4
    assert await store.remove_item(item_id) is True
    assert store.state.cart.items == []


@pytest.mark.asyncio
async def test_coupon_results_never_raise(client: httpx.AsyncClient, user_token, make_product, make_coupon):
    make_coupon("WELCOME10", CouponType.percentage, 10)
    product = make_product(price=1000.0)
    service = CartService(client)
    service.set_auth_token(user_token)
    store = CartStore(RemoteCartBackend(service), notify=lambda toast: None)
    await store.add_item(product_id=product.id)

    bad = await store.apply_coupon("NOPE")
    assert bad.applied is False
    assert bad.reason == "Invalid coupon code"

    good = await store.apply_coupon("welcome10")
    assert good.applied is True
    assert store.state.cart.applied_coupons == ["WELCOME10"]
    assert store.state.cart.totals.discount == 100.0

    removed = await store.remove_coupon("WELCOME10")
    assert removed.applied is True
    assert store.state.cart.applied_coupons == []


@pytest.mark.asyncio
async def test_guest_coupons_are_refused():
    store, _ = _guest_store([])
    result = await store.apply_coupon("WELCOME10")
    assert result.applied is False
    assert result.reason == "Sign in to apply coupons"


@pytest.mark.asyncio
async def test_execute_tracks_in_flight_and_rolls_back():
    store, _ = _guest_store([])
    seen_busy = []

    async def failing_commit():
        seen_busy.append(store.is_busy(MutationKind.updating))
        raise CartRequestError(500, "boom")

    update = OptimisticUpdate(
        optimistic=SetCart(None),
        commit=failing_commit,
        rollback=SetGuestCart(()),
    )
    with pytest.raises(CartRequestError):
        await store.execute(update, MutationKind.updating)

    assert seen_busy == [True]
    assert store.is_busy(MutationKind.updating) is False


@pytest.mark.asyncio
async def test_use_backend_drops_account_snapshot(client: httpx.AsyncClient):
    store = CartStore(RemoteCartBackend(CartService(client)))
    await store.refresh()
    assert store.state.cart is not None

    store.use_backend(GuestCartBackend(GuestCart(MemoryStorage())))
    assert store.state.cart is None
