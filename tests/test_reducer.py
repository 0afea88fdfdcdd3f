from dataclasses import dataclass
from datetime import datetime, timezone

import pytest

from storefront.client.reducer import (
    INITIAL_STATE,
    ActionType,
    AddItemOptimistic,
    CartState,
    ClearGuestCart,
    RemoveItemOptimistic,
    RevertOptimisticUpdate,
    SetCart,
    SetError,
    SetGuestCart,
    SetLoading,
    SetMigrationStatus,
    UpdateQuantityOptimistic,
    reduce,
    select_items_count,
    select_total_quantity,
    select_totals,
)
from storefront.schemas.cart import Cart, CartItem, GuestCartItem

FIXED_NOW = datetime(2026, 3, 1, 9, 30, tzinfo=timezone.utc)


def clock() -> datetime:
    return FIXED_NOW


def _item(item_id: str, *, product_id: str | None = "p1", service_id: str | None = None, quantity: int = 1, price: float = 100.0, **kwargs) -> CartItem:
    return CartItem(
        id=item_id,
        product_id=product_id,
        service_id=service_id,
        quantity=quantity,
        unit_price=price,
        **kwargs,
    )


def _cart(*items: CartItem) -> Cart:
    return Cart(id="cart-1", user_id="u1", items=list(items))


def test_add_same_product_twice_merges_into_one_line():
    state = CartState(cart=_cart())
    state = reduce(state, AddItemOptimistic(_item("a", quantity=2), is_guest=False), clock=clock)
    state = reduce(state, AddItemOptimistic(_item("b", quantity=3), is_guest=False), clock=clock)

    assert len(state.cart.items) == 1
    assert state.cart.items[0].quantity == 5
    assert state.cart.totals.subtotal == 500.0


def test_guest_add_merges_by_natural_key_and_keeps_product_service_apart():
    state = INITIAL_STATE
    state = reduce(state, AddItemOptimistic(_item("a", quantity=2, customizations={"color": "white"}), is_guest=True), clock=clock)
    state = reduce(state, AddItemOptimistic(_item("b", quantity=3, customizations={"size": "L"}, notes="gift"), is_guest=True), clock=clock)
    state = reduce(state, AddItemOptimistic(_item("c", product_id=None, service_id="s1"), is_guest=True), clock=clock)

    assert len(state.guest_cart) == 2
    merged = state.guest_cart[0]
    assert merged.quantity == 5
    assert merged.customizations == {"color": "white", "size": "L"}
    assert merged.notes == "gift"
    assert merged.added_at == int(FIXED_NOW.timestamp() * 1000)
    assert state.guest_cart[1].service_id == "s1"
    # Guest actions never touch the account cart.
    assert state.cart is None


def test_account_actions_without_cart_leave_state_unchanged():
    for action in (
        AddItemOptimistic(_item("a"), is_guest=False),
        RemoveItemOptimistic("a", is_guest=False),
        UpdateQuantityOptimistic("a", 4, is_guest=False),
    ):
        assert reduce(INITIAL_STATE, action, clock=clock) == INITIAL_STATE


def test_remove_recomputes_totals():
    state = CartState(cart=_cart(_item("a", price=100.0), _item("b", product_id="p2", price=600.0)))
    assert state.cart.totals.subtotal == 0  # snapshot as given

    state = reduce(state, RemoveItemOptimistic("b", is_guest=False), clock=clock)

    assert [item.id for item in state.cart.items] == ["a"]
    assert state.cart.totals.subtotal == 100.0
    assert state.cart.totals.shipping == 50.0
    assert state.cart.last_updated == FIXED_NOW


def test_update_quantity_does_not_remove_non_positive_lines():
    state = CartState(cart=_cart(_item("a", quantity=2)))
    state = reduce(state, UpdateQuantityOptimistic("a", 0, is_guest=False), clock=clock)

    assert len(state.cart.items) == 1
    assert state.cart.items[0].quantity == 0


def test_guest_update_and_remove():
    guest = (
        GuestCartItem(id="g1", product_id="p1", quantity=1, added_at=1),
        GuestCartItem(id="g2", service_id="s1", quantity=1, added_at=1),
    )
    state = CartState(guest_cart=guest)

    state = reduce(state, UpdateQuantityOptimistic("g1", 4, is_guest=True), clock=clock)
    assert state.guest_cart[0].quantity == 4

    state = reduce(state, RemoveItemOptimistic("g2", is_guest=True), clock=clock)
    assert [item.id for item in state.guest_cart] == ["g1"]

    state = reduce(state, ClearGuestCart(), clock=clock)
    assert state.guest_cart == ()


def test_revert_restores_snapshot_wholesale():
    original = _cart(_item("a", quantity=1))
    state = CartState(cart=original)
    state = reduce(state, AddItemOptimistic(_item("b", product_id="p2"), is_guest=False), clock=clock)
    assert len(state.cart.items) == 2

    state = reduce(state, RevertOptimisticUpdate(original), clock=clock)
    assert state.cart is original


def test_flag_actions():
    state = reduce(INITIAL_STATE, SetLoading(True))
    state = reduce(state, SetError("boom"))
    state = reduce(state, SetMigrationStatus(True))
    state = reduce(state, SetCart(_cart()))
    state = reduce(state, SetGuestCart(()))

    assert state.is_loading is True
    assert state.error == "boom"
    assert state.is_processing_migration is True
    assert state.cart.id == "cart-1"


def test_states_are_new_objects():
    before = CartState(cart=_cart())
    after = reduce(before, AddItemOptimistic(_item("a"), is_guest=False), clock=clock)

    assert before.cart.items == []
    assert after is not before


def test_unknown_action_raises_type_error():
    @dataclass(frozen=True)
    class Bogus:
        pass

    with pytest.raises(TypeError):
        reduce(INITIAL_STATE, Bogus())


def test_action_tags_match_wire_names():
    assert SetCart.type is ActionType.SET_CART
    assert RevertOptimisticUpdate(None).type.value == "REVERT_OPTIMISTIC_UPDATE"


def test_selectors():
    guest = (
        GuestCartItem(id="g1", product_id="p1", quantity=2, added_at=1),
        GuestCartItem(id="g2", service_id="s1", quantity=1, added_at=1),
    )
    state = CartState(guest_cart=guest)

    assert select_total_quantity(state) == 3
    assert select_items_count(state) == 2
    assert select_totals(state).total == 0
    priced = select_totals(state, {("p1", None): 100.0, (None, "s1"): 250.0})
    assert priced.subtotal == 450.0

    account = CartState(cart=_cart(_item("a", quantity=4)))
    assert select_total_quantity(account) == 4
