"""Deterministic cart state transitions.

``reduce`` is a pure function over a closed set of actions. Network calls
never happen here; callers dispatch before and after them.
"""

from __future__ import annotations

import enum
from collections.abc import Callable, Mapping
from dataclasses import dataclass, replace
from datetime import datetime
from typing import ClassVar, Union

from storefront.schemas.base import utcnow
from storefront.schemas.cart import Cart, CartItem, GuestCartItem, NaturalKey, Totals
from storefront.services.pricing import compute_totals

Clock = Callable[[], datetime]


class ActionType(str, enum.Enum):
    SET_LOADING = "SET_LOADING"
    SET_ERROR = "SET_ERROR"
    SET_CART = "SET_CART"
    SET_GUEST_CART = "SET_GUEST_CART"
    ADD_ITEM_OPTIMISTIC = "ADD_ITEM_OPTIMISTIC"
    REMOVE_ITEM_OPTIMISTIC = "REMOVE_ITEM_OPTIMISTIC"
    UPDATE_QUANTITY_OPTIMISTIC = "UPDATE_QUANTITY_OPTIMISTIC"
    CLEAR_GUEST_CART = "CLEAR_GUEST_CART"
    SET_MIGRATION_STATUS = "SET_MIGRATION_STATUS"
    REVERT_OPTIMISTIC_UPDATE = "REVERT_OPTIMISTIC_UPDATE"


@dataclass(frozen=True)
class SetLoading:
    loading: bool
    type: ClassVar[ActionType] = ActionType.SET_LOADING


@dataclass(frozen=True)
class SetError:
    error: str | None
    type: ClassVar[ActionType] = ActionType.SET_ERROR


@dataclass(frozen=True)
class SetCart:
    cart: Cart | None
    type: ClassVar[ActionType] = ActionType.SET_CART


@dataclass(frozen=True)
class SetGuestCart:
    items: tuple[GuestCartItem, ...]
    type: ClassVar[ActionType] = ActionType.SET_GUEST_CART


@dataclass(frozen=True)
class AddItemOptimistic:
    item: CartItem
    is_guest: bool
    type: ClassVar[ActionType] = ActionType.ADD_ITEM_OPTIMISTIC


@dataclass(frozen=True)
class RemoveItemOptimistic:
    item_id: str
    is_guest: bool
    type: ClassVar[ActionType] = ActionType.REMOVE_ITEM_OPTIMISTIC


@dataclass(frozen=True)
class UpdateQuantityOptimistic:
    item_id: str
    quantity: int
    is_guest: bool
    type: ClassVar[ActionType] = ActionType.UPDATE_QUANTITY_OPTIMISTIC


@dataclass(frozen=True)
class ClearGuestCart:
    type: ClassVar[ActionType] = ActionType.CLEAR_GUEST_CART


@dataclass(frozen=True)
class SetMigrationStatus:
    active: bool
    type: ClassVar[ActionType] = ActionType.SET_MIGRATION_STATUS


@dataclass(frozen=True)
class RevertOptimisticUpdate:
    cart: Cart | None
    type: ClassVar[ActionType] = ActionType.REVERT_OPTIMISTIC_UPDATE


CartAction = Union[
    SetLoading,
    SetError,
    SetCart,
    SetGuestCart,
    AddItemOptimistic,
    RemoveItemOptimistic,
    UpdateQuantityOptimistic,
    ClearGuestCart,
    SetMigrationStatus,
    RevertOptimisticUpdate,
]


@dataclass(frozen=True)
class CartState:
    cart: Cart | None = None
    guest_cart: tuple[GuestCartItem, ...] = ()
    is_loading: bool = False
    error: str | None = None
    is_processing_migration: bool = False


INITIAL_STATE = CartState()


def _epoch_ms(moment: datetime) -> int:
    return int(moment.timestamp() * 1000)


def _with_items(cart: Cart, items: list[CartItem], now: datetime) -> Cart:
    # Optimistic totals only know item prices; coupon discounts come back with the server snapshot.
    return cart.model_copy(
        update={
            "items": items,
            "totals": compute_totals(items),
            "last_updated": now,
            "updated_at": now,
        }
    )


def _add_guest(state: CartState, item: CartItem, now: datetime) -> CartState:
    guest = list(state.guest_cart)
    index = next((i for i, existing in enumerate(guest) if existing.natural_key == item.natural_key), None)
    if index is None:
        guest.append(
            GuestCartItem(
                id=item.id,
                product_id=item.product_id,
                service_id=item.service_id,
                quantity=item.quantity,
                added_at=_epoch_ms(now),
                customizations=item.customizations or None,
                notes=item.notes,
            )
        )
    else:
        existing = guest[index]
        guest[index] = existing.model_copy(
            update={
                "quantity": existing.quantity + item.quantity,
                "added_at": _epoch_ms(now),
                "customizations": {**(existing.customizations or {}), **item.customizations} or None,
                "notes": item.notes or existing.notes,
            }
        )
    return replace(state, guest_cart=tuple(guest))


def _add_account(state: CartState, item: CartItem, now: datetime) -> CartState:
    if state.cart is None:
        return state
    items = list(state.cart.items)
    index = next((i for i, existing in enumerate(items) if existing.natural_key == item.natural_key), None)
    if index is None:
        items.append(item)
    else:
        existing = items[index]
        items[index] = existing.model_copy(
            update={
                "quantity": existing.quantity + item.quantity,
                "customizations": {**existing.customizations, **item.customizations},
                "notes": item.notes or existing.notes,
                "updated_at": now,
            }
        )
    return replace(state, cart=_with_items(state.cart, items, now))


def _remove(state: CartState, item_id: str, is_guest: bool, now: datetime) -> CartState:
    if is_guest:
        return replace(state, guest_cart=tuple(item for item in state.guest_cart if item.id != item_id))
    if state.cart is None:
        return state
    items = [item for item in state.cart.items if item.id != item_id]
    return replace(state, cart=_with_items(state.cart, items, now))


def _update_quantity(state: CartState, item_id: str, quantity: int, is_guest: bool, now: datetime) -> CartState:
    # Quantities <= 0 are stored as given; routing them to removal is the caller's job.
    if is_guest:
        guest = tuple(
            item.model_copy(update={"quantity": quantity, "added_at": _epoch_ms(now)}) if item.id == item_id else item
            for item in state.guest_cart
        )
        return replace(state, guest_cart=guest)
    if state.cart is None:
        return state
    items = [
        item.model_copy(update={"quantity": quantity, "updated_at": now}) if item.id == item_id else item
        for item in state.cart.items
    ]
    return replace(state, cart=_with_items(state.cart, items, now))


def reduce(state: CartState, action: CartAction, *, clock: Clock = utcnow) -> CartState:
    if isinstance(action, SetLoading):
        return replace(state, is_loading=action.loading)
    if isinstance(action, SetError):
        return replace(state, error=action.error)
    if isinstance(action, SetCart):
        return replace(state, cart=action.cart)
    if isinstance(action, SetGuestCart):
        return replace(state, guest_cart=tuple(action.items))
    if isinstance(action, AddItemOptimistic):
        if action.is_guest:
            return _add_guest(state, action.item, clock())
        return _add_account(state, action.item, clock())
    if isinstance(action, RemoveItemOptimistic):
        return _remove(state, action.item_id, action.is_guest, clock())
    if isinstance(action, UpdateQuantityOptimistic):
        return _update_quantity(state, action.item_id, action.quantity, action.is_guest, clock())
    if isinstance(action, ClearGuestCart):
        return replace(state, guest_cart=())
    if isinstance(action, SetMigrationStatus):
        return replace(state, is_processing_migration=action.active)
    if isinstance(action, RevertOptimisticUpdate):
        return replace(state, cart=action.cart)
    raise TypeError(f"Unhandled cart action: {action!r}")


def select_total_quantity(state: CartState) -> int:
    if state.cart is not None:
        return sum(item.quantity for item in state.cart.items)
    return sum(item.quantity for item in state.guest_cart)


def select_items_count(state: CartState) -> int:
    if state.cart is not None:
        return len(state.cart.items)
    return len(state.guest_cart)


def select_totals(state: CartState, prices: Mapping[NaturalKey, float] | None = None) -> Totals:
    """Account totals come from the snapshot; guest totals need a price map."""
    if state.cart is not None:
        return state.cart.totals
    if prices is None:
        return Totals()
    items = [
        CartItem(
            id=guest.id,
            product_id=guest.product_id,
            service_id=guest.service_id,
            quantity=guest.quantity,
            unit_price=prices[guest.natural_key],
        )
        for guest in state.guest_cart
        if guest.natural_key in prices and guest.quantity > 0
    ]
    return compute_totals(items)
