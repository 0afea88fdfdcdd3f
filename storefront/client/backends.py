"""Storage strategies behind the cart store.

Each call performs the mutation against its backing store and returns the
action that reconciles local state with the result.
"""

from __future__ import annotations

from typing import Any, Protocol

from storefront.client.cart_service import CartService
from storefront.client.guest_cart import GuestCart
from storefront.client.reducer import (
    CartAction,
    CartState,
    ClearGuestCart,
    RevertOptimisticUpdate,
    SetCart,
    SetGuestCart,
)
from storefront.services.exceptions import CouponError


class CartBackend(Protocol):
    is_guest: bool

    async def load(self) -> CartAction: ...

    async def add(
        self,
        *,
        product_id: str | None = None,
        service_id: str | None = None,
        quantity: int = 1,
        customizations: dict[str, Any] | None = None,
        notes: str | None = None,
    ) -> CartAction: ...

    async def remove(self, item_id: str) -> CartAction: ...

    async def update_quantity(self, item_id: str, quantity: int) -> CartAction: ...

    async def clear(self) -> CartAction: ...

    async def apply_coupon(self, code: str) -> CartAction: ...

    async def remove_coupon(self, code: str) -> CartAction: ...

    def snapshot(self, state: CartState) -> CartAction: ...


class GuestCartBackend:
    is_guest = True

    def __init__(self, guest_cart: GuestCart) -> None:
        self.guest_cart = guest_cart

    def _items(self) -> SetGuestCart:
        return SetGuestCart(self.guest_cart.items)

    async def load(self) -> CartAction:
        self.guest_cart.hydrate()
        return self._items()

    async def add(
        self,
        *,
        product_id: str | None = None,
        service_id: str | None = None,
        quantity: int = 1,
        customizations: dict[str, Any] | None = None,
        notes: str | None = None,
    ) -> CartAction:
        self.guest_cart.add(
            product_id=product_id,
            service_id=service_id,
            quantity=quantity,
            customizations=customizations,
            notes=notes,
        )
        return self._items()

    async def remove(self, item_id: str) -> CartAction:
        self.guest_cart.remove(item_id)
        return self._items()

    async def update_quantity(self, item_id: str, quantity: int) -> CartAction:
        self.guest_cart.update_quantity(item_id, quantity)
        return self._items()

    async def clear(self) -> CartAction:
        self.guest_cart.clear()
        return ClearGuestCart()

    async def apply_coupon(self, code: str) -> CartAction:
        raise CouponError("Sign in to apply coupons")

    async def remove_coupon(self, code: str) -> CartAction:
        raise CouponError("Sign in to manage coupons")

    def snapshot(self, state: CartState) -> CartAction:
        return SetGuestCart(state.guest_cart)


class RemoteCartBackend:
    is_guest = False

    def __init__(self, cart_service: CartService) -> None:
        self.cart_service = cart_service

    async def load(self) -> CartAction:
        return SetCart(await self.cart_service.get_cart())

    async def add(
        self,
        *,
        product_id: str | None = None,
        service_id: str | None = None,
        quantity: int = 1,
        customizations: dict[str, Any] | None = None,
        notes: str | None = None,
    ) -> CartAction:
        cart = await self.cart_service.add_item(
            product_id=product_id,
            service_id=service_id,
            quantity=quantity,
            customizations=customizations,
            notes=notes,
        )
        return SetCart(cart)

    async def remove(self, item_id: str) -> CartAction:
        return SetCart(await self.cart_service.remove_item(item_id))

    async def update_quantity(self, item_id: str, quantity: int) -> CartAction:
        return SetCart(await self.cart_service.update_quantity(item_id, quantity))

    async def clear(self) -> CartAction:
        return SetCart(await self.cart_service.clear_cart())

    async def apply_coupon(self, code: str) -> CartAction:
        return SetCart(await self.cart_service.apply_coupon(code))

    async def remove_coupon(self, code: str) -> CartAction:
        return SetCart(await self.cart_service.remove_coupon(code))

    def snapshot(self, state: CartState) -> CartAction:
        return RevertOptimisticUpdate(state.cart)
