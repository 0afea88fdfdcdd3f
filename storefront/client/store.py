"""Cart state container consumed by UI code.

The store owns a ``CartState``, applies actions through ``reduce`` and
delegates persistence to the active ``CartBackend``. It never asks whether the
shopper is a guest; swapping the backend on sign-in/sign-out is enough.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from functools import partial
from typing import Any

from storefront.client.backends import CartBackend
from storefront.client.optimistic import OptimisticUpdate
from storefront.client.reducer import (
    INITIAL_STATE,
    AddItemOptimistic,
    CartAction,
    CartState,
    Clock,
    RemoveItemOptimistic,
    SetCart,
    SetError,
    SetLoading,
    UpdateQuantityOptimistic,
    reduce,
)
from storefront.core.logging import get_logger
from storefront.domain.enums import MutationKind
from storefront.schemas.base import utcnow
from storefront.schemas.cart import CartItem
from storefront.services.exceptions import ServiceError

logger = get_logger("storefront.client.store")

StateListener = Callable[[CartState], None]


@dataclass(frozen=True)
class Toast:
    title: str
    description: str | None = None
    variant: str = "default"


@dataclass(frozen=True)
class CouponResult:
    applied: bool
    reason: str | None = None


ToastSink = Callable[[Toast], None]


def _log_toast(toast: Toast) -> None:
    logger.info(toast.title, extra={"description": toast.description, "variant": toast.variant})


class CartStore:
    def __init__(
        self,
        backend: CartBackend,
        *,
        notify: ToastSink | None = None,
        clock: Clock = utcnow,
    ) -> None:
        self._backend = backend
        self._notify = notify or _log_toast
        self._clock = clock
        self._state = INITIAL_STATE
        self._listeners: list[StateListener] = []
        self._in_flight: dict[MutationKind, int] = {}

    @property
    def state(self) -> CartState:
        return self._state

    @property
    def backend(self) -> CartBackend:
        return self._backend

    @property
    def in_flight(self) -> frozenset[MutationKind]:
        return frozenset(kind for kind, count in self._in_flight.items() if count)

    def is_busy(self, kind: MutationKind) -> bool:
        return bool(self._in_flight.get(kind))

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def dispatch(self, action: CartAction) -> CartState:
        self._state = reduce(self._state, action, clock=self._clock)
        for listener in list(self._listeners):
            listener(self._state)
        return self._state

    def toast(self, toast: Toast) -> None:
        self._notify(toast)

    def use_backend(self, backend: CartBackend) -> None:
        if backend is self._backend:
            return
        self._backend = backend
        if backend.is_guest:
            # Account snapshot must not leak into the signed-out view.
            self.dispatch(SetCart(None))

    async def refresh(self) -> bool:
        self.dispatch(SetLoading(True))
        try:
            self.dispatch(await self._backend.load())
        except ServiceError as exc:
            logger.warning("Cart refresh failed", extra={"error": exc.detail})
            self.dispatch(SetError(exc.detail))
            return False
        finally:
            self.dispatch(SetLoading(False))
        if self._state.error:
            self.dispatch(SetError(None))
        return True

    async def execute(self, update: OptimisticUpdate, kind: MutationKind) -> None:
        """Run one optimistic mutation; on ``ServiceError`` the rollback is applied and the error re-raised."""
        self._in_flight[kind] = self._in_flight.get(kind, 0) + 1
        try:
            if update.optimistic is not None:
                self.dispatch(update.optimistic)
            try:
                reconcile = await update.commit()
            except ServiceError:
                self.dispatch(update.rollback)
                raise
            self.dispatch(reconcile)
        finally:
            self._in_flight[kind] -= 1

    async def _mutate(
        self,
        update: OptimisticUpdate,
        kind: MutationKind,
        *,
        failure_title: str,
        success: Toast | None = None,
    ) -> bool:
        try:
            await self.execute(update, kind)
        except ServiceError as exc:
            logger.warning("Cart mutation failed", extra={"kind": kind.value, "error": exc.detail})
            self.dispatch(SetError(exc.detail))
            self.toast(Toast(failure_title, exc.detail, "destructive"))
            return False
        if self._state.error:
            self.dispatch(SetError(None))
        if success:
            self.toast(success)
        return True

    async def add_item(
        self,
        *,
        product_id: str | None = None,
        service_id: str | None = None,
        quantity: int = 1,
        customizations: dict[str, Any] | None = None,
        notes: str | None = None,
    ) -> bool:
        if bool(product_id) == bool(service_id):
            logger.warning("Add ignored: exactly one of product or service is required")
            return False
        if quantity < 1:
            logger.warning("Add ignored: quantity must be positive", extra={"quantity": quantity})
            return False

        item = CartItem(
            id=f"optimistic_{int(time.time() * 1000)}",
            product_id=product_id,
            service_id=service_id,
            quantity=quantity,
            customizations=customizations or {},
            notes=notes,
        )
        update = OptimisticUpdate(
            optimistic=AddItemOptimistic(item, is_guest=self._backend.is_guest),
            commit=partial(
                self._backend.add,
                product_id=product_id,
                service_id=service_id,
                quantity=quantity,
                customizations=customizations,
                notes=notes,
            ),
            rollback=self._backend.snapshot(self._state),
        )
        return await self._mutate(
            update,
            MutationKind.adding,
            failure_title="Could not add item",
            success=Toast("Added to cart"),
        )

    async def remove_item(self, item_id: str) -> bool:
        update = OptimisticUpdate(
            optimistic=RemoveItemOptimistic(item_id, is_guest=self._backend.is_guest),
            commit=partial(self._backend.remove, item_id),
            rollback=self._backend.snapshot(self._state),
        )
        return await self._mutate(update, MutationKind.removing, failure_title="Could not remove item")

    async def update_quantity(self, item_id: str, quantity: int) -> bool:
        if quantity <= 0:
            return await self.remove_item(item_id)
        update = OptimisticUpdate(
            optimistic=UpdateQuantityOptimistic(item_id, quantity, is_guest=self._backend.is_guest),
            commit=partial(self._backend.update_quantity, item_id, quantity),
            rollback=self._backend.snapshot(self._state),
        )
        return await self._mutate(update, MutationKind.updating, failure_title="Could not update quantity")

    async def clear(self) -> bool:
        update = OptimisticUpdate(
            optimistic=None,
            commit=self._backend.clear,
            rollback=self._backend.snapshot(self._state),
        )
        return await self._mutate(update, MutationKind.clearing, failure_title="Could not clear cart")

    async def _coupon(self, commit: Callable[[], Any]) -> CouponResult:
        update = OptimisticUpdate(optimistic=None, commit=commit, rollback=self._backend.snapshot(self._state))
        try:
            await self.execute(update, MutationKind.applying_coupon)
        except ServiceError as exc:
            return CouponResult(applied=False, reason=exc.detail)
        return CouponResult(applied=True)

    async def apply_coupon(self, code: str) -> CouponResult:
        result = await self._coupon(partial(self._backend.apply_coupon, code))
        if result.applied:
            self.toast(Toast("Coupon applied", code.strip().upper()))
        return result

    async def remove_coupon(self, code: str) -> CouponResult:
        return await self._coupon(partial(self._backend.remove_coupon, code))
