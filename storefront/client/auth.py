from __future__ import annotations

from dataclasses import dataclass

from storefront.client.backends import GuestCartBackend, RemoteCartBackend
from storefront.client.cart_service import CartService
from storefront.client.guest_cart import GuestCart
from storefront.client.migration import CartMigrator
from storefront.client.reducer import SetGuestCart, SetMigrationStatus
from storefront.client.store import CartStore, Toast
from storefront.core.logging import get_logger
from storefront.schemas.cart import MigrationResult

logger = get_logger("storefront.client.auth")


@dataclass(frozen=True)
class AuthUser:
    uid: str
    id_token: str


class AuthWatcher:
    """Bridges identity-provider callbacks to the cart store.

    Sign-in switches to the account backend and migrates the guest cart once
    (the persisted ``cartMigrated`` flag guards re-runs). Sign-out drops the
    token, resets the flag and falls back to the guest backend.
    """

    def __init__(
        self,
        store: CartStore,
        guest_cart: GuestCart,
        cart_service: CartService,
        migrator: CartMigrator,
    ) -> None:
        self._store = store
        self._guest_cart = guest_cart
        self._cart_service = cart_service
        self._migrator = migrator
        self._guest_backend = GuestCartBackend(guest_cart)
        self._remote_backend = RemoteCartBackend(cart_service)
        self._uid: str | None = None

    @property
    def current_uid(self) -> str | None:
        return self._uid

    async def on_auth_state_changed(self, user: AuthUser | None) -> MigrationResult | None:
        if user is None:
            await self._signed_out()
            return None

        if user.uid == self._uid:
            # Token refresh for the same account.
            self._cart_service.set_auth_token(user.id_token)
            return None

        self._uid = user.uid
        self._cart_service.set_auth_token(user.id_token)
        self._store.use_backend(self._remote_backend)
        logger.info("Shopper signed in", extra={"uid": user.uid})

        result = None
        if self._guest_cart.items and not self._guest_cart.is_migrated():
            result = await self._migrate()

        await self._store.refresh()
        return result

    async def _migrate(self) -> MigrationResult:
        item_count = len(self._guest_cart.items)
        self._store.dispatch(SetMigrationStatus(True))
        try:
            result = await self._migrator.migrate_to_user_cart()
        finally:
            self._store.dispatch(SetMigrationStatus(False))
        self._store.dispatch(SetGuestCart(self._guest_cart.items))

        if result.success and not result.errors:
            self._store.toast(
                Toast("Cart merged successfully", f"{item_count} items added to your account")
            )
        elif result.errors:
            self._store.toast(Toast("Some items couldn't be added", "; ".join(result.errors), "destructive"))
        return result

    async def _signed_out(self) -> None:
        if self._uid is None and self._store.backend is self._guest_backend:
            return
        logger.info("Shopper signed out", extra={"uid": self._uid})
        self._uid = None
        self._cart_service.set_auth_token(None)
        self._guest_cart.reset_migration_flag()
        self._store.use_backend(self._guest_backend)
        await self._store.refresh()
