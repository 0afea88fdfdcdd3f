"""Guest-to-account cart migration.

Runs once per sign-in: every guest line is checked against the catalog, then
either merged into the matching account line or added as a new one. Per-item
failures are collected; only a failure to read the account cart aborts.
"""

from __future__ import annotations

from collections.abc import Callable

from storefront.client.cart_service import CartService
from storefront.client.catalog_client import CatalogClient
from storefront.client.guest_cart import GuestCart
from storefront.core.config import settings
from storefront.core.logging import get_logger
from storefront.domain.enums import MigrationStatus
from storefront.schemas.cart import Cart, CartItemUpdate, GuestCartItem, MigrationResult
from storefront.services.exceptions import ServiceError

logger = get_logger("storefront.client.migration")

MIGRATION_FAILED = "Failed to migrate cart items"

StatusCallback = Callable[[MigrationStatus], None]


def _label(item: GuestCartItem) -> str:
    return "Product" if item.product_id else "Service"


class CartMigrator:
    def __init__(
        self,
        guest_cart: GuestCart,
        cart_service: CartService,
        catalog: CatalogClient,
        *,
        keep_failed_items: bool | None = None,
        on_status: StatusCallback | None = None,
    ) -> None:
        self._guest_cart = guest_cart
        self._cart_service = cart_service
        self._catalog = catalog
        self._keep_failed_items = (
            settings.CART_MIGRATION_KEEP_FAILED_ITEMS if keep_failed_items is None else keep_failed_items
        )
        self._on_status = on_status
        self.status = MigrationStatus.idle

    def _set_status(self, status: MigrationStatus) -> None:
        if status == self.status:
            return
        self.status = status
        if self._on_status:
            self._on_status(status)

    async def _merge_into(self, server_cart: Cart, item: GuestCartItem) -> tuple[Cart, bool]:
        """Returns the updated account cart and whether an existing line absorbed the item."""
        existing = server_cart.find_by_key(item.natural_key)
        if existing is None:
            cart = await self._cart_service.add_item(
                product_id=item.product_id,
                service_id=item.service_id,
                quantity=item.quantity,
                customizations=item.customizations,
                notes=item.notes,
            )
            return cart, False

        quantity = min(existing.quantity + item.quantity, settings.CART_MAX_QUANTITY_PER_ITEM)
        cart = await self._cart_service.update_item(
            existing.id,
            CartItemUpdate(
                quantity=quantity,
                customizations={**existing.customizations, **(item.customizations or {})},
                notes=item.notes or existing.notes,
            ),
        )
        return cart, True

    async def migrate_to_user_cart(self) -> MigrationResult:
        guest_items = list(self._guest_cart.items)
        if not self._cart_service.is_authenticated or not guest_items:
            return MigrationResult(success=True, status=self.status)

        self._set_status(MigrationStatus.validating_items)
        try:
            server_cart = await self._cart_service.get_cart()
        except ServiceError as exc:
            logger.error("Cart migration aborted", extra={"error": exc.detail, "items": len(guest_items)})
            self._set_status(MigrationStatus.failure)
            return MigrationResult(success=False, errors=[MIGRATION_FAILED], status=self.status)

        errors: list[str] = []
        failed: list[GuestCartItem] = []
        migrated = merged = 0

        for item in guest_items:
            label = _label(item)
            self._set_status(MigrationStatus.validating_items)
            validation = await self._catalog.validate_item(item)
            if not validation.valid:
                errors.append(f"{label}: {validation.reason}")
                failed.append(item)
                continue

            self._set_status(MigrationStatus.merging)
            try:
                server_cart, was_merged = await self._merge_into(server_cart, item)
            except ServiceError as exc:
                logger.warning(
                    "Guest item migration failed",
                    extra={"item_id": item.id, "error": exc.detail},
                )
                errors.append(f"Failed to add {label.lower()} to cart")
                failed.append(item)
                continue

            if was_merged:
                merged += 1
            else:
                migrated += 1

        if migrated + merged == 0:
            self._set_status(MigrationStatus.failure)
            return MigrationResult(success=False, errors=errors, status=self.status)

        if self._keep_failed_items and failed:
            self._guest_cart.replace(failed)
        else:
            self._guest_cart.clear()
        self._guest_cart.mark_migrated()

        self._set_status(MigrationStatus.partial_success if errors else MigrationStatus.success)
        logger.info(
            "Guest cart migrated",
            extra={"migrated": migrated, "merged": merged, "failed": len(failed)},
        )
        return MigrationResult(
            success=True,
            errors=errors,
            status=self.status,
            migrated=migrated,
            merged=merged,
        )
