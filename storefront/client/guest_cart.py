"""Guest cart persisted in durable client storage.

Storage layout (shared with the browser client):
  - ``guestCart``: JSON array of guest items, camelCase keys.
  - ``cartMigrated``: ``"true"`` once the guest cart has been merged into an account.
"""

from __future__ import annotations

import json
import secrets
import string
import time
from collections.abc import Callable
from typing import Any

from pydantic import TypeAdapter

from storefront.client.storage import KeyValueStorage
from storefront.core.logging import get_logger
from storefront.schemas.cart import GuestCartItem, NaturalKey

logger = get_logger("storefront.client.guest_cart")

GUEST_CART_KEY = "guestCart"
MIGRATION_FLAG_KEY = "cartMigrated"

_items_adapter = TypeAdapter(list[GuestCartItem])
_ALPHABET = string.ascii_lowercase + string.digits


def _random_suffix(length: int = 9) -> str:
    return "".join(secrets.choice(_ALPHABET) for _ in range(length))


def _now_ms() -> int:
    return int(time.time() * 1000)


def generate_guest_item_id(now_ms: int | None = None) -> str:
    return f"guest_{now_ms if now_ms is not None else _now_ms()}_{_random_suffix()}"


def generate_session_id(now_ms: int | None = None) -> str:
    return f"cart_{now_ms if now_ms is not None else _now_ms()}_{_random_suffix()}"


class GuestCart:
    def __init__(self, storage: KeyValueStorage, *, clock: Callable[[], int] = _now_ms) -> None:
        self._storage = storage
        self._clock = clock
        self._items: list[GuestCartItem] = []
        self.hydrate()

    @property
    def items(self) -> tuple[GuestCartItem, ...]:
        return tuple(self._items)

    def items_count(self) -> int:
        return sum(item.quantity for item in self._items)

    def hydrate(self) -> tuple[GuestCartItem, ...]:
        """Reload from storage; unreadable payloads are discarded, never raised."""
        raw = self._storage.get_item(GUEST_CART_KEY)
        if raw is None:
            self._items = []
            return self.items
        try:
            parsed = json.loads(raw)
            if not isinstance(parsed, list):
                raise ValueError("guest cart payload is not a list")
            self._items = [item for item in _items_adapter.validate_python(parsed) if item.quantity > 0]
        except ValueError:
            logger.warning("Discarding corrupt guest cart", exc_info=True)
            self._storage.remove_item(GUEST_CART_KEY)
            self._items = []
        return self.items

    def _flush(self) -> None:
        payload = _items_adapter.dump_python(self._items, mode="json", by_alias=True, exclude_none=True)
        try:
            self._storage.set_item(GUEST_CART_KEY, json.dumps(payload))
        except OSError:
            # In-memory state stays authoritative until the next successful write.
            logger.exception("Failed to persist guest cart")

    def _index_of(self, key: NaturalKey) -> int | None:
        return next((i for i, item in enumerate(self._items) if item.natural_key == key), None)

    def add(
        self,
        *,
        product_id: str | None = None,
        service_id: str | None = None,
        quantity: int = 1,
        customizations: dict[str, Any] | None = None,
        notes: str | None = None,
    ) -> GuestCartItem | None:
        if bool(product_id) == bool(service_id):
            logger.warning("Guest add ignored: exactly one of product or service is required")
            return None
        if quantity <= 0:
            logger.warning("Guest add ignored: quantity must be positive", extra={"quantity": quantity})
            return None

        now = self._clock()
        index = self._index_of((product_id, service_id))
        if index is None:
            item = GuestCartItem(
                id=generate_guest_item_id(now),
                product_id=product_id,
                service_id=service_id,
                quantity=quantity,
                added_at=now,
                customizations=customizations,
                notes=notes,
            )
            self._items.append(item)
        else:
            existing = self._items[index]
            merged = {**(existing.customizations or {}), **(customizations or {})}
            item = existing.model_copy(
                update={
                    "quantity": existing.quantity + quantity,
                    "added_at": now,
                    "customizations": merged or None,
                    "notes": notes or existing.notes,
                }
            )
            self._items[index] = item
        self._flush()
        return item

    def remove(self, item_id: str) -> None:
        self._items = [item for item in self._items if item.id != item_id]
        self._flush()

    def update_quantity(self, item_id: str, quantity: int) -> None:
        if quantity <= 0:
            self.remove(item_id)
            return
        now = self._clock()
        self._items = [
            item.model_copy(update={"quantity": quantity, "added_at": now}) if item.id == item_id else item
            for item in self._items
        ]
        self._flush()

    def replace(self, items: list[GuestCartItem] | tuple[GuestCartItem, ...]) -> None:
        self._items = list(items)
        if self._items:
            self._flush()
        else:
            self.clear()

    def clear(self) -> None:
        self._items = []
        self._storage.remove_item(GUEST_CART_KEY)
        self._storage.remove_item(MIGRATION_FLAG_KEY)

    def is_migrated(self) -> bool:
        return self._storage.get_item(MIGRATION_FLAG_KEY) == "true"

    def mark_migrated(self) -> None:
        self._storage.set_item(MIGRATION_FLAG_KEY, "true")

    def reset_migration_flag(self) -> None:
        self._storage.remove_item(MIGRATION_FLAG_KEY)
