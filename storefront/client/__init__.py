"""Client-side cart consistency layer: guest storage, optimistic store, migration."""

from .auth import AuthUser, AuthWatcher
from .backends import CartBackend, GuestCartBackend, RemoteCartBackend
from .cart_service import CartService
from .catalog_client import CatalogClient
from .guest_cart import GuestCart
from .migration import CartMigrator
from .optimistic import OptimisticUpdate
from .reducer import CartState, reduce
from .storage import JsonFileStorage, KeyValueStorage, MemoryStorage
from .store import CartStore, CouponResult, Toast

__all__ = [
    "AuthUser",
    "AuthWatcher",
    "CartBackend",
    "CartMigrator",
    "CartService",
    "CartState",
    "CartStore",
    "CatalogClient",
    "CouponResult",
    "GuestCart",
    "GuestCartBackend",
    "JsonFileStorage",
    "KeyValueStorage",
    "MemoryStorage",
    "OptimisticUpdate",
    "RemoteCartBackend",
    "Toast",
    "reduce",
]
