from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from storefront.client.reducer import CartAction


@dataclass(frozen=True)
class OptimisticUpdate:
    """Apply ``optimistic`` now, await ``commit`` for the reconciling action, fall back to ``rollback``.

    ``optimistic`` may be ``None`` for mutations with no useful local preview
    (coupons); the rollback is then a no-op restore of the pre-call snapshot.
    """

    optimistic: CartAction | None
    commit: Callable[[], Awaitable[CartAction]]
    rollback: CartAction
