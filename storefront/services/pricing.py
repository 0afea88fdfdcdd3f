"""Cart totals and coupon rules.

Everything here is pure: totals are always recomputed from the full item
list and coupon set, never patched incrementally.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal

from storefront.core.config import settings
from storefront.domain.enums import CouponType
from storefront.schemas.cart import CartItem, Coupon, Totals

_CENT = Decimal("0.01")
_ZERO = Decimal("0")


def _money(value: float | int | Decimal | None) -> Decimal:
    if value is None:
        return _ZERO
    return Decimal(str(value))


def _to_float(value: Decimal) -> float:
    return float(value.quantize(_CENT, rounding=ROUND_HALF_UP))


def _as_aware(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; they are stored as UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def format_amount(value: float | Decimal) -> str:
    return f"₹{_money(value).normalize():f}"


def validate_coupon(coupon: Coupon, subtotal: float | Decimal, *, now: datetime | None = None) -> str | None:
    """Return why ``coupon`` does not apply to ``subtotal``, or None when it does."""
    now = now or datetime.now(timezone.utc)
    if not coupon.is_active:
        return "This coupon is no longer active"
    if coupon.expires_at is not None and _as_aware(coupon.expires_at) < now:
        return "This coupon has expired"
    if coupon.usage_limit and coupon.used_count >= coupon.usage_limit:
        return "This coupon has reached its usage limit"
    if coupon.min_order_amount and _money(subtotal) < _money(coupon.min_order_amount):
        return f"Minimum order amount of {format_amount(coupon.min_order_amount)} required for this coupon"
    return None


def coupon_discount(coupon: Coupon, subtotal: float | Decimal) -> Decimal:
    """Discount granted by a valid coupon; shipping coupons grant none here."""
    base = _money(subtotal)
    value = _money(coupon.value)
    if coupon.type == CouponType.percentage:
        discount = base * value / Decimal(100)
        if coupon.max_discount is not None:
            discount = min(discount, _money(coupon.max_discount))
    elif coupon.type == CouponType.fixed:
        discount = min(value, base)
    else:
        discount = _ZERO
    return max(discount, _ZERO)


def describe_coupon(coupon: Coupon) -> str:
    if coupon.type == CouponType.percentage:
        description = f"{_money(coupon.value).normalize():f}% off"
        if coupon.max_discount:
            description += f" (up to {format_amount(coupon.max_discount)})"
    elif coupon.type == CouponType.fixed:
        description = f"{format_amount(coupon.value)} off"
    else:
        description = "Free shipping"

    if coupon.min_order_amount:
        description += f" on orders over {format_amount(coupon.min_order_amount)}"
    return description


def shipping_for(subtotal: float | Decimal, *, threshold: float | None = None, fee: float | None = None) -> Decimal:
    threshold = settings.FREE_SHIPPING_THRESHOLD if threshold is None else threshold
    fee = settings.FLAT_SHIPPING_FEE if fee is None else fee
    return _ZERO if _money(subtotal) > _money(threshold) else _money(fee)


def compute_totals(
    items: Iterable[CartItem],
    coupons: Iterable[Coupon] = (),
    *,
    now: datetime | None = None,
    free_shipping_threshold: float | None = None,
    shipping_fee: float | None = None,
    tax_rate: float | None = None,
) -> Totals:
    active = [item for item in items if not item.saved_for_later]
    rate = _money(settings.TAX_RATE if tax_rate is None else tax_rate)

    subtotal = sum((_money(item.unit_price) * item.quantity for item in active), _ZERO)
    discount = sum((_money(item.discount) * item.quantity for item in active), _ZERO)

    shipping = shipping_for(subtotal, threshold=free_shipping_threshold, fee=shipping_fee)
    for coupon in coupons:
        if validate_coupon(coupon, subtotal, now=now) is not None:
            continue
        if coupon.type == CouponType.shipping:
            shipping = _ZERO
            continue
        discount += coupon_discount(coupon, subtotal)

    tax = rate * max(subtotal - discount, _ZERO)
    total = max(subtotal - discount + shipping + tax, _ZERO)

    return Totals(
        subtotal=_to_float(subtotal),
        discount=_to_float(discount),
        shipping=_to_float(shipping),
        tax=_to_float(tax),
        total=_to_float(total),
        savings=_to_float(discount),
    )
