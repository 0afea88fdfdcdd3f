from __future__ import annotations

from collections.abc import Iterable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.models.coupon import Coupon as CouponModel
from storefront.schemas.cart import Coupon, CouponValidation
from storefront.services.pricing import coupon_discount, validate_coupon


def normalize_code(code: str) -> str:
    return code.strip().upper()


async def get_coupon(db: AsyncSession, code: str) -> Coupon | None:
    result = await db.execute(select(CouponModel).where(CouponModel.code == normalize_code(code)))
    model = result.scalar_one_or_none()
    return Coupon.model_validate(model) if model else None


async def get_coupons(db: AsyncSession, codes: Iterable[str]) -> list[Coupon]:
    normalized = [normalize_code(code) for code in codes]
    if not normalized:
        return []
    result = await db.execute(select(CouponModel).where(CouponModel.code.in_(normalized)))
    by_code = {model.code: Coupon.model_validate(model) for model in result.scalars().all()}
    # Keep application order; codes whose coupon was deleted are skipped.
    return [by_code[code] for code in normalized if code in by_code]


async def list_available(db: AsyncSession, cart_total: float) -> list[Coupon]:
    result = await db.execute(select(CouponModel).where(CouponModel.is_active.is_(True)).order_by(CouponModel.code))
    coupons = [Coupon.model_validate(model) for model in result.scalars().all()]
    return [coupon for coupon in coupons if validate_coupon(coupon, cart_total) is None]


async def check_coupon(db: AsyncSession, code: str, cart_total: float) -> CouponValidation:
    """Validation result for a code; an unusable coupon is reported, never raised."""
    coupon = await get_coupon(db, code)
    if coupon is None:
        return CouponValidation(is_valid=False, error="Invalid coupon code")

    reason = validate_coupon(coupon, cart_total)
    if reason:
        return CouponValidation(is_valid=False, coupon=coupon, error=reason)

    return CouponValidation(
        is_valid=True,
        coupon=coupon,
        applied_amount=float(coupon_discount(coupon, cart_total)),
    )
