"""Seed script for the demo catalog (electrical goods, services) and coupons."""

from __future__ import annotations

import asyncio
import logging
import sys
from dataclasses import dataclass
from pathlib import Path

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from sqlalchemy import select

from storefront.core.config import settings
from storefront.db.session_async import AsyncSessionLocal
from storefront.domain.enums import CouponType
from storefront.models.catalog import Product, Service
from storefront.models.coupon import Coupon


@dataclass(frozen=True, slots=True)
class ProductSeed:
    name: str
    category: str
    price: float
    stock: int
    original_price: float | None = None
    description: str | None = None


@dataclass(frozen=True, slots=True)
class ServiceSeed:
    name: str
    price: float
    duration_minutes: int
    description: str | None = None


@dataclass(frozen=True, slots=True)
class CouponSeed:
    code: str
    type: CouponType
    value: float
    min_order_amount: float | None = None
    max_discount: float | None = None
    usage_limit: int | None = None


PRODUCTS: tuple[ProductSeed, ...] = (
    ProductSeed("LED Bulb 9W", "lighting", 120.0, 200, original_price=150.0),
    ProductSeed("LED Tube Light 20W", "lighting", 349.0, 80),
    ProductSeed("Ceiling Fan 1200mm", "fans", 2499.0, 25, original_price=2999.0),
    ProductSeed("Modular Switch 6A", "switches", 45.0, 500),
    ProductSeed("MCB 32A Double Pole", "protection", 689.0, 40),
    ProductSeed("Copper Wire 1.5 sq mm (90m)", "wiring", 1899.0, 15),
)

SERVICES: tuple[ServiceSeed, ...] = (
    ServiceSeed("Fan Installation", 299.0, 45, "Ceiling or wall fan fitting with wiring check"),
    ServiceSeed("Home Wiring Inspection", 799.0, 120),
    ServiceSeed("Switchboard Repair", 249.0, 60),
)

COUPONS: tuple[CouponSeed, ...] = (
    CouponSeed("WELCOME10", CouponType.percentage, 10.0, min_order_amount=200.0, max_discount=500.0),
    CouponSeed("FREESHIP", CouponType.shipping, 0.0, min_order_amount=199.0),
    CouponSeed("SAVE500", CouponType.fixed, 500.0, min_order_amount=2000.0, usage_limit=1000),
)


async def _seed_products(db, logger: logging.Logger) -> int:
    created = 0
    for seed in PRODUCTS:
        existing = (await db.execute(select(Product).where(Product.name == seed.name))).scalar_one_or_none()
        if existing:
            logger.debug("Product %s already present", seed.name)
            continue
        db.add(
            Product(
                name=seed.name,
                category=seed.category,
                description=seed.description,
                price=seed.price,
                original_price=seed.original_price,
                stock=seed.stock,
                is_active=True,
            )
        )
        created += 1
    return created


async def _seed_services(db, logger: logging.Logger) -> int:
    created = 0
    for seed in SERVICES:
        existing = (await db.execute(select(Service).where(Service.name == seed.name))).scalar_one_or_none()
        if existing:
            logger.debug("Service %s already present", seed.name)
            continue
        db.add(
            Service(
                name=seed.name,
                description=seed.description,
                price=seed.price,
                duration_minutes=seed.duration_minutes,
                is_active=True,
            )
        )
        created += 1
    return created


async def _seed_coupons(db, logger: logging.Logger) -> int:
    created = 0
    for seed in COUPONS:
        existing = (await db.execute(select(Coupon).where(Coupon.code == seed.code))).scalar_one_or_none()
        if existing:
            logger.debug("Coupon %s already present", seed.code)
            continue
        db.add(
            Coupon(
                code=seed.code,
                type=seed.type,
                value=seed.value,
                min_order_amount=seed.min_order_amount,
                max_discount=seed.max_discount,
                usage_limit=seed.usage_limit,
                is_active=True,
            )
        )
        created += 1
    return created


async def seed_catalog() -> None:
    logger = logging.getLogger("seed_catalog")
    logger.info("Seeding demo catalog into %s", settings.ASYNC_DATABASE_URL)
    async with AsyncSessionLocal() as session:
        products = await _seed_products(session, logger)
        services = await _seed_services(session, logger)
        coupons = await _seed_coupons(session, logger)
        await session.commit()
    logger.info("Seed completed: %s products, %s services, %s coupons created", products, services, coupons)


async def main() -> None:
    await seed_catalog()


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass
