from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.models.catalog import Product, Service
from storefront.services.exceptions import ResourceNotFoundError


async def get_product(db: AsyncSession, product_id: str) -> Product:
    product = await db.get(Product, product_id)
    if not product:
        raise ResourceNotFoundError("Product not found")
    return product


async def get_service(db: AsyncSession, service_id: str) -> Service:
    service = await db.get(Service, service_id)
    if not service:
        raise ResourceNotFoundError("Service not found")
    return service


async def list_products(db: AsyncSession, *, category: str | None = None) -> list[Product]:
    stmt = select(Product).where(Product.is_active.is_(True))
    if category:
        stmt = stmt.where(Product.category == category)
    result = await db.execute(stmt.order_by(Product.name))
    return list(result.scalars().all())


async def list_services(db: AsyncSession) -> list[Service]:
    result = await db.execute(select(Service).where(Service.is_active.is_(True)).order_by(Service.name))
    return list(result.scalars().all())
