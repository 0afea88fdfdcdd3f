from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.db.session_async import get_async_db
from storefront.schemas.catalog import ProductRead, ServiceRead
from storefront.services import catalog_service

router = APIRouter(tags=["catalog"])


@router.get("/products", response_model=list[ProductRead])
async def list_products(
    category: str | None = Query(default=None, max_length=120),
    db: AsyncSession = Depends(get_async_db),
):
    return await catalog_service.list_products(db, category=category)


@router.get("/products/{product_id}", response_model=ProductRead)
async def get_product(product_id: str, db: AsyncSession = Depends(get_async_db)):
    return await catalog_service.get_product(db, product_id)


@router.get("/services", response_model=list[ServiceRead])
async def list_services(db: AsyncSession = Depends(get_async_db)):
    return await catalog_service.list_services(db)


@router.get("/services/{service_id}", response_model=ServiceRead)
async def get_service(service_id: str, db: AsyncSession = Depends(get_async_db)):
    return await catalog_service.get_service(db, service_id)
