# storefront/schemas/catalog.py
from __future__ import annotations

from typing import Optional

from storefront.schemas.base import CamelModel


class ProductRead(CamelModel):
    id: str
    name: str
    category: Optional[str] = None
    description: Optional[str] = None
    price: float
    original_price: Optional[float] = None
    stock: int = 0
    is_active: bool = True


class ServiceRead(CamelModel):
    id: str
    name: str
    description: Optional[str] = None
    price: float
    duration_minutes: Optional[int] = None
    is_active: bool = True
