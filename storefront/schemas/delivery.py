from __future__ import annotations

from typing import Optional

from storefront.schemas.base import CamelModel


class Serviceability(CamelModel):
    is_serviceable: bool
    zone: Optional[str] = None
    message: str
    estimated_delivery: Optional[str] = None
