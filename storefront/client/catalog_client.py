from __future__ import annotations

import httpx

from storefront.core.config import settings
from storefront.core.logging import get_logger
from storefront.schemas.cart import GuestCartItem, ItemValidation
from storefront.schemas.catalog import ProductRead, ServiceRead
from storefront.services.exceptions import CartRequestError, CartTransportError, ServiceError

logger = get_logger("storefront.client.catalog")

UNVERIFIABLE_REASON = "Unable to verify item availability"


class CatalogClient:
    """Read-only catalog lookups used to vet guest items before migration."""

    def __init__(self, http: httpx.AsyncClient, *, prefix: str | None = None) -> None:
        self._http = http
        self._prefix = prefix if prefix is not None else settings.API_PREFIX

    async def _fetch(self, path: str) -> dict | None:
        try:
            response = await self._http.get(f"{self._prefix}{path}")
        except httpx.HTTPError as exc:
            raise CartTransportError(str(exc) or "Catalog unreachable") from exc
        if response.status_code == 404:
            return None
        if response.is_error:
            raise CartRequestError(response.status_code, response.reason_phrase)
        return response.json()

    async def get_product(self, product_id: str) -> ProductRead | None:
        data = await self._fetch(f"/products/{product_id}")
        return ProductRead.model_validate(data) if data is not None else None

    async def get_service(self, service_id: str) -> ServiceRead | None:
        data = await self._fetch(f"/services/{service_id}")
        return ServiceRead.model_validate(data) if data is not None else None

    async def validate_item(self, item: GuestCartItem) -> ItemValidation:
        try:
            if item.product_id:
                product = await self.get_product(item.product_id)
                if product is None:
                    return ItemValidation(valid=False, reason="Product no longer available")
                if not product.is_active:
                    return ItemValidation(valid=False, reason="Product discontinued")
                if product.stock < item.quantity:
                    return ItemValidation(
                        valid=False,
                        reason=f"Only {product.stock} items available",
                        max_quantity=product.stock,
                    )
                return ItemValidation(valid=True)

            if item.service_id:
                service = await self.get_service(item.service_id)
                if service is None:
                    return ItemValidation(valid=False, reason="Service no longer available")
                if not service.is_active:
                    return ItemValidation(valid=False, reason="Service discontinued")
                return ItemValidation(valid=True)
        except ServiceError as exc:
            logger.warning(
                "Item availability check failed",
                extra={"item_id": item.id, "error": exc.detail},
            )
            return ItemValidation(valid=False, reason=UNVERIFIABLE_REASON)

        return ItemValidation(valid=False, reason="Invalid item type")
