"""HTTP client for the cart API.

One instance per consumer context; it is constructed with its transport and
injected into whatever needs it. Every mutation returns the authoritative cart
snapshot and pushes it to subscribers.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import httpx
from pydantic import TypeAdapter

from storefront.client.guest_cart import generate_session_id
from storefront.core.config import settings
from storefront.core.logging import get_logger
from storefront.schemas.cart import (
    Cart,
    CartItemCreate,
    CartItemUpdate,
    CartValidation,
    Coupon,
    CouponValidation,
    GuestCartItem,
    ShippingAddress,
    ShippingOption,
)
from storefront.services.exceptions import CartRequestError, CartTransportError

logger = get_logger("storefront.client.cart_service")

CartListener = Callable[[Cart], None]

_shipping_options_adapter = TypeAdapter(list[ShippingOption])
_coupons_adapter = TypeAdapter(list[Coupon])
_cart_adapter = TypeAdapter(Cart)
_coupon_validation_adapter = TypeAdapter(CouponValidation)
_cart_validation_adapter = TypeAdapter(CartValidation)

MALFORMED_RESPONSE = "Malformed response from cart API"


def _parse(response: httpx.Response, adapter: TypeAdapter) -> Any:
    try:
        return adapter.validate_json(response.content)
    except ValueError as exc:
        logger.warning(
            "Cart API returned an unreadable body",
            extra={"path": response.request.url.path, "status": response.status_code, "error": str(exc)},
        )
        raise CartRequestError(response.status_code, MALFORMED_RESPONSE) from exc


def _error_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(body, dict):
        detail = body.get("detail") or body.get("error")
        if isinstance(detail, str):
            return detail
        if detail is not None:
            return str(detail)
    return response.reason_phrase


class CartService:
    def __init__(
        self,
        http: httpx.AsyncClient,
        *,
        session_id: str | None = None,
        base_path: str | None = None,
    ) -> None:
        self._http = http
        self._session_id = session_id or generate_session_id()
        self._base_path = base_path or f"{settings.API_PREFIX}/cart"
        self._token: str | None = None
        self._listeners: list[CartListener] = []
        self._cache: Cart | None = None

    @classmethod
    def from_settings(cls, *, session_id: str | None = None) -> "CartService":
        http = httpx.AsyncClient(
            base_url=settings.CART_API_BASE_URL,
            timeout=settings.CART_API_TIMEOUT_SECONDS,
        )
        return cls(http, session_id=session_id)

    @property
    def session_id(self) -> str:
        return self._session_id

    @property
    def cached_cart(self) -> Cart | None:
        return self._cache

    @property
    def is_authenticated(self) -> bool:
        return self._token is not None

    def set_auth_token(self, token: str | None) -> None:
        self._token = token
        self._cache = None

    def subscribe(self, listener: CartListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, cart: Cart) -> None:
        self._cache = cart
        for listener in list(self._listeners):
            listener(cart)

    def _headers(self) -> dict[str, str]:
        headers = {"X-Session-Id": self._session_id}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    async def _request(self, method: str, path: str, *, json: Any = None) -> httpx.Response:
        url = f"{self._base_path}{path}"
        try:
            response = await self._http.request(method, url, json=json, headers=self._headers())
        except httpx.HTTPError as exc:
            logger.warning("Cart API unreachable", extra={"method": method, "path": url, "error": str(exc)})
            raise CartTransportError(str(exc) or "Cart API unreachable") from exc

        if response.is_error:
            detail = _error_detail(response)
            logger.info(
                "Cart API request failed",
                extra={"method": method, "path": url, "status": response.status_code, "detail": detail},
            )
            raise CartRequestError(response.status_code, detail)
        return response

    async def _cart_call(self, method: str, path: str, *, json: Any = None) -> Cart:
        response = await self._request(method, path, json=json)
        cart = _parse(response, _cart_adapter)
        self._notify(cart)
        return cart

    # --- Cart ---
    async def get_cart(self) -> Cart:
        return await self._cart_call("GET", "")

    async def add_item(
        self,
        *,
        product_id: str | None = None,
        service_id: str | None = None,
        quantity: int = 1,
        customizations: dict[str, Any] | None = None,
        notes: str | None = None,
    ) -> Cart:
        payload = CartItemCreate(
            product_id=product_id,
            service_id=service_id,
            quantity=quantity,
            customizations=customizations,
            notes=notes,
        )
        return await self._cart_call("POST", "/items", json=payload.to_wire())

    async def update_item(self, item_id: str, updates: CartItemUpdate) -> Cart:
        return await self._cart_call("PUT", f"/items/{item_id}", json=updates.to_wire())

    async def update_quantity(self, item_id: str, quantity: int) -> Cart:
        if quantity <= 0:
            return await self.remove_item(item_id)
        return await self.update_item(item_id, CartItemUpdate(quantity=quantity))

    async def save_for_later(self, item_id: str) -> Cart:
        return await self.update_item(item_id, CartItemUpdate(saved_for_later=True))

    async def move_to_cart(self, item_id: str) -> Cart:
        return await self.update_item(item_id, CartItemUpdate(saved_for_later=False))

    async def remove_item(self, item_id: str) -> Cart:
        return await self._cart_call("DELETE", f"/items/{item_id}")

    async def clear_cart(self) -> Cart:
        return await self._cart_call("DELETE", "")

    # --- Coupons ---
    async def apply_coupon(self, code: str) -> Cart:
        return await self._cart_call("POST", "/coupons", json={"code": code.strip().upper()})

    async def remove_coupon(self, code: str) -> Cart:
        return await self._cart_call("DELETE", f"/coupons/{code.strip().upper()}")

    async def validate_coupon(self, code: str, cart_total: float) -> CouponValidation:
        response = await self._request(
            "POST", "/coupons/validate", json={"code": code.strip().upper(), "cartTotal": cart_total}
        )
        return _parse(response, _coupon_validation_adapter)

    async def get_available_coupons(self) -> list[Coupon]:
        response = await self._request("GET", "/coupons/available")
        return _parse(response, _coupons_adapter)

    # --- Shipping ---
    async def update_shipping_address(self, address: ShippingAddress) -> Cart:
        return await self._cart_call("PUT", "/shipping", json=address.to_wire())

    async def get_shipping_options(self) -> list[ShippingOption]:
        response = await self._request("GET", "/shipping-options")
        return _parse(response, _shipping_options_adapter)

    # --- Validation / guest pricing ---
    async def validate_cart(self) -> CartValidation:
        response = await self._request("POST", "/validate")
        return _parse(response, _cart_validation_adapter)

    async def preview_guest_cart(self, items: list[GuestCartItem] | tuple[GuestCartItem, ...]) -> Cart:
        """Price guest items server-side without persisting anything; subscribers are not notified."""
        payload = {"items": [item.to_wire() for item in items]}
        response = await self._request("POST", "/guest", json=payload)
        return _parse(response, _cart_adapter)

    async def aclose(self) -> None:
        await self._http.aclose()
