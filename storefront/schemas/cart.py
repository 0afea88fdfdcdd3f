# storefront/schemas/cart.py
from __future__ import annotations

from datetime import datetime
from typing import Any, List, Optional

from pydantic import Field, model_validator

from storefront.domain.enums import CouponType, MigrationStatus
from storefront.schemas.base import CamelModel, utcnow

NaturalKey = tuple[Optional[str], Optional[str]]


def _require_single_target(product_id: str | None, service_id: str | None) -> None:
    if bool(product_id) == bool(service_id):
        raise ValueError("Exactly one of productId or serviceId is required")


class Totals(CamelModel):
    subtotal: float = 0.0
    discount: float = 0.0
    shipping: float = 0.0
    tax: float = 0.0
    total: float = 0.0
    savings: float = 0.0


class Coupon(CamelModel):
    id: Optional[str] = None
    code: str
    type: CouponType
    value: float
    min_order_amount: Optional[float] = None
    max_discount: Optional[float] = None
    usage_limit: Optional[int] = None
    used_count: int = 0
    expires_at: Optional[datetime] = None
    is_active: bool = True


class CartItem(CamelModel):
    id: str
    user_id: Optional[str] = None
    session_id: Optional[str] = None
    product_id: Optional[str] = None
    service_id: Optional[str] = None
    quantity: int = Field(..., ge=1)
    unit_price: float = 0.0
    original_price: float = 0.0
    discount: float = 0.0
    customizations: dict[str, Any] = Field(default_factory=dict)
    notes: Optional[str] = None
    saved_for_later: bool = False
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @model_validator(mode="after")
    def check_target(self) -> "CartItem":
        _require_single_target(self.product_id, self.service_id)
        return self

    @property
    def natural_key(self) -> NaturalKey:
        return self.product_id, self.service_id


class ShippingAddress(CamelModel):
    street: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    state: str = Field(..., min_length=1)
    zip_code: str = Field(..., min_length=1, max_length=12)
    country: str = "India"


class Cart(CamelModel):
    id: str
    user_id: Optional[str] = None
    session_id: Optional[str] = None
    items: List[CartItem] = Field(default_factory=list)
    applied_coupons: List[str] = Field(default_factory=list)
    shipping_address: Optional[ShippingAddress] = None
    totals: Totals = Field(default_factory=Totals)
    currency: str = "INR"
    last_updated: datetime = Field(default_factory=utcnow)
    expires_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    def find_by_key(self, key: NaturalKey) -> CartItem | None:
        return next((item for item in self.items if item.natural_key == key), None)


class CartItemCreate(CamelModel):
    product_id: Optional[str] = None
    service_id: Optional[str] = None
    quantity: int = Field(default=1, ge=1)
    customizations: Optional[dict[str, Any]] = None
    notes: Optional[str] = Field(default=None, max_length=500)
    session_id: Optional[str] = None

    @model_validator(mode="after")
    def check_target(self) -> "CartItemCreate":
        _require_single_target(self.product_id, self.service_id)
        return self


class CartItemUpdate(CamelModel):
    quantity: Optional[int] = None
    customizations: Optional[dict[str, Any]] = None
    notes: Optional[str] = Field(default=None, max_length=500)
    saved_for_later: Optional[bool] = None


class CouponApply(CamelModel):
    code: str = Field(..., min_length=1, max_length=40)
    session_id: Optional[str] = None


class CouponValidateRequest(CamelModel):
    code: str = Field(..., min_length=1, max_length=40)
    cart_total: float = 0.0


class CouponValidation(CamelModel):
    is_valid: bool
    coupon: Optional[Coupon] = None
    error: Optional[str] = None
    applied_amount: float = 0.0


class ShippingOption(CamelModel):
    id: str
    name: str
    description: Optional[str] = None
    price: float
    estimated_days: int
    is_default: bool = False
    min_order_amount: float = 0.0


class CartValidation(CamelModel):
    is_valid: bool
    errors: List[str] = Field(default_factory=list)


class GuestCartItem(CamelModel):
    id: str
    product_id: Optional[str] = None
    service_id: Optional[str] = None
    quantity: int
    added_at: int
    customizations: Optional[dict[str, Any]] = None
    notes: Optional[str] = None

    @property
    def natural_key(self) -> NaturalKey:
        return self.product_id, self.service_id


class GuestCartRequest(CamelModel):
    items: List[GuestCartItem] = Field(default_factory=list)


class ItemValidation(CamelModel):
    valid: bool
    reason: Optional[str] = None
    max_quantity: Optional[int] = None


class MigrationResult(CamelModel):
    success: bool
    errors: List[str] = Field(default_factory=list)
    status: MigrationStatus = MigrationStatus.idle
    migrated: int = 0
    merged: int = 0


class CartMigrateRequest(CamelModel):
    guest_items: List[GuestCartItem] = Field(default_factory=list)


class CartMigrationSummary(CamelModel):
    message: str
    migrated_count: int = 0
    merged_count: int = 0
    total_items: int = 0
    errors: List[str] = Field(default_factory=list)
    cart: Optional[Cart] = None
