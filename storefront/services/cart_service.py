from __future__ import annotations

import secrets
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from storefront.core.config import settings
from storefront.core.logging import get_logger
from storefront.db.operations import flush_async, refresh_async
from storefront.models.cart import Cart, CartItem
from storefront.models.catalog import Product, Service
from storefront.schemas.cart import Cart as CartSchema
from storefront.schemas.cart import (
    CartItem as CartItemSchema,
    CartItemCreate,
    CartItemUpdate,
    CartValidation,
    GuestCartItem,
    ShippingAddress,
    ShippingOption,
)
from storefront.services import catalog_service, coupon_service
from storefront.services.delivery_zones import check_serviceability
from storefront.services.exceptions import (
    ConflictError,
    CouponError,
    DomainValidationError,
    InsufficientStockError,
    InvalidQuantityError,
    ResourceNotFoundError,
    ServiceError,
)
from storefront.services.pricing import compute_totals, validate_coupon

logger = get_logger("storefront.cart")


@dataclass(frozen=True)
class CartOwner:
    user_id: str | None = None
    session_id: str | None = None

    @property
    def is_guest(self) -> bool:
        return self.user_id is None

    @property
    def cart_id(self) -> str:
        """Identifier reported for a cart that has not been created yet."""
        return self.user_id or self.session_id or f"guest_{int(time.time() * 1000)}"


def _now() -> datetime:
    return datetime.now(timezone.utc)


async def _refresh_cart(db: AsyncSession, cart: Cart) -> None:
    await refresh_async(db, cart)
    await refresh_async(db, cart, attribute_names=["items"])


def _get_item(cart: Cart, item_id: str) -> CartItem:
    item = next((i for i in cart.items if i.id == item_id), None)
    if not item:
        raise ResourceNotFoundError("Cart item not found")
    return item


def _check_quantity(quantity: int) -> None:
    if quantity > settings.CART_MAX_QUANTITY_PER_ITEM:
        raise InvalidQuantityError(f"Maximum quantity per item is {settings.CART_MAX_QUANTITY_PER_ITEM}")


async def _resolve_target(db: AsyncSession, product_id: str | None, service_id: str | None) -> Product | Service:
    if product_id:
        product = await catalog_service.get_product(db, product_id)
        if not product.is_active:
            raise DomainValidationError("Product discontinued")
        return product
    service = await catalog_service.get_service(db, service_id)
    if not service.is_active:
        raise DomainValidationError("Service discontinued")
    return service


def _check_stock(target: Product | Service, quantity: int) -> None:
    if isinstance(target, Product) and target.stock < quantity:
        raise InsufficientStockError("Insufficient stock")


async def get_cart(db: AsyncSession, owner: CartOwner) -> Cart | None:
    stmt = select(Cart).options(selectinload(Cart.items))
    if owner.user_id:
        stmt = stmt.where(Cart.user_id == owner.user_id)
    elif owner.session_id:
        stmt = stmt.where(Cart.session_id == owner.session_id)
    else:
        return None

    result = await db.execute(stmt.limit(1))
    return result.scalars().first()


async def get_or_create_cart(db: AsyncSession, owner: CartOwner) -> Cart:
    cart = await get_cart(db, owner)
    if cart:
        return cart

    if not owner.user_id and not owner.session_id:
        raise DomainValidationError("A session id is required for guest carts")

    cart = Cart(
        user_id=owner.user_id,
        session_id=None if owner.user_id else owner.session_id,
        currency=settings.CURRENCY,
        applied_coupons=[],
    )
    db.add(cart)
    await flush_async(db)
    await _refresh_cart(db, cart)
    logger.info("cart.created", extra={"cart_id": cart.id, "guest": owner.is_guest})
    return cart


async def to_schema(db: AsyncSession, cart: Cart | None, owner: CartOwner) -> CartSchema:
    """Full cart snapshot with totals recomputed from items and applied coupons."""
    now = _now()
    if cart is None:
        return CartSchema(
            id=owner.cart_id,
            user_id=owner.user_id,
            session_id=owner.session_id,
            currency=settings.CURRENCY,
            totals=compute_totals([]),
            last_updated=now,
        )

    items = [CartItemSchema.model_validate(item) for item in cart.items]
    coupons = await coupon_service.get_coupons(db, cart.applied_coupons or [])
    return CartSchema(
        id=cart.id,
        user_id=cart.user_id,
        session_id=cart.session_id,
        items=items,
        applied_coupons=list(cart.applied_coupons or []),
        shipping_address=ShippingAddress.model_validate(cart.shipping_address) if cart.shipping_address else None,
        totals=compute_totals(items, coupons, now=now),
        currency=cart.currency,
        last_updated=now,
        created_at=cart.created_at,
        updated_at=cart.updated_at,
    )


async def add_item(db: AsyncSession, *, cart: Cart, payload: CartItemCreate) -> Cart:
    _check_quantity(payload.quantity)
    target = await _resolve_target(db, payload.product_id, payload.service_id)

    existing = next(
        (i for i in cart.items if (i.product_id, i.service_id) == (payload.product_id, payload.service_id)),
        None,
    )
    if existing:
        quantity = existing.quantity + payload.quantity
        _check_quantity(quantity)
        _check_stock(target, quantity)
        existing.quantity = quantity
        existing.customizations = {**(existing.customizations or {}), **(payload.customizations or {})}
        existing.notes = payload.notes or existing.notes
        existing.saved_for_later = False
    else:
        if len(cart.items) >= settings.CART_MAX_ITEMS:
            raise ConflictError(f"A cart can hold at most {settings.CART_MAX_ITEMS} items")
        _check_stock(target, payload.quantity)
        price = float(target.price)
        original = getattr(target, "original_price", None)
        db.add(
            CartItem(
                cart=cart,
                product_id=payload.product_id,
                service_id=payload.service_id,
                quantity=payload.quantity,
                unit_price=price,
                original_price=float(original) if original else price,
                discount=0,
                customizations=dict(payload.customizations or {}),
                notes=payload.notes,
            )
        )

    await flush_async(db)
    await _refresh_cart(db, cart)
    return cart


async def update_item(db: AsyncSession, *, cart: Cart, item_id: str, payload: CartItemUpdate) -> Cart:
    item = _get_item(cart, item_id)

    if payload.quantity is not None:
        if payload.quantity <= 0:
            return await remove_item(db, cart=cart, item_id=item_id)
        _check_quantity(payload.quantity)
        if payload.quantity > item.quantity:
            target = await _resolve_target(db, item.product_id, item.service_id)
            _check_stock(target, payload.quantity)
        item.quantity = payload.quantity

    if payload.customizations is not None:
        item.customizations = dict(payload.customizations)
    if payload.notes is not None:
        item.notes = payload.notes
    if payload.saved_for_later is not None:
        item.saved_for_later = payload.saved_for_later

    await flush_async(db)
    await _refresh_cart(db, cart)
    return cart


async def remove_item(db: AsyncSession, *, cart: Cart, item_id: str) -> Cart:
    item = _get_item(cart, item_id)
    cart.items.remove(item)
    await flush_async(db)
    await _refresh_cart(db, cart)
    return cart


async def clear_cart(db: AsyncSession, *, cart: Cart) -> Cart:
    cart.items.clear()
    cart.applied_coupons = []
    await flush_async(db)
    await _refresh_cart(db, cart)
    logger.info("cart.cleared", extra={"cart_id": cart.id})
    return cart


async def apply_coupon(db: AsyncSession, *, cart: Cart, code: str) -> Cart:
    coupon = await coupon_service.get_coupon(db, code)
    if coupon is None:
        raise CouponError("Invalid coupon code", coupon_code=coupon_service.normalize_code(code))

    items = [CartItemSchema.model_validate(item) for item in cart.items]
    subtotal = compute_totals(items).subtotal
    reason = validate_coupon(coupon, subtotal)
    if reason:
        raise CouponError(reason, coupon_code=coupon.code)

    applied = list(cart.applied_coupons or [])
    if coupon.code not in applied:
        # Reassign so the JSON column is flagged dirty.
        cart.applied_coupons = [*applied, coupon.code]
        await flush_async(db)
        await _refresh_cart(db, cart)
    return cart


async def remove_coupon(db: AsyncSession, *, cart: Cart, code: str) -> Cart:
    normalized = coupon_service.normalize_code(code)
    applied = list(cart.applied_coupons or [])
    if normalized in applied:
        cart.applied_coupons = [c for c in applied if c != normalized]
        await flush_async(db)
        await _refresh_cart(db, cart)
    return cart


async def set_shipping_address(db: AsyncSession, *, cart: Cart, address: ShippingAddress) -> Cart:
    serviceability = check_serviceability(address.zip_code)
    if not serviceability.is_serviceable:
        raise DomainValidationError(serviceability.message)
    cart.shipping_address = address.model_dump(mode="json")
    await flush_async(db)
    await _refresh_cart(db, cart)
    return cart


def shipping_options() -> list[ShippingOption]:
    return [
        ShippingOption(
            id="standard",
            name="Standard Delivery",
            description="5-7 business days",
            price=settings.FLAT_SHIPPING_FEE,
            estimated_days=7,
            is_default=True,
        ),
        ShippingOption(
            id="express",
            name="Express Delivery",
            description="2-3 business days",
            price=settings.EXPRESS_SHIPPING_FEE,
            estimated_days=3,
        ),
        ShippingOption(
            id="free",
            name="Free Delivery",
            description="7-10 business days",
            price=0,
            estimated_days=10,
            min_order_amount=settings.FREE_SHIPPING_THRESHOLD,
        ),
    ]


async def validate_cart(db: AsyncSession, cart: Cart | None) -> CartValidation:
    errors: list[str] = []
    if cart is None:
        return CartValidation(is_valid=True, errors=errors)

    for item in cart.items:
        if item.saved_for_later:
            continue
        if item.product_id:
            product = await db.get(Product, item.product_id)
            if product is None:
                errors.append("Product no longer available")
            elif not product.is_active:
                errors.append(f"{product.name}: Product discontinued")
            elif product.stock < item.quantity:
                errors.append(f"{product.name}: Only {product.stock} items available")
        else:
            service = await db.get(Service, item.service_id)
            if service is None:
                errors.append("Service no longer available")
            elif not service.is_active:
                errors.append(f"{service.name}: Service discontinued")

    return CartValidation(is_valid=not errors, errors=errors)


async def price_guest_items(db: AsyncSession, items: list[GuestCartItem]) -> CartSchema:
    """Price a locally stored guest cart without persisting anything."""
    now = _now()
    priced: list[CartItemSchema] = []
    for guest in items:
        target: Product | Service | None = None
        if guest.product_id:
            target = await db.get(Product, guest.product_id)
        elif guest.service_id:
            target = await db.get(Service, guest.service_id)
        if target is None or not target.price:
            continue

        price = float(target.price)
        original = getattr(target, "original_price", None)
        added = datetime.fromtimestamp(guest.added_at / 1000, tz=timezone.utc)
        priced.append(
            CartItemSchema(
                id=guest.id,
                product_id=guest.product_id,
                service_id=None if guest.product_id else guest.service_id,
                quantity=max(guest.quantity, 1),
                unit_price=price,
                original_price=float(original) if original else price,
                customizations=guest.customizations or {},
                notes=guest.notes,
                created_at=added,
                updated_at=now,
            )
        )

    stamp = int(now.timestamp() * 1000)
    return CartSchema(
        id=f"guest_cart_{stamp}",
        session_id=f"guest_session_{stamp}_{secrets.token_hex(4)}",
        items=priced,
        totals=compute_totals(priced, now=now),
        currency=settings.CURRENCY,
        last_updated=now,
        expires_at=now + timedelta(hours=settings.GUEST_CART_EXPIRY_HOURS),
        created_at=now,
        updated_at=now,
    )


@dataclass
class GuestMergeOutcome:
    migrated: int = 0
    merged: int = 0
    errors: list[str] = field(default_factory=list)


async def merge_guest_items(db: AsyncSession, *, cart: Cart, items: list[GuestCartItem]) -> GuestMergeOutcome:
    """Fold guest lines into an account cart; one bad line never stops the rest.

    Matching lines take the summed quantity, capped at the per-item limit.
    Every check runs before the cart is touched, so a rejected line leaves
    nothing half-applied in the session.
    """
    outcome = GuestMergeOutcome()
    cap = settings.CART_MAX_QUANTITY_PER_ITEM

    for guest in items:
        if bool(guest.product_id) == bool(guest.service_id) or guest.quantity <= 0:
            logger.warning("cart.migrate.skipped", extra={"cart_id": cart.id, "guest_item_id": guest.id})
            continue

        label = "Product" if guest.product_id else "Service"
        existing = next((i for i in cart.items if (i.product_id, i.service_id) == guest.natural_key), None)
        try:
            if existing:
                quantity = min(existing.quantity + guest.quantity, cap)
                await update_item(db, cart=cart, item_id=existing.id, payload=CartItemUpdate(quantity=quantity))
                outcome.merged += 1
            else:
                payload = CartItemCreate(
                    product_id=guest.product_id,
                    service_id=guest.service_id,
                    quantity=min(guest.quantity, cap),
                    customizations=guest.customizations,
                    notes=guest.notes,
                )
                await add_item(db, cart=cart, payload=payload)
                outcome.migrated += 1
        except ServiceError as exc:
            detail = exc.detail
        except PydanticValidationError:
            detail = "Invalid cart item"
        else:
            continue
        logger.warning(
            "cart.migrate.item_failed",
            extra={"cart_id": cart.id, "guest_item_id": guest.id, "error": detail},
        )
        outcome.errors.append(f"{label}: {detail}")

    logger.info(
        "cart.migrated",
        extra={"cart_id": cart.id, "migrated": outcome.migrated, "merged": outcome.merged, "failed": len(outcome.errors)},
    )
    return outcome
