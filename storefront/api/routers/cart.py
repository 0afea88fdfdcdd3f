from __future__ import annotations

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.api.deps import get_cart_owner, get_current_user_id
from storefront.db.operations import commit_async
from storefront.db.session_async import get_async_db
from storefront.schemas.cart import (
    Cart,
    CartItemCreate,
    CartItemUpdate,
    CartMigrateRequest,
    CartMigrationSummary,
    CartValidation,
    Coupon,
    CouponApply,
    CouponValidateRequest,
    CouponValidation,
    GuestCartRequest,
    ShippingAddress,
    ShippingOption,
)
from storefront.services import cart_service, coupon_service
from storefront.services.cart_service import CartOwner
from storefront.services.exceptions import ResourceNotFoundError

# Mounted twice by main.py: /api/cart and /api/cart/enhanced.
router = APIRouter(tags=["cart"])


async def _existing_cart(db: AsyncSession, owner: CartOwner):
    cart = await cart_service.get_cart(db, owner)
    if not cart:
        raise ResourceNotFoundError("Cart not found")
    return cart


@router.get("", response_model=Cart)
async def get_cart(
    owner: CartOwner = Depends(get_cart_owner),
    db: AsyncSession = Depends(get_async_db),
):
    cart = await cart_service.get_cart(db, owner)
    return await cart_service.to_schema(db, cart, owner)


@router.delete("", response_model=Cart)
async def clear_cart(
    owner: CartOwner = Depends(get_cart_owner),
    db: AsyncSession = Depends(get_async_db),
):
    cart = await cart_service.get_cart(db, owner)
    if cart:
        cart = await cart_service.clear_cart(db, cart=cart)
        await commit_async(db)
    return await cart_service.to_schema(db, cart, owner)


@router.post("/items", response_model=Cart, status_code=status.HTTP_201_CREATED)
async def add_cart_item(
    payload: CartItemCreate,
    owner: CartOwner = Depends(get_cart_owner),
    db: AsyncSession = Depends(get_async_db),
):
    if owner.is_guest and not owner.session_id and payload.session_id:
        owner = CartOwner(session_id=payload.session_id)
    cart = await cart_service.get_or_create_cart(db, owner)
    cart = await cart_service.add_item(db, cart=cart, payload=payload)
    await commit_async(db)
    return await cart_service.to_schema(db, cart, owner)


@router.put("/items/{item_id}", response_model=Cart)
async def update_cart_item(
    item_id: str,
    payload: CartItemUpdate,
    owner: CartOwner = Depends(get_cart_owner),
    db: AsyncSession = Depends(get_async_db),
):
    cart = await _existing_cart(db, owner)
    cart = await cart_service.update_item(db, cart=cart, item_id=item_id, payload=payload)
    await commit_async(db)
    return await cart_service.to_schema(db, cart, owner)


@router.delete("/items/{item_id}", response_model=Cart)
async def remove_cart_item(
    item_id: str,
    owner: CartOwner = Depends(get_cart_owner),
    db: AsyncSession = Depends(get_async_db),
):
    cart = await _existing_cart(db, owner)
    cart = await cart_service.remove_item(db, cart=cart, item_id=item_id)
    await commit_async(db)
    return await cart_service.to_schema(db, cart, owner)


@router.post("/coupons/validate", response_model=CouponValidation)
async def validate_coupon(
    payload: CouponValidateRequest,
    db: AsyncSession = Depends(get_async_db),
):
    return await coupon_service.check_coupon(db, payload.code, payload.cart_total)


@router.get("/coupons/available", response_model=list[Coupon])
async def available_coupons(
    owner: CartOwner = Depends(get_cart_owner),
    db: AsyncSession = Depends(get_async_db),
):
    snapshot = await cart_service.to_schema(db, await cart_service.get_cart(db, owner), owner)
    return await coupon_service.list_available(db, snapshot.totals.subtotal)


@router.post("/coupons", response_model=Cart)
async def apply_coupon(
    payload: CouponApply,
    owner: CartOwner = Depends(get_cart_owner),
    db: AsyncSession = Depends(get_async_db),
):
    cart = await _existing_cart(db, owner)
    cart = await cart_service.apply_coupon(db, cart=cart, code=payload.code)
    await commit_async(db)
    return await cart_service.to_schema(db, cart, owner)


@router.delete("/coupons/{code}", response_model=Cart)
async def remove_coupon(
    code: str,
    owner: CartOwner = Depends(get_cart_owner),
    db: AsyncSession = Depends(get_async_db),
):
    cart = await _existing_cart(db, owner)
    cart = await cart_service.remove_coupon(db, cart=cart, code=code)
    await commit_async(db)
    return await cart_service.to_schema(db, cart, owner)


@router.put("/shipping", response_model=Cart)
async def update_shipping_address(
    address: ShippingAddress,
    owner: CartOwner = Depends(get_cart_owner),
    db: AsyncSession = Depends(get_async_db),
):
    cart = await cart_service.get_or_create_cart(db, owner)
    cart = await cart_service.set_shipping_address(db, cart=cart, address=address)
    await commit_async(db)
    return await cart_service.to_schema(db, cart, owner)


@router.get("/shipping-options", response_model=list[ShippingOption])
async def shipping_options():
    return cart_service.shipping_options()


@router.post("/validate", response_model=CartValidation)
async def validate_cart(
    owner: CartOwner = Depends(get_cart_owner),
    db: AsyncSession = Depends(get_async_db),
):
    cart = await cart_service.get_cart(db, owner)
    return await cart_service.validate_cart(db, cart)


@router.post("/guest", response_model=Cart)
async def price_guest_cart(
    payload: GuestCartRequest,
    db: AsyncSession = Depends(get_async_db),
):
    return await cart_service.price_guest_items(db, payload.items)


@router.post("/migrate", response_model=CartMigrationSummary)
async def migrate_guest_cart(
    payload: CartMigrateRequest,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_async_db),
):
    owner = CartOwner(user_id=user_id)
    if not payload.guest_items:
        return CartMigrationSummary(message="No guest items to migrate")

    cart = await cart_service.get_or_create_cart(db, owner)
    outcome = await cart_service.merge_guest_items(db, cart=cart, items=payload.guest_items)
    await commit_async(db)
    return CartMigrationSummary(
        message="Cart migration completed successfully",
        migrated_count=outcome.migrated,
        merged_count=outcome.merged,
        total_items=outcome.migrated + outcome.merged,
        errors=outcome.errors,
        cart=await cart_service.to_schema(db, cart, owner),
    )
