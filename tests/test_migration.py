import httpx
import pytest

from storefront.client.cart_service import CartService
from storefront.client.catalog_client import CatalogClient
from storefront.client.guest_cart import GuestCart
from storefront.client.migration import MIGRATION_FAILED, CartMigrator
from storefront.client.storage import MemoryStorage
from storefront.core.security import create_id_token
from storefront.domain.enums import MigrationStatus


@pytest.fixture
def guest_cart() -> GuestCart:
    return GuestCart(MemoryStorage())


def _migrator(client, guest_cart, token=None, **kwargs) -> tuple[CartMigrator, CartService]:
    service = CartService(client)
    if token:
        service.set_auth_token(token)
    return CartMigrator(guest_cart, service, CatalogClient(client), **kwargs), service


@pytest.mark.asyncio
async def test_guest_items_move_into_empty_account_cart(client: httpx.AsyncClient, guest_cart, user_token, make_product, make_service):
    bulb = make_product(price=120.0)
    install = make_service(price=300.0)
    guest_cart.add(product_id=bulb.id, quantity=2)
    guest_cart.add(service_id=install.id)
    statuses = []
    migrator, service = _migrator(client, guest_cart, user_token, on_status=statuses.append)

    result = await migrator.migrate_to_user_cart()

    assert result.success is True
    assert result.errors == []
    assert result.status == MigrationStatus.success
    assert result.migrated == 2
    assert guest_cart.items == ()
    assert guest_cart.is_migrated() is True
    assert statuses[0] == MigrationStatus.validating_items
    assert MigrationStatus.merging in statuses
    assert statuses[-1] == MigrationStatus.success

    account = await service.get_cart()
    assert {(i.product_id, i.service_id, i.quantity) for i in account.items} == {
        (bulb.id, None, 2),
        (None, install.id, 1),
    }


@pytest.mark.asyncio
async def test_deleted_product_fails_but_others_migrate(client: httpx.AsyncClient, guest_cart, user_token, make_product):
    bulb = make_product()
    guest_cart.add(product_id="deleted-product")
    guest_cart.add(product_id=bulb.id)
    migrator, service = _migrator(client, guest_cart, user_token)

    result = await migrator.migrate_to_user_cart()

    assert result.success is True
    assert result.status == MigrationStatus.partial_success
    assert result.errors == ["Product: Product no longer available"]
    assert guest_cart.items == ()
    account = await service.get_cart()
    assert [i.product_id for i in account.items] == [bulb.id]


@pytest.mark.asyncio
async def test_existing_account_lines_are_merged_not_duplicated(client: httpx.AsyncClient, guest_cart, user_token, make_product):
    bulb = make_product(stock=50)
    migrator, service = _migrator(client, guest_cart, user_token)
    await service.add_item(product_id=bulb.id, quantity=3, customizations={"color": "warm"}, notes="server")
    guest_cart.add(product_id=bulb.id, quantity=2, customizations={"color": "cool", "pack": 2})

    result = await migrator.migrate_to_user_cart()

    assert result.merged == 1 and result.migrated == 0
    account = await service.get_cart()
    assert len(account.items) == 1
    line = account.items[0]
    assert line.quantity == 5
    assert line.customizations == {"color": "cool", "pack": 2}
    assert line.notes == "server"


@pytest.mark.asyncio
async def test_all_items_invalid_keeps_guest_cart(client: httpx.AsyncClient, guest_cart, user_token, make_product):
    retired = make_product(is_active=False)
    guest_cart.add(product_id=retired.id)
    migrator, _ = _migrator(client, guest_cart, user_token)

    result = await migrator.migrate_to_user_cart()

    assert result.success is False
    assert result.status == MigrationStatus.failure
    assert result.errors == ["Product: Product discontinued"]
    assert len(guest_cart.items) == 1
    assert guest_cart.is_migrated() is False


@pytest.mark.asyncio
async def test_merged_quantity_is_capped_per_item(client: httpx.AsyncClient, guest_cart, user_token, make_product):
    bulb = make_product(stock=200)
    migrator, service = _migrator(client, guest_cart, user_token)
    await service.add_item(product_id=bulb.id, quantity=98)
    guest_cart.add(product_id=bulb.id, quantity=5)

    result = await migrator.migrate_to_user_cart()

    assert result.success is True
    assert result.merged == 1
    account = await service.get_cart()
    assert account.find_by_key((bulb.id, None)).quantity == 99


@pytest.mark.asyncio
async def test_request_failure_is_recorded_per_item(client: httpx.AsyncClient, guest_cart, user_token, make_product):
    bulb = make_product(stock=5)
    fan = make_product(name="Fan", stock=5)
    migrator, service = _migrator(client, guest_cart, user_token)
    await service.add_item(product_id=bulb.id, quantity=3)
    # Each side fits in stock on its own; the merged line does not.
    guest_cart.add(product_id=bulb.id, quantity=3)
    guest_cart.add(product_id=fan.id)

    result = await migrator.migrate_to_user_cart()

    assert result.success is True
    assert result.status == MigrationStatus.partial_success
    assert result.errors == ["Failed to add product to cart"]
    assert result.migrated == 1 and result.merged == 0
    account = await service.get_cart()
    assert account.find_by_key((bulb.id, None)).quantity == 3
    assert account.find_by_key((fan.id, None)) is not None


@pytest.mark.asyncio
async def test_keep_failed_items_option(client: httpx.AsyncClient, guest_cart, user_token, make_product):
    bulb = make_product()
    guest_cart.add(product_id="deleted-product")
    guest_cart.add(product_id=bulb.id)
    migrator, _ = _migrator(client, guest_cart, user_token, keep_failed_items=True)

    result = await migrator.migrate_to_user_cart()

    assert result.success is True
    assert [item.product_id for item in guest_cart.items] == ["deleted-product"]
    assert guest_cart.is_migrated() is True


@pytest.mark.asyncio
async def test_noop_when_unauthenticated_or_empty(client: httpx.AsyncClient, guest_cart, user_token):
    migrator, _ = _migrator(client, guest_cart, user_token)
    assert (await migrator.migrate_to_user_cart()).success is True

    guest_cart.add(product_id="p1")
    anonymous, _ = _migrator(client, guest_cart)
    result = await anonymous.migrate_to_user_cart()
    assert result.success is True
    assert len(guest_cart.items) == 1


@pytest.mark.asyncio
async def test_unreachable_account_cart_aborts_without_touching_guest_data(guest_cart):
    def down(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, json={"detail": "maintenance"})

    guest_cart.add(product_id="p1", quantity=2)
    async with httpx.AsyncClient(transport=httpx.MockTransport(down), base_url="http://test") as http:
        migrator, _ = _migrator(http, guest_cart, "token")
        result = await migrator.migrate_to_user_cart()

    assert result.success is False
    assert result.errors == [MIGRATION_FAILED]
    assert result.status == MigrationStatus.failure
    assert guest_cart.items[0].quantity == 2
    assert guest_cart.is_migrated() is False


@pytest.mark.asyncio
async def test_expired_token_aborts_without_touching_guest_data(client: httpx.AsyncClient, guest_cart, user_id, make_product):
    bulb = make_product()
    guest_cart.add(product_id=bulb.id, quantity=2)
    expired = create_id_token(user_id, expires_minutes=-5)
    migrator, service = _migrator(client, guest_cart, expired)

    result = await migrator.migrate_to_user_cart()

    assert result.success is False
    assert result.errors == [MIGRATION_FAILED]
    assert result.status == MigrationStatus.failure
    assert [(i.product_id, i.quantity) for i in guest_cart.items] == [(bulb.id, 2)]
    assert guest_cart.is_migrated() is False

    service.set_auth_token(None)
    session_cart = await service.get_cart()
    assert session_cart.items == []


@pytest.mark.asyncio
async def test_unreadable_account_cart_aborts_without_touching_guest_data(guest_cart):
    def garbled(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b"<html>proxy page</html>")

    guest_cart.add(product_id="p1")
    async with httpx.AsyncClient(transport=httpx.MockTransport(garbled), base_url="http://test") as http:
        migrator, _ = _migrator(http, guest_cart, "token")
        result = await migrator.migrate_to_user_cart()

    assert result.success is False
    assert result.errors == [MIGRATION_FAILED]
    assert len(guest_cart.items) == 1
