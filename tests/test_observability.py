import logging

import pytest
from httpx import AsyncClient


@pytest.mark.asyncio
async def test_request_id_is_echoed_or_generated(client: AsyncClient, session_headers):
    echoed = await client.get("/api/cart", headers={**session_headers, "X-Request-ID": "req-123"})
    assert echoed.headers["X-Request-ID"] == "req-123"

    generated = await client.get("/api/cart", headers=session_headers)
    assert len(generated.headers["X-Request-ID"]) == 32


@pytest.mark.asyncio
async def test_failed_cart_calls_are_logged_without_credentials(client: AsyncClient, caplog):
    headers = {"Authorization": "Bearer not-a-token", "X-Request-ID": "req-401"}

    with caplog.at_level(logging.WARNING, logger="storefront.requests"):
        resp = await client.get("/api/cart", headers=headers)

    assert resp.status_code == 401
    record = next(r for r in caplog.records if r.name == "storefront.requests")
    assert record.owner == "account"
    assert record.request_id == "req-401"
    assert "not-a-token" not in caplog.text
