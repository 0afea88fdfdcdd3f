import pytest
from pydantic import ValidationError

from storefront.core.config import Settings


def test_async_url_is_derived_from_sync_url():
    assert Settings._derive_async_url("sqlite:///./app.db") == "sqlite+aiosqlite:///./app.db"
    assert Settings._derive_async_url("postgresql://u:p@h/db") == "postgresql+asyncpg://u:p@h/db"
    assert Settings._derive_async_url("postgresql+asyncpg://u:p@h/db") == "postgresql+asyncpg://u:p@h/db"


def test_defaults_match_rupee_pricing(monkeypatch):
    monkeypatch.delenv("ASYNC_DATABASE_URL", raising=False)
    cfg = Settings(SECRET_KEY="x" * 32, DATABASE_URL="sqlite:///./x.db", ASYNC_DATABASE_URL=None)

    assert cfg.ASYNC_DATABASE_URL == "sqlite+aiosqlite:///./x.db"
    assert cfg.FREE_SHIPPING_THRESHOLD == 500.0
    assert cfg.FLAT_SHIPPING_FEE == 50.0
    assert cfg.TAX_RATE == 0.18
    assert cfg.CART_MIGRATION_KEEP_FAILED_ITEMS is False


@pytest.mark.parametrize(
    "overrides",
    [
        {"SECRET_KEY": "changeme"},
        {"TAX_RATE": 1.5},
        {"FLAT_SHIPPING_FEE": -1},
        {"CART_MAX_ITEMS": 0},
    ],
)
def test_invalid_settings_are_rejected(overrides):
    values = {"SECRET_KEY": "x" * 32, **overrides}
    with pytest.raises(ValidationError):
        Settings(**values)


def test_secret_key_fallbacks_accept_comma_list():
    cfg = Settings(SECRET_KEY="x" * 32, SECRET_KEY_FALLBACKS="old-one, old-two,")
    assert cfg.SECRET_KEY_FALLBACKS == ["old-one", "old-two"]
