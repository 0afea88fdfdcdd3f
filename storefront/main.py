# storefront/main.py
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from storefront.api.error_handlers import register_exception_handlers
from storefront.api.routers import cart, catalog
from storefront.core.config import settings
from storefront.core.logging import setup_logging
from storefront.middleware import ObservabilityMiddleware

# --- Models registration (needed so Base.metadata and Alembic see every table) ---
import storefront.models.catalog  # noqa: F401
import storefront.models.coupon   # noqa: F401
import storefront.models.cart     # noqa: F401

TAGS_METADATA = [
    {"name": "cart", "description": "Account and guest carts, coupons, shipping and migration support."},
    {"name": "catalog", "description": "Read-only product and service lookups."},
]

setup_logging()

app = FastAPI(
    title=settings.PROJECT_NAME,
    version="0.1.0",
    description=(
        "Cart API for the electrical-goods storefront.\n\n"
        "- **Cart**: account carts (bearer token) and guest carts (`X-Session-Id`).\n"
        "- **Coupons**: percentage, fixed and free-shipping codes.\n"
        "- **Catalog**: product and service availability used by cart migration."
    ),
    openapi_tags=TAGS_METADATA,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)

# --- Middlewares ---
app.add_middleware(ObservabilityMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

# --- Routers ---
app.include_router(cart.router, prefix=f"{settings.API_PREFIX}/cart")
app.include_router(cart.router, prefix=f"{settings.API_PREFIX}/cart/enhanced", include_in_schema=False)
app.include_router(catalog.router, prefix=settings.API_PREFIX)


@app.get("/", include_in_schema=False)
def root():
    return {"status": "ok", "docs_url": "/docs", "redoc_url": "/redoc"}
