from app.core.config import get_settings
from app.repositories.cart_repo import SupabaseCartStore
from app.repositories.product_repo import ProductRepository
from app.repositories.settings_repo import SettingsRepository
from app.services.cart_sessions import CartSessionRegistry
from app.services.product_service import ProductService
from app.services.settings_service import SettingsService

settings = get_settings()

# ---------------------------------------------------------
# Process-wide service objects
#
# - Supabase clients are created lazily on first query, so importing
#   this module does not touch the network.
# - cart_sessions holds one cart engine per signed-in user; it is
#   drained on application shutdown (see app.main lifespan).
# ---------------------------------------------------------

settings_service = SettingsService(
    SettingsRepository(),
    ttl_seconds=settings.STORE_SETTINGS_TTL_SECONDS,
)
product_service = ProductService(ProductRepository(), settings_service)
cart_sessions = CartSessionRegistry(
    SupabaseCartStore(),
    idle_timeout=settings.CART_SESSION_IDLE_SECONDS,
)


def get_settings_service() -> SettingsService:
    """
    FastAPI dependency for the cached store settings.

    Usage:

        from fastapi import Depends

        @router.get("/example")
        async def example(service: SettingsService = Depends(get_settings_service)):
            ...
    """
    return settings_service


def get_product_service() -> ProductService:
    """FastAPI dependency for catalog browsing."""
    return product_service


def get_cart_sessions() -> CartSessionRegistry:
    """FastAPI dependency for the per-user cart engines."""
    return cart_sessions
