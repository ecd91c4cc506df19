# app/core/supabase_client.py
from supabase import AsyncClient, acreate_client

from app.core.config import get_settings

settings = get_settings()

_clients: dict[str, AsyncClient] = {}


async def supabase_public() -> AsyncClient:
    """
    Create (once) a Supabase client with the anon/public key.

    Use cases:
      - catalog reads (products, categories, product_images)
      - the store settings table

    Note: This client still respects RLS.
    """
    if "public" not in _clients:
        _clients["public"] = await acreate_client(
            settings.SUPABASE_URL, settings.SUPABASE_KEY
        )
    return _clients["public"]


async def supabase_admin() -> AsyncClient:
    """
    Create (once) a Supabase client with the service role key.

    Use cases:
      - carts / cart_items reads and writes on behalf of a verified identity

    WARNING:
      - Never expose service role key to frontend.
      - Every query made with this client must be scoped by user/cart id,
        RLS is bypassed.

    Raises:
        RuntimeError: if SUPABASE_SERVICE_ROLE_KEY is not set.
    """
    if not settings.SUPABASE_SERVICE_ROLE_KEY:
        raise RuntimeError("Missing SUPABASE_SERVICE_ROLE_KEY in .env")
    if "admin" not in _clients:
        _clients["admin"] = await acreate_client(
            settings.SUPABASE_URL, settings.SUPABASE_SERVICE_ROLE_KEY
        )
    return _clients["admin"]
