from typing import Awaitable, Callable

import httpx
from supabase import AsyncClient, PostgrestAPIError

from app.core.errors import RemoteOperationFailed
from app.core.supabase_client import supabase_public
from app.models.setting import Setting


class SettingsRepository:
    """Read access to the flat `settings` table."""

    def __init__(
        self,
        client_factory: Callable[[], Awaitable[AsyncClient]] = supabase_public,
    ):
        self._client_factory = client_factory

    async def list_settings(self) -> list[Setting]:
        try:
            client = await self._client_factory()
            response = await client.table("settings").select("*").execute()
        except (PostgrestAPIError, httpx.HTTPError, RuntimeError) as e:
            raise RemoteOperationFailed("list_settings", e) from e
        return [Setting.model_validate(row) for row in response.data or []]
