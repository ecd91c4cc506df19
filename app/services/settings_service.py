import logging
import time
from typing import Any, Callable

from pydantic import TypeAdapter, ValidationError

from app.core.errors import RemoteOperationFailed
from app.models.setting import Setting
from app.repositories.settings_repo import SettingsRepository
from app.schemas.settings import PriceQuote, StoreSettings

logger = logging.getLogger(__name__)


def _unquote(value: Any) -> Any:
    """
    Strip one pair of surrounding double quotes from JSON-encoded strings.
    """
    if isinstance(value, str) and len(value) >= 2 and value[0] == value[-1] == '"':
        return value[1:-1]
    return value


def resolve_settings(rows: list[Setting]) -> StoreSettings:
    """
    Fold the flat key/value rows into a StoreSettings object.

    - unknown keys are ignored
    - values are coerced to the field type ("18" -> 18.0)
    - a value that cannot be coerced keeps the default
    """
    defaults = StoreSettings()
    values: dict[str, Any] = {}
    fields = StoreSettings.model_fields

    for row in rows:
        if row.key not in fields:
            continue
        raw = _unquote(row.value)
        try:
            values[row.key] = TypeAdapter(fields[row.key].annotation).validate_python(raw)
        except ValidationError:
            logger.warning(
                "Ignoring invalid store setting %s=%r (default %r)",
                row.key,
                row.value,
                getattr(defaults, row.key),
            )

    return defaults.model_copy(update=values)


class SettingsService:
    """
    Read-only, cached store settings.

    Responsibilities:
      - load the `settings` table and resolve it with defaults
      - keep the result for `ttl_seconds`
      - format prices and quote shipping for a cart subtotal
    """

    def __init__(
        self,
        repo: SettingsRepository,
        ttl_seconds: float = 300,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.repo = repo
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._cached: StoreSettings | None = None
        self._loaded_at: float | None = None

    def invalidate(self) -> None:
        self._loaded_at = None

    async def get_settings(self) -> StoreSettings:
        """
        Return cached settings, reloading once they are older than the TTL.

        A failed reload keeps the last good settings (or the defaults) and
        is retried on the next call.
        """
        now = self._clock()
        if (
            self._cached is not None
            and self._loaded_at is not None
            and now - self._loaded_at < self.ttl_seconds
        ):
            return self._cached

        try:
            rows = await self.repo.list_settings()
        except RemoteOperationFailed as e:
            logger.warning("Error loading store settings: %s", e)
            return self._cached or StoreSettings()

        self._cached = resolve_settings(rows)
        self._loaded_at = now
        return self._cached

    # ---- formatting helpers ----

    @staticmethod
    def format_price(settings: StoreSettings, amount: float) -> str:
        return f"{settings.currency_symbol}{amount:.2f}"

    @classmethod
    def quote(cls, settings: StoreSettings, subtotal: float) -> PriceQuote:
        """
        Shipping is free once the subtotal reaches the threshold.
        """
        free = subtotal >= settings.free_shipping_threshold
        shipping_fee = 0.0 if free else settings.shipping_fee
        total = subtotal + shipping_fee

        return PriceQuote(
            subtotal=subtotal,
            shipping_fee=shipping_fee,
            total=total,
            free_shipping_threshold=settings.free_shipping_threshold,
            amount_to_free_shipping=max(settings.free_shipping_threshold - subtotal, 0.0),
            subtotal_display=cls.format_price(settings, subtotal),
            shipping_display="FREE" if free else cls.format_price(settings, shipping_fee),
            total_display=cls.format_price(settings, total),
        )
