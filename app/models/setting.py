import uuid
from datetime import datetime
from typing import Any

from sqlmodel import SQLModel


class Setting(SQLModel):
    """
    Row of the flat `settings` key/value table.

    `value` is a JSON column: strings are usually stored JSON-encoded,
    i.e. with surrounding double quotes.
    """

    id: uuid.UUID | None = None
    key: str
    value: Any = None
    description: str | None = None
    updated_at: datetime | None = None
