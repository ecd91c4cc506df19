import uuid

from sqlmodel import SQLModel, Field


class Identity(SQLModel):
    """
    Signed-in Supabase Auth user, as seen by this service.

    Built from a verified access token:
      - user_id: the token's 'sub' claim
      - email: the token's 'email' claim (may be absent for phone sign-in)
    """

    user_id: uuid.UUID
    email: str | None = None
    access_token: str | None = Field(default=None, repr=False)
