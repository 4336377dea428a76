"""Auth schemas."""

from uuid import UUID

from pydantic import BaseModel


class CurrentUser(BaseModel):
    id: UUID
    email: str | None = None
    role: str | None = None
    # Forwarded to the storage service on the caller's behalf
    token: str
