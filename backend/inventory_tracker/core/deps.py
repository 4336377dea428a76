"""Dependency injection: bearer auth and owner context."""

from uuid import UUID

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError

from inventory_tracker.core.errors import UnauthorizedError
from inventory_tracker.core.security import decode_access_token
from inventory_tracker.schemas.auth import CurrentUser

bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> CurrentUser:
    """Decode the bearer token and return CurrentUser. Raises 401 on missing/invalid token."""
    if credentials is None or not credentials.credentials:
        raise UnauthorizedError("Missing bearer token")

    token = credentials.credentials
    try:
        payload = decode_access_token(token)
        user_id = payload.get("sub")
        if user_id is None:
            raise UnauthorizedError("Could not validate credentials")
        return CurrentUser(
            id=UUID(user_id),
            email=payload.get("email"),
            role=payload.get("role"),
            token=token,
        )
    except (JWTError, ValueError):
        raise UnauthorizedError("Could not validate credentials")
