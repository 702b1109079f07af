from fastapi import Depends, Query
from fastapi.security import APIKeyHeader
from sqlalchemy.ext.asyncio import AsyncSession

from conduit.config import settings
from conduit.database import get_db
from conduit.errors import NotFoundError, UnauthorizedError
from conduit.models import User
from conduit.services import user_service

TOKEN_SCHEME = "Token"

_authorization_header = APIKeyHeader(name="Authorization", auto_error=False)


class PaginationParams:
    """
    Reusable FastAPI dependency that parses and validates ``limit`` /
    ``offset`` query parameters.

    Usage in a router::

        @router.get("/articles")
        async def list_articles(pagination: PaginationParams = Depends()):
            ...

    Attributes
    ----------
    limit:
        Maximum number of items returned, clamped to
        ``settings.MAX_PAGE_SIZE`` regardless of the value supplied.
    offset:
        Number of items to skip (minimum 0).
    """

    def __init__(
        self,
        limit: int = Query(
            settings.DEFAULT_PAGE_SIZE,
            ge=1,
            description="Maximum number of items to return.",
        ),
        offset: int = Query(
            0,
            ge=0,
            description="Number of items to skip.",
        ),
    ) -> None:
        self.limit = min(limit, settings.MAX_PAGE_SIZE)
        self.offset = offset


def _parse_authorization(header: str | None) -> str | None:
    """Return the token from ``Authorization: Token <jwt>``, or None."""
    if not header:
        return None
    parts = header.split(" ")
    if len(parts) != 2 or parts[0] != TOKEN_SCHEME:
        return None
    return parts[1]


async def _authenticate(db: AsyncSession, token: str) -> User:
    try:
        return await user_service.get_user_by_token(db, token)
    except NotFoundError as exc:
        # Validly signed token for a user that no longer resolves.
        raise UnauthorizedError(exc.message) from exc


async def get_token(header: str | None = Depends(_authorization_header)) -> str:
    token = _parse_authorization(header)
    if token is None:
        raise UnauthorizedError("Invalid or missing authentication token")
    return token


async def get_current_user(
    token: str = Depends(get_token),
    db: AsyncSession = Depends(get_db),
) -> User:
    return await _authenticate(db, token)


async def get_optional_user(
    header: str | None = Depends(_authorization_header),
    db: AsyncSession = Depends(get_db),
) -> User | None:
    """
    Resolve the caller when a token is sent, or None for anonymous
    requests.  A token that is sent but invalid is still rejected.
    """
    token = _parse_authorization(header)
    if token is None:
        return None
    return await _authenticate(db, token)
