"""
Credential & token service: password hashing and bearer tokens.

Passwords are hashed with bcrypt, which only reads the first 72 bytes of
its input; longer passwords are rejected instead of being silently
truncated.  Tokens are HS256 JWTs signed with ``settings.SECRET_KEY``
whose subject is the user id.
"""
from datetime import datetime, timedelta, timezone

import bcrypt
from jose import JWTError, jwt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from conduit.config import settings
from conduit.errors import InvalidArgumentError, NotFoundError, UnauthorizedError
from conduit.models import User

MAX_PASSWORD_LENGTH = 72

_REQUIRED_CLAIMS = {
    "require_exp": True,
    "require_iat": True,
    "require_iss": True,
    "require_sub": True,
}


def hash_password(password: str) -> str:
    encoded = password.encode("utf-8")
    if len(encoded) > MAX_PASSWORD_LENGTH:
        raise InvalidArgumentError(
            f"Password length must be less than or equal to {MAX_PASSWORD_LENGTH}"
        )
    return bcrypt.hashpw(encoded, bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS)).decode("utf-8")


async def check_password(db: AsyncSession, user_id: int, password: str) -> bool:
    """
    Return whether *password* matches the stored hash of *user_id*.

    Raises NotFoundError when the user does not exist.
    """
    result = await db.execute(select(User.password_hash).where(User.id == user_id))
    password_hash = result.scalar_one_or_none()
    if password_hash is None:
        raise NotFoundError(f"User {user_id} not found")

    encoded = password.encode("utf-8")
    if len(encoded) > MAX_PASSWORD_LENGTH:
        return False
    return bcrypt.checkpw(encoded, password_hash.encode("utf-8"))


def issue_token(user: User) -> str:
    now = datetime.now(timezone.utc)
    claims = {
        "sub": str(user.id),
        "iss": settings.JWT_ISSUER,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(seconds=settings.JWT_VALID_FOR_SECONDS)).timestamp()),
    }
    return jwt.encode(claims, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def validate_token(token: str) -> int:
    """
    Verify *token* and return the user id it was issued for.

    Signature, algorithm, issuer and expiry are all checked, and every
    registered claim we issue must be present.  Any failure raises
    UnauthorizedError.
    """
    try:
        claims = jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM],
            issuer=settings.JWT_ISSUER,
            options=_REQUIRED_CLAIMS,
        )
        return int(claims["sub"])
    except (JWTError, KeyError, ValueError) as exc:
        raise UnauthorizedError(f"Invalid token: {exc}") from exc
