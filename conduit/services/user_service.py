"""
User service: identity records for the User aggregate.

Email and username uniqueness is checked up front so callers get a
precise message ("Email is taken"), and again by the database's unique
constraints: a concurrent registration that slips past the check is
reported as the same AlreadyExistsError rather than an opaque failure.
"""
import logging

from pydantic import AnyUrl, EmailStr, TypeAdapter, ValidationError
from sqlalchemy import exists, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from conduit.database import is_unique_violation
from conduit.errors import AlreadyExistsError, InvalidArgumentError, NotFoundError
from conduit.models import User, utcnow
from conduit.schemas import UserRegister, UserUpdate
from conduit.services import auth_service

logger = logging.getLogger(__name__)

_email_adapter = TypeAdapter(EmailStr)
_url_adapter = TypeAdapter(AnyUrl)


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------

async def _validate_email(db: AsyncSession, email: str) -> None:
    try:
        _email_adapter.validate_python(email)
    except ValidationError as exc:
        raise InvalidArgumentError(f"Invalid email {email}") from exc

    taken = await db.scalar(select(exists().where(User.email == email)))
    if taken:
        raise AlreadyExistsError("Email is taken")


async def _validate_username(db: AsyncSession, username: str) -> None:
    taken = await db.scalar(select(exists().where(User.username == username)))
    if taken:
        raise AlreadyExistsError("Username is taken")


def _validate_image(image: str) -> None:
    try:
        _url_adapter.validate_python(image)
    except ValidationError as exc:
        raise InvalidArgumentError(f"Invalid image URL {image}") from exc


async def _save_user(db: AsyncSession, user: User, changes: dict | None = None) -> None:
    """
    Apply *changes* to *user* and flush it inside a SAVEPOINT, mapping
    unique races to AlreadyExistsError.

    Attributes are set inside the SAVEPOINT; ``begin_nested()`` flushes
    anything already dirty outside it.
    """
    try:
        async with db.begin_nested():
            for field, value in (changes or {}).items():
                setattr(user, field, value)
            db.add(user)
    except IntegrityError as exc:
        table = User.__table__
        if is_unique_violation(exc, table, "uq_users_email"):
            raise AlreadyExistsError("Email is taken") from exc
        if is_unique_violation(exc, table, "uq_users_username"):
            raise AlreadyExistsError("Username is taken") from exc
        raise


# ---------------------------------------------------------------------------
# Public service functions
# ---------------------------------------------------------------------------

async def register_user(db: AsyncSession, data: UserRegister) -> User:
    logger.info("Registering user email=%s username=%s", data.email, data.username)

    await _validate_email(db, data.email)
    await _validate_username(db, data.username)

    user = User(
        email=data.email,
        username=data.username,
        password_hash=auth_service.hash_password(data.password),
    )
    await _save_user(db, user)
    return user


async def get_user_by_id(db: AsyncSession, user_id: int) -> User:
    user = await db.get(User, user_id)
    if user is None:
        raise NotFoundError(f"User {user_id} not found")
    return user


async def get_user_by_email(db: AsyncSession, email: str) -> User:
    result = await db.execute(select(User).where(User.email == email))
    user = result.scalar_one_or_none()
    if user is None:
        raise NotFoundError(f"Email {email} not found")
    return user


async def get_user_by_username(db: AsyncSession, username: str) -> User:
    result = await db.execute(select(User).where(User.username == username))
    user = result.scalar_one_or_none()
    if user is None:
        raise NotFoundError(f"Username {username} not found")
    return user


async def get_user_by_token(db: AsyncSession, token: str) -> User:
    user_id = auth_service.validate_token(token)
    return await get_user_by_id(db, user_id)


async def list_users(db: AsyncSession, user_ids: list[int] | None = None) -> list[User]:
    """
    Return users, optionally restricted to *user_ids*.

    ``None`` means no filter; an empty list matches nobody.
    """
    if user_ids is not None and not user_ids:
        return []

    q = select(User).order_by(User.id)
    if user_ids is not None:
        q = q.where(User.id.in_(user_ids))

    result = await db.execute(q)
    return list(result.scalars().all())


async def update_user(db: AsyncSession, user_id: int, data: UserUpdate) -> User:
    """
    Apply the fields explicitly set in *data* to *user_id*.

    Email and username are only re-validated when they change value.
    ``image`` set to null or an empty string clears it; any other value
    must be an absolute URL.
    """
    update_data = data.model_dump(exclude_unset=True)
    logger.info(
        "Updating user %s fields=%s",
        user_id,
        sorted(update_data),
    )

    user = await get_user_by_id(db, user_id)
    changes: dict = {}

    email = update_data.get("email")
    if email is not None and email != user.email:
        await _validate_email(db, email)
        changes["email"] = email

    username = update_data.get("username")
    if username is not None and username != user.username:
        await _validate_username(db, username)
        changes["username"] = username

    password = update_data.get("password")
    if password is not None:
        changes["password_hash"] = auth_service.hash_password(password)

    if "bio" in update_data:
        changes["bio"] = update_data["bio"]

    if "image" in update_data:
        image = update_data["image"] or None
        if image is not None:
            _validate_image(image)
        changes["image"] = image

    changes["updated_at"] = utcnow()
    await _save_user(db, user, changes)
    return user
