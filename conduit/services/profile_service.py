"""
Profile service: the follow graph and viewer-relative profiles.

Follow and unfollow are idempotent.  The existence check before the
insert keeps the common path free of errors, and the insert itself runs
in a SAVEPOINT so that a concurrent identical follow, rejected by the
``uq_follows_follower_followed`` constraint, is absorbed as success
without poisoning the caller's transaction.
"""
import logging

from sqlalchemy import delete, exists, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from conduit.database import is_unique_violation
from conduit.errors import InvalidArgumentError
from conduit.models import Follow, User
from conduit.schemas import Profile
from conduit.services import user_service

logger = logging.getLogger(__name__)


def _to_profile(user: User, following: bool) -> Profile:
    return Profile(
        user_id=user.id,
        username=user.username,
        bio=user.bio,
        image=user.image,
        following=following,
    )


async def is_following(db: AsyncSession, follower_id: int, followed_id: int) -> bool:
    q = select(
        exists().where(Follow.follower_id == follower_id, Follow.followed_id == followed_id)
    )
    return bool(await db.scalar(q))


async def get_profile(db: AsyncSession, user_id: int, viewer_id: int | None = None) -> Profile:
    """
    Return the profile of *user_id* as seen by *viewer_id*.

    Anonymous viewers (``viewer_id=None``) never follow anyone.
    """
    user = await user_service.get_user_by_id(db, user_id)

    following = False
    if viewer_id is not None:
        following = await is_following(db, viewer_id, user.id)

    return _to_profile(user, following)


async def follow_user(db: AsyncSession, follower_id: int, followed_id: int) -> None:
    logger.info("Following user follower_id=%s followed_id=%s", follower_id, followed_id)

    if follower_id == followed_id:
        raise InvalidArgumentError("Users cannot follow themselves")

    if await is_following(db, follower_id, followed_id):
        return

    follower = await user_service.get_user_by_id(db, follower_id)
    followed = await user_service.get_user_by_id(db, followed_id)

    try:
        async with db.begin_nested():
            db.add(Follow(follower_id=follower.id, followed_id=followed.id))
    except IntegrityError as exc:
        if not is_unique_violation(exc, Follow.__table__, "uq_follows_follower_followed"):
            raise
        logger.debug(
            "Follow already recorded by a concurrent request follower_id=%s followed_id=%s",
            follower_id,
            followed_id,
        )


async def unfollow_user(db: AsyncSession, follower_id: int, followed_id: int) -> None:
    logger.info("Unfollowing user follower_id=%s followed_id=%s", follower_id, followed_id)

    await db.execute(
        delete(Follow).where(Follow.follower_id == follower_id, Follow.followed_id == followed_id)
    )


async def list_followed_ids(db: AsyncSession, user_id: int) -> list[int]:
    result = await db.execute(select(Follow.followed_id).where(Follow.follower_id == user_id))
    return list(result.scalars().all())


async def list_followed_profiles(db: AsyncSession, user_id: int) -> list[Profile]:
    """
    Return the profiles *user_id* follows.

    ``following`` is always True: the caller is the follower.
    """
    followed_ids = await list_followed_ids(db, user_id)
    users = await user_service.list_users(db, followed_ids)
    return [_to_profile(user, True) for user in users]
