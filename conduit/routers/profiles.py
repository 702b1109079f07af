from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from conduit.database import get_db
from conduit.dependencies import get_current_user, get_optional_user
from conduit.models import User
from conduit.schemas import Profile, ProfileBody, ProfileResponse
from conduit.services import profile_service, user_service

router = APIRouter(prefix="/api/profiles", tags=["profiles"])


def profile_body(profile: Profile) -> ProfileBody:
    return ProfileBody(**profile.model_dump(exclude={"user_id"}))


@router.get("/{username}", response_model=ProfileResponse)
async def get_profile(
    username: str,
    viewer: User | None = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    user = await user_service.get_user_by_username(db, username)
    profile = await profile_service.get_profile(db, user.id, viewer.id if viewer else None)
    return ProfileResponse(profile=profile_body(profile))


@router.post("/{username}/follow", response_model=ProfileResponse)
async def follow(
    username: str,
    viewer: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    user = await user_service.get_user_by_username(db, username)
    await profile_service.follow_user(db, viewer.id, user.id)
    profile = await profile_service.get_profile(db, user.id, viewer.id)
    return ProfileResponse(profile=profile_body(profile))


@router.delete("/{username}/follow", response_model=ProfileResponse)
async def unfollow(
    username: str,
    viewer: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    user = await user_service.get_user_by_username(db, username)
    await profile_service.unfollow_user(db, viewer.id, user.id)
    profile = await profile_service.get_profile(db, user.id, viewer.id)
    return ProfileResponse(profile=profile_body(profile))
