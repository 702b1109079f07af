from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from conduit.database import get_db
from conduit.dependencies import get_current_user, get_token
from conduit.errors import NotFoundError, UnauthorizedError
from conduit.models import User
from conduit.schemas import (
    UserBody,
    UserLoginRequest,
    UserRegisterRequest,
    UserResponse,
    UserUpdateRequest,
)
from conduit.services import auth_service, user_service

router = APIRouter(prefix="/api", tags=["users"])


def _user_response(user: User, token: str) -> UserResponse:
    return UserResponse(
        user=UserBody(
            email=user.email,
            token=token,
            username=user.username,
            bio=user.bio,
            image=user.image,
        )
    )


@router.post("/users", status_code=201, response_model=UserResponse)
async def register(payload: UserRegisterRequest, db: AsyncSession = Depends(get_db)):
    user = await user_service.register_user(db, payload.user)
    return _user_response(user, auth_service.issue_token(user))


@router.post("/users/login", response_model=UserResponse)
async def login(payload: UserLoginRequest, db: AsyncSession = Depends(get_db)):
    try:
        user = await user_service.get_user_by_email(db, payload.user.email)
    except NotFoundError as exc:
        raise UnauthorizedError(exc.message) from exc

    if not await auth_service.check_password(db, user.id, payload.user.password):
        raise UnauthorizedError(f"Incorrect password for user {user.id}")

    return _user_response(user, auth_service.issue_token(user))


@router.get("/user", response_model=UserResponse)
async def get_current(
    user: User = Depends(get_current_user),
    token: str = Depends(get_token),
):
    return _user_response(user, token)


@router.put("/user", response_model=UserResponse)
async def update_current(
    payload: UserUpdateRequest,
    user: User = Depends(get_current_user),
    token: str = Depends(get_token),
    db: AsyncSession = Depends(get_db),
):
    updated = await user_service.update_user(db, user.id, payload.user)
    return _user_response(updated, token)
