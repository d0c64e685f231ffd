from fastapi import APIRouter, Depends, status

from carwash.crud.users import user_crud
from carwash.deps import CurrentUser, get_current_user
from carwash.errors import NotFound
from carwash.rate_limit import auth_limiter
from carwash.responses import Envelope, ok
from carwash.schemas import (
    LoginResponse,
    PasswordChange,
    ProfileUpdate,
    UserLogin,
    UserPublic,
    UserRegister,
)

router = APIRouter(prefix="/users", tags=["users"])


@router.post(
    "/register",
    response_model=Envelope[UserPublic],
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(auth_limiter)],
)
async def register(payload: UserRegister) -> Envelope[UserPublic]:
    user = await user_crud.register(payload)
    return ok(user, "User registered successfully")


@router.post(
    "/login",
    response_model=Envelope[LoginResponse],
    dependencies=[Depends(auth_limiter)],
)
async def login(payload: UserLogin) -> Envelope[LoginResponse]:
    return ok(await user_crud.login(payload), "Login successful")


@router.get("/profile", response_model=Envelope[UserPublic])
async def get_profile(
    current_user: CurrentUser = Depends(get_current_user),
) -> Envelope[UserPublic]:
    user = await user_crud.get_profile(current_user.id)
    if not user:
        raise NotFound("User not found")
    return ok(user, "Profile retrieved successfully")


@router.put("/profile", response_model=Envelope[UserPublic])
async def update_profile(
    payload: ProfileUpdate,
    current_user: CurrentUser = Depends(get_current_user),
) -> Envelope[UserPublic]:
    user = await user_crud.update_profile(current_user.id, payload)
    return ok(user, "Profile updated successfully")


@router.patch("/change-password", response_model=Envelope[None])
async def change_password(
    payload: PasswordChange,
    current_user: CurrentUser = Depends(get_current_user),
) -> Envelope[None]:
    await user_crud.change_password(current_user.id, payload)
    return ok(message="Password changed successfully")
