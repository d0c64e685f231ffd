from __future__ import annotations

from uuid import UUID

from loguru import logger
from tortoise.exceptions import IntegrityError

from carwash.crud.base import CRUD
from carwash.errors import Conflict, InvalidInput, NotFound, Unauthorized
from carwash.models import Role, User
from carwash.responses import Page
from carwash.schemas import (
    LoginResponse,
    PasswordChange,
    ProfileUpdate,
    UserFilters,
    UserLogin,
    UserPublic,
    UserRegister,
)
from carwash.security import create_access_token, hash_password, verify_password

BAD_CREDENTIALS = "Invalid email or password"


class UserCRUD(CRUD[User, UserPublic]):
    async def register(self, payload: UserRegister, role: Role = Role.USER) -> UserPublic:
        if await User.exists(email=payload.email):
            raise Conflict("User already exists with this email")
        try:
            user = await User.create(
                name=payload.name,
                email=payload.email,
                phone=payload.phone,
                password_hash=hash_password(payload.password),
                role=role,
            )
        except IntegrityError:
            raise Conflict("User already exists with this email") from None

        logger.info("User {} registered ({})", user.id, role)
        return self.to_schema(user)

    async def login(self, payload: UserLogin) -> LoginResponse:
        user = await User.get_or_none(email=payload.email)
        if not user or not verify_password(payload.password, user.password_hash):
            logger.info("Failed login for {}", payload.email)
            raise Unauthorized(BAD_CREDENTIALS)

        return LoginResponse(
            token=create_access_token(user.id, user.role),
            user=self.to_schema(user),
        )

    async def get_profile(self, user_id: UUID) -> UserPublic | None:
        return await self.get_by(id=user_id)

    async def update_profile(self, user_id: UUID, payload: ProfileUpdate) -> UserPublic:
        user = await User.get_or_none(id=user_id)
        if not user:
            raise NotFound("User not found")

        if payload.email is not None and payload.email != user.email:
            if await User.filter(email=payload.email).exclude(id=user_id).exists():
                raise Conflict("Email already in use")
            user.email = payload.email
        if payload.name is not None:
            user.name = payload.name

        try:
            await user.save(update_fields=["name", "email", "updated_at"])
        except IntegrityError:
            raise Conflict("Email already in use") from None
        return self.to_schema(user)

    async def change_password(self, user_id: UUID, payload: PasswordChange) -> None:
        user = await User.get_or_none(id=user_id)
        if not user:
            raise NotFound("User not found")
        if not verify_password(payload.current_password, user.password_hash):
            raise InvalidInput("Current password is incorrect")

        user.password_hash = hash_password(payload.new_password)
        await user.save(update_fields=["password_hash", "updated_at"])
        logger.info("User {} changed password", user_id)

    async def list_users(self, filters: UserFilters) -> Page[UserPublic]:
        qs = User.all()
        if filters.role is not None:
            qs = qs.filter(role=filters.role)
        return await self.page_of(qs.order_by("-created_at"), filters.page, filters.limit)


user_crud = UserCRUD(User, UserPublic)
