"""Natours Backend — User Service (admin CRUD and the current user's profile)."""

import logging
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from natours.models import User
from natours.schemas import UpdateMeIn, UserOut, UserUpdate
from natours.services.crud import CRUDService

logger = logging.getLogger(__name__)

USER_FIELDS = {
    "name": User.name,
    "email": User.email,
    "role": User.role,
}


class UserService(CRUDService):
    model = User
    out_schema = UserOut
    update_schema = UserUpdate
    resource_name = "user"
    api_fields = USER_FIELDS
    default_sort = "name"

    def base_filters(self) -> List[Any]:
        return [User.active.is_(True)]

    def apply(self, obj: User, values: Dict[str, Any]) -> None:
        if values.get("email"):
            values["email"] = values["email"].lower()
        super().apply(obj, values)

    async def get_by_email(self, db: AsyncSession, email: str) -> Optional[User]:
        result = await db.execute(
            self.base_statement().where(func.lower(User.email) == email.strip().lower())
        )
        return result.scalar_one_or_none()

    async def get_active(self, db: AsyncSession, user_id: Any) -> Optional[User]:
        result = await db.execute(select(User).where(User.id == user_id, User.active.is_(True)))
        return result.scalar_one_or_none()

    async def update_me(self, db: AsyncSession, user: User, data: Mapping[str, Any]) -> User:
        """Profile update for the logged-in user; password and role are not accepted here."""
        values = UpdateMeIn.model_validate(dict(data)).model_dump(exclude_unset=True)
        self.apply(user, values)
        await db.flush()
        return user

    async def deactivate(self, db: AsyncSession, user: User) -> None:
        user.active = False
        await db.flush()
        logger.info("User %s deactivated their account", user.id)


user_service = UserService()
