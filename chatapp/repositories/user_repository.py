from typing import Optional, List
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from chatapp.models.user import User
from chatapp.schemas.user import UserCreate
from chatapp.auth import get_password_hash

class UserRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(self, user_data: UserCreate) -> User:
        db_user = User(
            full_name=user_data.full_name,
            email=user_data.email,
            hashed_password=get_password_hash(user_data.password),
            bio=user_data.bio
        )
        self.db.add(db_user)
        await self.db.commit()
        await self.db.refresh(db_user)
        return db_user

    async def get_by_id(self, user_id: int) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    async def get_by_email(self, email: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.email == email))
        return result.scalar_one_or_none()

    async def update(self, user_id: int, fields: dict) -> Optional[User]:
        db_user = await self.get_by_id(user_id)
        if not db_user:
            return None

        for field, value in fields.items():
            setattr(db_user, field, value)

        await self.db.commit()
        await self.db.refresh(db_user)
        return db_user

    async def delete(self, user_id: int) -> bool:
        db_user = await self.get_by_id(user_id)
        if not db_user:
            return False

        await self.db.delete(db_user)
        await self.db.commit()
        return True

    async def get_all_except(self, user_id: int) -> List[User]:
        """Every other user, in signup order."""
        result = await self.db.execute(
            select(User).where(User.id != user_id).order_by(User.id.asc())
        )
        return list(result.scalars().all())

    async def exists_by_email(self, email: str) -> bool:
        return await self.get_by_email(email) is not None
