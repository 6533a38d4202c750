"""
User Repository

Account persistence. Rows leave this module as ``AccountRecord``, which has
no password hash field; the hash is only reachable through
``get_model_*`` lookups used by credential checks.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy import delete, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from .models import User, utcnow


@dataclass
class AccountRecord:
    """Public view of an account."""

    id: int
    username: str
    email: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_model(cls, model: User) -> "AccountRecord":
        return cls(
            id=model.id,
            username=model.username,
            email=model.email,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )


class UserRepository:
    """Queries against the ``users`` table, bound to one session."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_model(self, user_id: int) -> Optional[User]:
        return await self.session.get(User, user_id)

    async def get_model_by_email(self, email: str) -> Optional[User]:
        stmt = select(User).where(User.email == email).limit(1)
        return (await self.session.execute(stmt)).scalar_one_or_none()

    async def find_by_username_or_email(
        self,
        username: str,
        email: Optional[str] = None,
    ) -> Optional[User]:
        """
        Single combined lookup.

        With one argument the same identifier is matched against both
        columns (login); with two, each against its own column (register).
        """
        stmt = (
            select(User)
            .where(or_(User.username == username, User.email == (email or username)))
            .limit(1)
        )
        return (await self.session.execute(stmt)).scalar_one_or_none()

    async def list_all(self) -> list[User]:
        stmt = select(User).order_by(User.id.asc())
        return list((await self.session.execute(stmt)).scalars().all())

    async def add(self, username: str, email: str, password_hash: str) -> User:
        """Insert and flush. Raises IntegrityError on a duplicate."""
        user = User(username=username, email=email, password_hash=password_hash)
        self.session.add(user)
        await self.session.flush()
        return user

    async def apply_changes(self, user: User, **changes) -> User:
        """Set the given columns, bump ``updated_at`` and flush."""
        for key, value in changes.items():
            setattr(user, key, value)
        user.updated_at = utcnow()
        await self.session.flush()
        return user

    async def delete(self, user_id: int) -> bool:
        result = await self.session.execute(delete(User).where(User.id == user_id))
        await self.session.flush()
        return result.rowcount > 0
