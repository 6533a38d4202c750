"""
Account Services

Profile management for the signed-in account, and a plain user
management surface (create/read/update/delete by id).
"""

from typing import Optional

from loguru import logger
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from bookshop.errors import (
    ConflictError,
    IncorrectPasswordError,
    NotFoundError,
    ValidationError,
)
from bookshop.security import PasswordHasher
from bookshop.storage.user_repository import AccountRecord, UserRepository

DUPLICATE_ACCOUNT_MESSAGE = "Email or username already exists"


class ProfileService:
    """The signed-in account's own profile."""

    def __init__(self, session: AsyncSession, hasher: PasswordHasher):
        self.session = session
        self.users = UserRepository(session)
        self.hasher = hasher

    async def get_profile(self, account_id: int) -> Optional[AccountRecord]:
        user = await self.users.get_model(account_id)
        return AccountRecord.from_model(user) if user else None

    async def update_profile(
        self,
        account_id: int,
        username: Optional[str] = None,
        email: Optional[str] = None,
    ) -> Optional[AccountRecord]:
        """
        Change username and/or email.

        Returns:
            Updated profile, or None if the account no longer exists

        Raises:
            ConflictError: Username or email taken by another account
        """
        user = await self.users.get_model(account_id)
        if user is None:
            return None

        changes = {}
        if username:
            changes["username"] = username
        if email:
            changes["email"] = email

        try:
            await self.users.apply_changes(user, **changes)
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            raise ConflictError(DUPLICATE_ACCOUNT_MESSAGE)

        return AccountRecord.from_model(user)

    async def change_password(
        self,
        account_id: int,
        current_password: str,
        new_password: str,
        confirm_password: str,
    ) -> str:
        """
        Replace the password after checking the current one.

        Raises:
            ValidationError: Confirmation does not match
            NotFoundError: Account does not exist
            IncorrectPasswordError: Current password is wrong
        """
        if new_password != confirm_password:
            raise ValidationError("confirm_password: Passwords don't match")

        user = await self.users.get_model(account_id)
        if user is None:
            raise NotFoundError("User")

        if not await self.hasher.verify_async(current_password, user.password_hash):
            raise IncorrectPasswordError()

        password_hash = await self.hasher.hash_async(new_password)
        await self.users.apply_changes(user, password_hash=password_hash)
        await self.session.commit()

        logger.info(f"Password changed for account {account_id}")
        return "Password changed successfully"


class UserService:
    """Generic user CRUD. Results never carry password hashes."""

    def __init__(self, session: AsyncSession, hasher: PasswordHasher):
        self.session = session
        self.users = UserRepository(session)
        self.hasher = hasher

    async def create_user(self, username: str, email: str, password: str) -> AccountRecord:
        password_hash = await self.hasher.hash_async(password)
        try:
            user = await self.users.add(username, email, password_hash)
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            raise ConflictError(DUPLICATE_ACCOUNT_MESSAGE)
        return AccountRecord.from_model(user)

    async def get_user(self, user_id: int) -> Optional[AccountRecord]:
        user = await self.users.get_model(user_id)
        return AccountRecord.from_model(user) if user else None

    async def get_user_by_email(self, email: str) -> Optional[AccountRecord]:
        user = await self.users.get_model_by_email(email)
        return AccountRecord.from_model(user) if user else None

    async def list_users(self) -> list[AccountRecord]:
        return [AccountRecord.from_model(user) for user in await self.users.list_all()]

    async def update_user(
        self,
        user_id: int,
        username: Optional[str] = None,
        email: Optional[str] = None,
        password: Optional[str] = None,
    ) -> Optional[AccountRecord]:
        user = await self.users.get_model(user_id)
        if user is None:
            return None

        changes = {}
        if username:
            changes["username"] = username
        if email:
            changes["email"] = email
        if password:
            changes["password_hash"] = await self.hasher.hash_async(password)

        try:
            await self.users.apply_changes(user, **changes)
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            raise ConflictError(DUPLICATE_ACCOUNT_MESSAGE)

        return AccountRecord.from_model(user)

    async def delete_user(self, user_id: int) -> Optional[int]:
        """
        Returns:
            The deleted id, or None if there was no such user

        Raises:
            ConflictError: The user still owns books
        """
        try:
            deleted = await self.users.delete(user_id)
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            raise ConflictError("User still owns books")

        if not deleted:
            return None

        logger.info(f"Deleted account {user_id}")
        return user_id
