"""
Auth Service

Registration, login, logout and password reset via one-time code.
Accounts live in the relational store; session tokens and OTPs live in the
session store with a TTL. The two stores are not updated atomically: an
account can be committed and the following token write still fail.
"""

from dataclasses import dataclass
from datetime import timedelta
from typing import Optional, Protocol

from loguru import logger
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from bookshop.errors import (
    ConflictError,
    InvalidCredentialsError,
    InvalidOrExpiredOTPError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from bookshop.security import (
    ALGORITHM,
    ACCESS_TOKEN_EXPIRE_SECONDS,
    PasswordHasher,
    create_access_token,
    decode_access_token,
    generate_otp,
)
from bookshop.storage.session_store import SessionStore
from bookshop.storage.user_repository import AccountRecord, UserRepository

FORGOT_PASSWORD_MESSAGE = "If an account exists with this email, an OTP has been sent"
OTP_EXPIRE_SECONDS = 10 * 60


class OTPMailer(Protocol):
    async def send_otp(self, email: str, otp: str) -> None: ...


@dataclass
class AuthResult:
    """Account plus a freshly issued session token."""

    user: AccountRecord
    token: str


class AuthService:
    """Service owning the account/session lifecycle."""

    def __init__(
        self,
        session: AsyncSession,
        session_store: SessionStore,
        hasher: PasswordHasher,
        secret_key: str,
        mailer: Optional[OTPMailer] = None,
        algorithm: str = ALGORITHM,
        token_ttl_seconds: int = ACCESS_TOKEN_EXPIRE_SECONDS,
        otp_ttl_seconds: int = OTP_EXPIRE_SECONDS,
    ):
        """
        Initialize service.

        Args:
            session: Database session for the current unit of work
            session_store: Redis-backed token/OTP store
            hasher: Password hasher
            secret_key: JWT signing secret
            mailer: OTP delivery; without one, codes are stored but not sent
            algorithm: JWT algorithm
            token_ttl_seconds: Lifetime of session tokens
            otp_ttl_seconds: Lifetime of password reset codes
        """
        self.session = session
        self.users = UserRepository(session)
        self.session_store = session_store
        self.hasher = hasher
        self.secret_key = secret_key
        self.mailer = mailer
        self.algorithm = algorithm
        self.token_ttl_seconds = token_ttl_seconds
        self.otp_ttl_seconds = otp_ttl_seconds

    async def _issue_token(self, account_id: int) -> str:
        token = create_access_token(
            account_id,
            self.secret_key,
            algorithm=self.algorithm,
            expires_delta=timedelta(seconds=self.token_ttl_seconds),
        )
        await self.session_store.store_token(token, account_id, self.token_ttl_seconds)
        return token

    async def register(self, username: str, email: str, password: str) -> AuthResult:
        """
        Create an account and sign it in.

        Raises:
            ConflictError: Username or email already in use
        """
        existing = await self.users.find_by_username_or_email(username, email)
        if existing is not None:
            raise ConflictError("Username or email already exists")

        password_hash = await self.hasher.hash_async(password)
        try:
            user = await self.users.add(username, email, password_hash)
            await self.session.commit()
        except IntegrityError:
            # Lost a race with a concurrent registration
            await self.session.rollback()
            raise ConflictError("Username or email already exists")

        logger.info(f"Registered account {user.id} ({username})")

        token = await self._issue_token(user.id)
        return AuthResult(user=AccountRecord.from_model(user), token=token)

    async def login(self, username_or_email: str, password: str) -> AuthResult:
        """
        Sign in with a username or an email.

        Raises:
            InvalidCredentialsError: Unknown identifier or wrong password
        """
        user = await self.users.find_by_username_or_email(username_or_email)
        password_hash = user.password_hash if user is not None else None

        if not await self.hasher.verify_async(password, password_hash):
            raise InvalidCredentialsError()

        token = await self._issue_token(user.id)
        return AuthResult(user=AccountRecord.from_model(user), token=token)

    async def logout(self, token: str) -> str:
        """Revoke a token. Unknown tokens are fine."""
        await self.session_store.delete_token(token)
        return "Logged out successfully"

    async def authenticate(self, token: Optional[str]) -> int:
        """
        Resolve a bearer token to an account id.

        The token must verify on its own and still be recorded in the
        session store for the same account.

        Raises:
            UnauthorizedError: For every kind of failure
        """
        if not token:
            raise UnauthorizedError()

        claimed_id = decode_access_token(token, self.secret_key, algorithm=self.algorithm)
        if claimed_id is None:
            raise UnauthorizedError()

        stored_id = await self.session_store.get_token_account(token)
        if stored_id is None or stored_id != claimed_id:
            logger.debug("Rejected session token")
            raise UnauthorizedError()

        return claimed_id

    async def forgot_password(self, email: str) -> str:
        """
        Issue a reset code for the account behind ``email``.

        Always answers with the same message so account existence does
        not leak.
        """
        user = await self.users.get_model_by_email(email)
        if user is None:
            return FORGOT_PASSWORD_MESSAGE

        otp = generate_otp()
        await self.session_store.store_otp(user.id, otp, self.otp_ttl_seconds)

        if self.mailer is None:
            logger.warning(f"No mailer configured; reset code for account {user.id} not sent")
            return FORGOT_PASSWORD_MESSAGE

        try:
            await self.mailer.send_otp(user.email, otp)
        except Exception as e:
            # Code stays valid; the user can ask again or get it another way
            logger.error(f"Failed to deliver reset code to account {user.id}: {e}")

        return FORGOT_PASSWORD_MESSAGE

    async def reset_password(
        self,
        email: str,
        otp: str,
        new_password: str,
        confirm_password: str,
    ) -> str:
        """
        Set a new password using a live reset code. The code is consumed.

        Raises:
            ValidationError: Passwords do not match
            NotFoundError: No account with this email
            InvalidOrExpiredOTPError: No live code, or a different one
        """
        if new_password != confirm_password:
            raise ValidationError("confirm_password: Passwords don't match")

        user = await self.users.get_model_by_email(email)
        if user is None:
            raise NotFoundError("User")

        # Consumed before hashing so a code redeems at most one reset
        if not await self.session_store.consume_otp(user.id, otp):
            raise InvalidOrExpiredOTPError()

        password_hash = await self.hasher.hash_async(new_password)
        await self.users.apply_changes(user, password_hash=password_hash)
        await self.session.commit()

        logger.info(f"Password reset for account {user.id}")

        return "Password reset successfully"
