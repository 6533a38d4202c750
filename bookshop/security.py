"""
Password hashing, session tokens and one-time codes.

bcrypt (through passlib) for passwords, HS256 JWTs (python-jose) for
session tokens.
"""

import asyncio
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from jose import JWTError, jwt
from passlib.context import CryptContext

ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_SECONDS = 7 * 24 * 60 * 60
OTP_DIGITS = 6


class PasswordHasher:
    """Salted bcrypt hashing with a configurable cost factor."""

    def __init__(self, rounds: int = 10):
        self.context = CryptContext(
            schemes=["bcrypt"],
            deprecated="auto",
            bcrypt__rounds=rounds,
        )

    def hash(self, password: str) -> str:
        return self.context.hash(password)

    def verify(self, password: str, password_hash: str) -> bool:
        return self.context.verify(password, password_hash)

    def dummy_verify(self) -> None:
        """Burn the same time as a real verification."""
        self.context.dummy_verify()

    # bcrypt costs tens of milliseconds; keep it off the event loop.

    async def hash_async(self, password: str) -> str:
        return await asyncio.to_thread(self.hash, password)

    async def verify_async(self, password: str, password_hash: Optional[str]) -> bool:
        if password_hash is None:
            await asyncio.to_thread(self.dummy_verify)
            return False
        return await asyncio.to_thread(self.verify, password, password_hash)


def create_access_token(
    account_id: int,
    secret_key: str,
    algorithm: str = ALGORITHM,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """
    Mint a signed session token for an account.

    A random nonce goes into every token, so two tokens issued for the same
    account in the same second still differ.
    """
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(seconds=ACCESS_TOKEN_EXPIRE_SECONDS))
    claims = {
        "sub": str(account_id),
        "nonce": secrets.token_urlsafe(16),
        "iat": now,
        "exp": expire,
    }
    return jwt.encode(claims, secret_key, algorithm=algorithm)


def decode_access_token(
    token: str,
    secret_key: str,
    algorithm: str = ALGORITHM,
) -> Optional[int]:
    """
    Verify a token's signature and expiry and return its account id.

    Returns None for anything that does not check out.
    """
    try:
        payload: dict[str, Any] = jwt.decode(token, secret_key, algorithms=[algorithm])
    except JWTError:
        return None

    subject = payload.get("sub")
    if subject is None:
        return None
    try:
        return int(subject)
    except (TypeError, ValueError):
        return None


def generate_otp() -> str:
    """Random zero-padded 6-digit code."""
    return f"{secrets.randbelow(10 ** OTP_DIGITS):0{OTP_DIGITS}d}"


def otp_matches(expected: Optional[str], supplied: str) -> bool:
    if not expected:
        return False
    return secrets.compare_digest(expected.encode(), supplied.encode())
