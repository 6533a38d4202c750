"""
Session Store

Short-lived auth state kept in Redis with native key expiry:
- ``token:<token>``  -> account id, one key per issued session token
- ``otp:<account_id>`` -> current one-time password for that account

Reissuing an OTP simply overwrites the previous one (last writer wins).
Redeeming one is a WATCH/MULTI compare-and-delete.
"""

from typing import Optional

from loguru import logger
from redis.asyncio import Redis
from redis.exceptions import WatchError

from bookshop.security import otp_matches

TOKEN_PREFIX = "token:"
OTP_PREFIX = "otp:"


class SessionStore:
    """
    Thin wrapper around an async Redis client.

    Usage:
        store = SessionStore(Redis.from_url(url, decode_responses=True))
        await store.store_token(token, account_id, ttl_seconds=604800)
        account_id = await store.get_token_account(token)
    """

    def __init__(self, client: Redis):
        """
        Args:
            client: Redis client created with ``decode_responses=True``.
        """
        self.client = client

    # ------------------------------------------------------------------
    # Key/value primitives
    # ------------------------------------------------------------------

    async def set_with_expiry(self, key: str, value: str, ttl_seconds: int) -> None:
        await self.client.set(key, value, ex=ttl_seconds)

    async def get(self, key: str) -> Optional[str]:
        value = await self.client.get(key)
        if isinstance(value, bytes):
            value = value.decode("utf-8")
        return value

    async def delete(self, key: str) -> None:
        await self.client.delete(key)

    async def ping(self) -> bool:
        return bool(await self.client.ping())

    async def close(self) -> None:
        await self.client.aclose()

    # ------------------------------------------------------------------
    # Session tokens
    # ------------------------------------------------------------------

    async def store_token(self, token: str, account_id: int, ttl_seconds: int) -> None:
        await self.set_with_expiry(f"{TOKEN_PREFIX}{token}", str(account_id), ttl_seconds)

    async def get_token_account(self, token: str) -> Optional[int]:
        value = await self.get(f"{TOKEN_PREFIX}{token}")
        if value is None:
            return None
        try:
            return int(value)
        except ValueError:
            logger.warning("Discarding malformed token entry in session store")
            return None

    async def delete_token(self, token: str) -> None:
        await self.delete(f"{TOKEN_PREFIX}{token}")

    # ------------------------------------------------------------------
    # One-time passwords
    # ------------------------------------------------------------------

    async def store_otp(self, account_id: int, otp: str, ttl_seconds: int) -> None:
        await self.set_with_expiry(f"{OTP_PREFIX}{account_id}", otp, ttl_seconds)

    async def get_otp(self, account_id: int) -> Optional[str]:
        return await self.get(f"{OTP_PREFIX}{account_id}")

    async def delete_otp(self, account_id: int) -> None:
        await self.delete(f"{OTP_PREFIX}{account_id}")

    async def consume_otp(self, account_id: int, otp: str) -> bool:
        """
        Delete the stored code only if it matches ``otp``.

        WATCH/MULTI turns the check and the delete into one step, so of
        two concurrent callers presenting the same code exactly one gets
        True. A wrong code leaves the stored one in place.
        """
        key = f"{OTP_PREFIX}{account_id}"
        async with self.client.pipeline(transaction=True) as pipe:
            try:
                await pipe.watch(key)
                stored = await pipe.get(key)
                if isinstance(stored, bytes):
                    stored = stored.decode("utf-8")
                if not otp_matches(stored, otp):
                    return False
                pipe.multi()
                pipe.delete(key)
                (deleted,) = await pipe.execute()
            except WatchError:
                logger.debug(f"Reset code for account {account_id} changed while being consumed")
                return False
        return bool(deleted)
