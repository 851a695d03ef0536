"""
Per-user device sessions.

Each user has one Redis hash, ``userLoginInfo:<subject>``, mapping a device
(client) id to the last token issued for that device. Entries are written on
login and registration and removed one device at a time. The hash only expires
when ``expire_after`` is called on it explicitly.

Callers must overwrite a device's entry after issuing it a new token and must
compare any presented token with the stored value for that exact device before
honouring a privileged request; ``is_current`` performs that comparison.
"""

import hmac
import logging
from typing import Any, Dict, Mapping, Optional

from aur.im.accounts.store import normalize_redis_string

logger = logging.getLogger(__name__)

SESSION_KEY_PREFIX = "userLoginInfo"


def session_key(subject: str) -> str:
    return f"{SESSION_KEY_PREFIX}:{subject}"


class SessionStore:
    """
    Redis-backed mapping of (subject, device id) to the current session token.
    """

    def __init__(self, redis_client: Any):
        self.redis_client = redis_client

    async def record(self, subject: str, device_id: str, token: str) -> None:
        """
        Insert or overwrite the token for one device.
        """
        await self.redis_client.hset(session_key(subject), device_id, token)

    async def record_many(self, subject: str, device_tokens: Mapping[str, str]) -> None:
        """
        Insert or overwrite tokens for several devices at once.
        """
        if not device_tokens:
            return
        await self.redis_client.hset(session_key(subject), mapping=dict(device_tokens))

    async def lookup(self, subject: str, device_id: str) -> Optional[str]:
        """
        Get the stored token for a device, or None if the device has none.
        """
        value = await self.redis_client.hget(session_key(subject), device_id)
        return normalize_redis_string(value)

    async def all(self, subject: str) -> Dict[str, str]:
        """
        Get every device id and token recorded for a subject.
        """
        entries = await self.redis_client.hgetall(session_key(subject))
        return {
            normalize_redis_string(device_id): normalize_redis_string(token)
            for device_id, token in entries.items()
        }

    async def forget(self, subject: str, device_id: str) -> None:
        """
        Remove the entry for one device.
        """
        await self.redis_client.hdel(session_key(subject), device_id)

    async def expire_after(self, subject: str, seconds: int) -> None:
        """
        Set a time-to-live on the subject's whole session hash.
        """
        await self.redis_client.expire(session_key(subject), seconds)

    async def is_current(self, subject: str, device_id: str, token: str) -> bool:
        """
        Check that a presented token is the one stored for that device.
        """
        stored = await self.lookup(subject, device_id)
        if stored is None:
            logger.debug("No session recorded for %s on device %s", subject, device_id)
            return False
        return hmac.compare_digest(stored.encode(), token.encode())
