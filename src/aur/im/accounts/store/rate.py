"""
Ephemeral per-key verification codes and request counters.

A ``RateCounter`` wraps one Redis hash whose fields are client keys (IP
addresses). The time-to-live is set on the whole hash, not on individual
fields: touching any key restarts the window for every key in the collection.
"""

import logging
import secrets
import string
from typing import Any, Optional

from aur.im.accounts.store import normalize_redis_string

logger = logging.getLogger(__name__)

CAPTCHA_COLLECTION = "captchaRecord"
REQUEST_COUNT_COLLECTION = "countOfAccountTypeOperationRequests"

DEFAULT_TTL_SECONDS = 120
DEFAULT_CODE_LENGTH = 4
CODE_ALPHABET = string.ascii_lowercase + string.digits


def generate_code(length: int = DEFAULT_CODE_LENGTH) -> str:
    """Generate a random lowercase alphanumeric code."""
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(length))


class RateCounter:
    """
    Redis hash of short-lived per-key codes or counters.

    Args:
        redis_client: Async Redis client
        collection: Name of the Redis hash
        ttl_seconds: Collection-wide time-to-live
        code_length: Length of codes minted by ``issue_code``
    """

    def __init__(
        self,
        redis_client: Any,
        collection: str,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        code_length: int = DEFAULT_CODE_LENGTH,
    ):
        self.redis_client = redis_client
        self.collection = collection
        self.ttl_seconds = ttl_seconds
        self.code_length = code_length

    async def has_entry(self, key: str) -> bool:
        return bool(await self.redis_client.hexists(self.collection, key))

    async def issue_code(self, key: str) -> str:
        """
        Mint a code for a key and arm the collection TTL if it has none.
        """
        code = generate_code(self.code_length)
        await self.redis_client.hset(self.collection, key, code)

        # -1 means the hash exists without an expiry.
        if await self.redis_client.ttl(self.collection) < 0:
            await self.redis_client.expire(self.collection, self.ttl_seconds)

        logger.debug("Issued code in %s for %s", self.collection, key)
        return code

    async def read_entry(self, key: str) -> Optional[str]:
        value = await self.redis_client.hget(self.collection, key)
        return normalize_redis_string(value)

    async def increment(self, key: str) -> int:
        """
        Increment the counter stored for a key and re-arm the collection TTL.

        Absent or unparsable values count as zero. The read and the write are
        separate commands; concurrent increments for one key may be lost.
        """
        current = await self.read_entry(key)
        try:
            count = int(current) if current is not None else 0
        except ValueError:
            count = 0

        count += 1
        await self.redis_client.hset(self.collection, key, str(count))
        await self.redis_client.expire(self.collection, self.ttl_seconds)
        return count

    async def forget(self, key: str) -> None:
        await self.redis_client.hdel(self.collection, key)
