"""
Key-Value Stores

Redis-backed state that the account service keeps outside of the database.

Key Components:
- sessions.py: per-user mapping of device id to the current session token
- rate.py: short-lived per-IP verification codes and request counters

Both modules use Redis hashes and expire whole hashes rather than single fields.
"""

from typing import Any, Optional


def normalize_redis_string(value: Any) -> Optional[str]:
    """
    Normalize a Redis value to string, handling bytes conversion.

    Clients are created with and without ``decode_responses``, so values may
    arrive as either ``bytes`` or ``str``.
    """
    if value is None:
        return None
    if isinstance(value, bytes):
        return value.decode()
    return str(value)
