"""
Argon2id password hashing.

Hashes embed their own salt and parameters, so verification only needs the
stored hash and the candidate password.
"""

import logging
from dataclasses import dataclass

from argon2 import PasswordHasher, Type
from argon2.exceptions import InvalidHashError, VerificationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HashParameters:
    """Argon2id cost parameters. ``memory_cost`` is in KiB."""

    time_cost: int = 3
    memory_cost: int = 10240
    parallelism: int = 4

    def hasher(self) -> PasswordHasher:
        return PasswordHasher(
            time_cost=self.time_cost,
            memory_cost=self.memory_cost,
            parallelism=self.parallelism,
            type=Type.ID,
        )


DEFAULT_HASH_PARAMETERS = HashParameters()


def hash_password(
    password: str, parameters: HashParameters = DEFAULT_HASH_PARAMETERS
) -> str:
    """Hash a password with a fresh random salt.

    Args:
        password: Plain text password
        parameters: Argon2id cost parameters

    Returns:
        Encoded Argon2id hash string
    """
    return parameters.hasher().hash(password)


def verify_password(password_hash: str, password: str) -> bool:
    """Verify a password against an encoded Argon2 hash.

    Mismatches and malformed or foreign hashes both return False so that the
    caller cannot tell the two apart.

    Args:
        password_hash: Encoded hash as produced by ``hash_password``
        password: Plain text password

    Returns:
        True if the password matches, False otherwise
    """
    try:
        # The encoded hash carries its own parameters, the hasher's are unused.
        return DEFAULT_HASH_PARAMETERS.hasher().verify(password_hash, password)
    except VerificationError:
        return False
    except (InvalidHashError, ValueError, TypeError):
        logger.debug("verify_password: hash is not a valid Argon2 hash")
        return False
