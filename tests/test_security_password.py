"""
Unit tests for aur.im.accounts.security.password
"""

from argon2 import PasswordHasher, Type, extract_parameters

from aur.im.accounts.security.password import (
    DEFAULT_HASH_PARAMETERS,
    HashParameters,
    hash_password,
    verify_password,
)
from tests.conftest import FAST_HASH_PARAMETERS


class TestHashPassword:
    """Test suite for password hashing."""

    def test_default_parameters(self):
        """Default parameters match the production cost settings."""
        assert DEFAULT_HASH_PARAMETERS == HashParameters(
            time_cost=3, memory_cost=10240, parallelism=4
        )

    def test_hash_embeds_argon2id_parameters(self):
        """The encoded hash carries the algorithm variant and costs it was made with."""
        password_hash = hash_password("correct horse")
        params = extract_parameters(password_hash)

        assert password_hash.startswith("$argon2id$")
        assert params.type == Type.ID
        assert params.time_cost == 3
        assert params.memory_cost == 10240
        assert params.parallelism == 4

    def test_hash_is_salted(self):
        """Hashing the same password twice yields different strings that both verify."""
        first = hash_password("p1", FAST_HASH_PARAMETERS)
        second = hash_password("p1", FAST_HASH_PARAMETERS)

        assert first != second
        assert verify_password(first, "p1")
        assert verify_password(second, "p1")


class TestVerifyPassword:
    """Test suite for password verification."""

    def test_round_trip(self):
        password_hash = hash_password("s3cret!", FAST_HASH_PARAMETERS)
        assert verify_password(password_hash, "s3cret!") is True

    def test_wrong_password(self):
        password_hash = hash_password("s3cret!", FAST_HASH_PARAMETERS)
        assert verify_password(password_hash, "s3cret?") is False
        assert verify_password(password_hash, "") is False

    def test_unicode_password(self):
        password_hash = hash_password("пароль-密码", FAST_HASH_PARAMETERS)
        assert verify_password(password_hash, "пароль-密码") is True

    def test_verifies_hash_made_with_other_parameters(self):
        """Verification reads the parameters from the hash, not the defaults."""
        password_hash = PasswordHasher(
            time_cost=2, memory_cost=16, parallelism=2, type=Type.ID
        ).hash("p1")
        assert verify_password(password_hash, "p1") is True

    def test_malformed_hashes_return_false(self):
        """Malformed or foreign hashes are indistinguishable from a mismatch."""
        for bad_hash in (
            "",
            "not-a-hash",
            "$argon2id$v=19$m=10240,t=3,p=4$garbage",
            "$2b$12$abcdefghijklmnopqrstuuvwxyzABCDEFGHIJKLMNOPQRSTUVWX",
        ):
            assert verify_password(bad_hash, "p1") is False
