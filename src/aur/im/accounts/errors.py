"""
Error kinds raised by the account core.

Every failure the core reports is an ``AccountError`` carrying a coarse ``kind``
and a short machine-oriented ``reason``. Callers branch on those two attributes
instead of on exception classes; the HTTP layer maps ``kind`` to a status code
and echoes ``reason`` to the client. Anything that is not an ``AccountError`` is
flattened to a generic internal error at the boundary.

The subclasses expose static constructors in the same style as the rest of the
service, so a raise site reads as ``raise AuthError.token_expired()``.
"""

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    AUTH = "auth"
    CONFLICT = "conflict"
    IMAGE = "image"
    STORAGE = "storage"
    INVALID_IDENTIFIER = "invalid_identifier"
    INTERNAL = "internal"


class AccountError(Exception):
    """
    Base class for all catalogued account failures.

    Attributes:
        kind: The coarse error category used for status mapping.
        reason: Short machine-oriented reason string, safe to return to callers.
    """

    kind: ErrorKind = ErrorKind.INTERNAL

    def __init__(self, reason: str, message: Optional[str] = None) -> None:
        self.reason = reason
        super().__init__(message or reason)


class ValidationError(AccountError):
    """Missing or malformed request fields."""

    kind = ErrorKind.VALIDATION

    @staticmethod
    def missing_fields(*names: str) -> "ValidationError":
        return ValidationError(
            "missing_fields", f"error-validation-1000 Missing fields: {', '.join(names)}"
        )

    @staticmethod
    def invalid_field(name: str) -> "ValidationError":
        return ValidationError(
            f"invalid_{name}", f"error-validation-1001 Invalid value for {name}"
        )


class AuthError(AccountError):
    """Authentication failures. Never retried, surfaced with a generic reason."""

    kind = ErrorKind.AUTH

    INVALID_CREDENTIALS = "invalid_credentials"
    ACCOUNT_BANNED = "account_banned"
    TOKEN_EXPIRED = "token_expired"
    BAD_SIGNATURE = "bad_signature"
    MALFORMED_TOKEN = "malformed_token"
    UNSUPPORTED_VARIANT = "unsupported_variant"
    SUPERSEDED_TOKEN = "superseded_token"

    @staticmethod
    def invalid_credentials() -> "AuthError":
        return AuthError(
            AuthError.INVALID_CREDENTIALS, "error-auth-1000 Invalid credentials"
        )

    @staticmethod
    def account_banned() -> "AuthError":
        return AuthError(AuthError.ACCOUNT_BANNED, "error-auth-1001 Account banned")

    @staticmethod
    def token_expired() -> "AuthError":
        return AuthError(AuthError.TOKEN_EXPIRED, "error-auth-1002 Token has expired")

    @staticmethod
    def bad_signature() -> "AuthError":
        return AuthError(
            AuthError.BAD_SIGNATURE, "error-auth-1003 Token signature is invalid"
        )

    @staticmethod
    def malformed_token() -> "AuthError":
        return AuthError(
            AuthError.MALFORMED_TOKEN, "error-auth-1004 Token could not be parsed"
        )

    @staticmethod
    def unsupported_variant() -> "AuthError":
        return AuthError(
            AuthError.UNSUPPORTED_VARIANT,
            "error-auth-1005 Token uses an unsupported encoding",
        )

    @staticmethod
    def superseded_token() -> "AuthError":
        return AuthError(
            AuthError.SUPERSEDED_TOKEN,
            "error-auth-1006 Token is not the current token for this device",
        )


class ConflictError(AccountError):
    """Uniqueness violations on registration."""

    kind = ErrorKind.CONFLICT

    DUPLICATE_USERNAME = "duplicate_username"
    DUPLICATE_EMAIL = "duplicate_email"

    @staticmethod
    def duplicate_username() -> "ConflictError":
        return ConflictError(
            ConflictError.DUPLICATE_USERNAME, "error-conflict-1000 Username is taken"
        )

    @staticmethod
    def duplicate_email() -> "ConflictError":
        return ConflictError(
            ConflictError.DUPLICATE_EMAIL, "error-conflict-1001 Email is in use"
        )


class ImageError(AccountError):
    """Image detection, decoding and encoding failures."""

    kind = ErrorKind.IMAGE

    UNRECOGNIZED_FORMAT = "unrecognized_format"
    UNSUPPORTED_FORMAT = "unsupported_format"
    DECODE_ERROR = "decode_error"
    ENCODE_ERROR = "encode_error"
    WRITER_UNAVAILABLE = "writer_unavailable"

    @staticmethod
    def unrecognized_format() -> "ImageError":
        return ImageError(
            ImageError.UNRECOGNIZED_FORMAT, "error-image-1000 Unrecognized image format"
        )

    @staticmethod
    def unsupported_format(name: str) -> "ImageError":
        return ImageError(
            ImageError.UNSUPPORTED_FORMAT, f"error-image-1001 No decoder for {name}"
        )

    @staticmethod
    def decode_error(msg: str = "") -> "ImageError":
        return ImageError(
            ImageError.DECODE_ERROR, f"error-image-1002 Failed to decode image: {msg}"
        )

    @staticmethod
    def encode_error(msg: str = "") -> "ImageError":
        return ImageError(
            ImageError.ENCODE_ERROR, f"error-image-1003 Failed to encode image: {msg}"
        )

    @staticmethod
    def writer_unavailable() -> "ImageError":
        return ImageError(
            ImageError.WRITER_UNAVAILABLE, "error-image-1004 No WebP writer available"
        )


class StorageError(AccountError):
    """Filesystem delete/read/write failures."""

    kind = ErrorKind.STORAGE

    @staticmethod
    def delete_failed(path: str) -> "StorageError":
        return StorageError("storage_error", f"error-storage-1000 Failed to delete {path}")

    @staticmethod
    def write_failed(path: str) -> "StorageError":
        return StorageError("storage_error", f"error-storage-1001 Failed to write {path}")

    @staticmethod
    def read_failed(path: str) -> "StorageError":
        return StorageError("storage_error", f"error-storage-1002 Failed to read {path}")


class InvalidIdentifier(AccountError):
    """Owner id contains characters outside the safe filename set."""

    kind = ErrorKind.INVALID_IDENTIFIER

    @staticmethod
    def owner_id() -> "InvalidIdentifier":
        return InvalidIdentifier(
            "invalid_identifier", "error-identifier-1000 Invalid owner id format"
        )
