"""
Session token issue and validation.

Session tokens are compact HS256-signed JWTs carrying the account's username as
``sub``, its numeric id (as a string) as ``uid`` and a unique ``jti``. A single
symmetric key, derived from the configured secret when the codec is built,
signs and verifies every token. There is no key rotation and no revocation.
"""

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jwcrypto import jwk, jws, jwt
from jwcrypto.common import JWException, base64url_decode, base64url_encode
from ulid import ULID

from aur.im.accounts.errors import AuthError

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
DEFAULT_TOKEN_LIFETIME = timedelta(days=30)
MINIMUM_SECRET_LENGTH = 32


@dataclass(frozen=True)
class SessionClaims:
    """
    Claims carried by a validated session token.

    Attributes:
        subject: Username of the account the token was issued to
        owner_id: String form of the account's numeric identifier
        token_id: Unique identifier of this token
        issued_at: Issue time (UTC, second precision)
        expires_at: Expiry time (UTC, second precision)
    """

    subject: str
    owner_id: str
    token_id: str
    issued_at: datetime
    expires_at: datetime


def create_signing_key(secret: str) -> jwk.JWK:
    """Build the symmetric HS256 key for a configured secret string."""
    if len(secret) < MINIMUM_SECRET_LENGTH:
        raise ValueError(
            f"token secret must be at least {MINIMUM_SECRET_LENGTH} characters"
        )
    return jwk.JWK(kty="oct", k=base64url_encode(secret.encode("utf-8")))


def create_session_header() -> Dict[str, Any]:
    return {"alg": ALGORITHM, "typ": "JWT"}


def create_session_claims(
    subject: str,
    owner_id: str,
    issued_at: datetime,
    lifetime: timedelta = DEFAULT_TOKEN_LIFETIME,
) -> Dict[str, Any]:
    """Create session token claims with a fresh token id."""
    issued_at_ts = int(issued_at.timestamp())
    return {
        "sub": subject,
        "uid": owner_id,
        "jti": str(ULID()),
        "iat": issued_at_ts,
        "exp": issued_at_ts + int(lifetime.total_seconds()),
    }


class TokenCodec:
    """
    Issues and validates signed, time-limited session tokens.

    The codec is built once at startup and is read-only afterwards, so a single
    instance is shared by every request.

    Args:
        secret: Signing secret, at least 32 characters
        lifetime: Token lifetime, 30 days by default
    """

    def __init__(
        self, secret: str, lifetime: timedelta = DEFAULT_TOKEN_LIFETIME
    ) -> None:
        self._key = create_signing_key(secret)
        self.lifetime = lifetime

    def issue(
        self, subject: str, owner_id: str, issued_at: Optional[datetime] = None
    ) -> str:
        """Issue a signed session token.

        Args:
            subject: Username to embed as ``sub``
            owner_id: String form of the numeric account id
            issued_at: Issue time, defaults to the current UTC time

        Returns:
            str: Compact serialized JWT
        """
        if issued_at is None:
            issued_at = datetime.now(timezone.utc)

        token = jwt.JWT(
            header=create_session_header(),
            claims=create_session_claims(subject, owner_id, issued_at, self.lifetime),
        )
        token.make_signed_token(self._key)
        return token.serialize()

    def validate(self, token: str, now: Optional[datetime] = None) -> SessionClaims:
        """Validate a session token and return its claims.

        The signature is verified before the expiry is checked, so a forged
        token is reported as a bad signature even when it is also expired.

        Raises:
            AuthError: ``malformed_token``, ``unsupported_variant``,
                ``bad_signature`` or ``token_expired``
        """
        if not isinstance(token, str) or len(token) == 0:
            raise AuthError.malformed_token()

        parts = token.split(".")
        if len(parts) == 5:
            # Compact JWE, encrypted tokens are never issued by this service.
            raise AuthError.unsupported_variant()
        if len(parts) != 3 or not parts[0] or not parts[1]:
            raise AuthError.malformed_token()

        try:
            header = json.loads(base64url_decode(parts[0]))
        except (ValueError, TypeError):
            raise AuthError.malformed_token()

        if not isinstance(header, dict) or "alg" not in header:
            raise AuthError.malformed_token()
        if header["alg"] != ALGORITHM:
            raise AuthError.unsupported_variant()

        try:
            verified = jwt.JWT(
                jwt=token,
                key=self._key,
                algs=[ALGORITHM],
                check_claims=False,
                expected_type="JWS",
            )
        except jws.InvalidJWSSignature:
            raise AuthError.bad_signature()
        except (JWException, ValueError, TypeError) as e:
            logger.debug("validate: unable to deserialize token: %s", e)
            raise AuthError.malformed_token()

        claims = _parse_claims(verified.claims)

        if now is None:
            now = datetime.now(timezone.utc)
        if now > claims.expires_at:
            raise AuthError.token_expired()

        return claims

    def subject_of(self, token: str, now: Optional[datetime] = None) -> str:
        """Return the ``sub`` claim of a valid token."""
        return self.validate(token, now=now).subject

    def revoke(self, token: str) -> None:
        """Revocation is not implemented; tokens stay valid until they expire."""
        return None


def _parse_claims(serialized_claims: str) -> SessionClaims:
    try:
        claims: Dict[str, Any] = json.loads(serialized_claims)
    except (ValueError, TypeError):
        raise AuthError.malformed_token()

    if not isinstance(claims, dict):
        raise AuthError.malformed_token()

    subject = claims.get("sub")
    owner_id = claims.get("uid")
    token_id = claims.get("jti")
    issued_at = claims.get("iat")
    expires_at = claims.get("exp")

    if not all(isinstance(v, str) for v in (subject, owner_id, token_id)):
        raise AuthError.malformed_token()
    if not all(
        isinstance(v, int) and not isinstance(v, bool) for v in (issued_at, expires_at)
    ):
        raise AuthError.malformed_token()

    try:
        issued_at_dt = datetime.fromtimestamp(issued_at, timezone.utc)
        expires_at_dt = datetime.fromtimestamp(expires_at, timezone.utc)
    except (OverflowError, ValueError, OSError):
        raise AuthError.malformed_token()

    return SessionClaims(
        subject=subject,
        owner_id=owner_id,
        token_id=token_id,
        issued_at=issued_at_dt,
        expires_at=expires_at_dt,
    )
