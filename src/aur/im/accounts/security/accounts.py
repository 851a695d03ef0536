"""
Registration, login and per-device session authentication.

``AccountService`` ties the credential hashing, token codec, session store and
user repository together. Each successful login or registration mints a new
session token and a random client id, and records the token as the current
one for that (username, client id) pair. A later login from the same client id
overwrites the record, so the older token stops authenticating.
"""

import asyncio
import logging
import secrets
import string
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from aur.im.accounts.errors import AuthError, ValidationError
from aur.im.accounts.model.users import (
    EMAIL_MAX_LENGTH,
    USERNAME_MAX_LENGTH,
    User,
    UserRepository,
)
from aur.im.accounts.security.jwt import SessionClaims, TokenCodec
from aur.im.accounts.security.password import (
    DEFAULT_HASH_PARAMETERS,
    HashParameters,
    hash_password,
    verify_password,
)
from aur.im.accounts.store.sessions import SessionStore

logger = logging.getLogger(__name__)

CLIENT_ID_LENGTH = 64
CLIENT_ID_ALPHABET = string.ascii_letters + string.digits

INPUT_TYPE_EMAIL = "email"
INPUT_TYPE_USER_ID = "userid"


def generate_client_id(length: int = CLIENT_ID_LENGTH) -> str:
    return "".join(secrets.choice(CLIENT_ID_ALPHABET) for _ in range(length))


@dataclass(frozen=True)
class IssuedSession:
    token: str
    client_id: str


class AccountService:
    """
    Account flows used by the HTTP handlers.

    Args:
        users: Account storage
        sessions: Per-device token store
        tokens: Session token codec
        hash_parameters: Argon2id parameters for new password hashes
    """

    def __init__(
        self,
        users: UserRepository,
        sessions: SessionStore,
        tokens: TokenCodec,
        hash_parameters: HashParameters = DEFAULT_HASH_PARAMETERS,
    ) -> None:
        self.users = users
        self.sessions = sessions
        self.tokens = tokens
        self.hash_parameters = hash_parameters

    async def register(self, username: str, email: str, password: str) -> IssuedSession:
        """
        Create an account and open a session for it.

        Raises:
            ValidationError: a field is missing or too long
            ConflictError: the username or the email is already registered
        """
        missing = [
            name
            for name, value in (
                ("username", username),
                ("email", email),
                ("password", password),
            )
            if not value
        ]
        if missing:
            raise ValidationError.missing_fields(*missing)
        if len(username) > USERNAME_MAX_LENGTH:
            raise ValidationError.invalid_field("username")
        if len(email) > EMAIL_MAX_LENGTH:
            raise ValidationError.invalid_field("email")

        password_hash = await asyncio.to_thread(
            hash_password, password, self.hash_parameters
        )
        user = await self.users.create(username, email, password_hash)
        logger.info("Registered account %s as %s", user.username, user.user_id)

        return await self._open_session(user)

    async def login(self, input_type: str, input: str, password: str) -> IssuedSession:
        """
        Verify credentials and open a new session.

        ``input_type`` selects how ``input`` identifies the account: ``email``
        or ``userid``. Unknown accounts and wrong passwords produce the same
        error, and a ban is only disclosed after the password is verified.
        Hashing runs in a worker thread.

        Raises:
            ValidationError: missing fields, unknown input type or a
                non-numeric user id
            AuthError: invalid credentials or a banned account
        """
        missing = [
            name
            for name, value in (
                ("inputType", input_type),
                ("input", input),
                ("password", password),
            )
            if not value
        ]
        if missing:
            raise ValidationError.missing_fields(*missing)

        user: Optional[User]
        if input_type == INPUT_TYPE_EMAIL:
            user = await self.users.get_by_email(input)
        elif input_type == INPUT_TYPE_USER_ID:
            try:
                user_id = int(input)
            except ValueError:
                raise ValidationError.invalid_field("input")
            user = await self.users.get_by_id(user_id)
        else:
            raise ValidationError.invalid_field("inputType")

        if user is None:
            logger.info("login: no account for %s %s", input_type, input)
            raise AuthError.invalid_credentials()
        if not await asyncio.to_thread(verify_password, user.password_hash, password):
            raise AuthError.invalid_credentials()
        # Only reported once the password matched.
        if user.is_banned:
            logger.info("login: account %s is banned", user.user_id)
            raise AuthError.account_banned()

        await self.users.touch_last_login(user.user_id, datetime.now(timezone.utc))
        return await self._open_session(user)

    async def authenticate(self, token: str, device_id: str) -> SessionClaims:
        """
        Validate a token and check it is the current one for the device.

        Raises:
            AuthError: the token is invalid or has been superseded
        """
        if not token or not device_id:
            raise AuthError.malformed_token()

        claims = self.tokens.validate(token)
        if not await self.sessions.is_current(claims.subject, device_id, token):
            raise AuthError.superseded_token()
        return claims

    async def authenticated_user(self, token: str, device_id: str) -> User:
        """
        Authenticate a device session and load the account it belongs to.

        Raises:
            AuthError: the token is invalid, superseded, or its account no
                longer exists
        """
        claims = await self.authenticate(token, device_id)
        user = await self.users.get_by_username(claims.subject)
        if user is None:
            logger.warning("Session for unknown account %s", claims.subject)
            raise AuthError.invalid_credentials()
        return user

    async def _open_session(self, user: User) -> IssuedSession:
        token = self.tokens.issue(user.username, str(user.user_id))
        client_id = generate_client_id()
        await self.sessions.record(user.username, client_id, token)
        return IssuedSession(token=token, client_id=client_id)
