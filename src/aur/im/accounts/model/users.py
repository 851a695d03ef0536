"""User account data model and repositories.

Provides the SQLAlchemy model for user accounts and the repository interface
the account flows depend on, with a PostgreSQL-backed implementation.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
import logging
from typing import Optional

from sqlalchemy import BigInteger, Boolean, DateTime, Identity, Index, String, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import Mapped, mapped_column

from aur.im.accounts.errors import ConflictError
from aur.im.accounts.model.base import Base, str64, str255

logger = logging.getLogger(__name__)

USERNAME_MAX_LENGTH = 64
EMAIL_MAX_LENGTH = 255


class User(Base):
    """Registered account.

    The numeric ``user_id`` is assigned by the database on insert and doubles
    as the avatar storage key. Username and email are each globally unique.
    """

    __tablename__ = "users"

    user_id: Mapped[int] = mapped_column(BigInteger, Identity(), primary_key=True)
    username: Mapped[str64]
    email: Mapped[str255]
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    is_banned: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_admin: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    last_login: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    __table_args__ = (
        Index("idx_users_username", "username", unique=True),
        Index("idx_users_email", "email", unique=True),
    )


class UserRepository(ABC):
    """
    Storage interface for user accounts used by the account flows.
    """

    @abstractmethod
    async def get_by_id(self, user_id: int) -> Optional[User]:
        pass

    @abstractmethod
    async def get_by_email(self, email: str) -> Optional[User]:
        pass

    @abstractmethod
    async def get_by_username(self, username: str) -> Optional[User]:
        pass

    @abstractmethod
    async def create(self, username: str, email: str, password_hash: str) -> User:
        """
        Insert a new account.

        Raises:
            ConflictError: the username or the email is already registered
        """
        pass

    @abstractmethod
    async def touch_last_login(self, user_id: int, when: datetime) -> None:
        pass


def conflict_from_integrity_error(error: IntegrityError) -> ConflictError:
    """Map a unique index violation on ``users`` to the matching conflict."""
    detail = str(error.orig) if error.orig is not None else str(error)
    if "email" in detail:
        return ConflictError.duplicate_email()
    return ConflictError.duplicate_username()


class SqlUserRepository(UserRepository):
    """
    PostgreSQL-backed user repository.
    """

    def __init__(self, database_session_maker: async_sessionmaker[AsyncSession]):
        self.database_session_maker = database_session_maker

    async def get_by_id(self, user_id: int) -> Optional[User]:
        async with self.database_session_maker() as database_session:
            return await database_session.get(User, user_id)

    async def get_by_email(self, email: str) -> Optional[User]:
        async with self.database_session_maker() as database_session:
            stmt = select(User).where(User.email == email)
            return (await database_session.scalars(stmt)).first()

    async def get_by_username(self, username: str) -> Optional[User]:
        async with self.database_session_maker() as database_session:
            stmt = select(User).where(User.username == username)
            return (await database_session.scalars(stmt)).first()

    async def create(self, username: str, email: str, password_hash: str) -> User:
        now = datetime.now(timezone.utc)
        async with self.database_session_maker() as database_session:
            async with database_session.begin():
                existing_stmt = select(User).where(
                    or_(User.username == username, User.email == email)
                )
                existing: Optional[User] = (
                    await database_session.scalars(existing_stmt)
                ).first()
                if existing is not None:
                    if existing.username == username:
                        raise ConflictError.duplicate_username()
                    raise ConflictError.duplicate_email()

                user = User(
                    username=username,
                    email=email,
                    password_hash=password_hash,
                    is_banned=False,
                    is_admin=False,
                    created_at=now,
                )
                database_session.add(user)

                # The pre-check above races with concurrent registrations; the
                # unique indexes are the final arbiter.
                try:
                    await database_session.flush()
                except IntegrityError as e:
                    logger.info("create: unique index violation: %s", e.orig)
                    raise conflict_from_integrity_error(e)

            return user

    async def touch_last_login(self, user_id: int, when: datetime) -> None:
        async with self.database_session_maker() as database_session:
            async with database_session.begin():
                stmt = (
                    update(User).where(User.user_id == user_id).values(last_login=when)
                )
                await database_session.execute(stmt)
