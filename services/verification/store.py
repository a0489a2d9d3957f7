"""Persistence boundary for user verification state.

Each write is a single UPDATE ... RETURNING statement so concurrent callers
for the same email are serialized by the database, never by this process.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, List

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import func

from db.models import User
from .errors import DuplicateRecord, NotFound, PersistenceError
from .models import UserIdentity

logger = logging.getLogger(__name__)


class UserRecordStore:
    """Reads and atomic updates against the users table"""

    def __init__(self, session_maker):
        self._session_maker = session_maker

    @asynccontextmanager
    async def _transaction(self) -> AsyncIterator[AsyncSession]:
        try:
            async with self._session_maker() as session:
                async with session.begin():
                    yield session
        except IntegrityError as e:
            logger.warning(f"User store constraint violation: {e.orig}")
            raise DuplicateRecord(f"Duplicate record: {e.orig}") from e
        except SQLAlchemyError as e:
            logger.error(f"User store error: {e}")
            raise PersistenceError(f"Database error: {e}") from e

    async def find_by_email(self, email: str) -> UserIdentity:
        async with self._transaction() as session:
            result = await session.execute(select(User).where(User.email == email))
            user = result.scalar_one_or_none()
            if user is None:
                raise NotFound(f"User not found: {email}")
            return UserIdentity.from_row(user)

    async def find_by_local_id(self, local_id: int) -> UserIdentity:
        async with self._transaction() as session:
            user = await session.get(User, local_id)
            if user is None:
                raise NotFound(f"User not found: {local_id}")
            return UserIdentity.from_row(user)

    async def create_user(
        self,
        *,
        full_name: str,
        username: str,
        email: str,
        password_hash: str,
    ) -> UserIdentity:
        """
        Insert the local record at registration; starts unverified with no remote id.

        Raises DuplicateRecord when the email is already taken.
        """
        async with self._transaction() as session:
            user = User(
                full_name=full_name,
                username=username,
                email=email,
                password=password_hash,
                email_verified=False,
            )
            session.add(user)
            await session.flush()
            await session.refresh(user)
            logger.info(f"Created local user {user.id} for {email}")
            return UserIdentity.from_row(user)

    async def set_remote_id(self, local_id: int, remote_id: str) -> UserIdentity:
        """
        Link a local user to its provider account.

        Setting the value already stored is a no-op success. A different
        value than the one stored raises PersistenceError.
        """
        async with self._transaction() as session:
            result = await session.execute(
                update(User)
                .where(User.id == local_id, User.remote_provider_id.is_(None))
                .values(remote_provider_id=remote_id, updated_at=func.now())
                .returning(User)
                .execution_options(synchronize_session=False)
            )
            user = result.scalar_one_or_none()
            if user is not None:
                logger.info(f"Linked local user {local_id} to provider account {remote_id}")
                return UserIdentity.from_row(user)

            user = await session.get(User, local_id)
            if user is None:
                raise NotFound(f"User not found: {local_id}")
            if user.remote_provider_id != remote_id:
                raise PersistenceError(
                    f"Local user {local_id} is already linked to provider account "
                    f"{user.remote_provider_id}, refusing {remote_id}"
                )
            return UserIdentity.from_row(user)

    async def mark_verified(self, email: str) -> UserIdentity:
        """Set verified=true; an already-verified record is returned untouched"""
        async with self._transaction() as session:
            result = await session.execute(
                update(User)
                .where(User.email == email, User.email_verified.is_(False))
                .values(email_verified=True, updated_at=func.now())
                .returning(User)
                .execution_options(synchronize_session=False)
            )
            user = result.scalar_one_or_none()
            if user is not None:
                logger.info(f"Marked {email} as verified")
                return UserIdentity.from_row(user)

            result = await session.execute(select(User).where(User.email == email))
            user = result.scalar_one_or_none()
            if user is None:
                raise NotFound(f"User not found: {email}")
            return UserIdentity.from_row(user)

    async def mark_all_unverified_as_verified(self) -> List[UserIdentity]:
        async with self._transaction() as session:
            result = await session.execute(
                update(User)
                .where(User.email_verified.is_(False))
                .values(email_verified=True, updated_at=func.now())
                .returning(User)
                .execution_options(synchronize_session=False)
            )
            users = [UserIdentity.from_row(user) for user in result.scalars().all()]
            logger.info(f"Bulk verification updated {len(users)} users")
            return sorted(users, key=lambda identity: identity.local_id)

    async def list_all_with_status(self) -> List[UserIdentity]:
        async with self._transaction() as session:
            result = await session.execute(
                select(User).order_by(User.created_at.desc(), User.id.desc())
            )
            return [UserIdentity.from_row(user) for user in result.scalars().all()]
