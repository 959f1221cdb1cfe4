"""
User repository.

Users belong to the identity subsystem; this core only looks them up to
validate assignees/reporters and to denormalise display names.
"""

import logging
from typing import Optional, Dict, Iterable

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from ..connection import Database, get_database
from ..models import UserDB
from ..exceptions import DatabaseConstraintError, DatabaseOperationError

logger = logging.getLogger(__name__)


class UserRepository:
    """Repository for user lookups."""

    def __init__(self, db: Optional[Database] = None):
        self.db = db or get_database()

    async def create(self, email: str, first_name: str, last_name: str) -> UserDB:
        """Create a user (used by the identity subsystem and by fixtures)."""
        async with self.db.session() as session:
            try:
                user = UserDB(email=email, first_name=first_name, last_name=last_name)
                session.add(user)
                await session.flush()

                logger.info(f"Created user {email}")
                return user

            except IntegrityError as e:
                logger.error(f"Constraint violation creating user {email}: {e}")
                raise DatabaseConstraintError(f"Cannot create user {email}: duplicate or constraint violation")

            except Exception as e:
                logger.error(f"User creation failed for {email}: {e}", exc_info=True)
                raise DatabaseOperationError(f"Failed to create user {email}: {e}")

    async def get_by_id(self, user_id: int) -> Optional[UserDB]:
        """Get user by ID."""
        async with self.db.session() as session:
            result = await session.execute(
                select(UserDB).where(UserDB.id == user_id)
            )
            return result.scalar_one_or_none()

    async def get_many(self, user_ids: Iterable[Optional[int]]) -> Dict[int, UserDB]:
        """Get several users at once, keyed by ID. Unknown and None IDs are skipped."""
        ids = {uid for uid in user_ids if uid is not None}
        if not ids:
            return {}

        async with self.db.session() as session:
            result = await session.execute(
                select(UserDB).where(UserDB.id.in_(ids))
            )
            return {user.id: user for user in result.scalars().all()}
