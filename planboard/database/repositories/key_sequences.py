"""
Key sequence repository.

One counter row per (project, entity kind). The counter is bumped with a
single UPDATE ... RETURNING so two concurrent allocations can never read
the same value.
"""

import logging
from typing import Optional, List

from sqlalchemy import select, update, case
from sqlalchemy.exc import IntegrityError

from ..connection import Database, get_database
from ..models import KeySequenceDB, EpicDB, WorkItemDB, EntityKindEnum
from ..exceptions import DatabaseConstraintError, DatabaseOperationError

logger = logging.getLogger(__name__)


class KeySequenceRepository:
    """Repository for per-project key counters."""

    def __init__(self, db: Optional[Database] = None):
        self.db = db or get_database()

    async def get_existing_keys(self, project_id: int, kind: EntityKindEnum, prefix: str) -> List[str]:
        """Get every stored key of this kind in the project that starts with prefix."""
        model = EpicDB if kind == EntityKindEnum.EPIC else WorkItemDB

        async with self.db.session() as session:
            result = await session.execute(
                select(model.key).where(
                    model.project_id == project_id,
                    model.key.startswith(prefix, autoescape=True),
                )
            )
            return [row[0] for row in result]

    async def _bump(self, project_id: int, kind: EntityKindEnum, floor: int) -> Optional[int]:
        """Atomically raise the counter to at least floor, add one, return it."""
        async with self.db.session() as session:
            result = await session.execute(
                update(KeySequenceDB)
                .where(
                    KeySequenceDB.project_id == project_id,
                    KeySequenceDB.kind == kind.value,
                )
                .values(
                    last_value=case(
                        (KeySequenceDB.last_value > floor, KeySequenceDB.last_value),
                        else_=floor,
                    ) + 1
                )
                .returning(KeySequenceDB.last_value)
                .execution_options(synchronize_session=False)
            )
            return result.scalar_one_or_none()

    async def _insert(self, project_id: int, kind: EntityKindEnum, value: int) -> int:
        async with self.db.session() as session:
            try:
                session.add(KeySequenceDB(project_id=project_id, kind=kind.value, last_value=value))
                await session.flush()
                return value

            except IntegrityError as e:
                raise DatabaseConstraintError(
                    f"Key sequence for project {project_id}/{kind.value} already exists"
                ) from e

    async def next_value(self, project_id: int, kind: EntityKindEnum, floor: int = 0) -> int:
        """
        Allocate the next number for (project, kind).

        The result is greater than floor and greater than anything this
        sequence has handed out before.
        """
        value = await self._bump(project_id, kind, floor)
        if value is not None:
            return value

        try:
            return await self._insert(project_id, kind, floor + 1)
        except DatabaseConstraintError:
            # Another allocator created the row first
            logger.info(f"Key sequence for project {project_id}/{kind.value} created concurrently, retrying")

        value = await self._bump(project_id, kind, floor)
        if value is None:
            raise DatabaseOperationError(
                f"Key sequence for project {project_id}/{kind.value} could not be allocated"
            )
        return value
