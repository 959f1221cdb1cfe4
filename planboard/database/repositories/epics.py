"""
Epic repository.

Epic CRUD plus the work item rollups shown next to each epic.
"""

import logging
from typing import Optional, List, Dict, Any, Iterable, Tuple

from sqlalchemy import select, update, delete, func
from sqlalchemy.exc import IntegrityError

from ..connection import Database, get_database
from ..models import EpicDB, WorkItemDB, StatusDB
from ..exceptions import DatabaseConstraintError, DatabaseOperationError

logger = logging.getLogger(__name__)


class EpicRepository:
    """Repository for epic operations."""

    def __init__(self, db: Optional[Database] = None):
        self.db = db or get_database()

    async def create(self, epic_data: Dict[str, Any]) -> EpicDB:
        """Create a new epic. A duplicate key raises DatabaseConstraintError."""
        async with self.db.session() as session:
            try:
                epic = EpicDB(**epic_data)
                session.add(epic)
                await session.flush()

                logger.info(f"Created epic {epic.key}")
                return epic

            except IntegrityError as e:
                logger.error(f"Constraint violation creating epic {epic_data.get('key')}: {e}")
                raise DatabaseConstraintError(
                    f"Cannot create epic {epic_data.get('key')}: duplicate or constraint violation"
                )

            except Exception as e:
                logger.error(f"Epic creation failed: {e}", exc_info=True)
                raise DatabaseOperationError(f"Failed to create epic: {e}")

    async def get_by_id(self, epic_id: int) -> Optional[EpicDB]:
        """Get epic by ID."""
        async with self.db.session() as session:
            result = await session.execute(
                select(EpicDB).where(EpicDB.id == epic_id)
            )
            return result.scalar_one_or_none()

    async def get_by_key(self, key: str) -> Optional[EpicDB]:
        """Get epic by its display key."""
        async with self.db.session() as session:
            result = await session.execute(
                select(EpicDB).where(EpicDB.key == key)
            )
            return result.scalar_one_or_none()

    async def update(self, epic_id: int, updates: Dict[str, Any]) -> Optional[EpicDB]:
        """Update an epic and return the fresh row."""
        async with self.db.session() as session:
            await session.execute(
                update(EpicDB)
                .where(EpicDB.id == epic_id)
                .values(**updates)
            )

            result = await session.execute(
                select(EpicDB).where(EpicDB.id == epic_id)
            )
            return result.scalar_one_or_none()

    async def delete(self, epic_id: int) -> bool:
        """Delete an epic."""
        async with self.db.session() as session:
            result = await session.execute(
                delete(EpicDB).where(EpicDB.id == epic_id)
            )
            return result.rowcount > 0

    async def count_work_items(self, epic_id: int) -> int:
        """Count work items linked to this epic."""
        async with self.db.session() as session:
            result = await session.execute(
                select(func.count(WorkItemDB.id)).where(WorkItemDB.epic_id == epic_id)
            )
            return result.scalar() or 0

    async def work_item_counts(self, epic_ids: Iterable[int]) -> Dict[int, Tuple[int, int]]:
        """(total, completed) work item counts per epic, in two grouped queries."""
        ids = list(epic_ids)
        if not ids:
            return {}

        async with self.db.session() as session:
            totals = await session.execute(
                select(WorkItemDB.epic_id, func.count(WorkItemDB.id))
                .where(WorkItemDB.epic_id.in_(ids))
                .group_by(WorkItemDB.epic_id)
            )
            completed = await session.execute(
                select(WorkItemDB.epic_id, func.count(WorkItemDB.id))
                .join(StatusDB, StatusDB.id == WorkItemDB.status_id)
                .where(WorkItemDB.epic_id.in_(ids), StatusDB.is_completed_status.is_(True))
                .group_by(WorkItemDB.epic_id)
            )
            done = {row[0]: row[1] for row in completed}
            return {row[0]: (row[1], done.get(row[0], 0)) for row in totals}

    async def get_all(
        self,
        project_id: Optional[int] = None,
        status_id: Optional[int] = None,
        assignee_id: Optional[int] = None,
        page: int = 1,
        page_size: int = 50,
    ) -> List[EpicDB]:
        """List epics; most recently updated first."""
        async with self.db.session() as session:
            query = select(EpicDB)

            if project_id is not None:
                query = query.where(EpicDB.project_id == project_id)
            if status_id is not None:
                query = query.where(EpicDB.status_id == status_id)
            if assignee_id is not None:
                query = query.where(EpicDB.assignee_id == assignee_id)

            query = (
                query.order_by(EpicDB.updated_at.desc(), EpicDB.id.desc())
                .offset((page - 1) * page_size)
                .limit(page_size)
            )

            result = await session.execute(query)
            return list(result.scalars().all())
