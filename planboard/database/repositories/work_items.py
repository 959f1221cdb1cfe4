"""
Work item repository.

Handles:
- Work item CRUD
- Parent lookups for hierarchy checks and the cycle walk
- Child / comment counts for delete guards and denormalised views
- Filtered search with paging
"""

import logging
from typing import Optional, List, Dict, Any, Iterable

from sqlalchemy import select, update, delete, func, or_
from sqlalchemy.exc import IntegrityError

from ..connection import Database, get_database
from ..models import WorkItemDB, WorkItemCommentDB
from ..exceptions import DatabaseConstraintError, DatabaseOperationError

logger = logging.getLogger(__name__)


class WorkItemRepository:
    """Repository for work item operations."""

    def __init__(self, db: Optional[Database] = None):
        self.db = db or get_database()

    # ==================== CRUD ====================

    async def create(self, item_data: Dict[str, Any]) -> WorkItemDB:
        """Create a new work item. A duplicate key raises DatabaseConstraintError."""
        async with self.db.session() as session:
            try:
                item = WorkItemDB(**item_data)
                session.add(item)
                await session.flush()

                logger.info(f"Created work item {item.key}")
                return item

            except IntegrityError as e:
                logger.error(f"Constraint violation creating work item {item_data.get('key')}: {e}")
                raise DatabaseConstraintError(
                    f"Cannot create work item {item_data.get('key')}: duplicate or constraint violation"
                )

            except Exception as e:
                logger.error(f"Work item creation failed: {e}", exc_info=True)
                raise DatabaseOperationError(f"Failed to create work item: {e}")

    async def get_by_id(self, item_id: int) -> Optional[WorkItemDB]:
        """Get work item by ID."""
        async with self.db.session() as session:
            result = await session.execute(
                select(WorkItemDB).where(WorkItemDB.id == item_id)
            )
            return result.scalar_one_or_none()

    async def get_by_key(self, key: str) -> Optional[WorkItemDB]:
        """Get work item by its display key."""
        async with self.db.session() as session:
            result = await session.execute(
                select(WorkItemDB).where(WorkItemDB.key == key)
            )
            return result.scalar_one_or_none()

    async def get_parent_id(self, item_id: int) -> Optional[int]:
        """Get only the parent ID of a work item (None if no parent or no item)."""
        async with self.db.session() as session:
            result = await session.execute(
                select(WorkItemDB.parent_work_item_id).where(WorkItemDB.id == item_id)
            )
            return result.scalar_one_or_none()

    async def update(self, item_id: int, updates: Dict[str, Any]) -> Optional[WorkItemDB]:
        """Update a work item and return the fresh row."""
        async with self.db.session() as session:
            try:
                await session.execute(
                    update(WorkItemDB)
                    .where(WorkItemDB.id == item_id)
                    .values(**updates)
                )
            except IntegrityError as e:
                logger.error(f"Constraint violation updating work item {item_id}: {e}")
                raise DatabaseConstraintError(f"Cannot update work item {item_id}: constraint violation")

            result = await session.execute(
                select(WorkItemDB).where(WorkItemDB.id == item_id)
            )
            return result.scalar_one_or_none()

    async def delete(self, item_id: int) -> bool:
        """Delete a work item."""
        async with self.db.session() as session:
            result = await session.execute(
                delete(WorkItemDB).where(WorkItemDB.id == item_id)
            )
            return result.rowcount > 0

    # ==================== COUNTS ====================

    async def count_children(self, item_id: int) -> int:
        """Count work items whose parent is this one."""
        async with self.db.session() as session:
            result = await session.execute(
                select(func.count(WorkItemDB.id)).where(WorkItemDB.parent_work_item_id == item_id)
            )
            return result.scalar() or 0

    async def count_comments(self, item_id: int) -> int:
        """Count comments attached to this work item."""
        async with self.db.session() as session:
            result = await session.execute(
                select(func.count(WorkItemCommentDB.id)).where(WorkItemCommentDB.work_item_id == item_id)
            )
            return result.scalar() or 0

    async def child_counts(self, item_ids: Iterable[int]) -> Dict[int, int]:
        """Child counts for several work items in one query."""
        ids = list(item_ids)
        if not ids:
            return {}

        async with self.db.session() as session:
            result = await session.execute(
                select(WorkItemDB.parent_work_item_id, func.count(WorkItemDB.id))
                .where(WorkItemDB.parent_work_item_id.in_(ids))
                .group_by(WorkItemDB.parent_work_item_id)
            )
            return {row[0]: row[1] for row in result}

    async def comment_counts(self, item_ids: Iterable[int]) -> Dict[int, int]:
        """Comment counts for several work items in one query."""
        ids = list(item_ids)
        if not ids:
            return {}

        async with self.db.session() as session:
            result = await session.execute(
                select(WorkItemCommentDB.work_item_id, func.count(WorkItemCommentDB.id))
                .where(WorkItemCommentDB.work_item_id.in_(ids))
                .group_by(WorkItemCommentDB.work_item_id)
            )
            return {row[0]: row[1] for row in result}

    # ==================== QUERIES ====================

    async def get_for_project(self, project_id: int) -> List[WorkItemDB]:
        """Get every work item of a project, oldest first."""
        async with self.db.session() as session:
            result = await session.execute(
                select(WorkItemDB)
                .where(WorkItemDB.project_id == project_id)
                .order_by(WorkItemDB.id)
            )
            return list(result.scalars().all())

    async def search(
        self,
        project_id: Optional[int] = None,
        epic_id: Optional[int] = None,
        status_id: Optional[int] = None,
        assignee_id: Optional[int] = None,
        reporter_id: Optional[int] = None,
        item_type: Optional[str] = None,
        priority: Optional[int] = None,
        search_text: Optional[str] = None,
        page: int = 1,
        page_size: int = 50,
    ) -> List[WorkItemDB]:
        """Search work items; most recently updated first."""
        async with self.db.session() as session:
            query = select(WorkItemDB)

            if project_id is not None:
                query = query.where(WorkItemDB.project_id == project_id)
            if epic_id is not None:
                query = query.where(WorkItemDB.epic_id == epic_id)
            if status_id is not None:
                query = query.where(WorkItemDB.status_id == status_id)
            if assignee_id is not None:
                query = query.where(WorkItemDB.assignee_id == assignee_id)
            if reporter_id is not None:
                query = query.where(WorkItemDB.reporter_id == reporter_id)
            if item_type is not None:
                query = query.where(WorkItemDB.type == item_type)
            if priority is not None:
                query = query.where(WorkItemDB.priority == priority)
            if search_text and search_text.strip():
                query = query.where(or_(
                    WorkItemDB.key.contains(search_text, autoescape=True),
                    WorkItemDB.summary.contains(search_text, autoescape=True),
                    WorkItemDB.description.contains(search_text, autoescape=True),
                ))

            query = (
                query.order_by(WorkItemDB.updated_at.desc(), WorkItemDB.id.desc())
                .offset((page - 1) * page_size)
                .limit(page_size)
            )

            result = await session.execute(query)
            return list(result.scalars().all())
