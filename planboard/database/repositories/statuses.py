"""
Status repository.

Handles:
- Status definitions (name, color, order, role flags)
- Explicit status transition rules
- Usage counts that guard deactivation and deletion
"""

import logging
from typing import Optional, List, Dict, Any, Tuple

from sqlalchemy import select, update, delete, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import selectinload

from ..connection import Database, get_database
from ..models import StatusDB, StatusTransitionDB, EpicDB, WorkItemDB, BoardColumnDB
from ..exceptions import DatabaseConstraintError, DatabaseOperationError
from .boards import renumber_columns

logger = logging.getLogger(__name__)


class StatusRepository:
    """Repository for statuses and their transition rules."""

    def __init__(self, db: Optional[Database] = None):
        self.db = db or get_database()

    # ==================== STATUSES ====================

    async def create(self, status_data: Dict[str, Any]) -> StatusDB:
        """Create a new status."""
        async with self.db.session() as session:
            try:
                status = StatusDB(
                    name=status_data["name"],
                    color=status_data.get("color"),
                    order_index=status_data.get("order_index", 0),
                    is_default_for_new=status_data.get("is_default_for_new", False),
                    is_completed_status=status_data.get("is_completed_status", False),
                    is_cancelled_status=status_data.get("is_cancelled_status", False),
                    is_active=status_data.get("is_active", True),
                )
                session.add(status)
                await session.flush()

                logger.info(f"Created status '{status.name}'")
                return status

            except IntegrityError as e:
                logger.error(f"Constraint violation creating status {status_data.get('name')}: {e}")
                raise DatabaseConstraintError(
                    f"Cannot create status {status_data.get('name')}: duplicate or constraint violation"
                )

            except Exception as e:
                logger.error(f"Status creation failed: {e}", exc_info=True)
                raise DatabaseOperationError(f"Failed to create status: {e}")

    async def create_many(self, statuses: List[Dict[str, Any]]) -> List[StatusDB]:
        """Create several statuses in one transaction."""
        async with self.db.session() as session:
            try:
                created = [StatusDB(**data) for data in statuses]
                session.add_all(created)
                await session.flush()
                return created

            except IntegrityError as e:
                logger.error(f"Constraint violation seeding statuses: {e}")
                raise DatabaseConstraintError("Cannot create statuses: duplicate or constraint violation")

    async def get_by_id(self, status_id: int) -> Optional[StatusDB]:
        """Get status by ID."""
        async with self.db.session() as session:
            result = await session.execute(
                select(StatusDB).where(StatusDB.id == status_id)
            )
            return result.scalar_one_or_none()

    async def get_all(self, include_inactive: bool = False) -> List[StatusDB]:
        """Get statuses in display order."""
        async with self.db.session() as session:
            query = select(StatusDB)
            if not include_inactive:
                query = query.where(StatusDB.is_active.is_(True))
            query = query.order_by(StatusDB.order_index, StatusDB.id)

            result = await session.execute(query)
            return list(result.scalars().all())

    async def get_default_for_new(self) -> Optional[StatusDB]:
        """Get the active status new epics and work items start in."""
        async with self.db.session() as session:
            result = await session.execute(
                select(StatusDB)
                .where(StatusDB.is_default_for_new.is_(True), StatusDB.is_active.is_(True))
                .order_by(StatusDB.order_index, StatusDB.id)
                .limit(1)
            )
            return result.scalar_one_or_none()

    async def count(self) -> int:
        """Count all statuses, active or not."""
        async with self.db.session() as session:
            result = await session.execute(select(func.count(StatusDB.id)))
            return result.scalar() or 0

    async def name_exists(self, name: str, exclude_id: Optional[int] = None) -> bool:
        """Check whether any status (active or not) already uses this name."""
        async with self.db.session() as session:
            query = select(func.count(StatusDB.id)).where(StatusDB.name == name)
            if exclude_id is not None:
                query = query.where(StatusDB.id != exclude_id)

            result = await session.execute(query)
            return (result.scalar() or 0) > 0

    async def usage_counts(self, status_id: int) -> Tuple[int, int]:
        """Return (epic count, work item count) currently in this status."""
        async with self.db.session() as session:
            epics = await session.execute(
                select(func.count(EpicDB.id)).where(EpicDB.status_id == status_id)
            )
            work_items = await session.execute(
                select(func.count(WorkItemDB.id)).where(WorkItemDB.status_id == status_id)
            )
            return epics.scalar() or 0, work_items.scalar() or 0

    async def update(self, status_id: int, updates: Dict[str, Any]) -> Optional[StatusDB]:
        """Update a status."""
        async with self.db.session() as session:
            try:
                await session.execute(
                    update(StatusDB)
                    .where(StatusDB.id == status_id)
                    .values(**updates)
                )
                await session.flush()

            except IntegrityError as e:
                logger.error(f"Constraint violation updating status {status_id}: {e}")
                raise DatabaseConstraintError(f"Cannot update status {status_id}: duplicate or constraint violation")

            result = await session.execute(
                select(StatusDB)
                .where(StatusDB.id == status_id)
                .execution_options(populate_existing=True)
            )
            return result.scalar_one_or_none()

    async def delete(self, status_id: int) -> bool:
        """
        Delete a status, its transition rules and its board columns.

        Boards that lose a column are renumbered so their column order stays
        a dense 0..N-1 sequence.
        """
        async with self.db.session() as session:
            affected = await session.execute(
                select(BoardColumnDB.board_id).where(BoardColumnDB.status_id == status_id)
            )
            board_ids = {row[0] for row in affected}

            await session.execute(
                delete(BoardColumnDB).where(BoardColumnDB.status_id == status_id)
            )
            await session.execute(
                delete(StatusTransitionDB).where(
                    (StatusTransitionDB.from_status_id == status_id)
                    | (StatusTransitionDB.to_status_id == status_id)
                )
            )
            result = await session.execute(
                delete(StatusDB).where(StatusDB.id == status_id)
            )

            for board_id in board_ids:
                remaining = await session.execute(
                    select(BoardColumnDB)
                    .where(BoardColumnDB.board_id == board_id)
                    .order_by(BoardColumnDB.order_index)
                )
                await renumber_columns(session, list(remaining.scalars().all()))

            if board_ids:
                logger.info(f"Removed status {status_id} columns from {len(board_ids)} board(s)")

            return result.rowcount > 0

    # ==================== TRANSITIONS ====================

    async def get_transition(self, from_status_id: int, to_status_id: int) -> Optional[StatusTransitionDB]:
        """Get the explicit rule for an ordered status pair, if any."""
        async with self.db.session() as session:
            result = await session.execute(
                select(StatusTransitionDB).where(
                    StatusTransitionDB.from_status_id == from_status_id,
                    StatusTransitionDB.to_status_id == to_status_id,
                )
            )
            return result.scalar_one_or_none()

    async def get_transitions_from(self, from_status_id: int) -> List[StatusTransitionDB]:
        """Get every explicit rule starting at a status."""
        async with self.db.session() as session:
            result = await session.execute(
                select(StatusTransitionDB)
                .options(selectinload(StatusTransitionDB.to_status))
                .where(StatusTransitionDB.from_status_id == from_status_id)
            )
            return list(result.scalars().all())

    async def get_all_transitions(self) -> List[StatusTransitionDB]:
        """Get every explicit rule with both statuses loaded."""
        async with self.db.session() as session:
            result = await session.execute(
                select(StatusTransitionDB)
                .options(
                    selectinload(StatusTransitionDB.from_status),
                    selectinload(StatusTransitionDB.to_status),
                )
                .order_by(StatusTransitionDB.from_status_id, StatusTransitionDB.to_status_id)
            )
            return list(result.scalars().all())

    async def create_transition(
        self,
        from_status_id: int,
        to_status_id: int,
        is_allowed: bool,
    ) -> StatusTransitionDB:
        """Create an explicit transition rule."""
        async with self.db.session() as session:
            try:
                transition = StatusTransitionDB(
                    from_status_id=from_status_id,
                    to_status_id=to_status_id,
                    is_allowed=is_allowed,
                )
                session.add(transition)
                await session.flush()

                logger.info(
                    f"Created transition rule {from_status_id} -> {to_status_id} "
                    f"({'allowed' if is_allowed else 'forbidden'})"
                )
                return transition

            except IntegrityError as e:
                logger.error(f"Constraint violation creating transition {from_status_id}->{to_status_id}: {e}")
                raise DatabaseConstraintError(
                    f"Cannot create transition {from_status_id}->{to_status_id}: duplicate or constraint violation"
                )

    async def delete_transition(self, transition_id: int) -> bool:
        """Delete an explicit transition rule."""
        async with self.db.session() as session:
            result = await session.execute(
                delete(StatusTransitionDB).where(StatusTransitionDB.id == transition_id)
            )
            return result.rowcount > 0
