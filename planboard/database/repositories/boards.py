"""
Board repository.

Handles:
- Board creation together with its status columns
- Column display settings guarded by the optimistic version token
- Column reordering and reconciliation against the status set

Column order is a dense 0..N-1 sequence protected by a unique constraint,
so every renumbering goes through renumber_columns().
"""

import logging
from typing import Optional, List, Dict, Any, Sequence

from sqlalchemy import select, delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlalchemy.orm.exc import StaleDataError

from ..connection import Database, get_database
from ..models import BoardDB, BoardColumnDB
from ..exceptions import (
    DatabaseConcurrencyError,
    DatabaseConstraintError,
    DatabaseOperationError,
)
from ...utils.datetime_utils import get_local_now

logger = logging.getLogger(__name__)


async def renumber_columns(session: AsyncSession, columns: Sequence[BoardColumnDB]) -> None:
    """
    Give columns order_index 0..N-1 in the order given.

    Goes through negative placeholders first so the (board_id, order_index)
    unique constraint holds after every single-row UPDATE.
    """
    if all(column.order_index == position for position, column in enumerate(columns)):
        return

    for position, column in enumerate(columns):
        column.order_index = -(position + 1)
    await session.flush()

    for position, column in enumerate(columns):
        column.order_index = position
    await session.flush()


class BoardRepository:
    """Repository for boards and board columns."""

    def __init__(self, db: Optional[Database] = None):
        self.db = db or get_database()

    @staticmethod
    def _with_columns(query):
        return query.options(
            selectinload(BoardDB.columns).joinedload(BoardColumnDB.status)
        )

    async def create(
        self,
        project_id: int,
        name: str,
        description: Optional[str],
        status_ids: List[int],
    ) -> BoardDB:
        """
        Create a board with one column per status, in the order given.

        A concurrent creator for the same project loses on the unique
        constraint and gets DatabaseConstraintError.
        """
        async with self.db.session() as session:
            try:
                now = get_local_now()
                board = BoardDB(
                    project_id=project_id,
                    name=name,
                    description=description,
                    created_at=now,
                    updated_at=now,
                )
                board.columns = [
                    BoardColumnDB(
                        status_id=status_id,
                        order_index=position,
                        wip_limit=None,
                        is_collapsed=False,
                    )
                    for position, status_id in enumerate(status_ids)
                ]
                session.add(board)
                await session.flush()
                board_id = board.id

            except IntegrityError as e:
                logger.warning(f"Constraint violation creating board for project {project_id}: {e}")
                raise DatabaseConstraintError(
                    f"Cannot create board for project {project_id}: a board already exists"
                )

            except Exception as e:
                logger.error(f"Board creation failed for project {project_id}: {e}", exc_info=True)
                raise DatabaseOperationError(f"Failed to create board for project {project_id}: {e}")

        logger.info(f"Created board {board_id} for project {project_id} with {len(status_ids)} columns")
        return await self.get_by_id(board_id)

    async def get_by_id(self, board_id: int) -> Optional[BoardDB]:
        """Get board by ID with its columns (in order) and their statuses."""
        async with self.db.session() as session:
            result = await session.execute(
                self._with_columns(select(BoardDB)).where(BoardDB.id == board_id)
            )
            return result.scalar_one_or_none()

    async def get_by_project(self, project_id: int) -> Optional[BoardDB]:
        """Get the board of a project with its columns and their statuses."""
        async with self.db.session() as session:
            result = await session.execute(
                self._with_columns(select(BoardDB)).where(BoardDB.project_id == project_id)
            )
            return result.scalar_one_or_none()

    async def exists_for_project(self, project_id: int) -> bool:
        """Check whether a project already has a board."""
        async with self.db.session() as session:
            result = await session.execute(
                select(BoardDB.id).where(BoardDB.project_id == project_id)
            )
            return result.first() is not None

    async def update(self, board_id: int, name: str, description: Optional[str]) -> Optional[BoardDB]:
        """Update board name and description."""
        async with self.db.session() as session:
            result = await session.execute(select(BoardDB).where(BoardDB.id == board_id))
            board = result.scalar_one_or_none()
            if board is None:
                return None

            board.name = name
            board.description = description
            board.updated_at = get_local_now()

        return await self.get_by_id(board_id)

    async def delete(self, board_id: int) -> bool:
        """Delete a board and its columns."""
        async with self.db.session() as session:
            await session.execute(
                delete(BoardColumnDB).where(BoardColumnDB.board_id == board_id)
            )
            result = await session.execute(
                delete(BoardDB).where(BoardDB.id == board_id)
            )
            return result.rowcount > 0

    # ==================== COLUMNS ====================

    async def update_column(
        self,
        board_id: int,
        column_id: int,
        updates: Dict[str, Any],
        expected_version: Optional[int] = None,
    ) -> Optional[BoardColumnDB]:
        """
        Update column display settings.

        Returns None when the column is not on this board. Raises
        DatabaseConcurrencyError when expected_version is stale or another
        writer bumped the version between our read and our write.
        """
        async with self.db.session() as session:
            result = await session.execute(
                select(BoardColumnDB).where(
                    BoardColumnDB.id == column_id,
                    BoardColumnDB.board_id == board_id,
                )
            )
            column = result.scalar_one_or_none()
            if column is None:
                return None

            if expected_version is not None and column.version != expected_version:
                raise DatabaseConcurrencyError(
                    f"Column {column_id} is at version {column.version}, not {expected_version}"
                )

            for field, value in updates.items():
                setattr(column, field, value)

            try:
                await session.flush()
            except StaleDataError as e:
                raise DatabaseConcurrencyError(f"Column {column_id} was modified concurrently") from e

            return column

    async def reorder_columns(self, board_id: int, column_ids: List[int]) -> List[BoardColumnDB]:
        """Set each column's order_index to its position in column_ids."""
        async with self.db.session() as session:
            result = await session.execute(
                select(BoardColumnDB).where(BoardColumnDB.board_id == board_id)
            )
            by_id = {column.id: column for column in result.scalars().all()}
            ordered = [by_id[column_id] for column_id in column_ids]

            try:
                await renumber_columns(session, ordered)
            except StaleDataError as e:
                raise DatabaseConcurrencyError(f"Columns of board {board_id} were modified concurrently") from e

            return ordered

    async def reconcile_columns(self, board_id: int, active_status_ids: List[int]) -> Dict[str, List[int]]:
        """
        Bring the board's columns in line with the given active statuses.

        Columns for statuses not in the list are removed; statuses without a
        column get one appended, in list order. Survivors keep their relative
        order. Returns the removed and added status IDs.
        """
        async with self.db.session() as session:
            result = await session.execute(
                select(BoardColumnDB)
                .where(BoardColumnDB.board_id == board_id)
                .order_by(BoardColumnDB.order_index)
            )
            columns = list(result.scalars().all())
            active = set(active_status_ids)

            stale = [column for column in columns if column.status_id not in active]
            kept = [column for column in columns if column.status_id in active]
            present = {column.status_id for column in kept}
            missing = [status_id for status_id in active_status_ids if status_id not in present]

            try:
                for column in stale:
                    await session.delete(column)
                await session.flush()

                await renumber_columns(session, kept)

                for offset, status_id in enumerate(missing):
                    session.add(BoardColumnDB(
                        board_id=board_id,
                        status_id=status_id,
                        order_index=len(kept) + offset,
                        wip_limit=None,
                        is_collapsed=False,
                    ))
                await session.flush()

            except StaleDataError as e:
                raise DatabaseConcurrencyError(f"Columns of board {board_id} were modified concurrently") from e

            board = await session.get(BoardDB, board_id)
            if board is not None:
                board.updated_at = get_local_now()

            return {
                "removed": [column.status_id for column in stale],
                "added": missing,
            }
