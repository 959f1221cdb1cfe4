"""
Board service.

One Kanban board per project:
- columns are created from the active statuses when the board is created
  and only change through reorder, reconcile or status deletion
- the board view groups the project's work items by status, with filters
- moving a card is a status change checked by the StatusRegistry
- WIP limits are display-only and never block a move

Reads and writes follow one order: existence checks, then the owner
check, then business rules.
"""

import logging
from typing import Optional, List, Iterable, Sequence

from config import settings
from ..database.connection import Database, get_database
from ..database.exceptions import DatabaseConcurrencyError, DatabaseConstraintError
from ..database.models import ProjectDB, BoardDB, BoardColumnDB, WorkItemDB
from ..database.repositories import (
    BoardRepository,
    ProjectRepository,
    StatusRepository,
    WorkItemRepository,
    UserRepository,
)
from ..models.board import (
    BoardCreate,
    BoardUpdate,
    BoardColumnUpdate,
    BoardColumnDto,
    BoardDto,
    BoardViewDto,
    BoardColumnViewDto,
    WorkItemCardDto,
)
from ..utils.datetime_utils import get_local_now
from .exceptions import (
    NotFoundError,
    ForbiddenError,
    BadRequestError,
    ConflictError,
)
from .status_registry import StatusRegistry

logger = logging.getLogger(__name__)


def filter_work_items(
    items: Iterable[WorkItemDB],
    epic_ids: Optional[Sequence[int]] = None,
    assignee_ids: Optional[Sequence[int]] = None,
    search_text: Optional[str] = None,
) -> List[WorkItemDB]:
    """
    Apply board view filters; all given filters must match.

    An empty id list means no filter, the same as None. search_text is a
    case-sensitive substring match on key or summary; blank text is ignored.
    """
    epic_set = set(epic_ids) if epic_ids else None
    assignee_set = set(assignee_ids) if assignee_ids else None
    text = search_text if search_text and search_text.strip() else None

    matched = []
    for item in items:
        if epic_set is not None and item.epic_id not in epic_set:
            continue
        if assignee_set is not None and item.assignee_id not in assignee_set:
            continue
        if text is not None and text not in item.key and text not in item.summary:
            continue
        matched.append(item)
    return matched


class BoardService:
    """Board lifecycle, board view and card moves."""

    def __init__(self, db: Optional[Database] = None, status_registry: Optional[StatusRegistry] = None):
        self.db = db or get_database()
        self.boards = BoardRepository(self.db)
        self.projects = ProjectRepository(self.db)
        self.statuses = StatusRepository(self.db)
        self.work_items = WorkItemRepository(self.db)
        self.users = UserRepository(self.db)
        self.status_registry = status_registry or StatusRegistry(self.db)

    # ==================== BOARD ====================

    async def create_board(self, project_id: int, request: BoardCreate, caller_id: int) -> BoardDto:
        """Create the project's board with one column per active status, in status order."""
        project = await self._get_project(project_id)
        self._ensure_owner(project, caller_id, "create a board")

        if await self.boards.exists_for_project(project.id):
            raise BadRequestError(f"A board already exists for project '{project.name}'")

        status_ids = [status.id for status in await self.statuses.get_all()]

        try:
            board = await self.boards.create(
                project_id=project.id,
                name=request.name or f"{project.name} Board",
                description=request.description,
                status_ids=status_ids,
            )
        except DatabaseConstraintError:
            raise ConflictError(f"A board for project '{project.name}' was created concurrently")

        logger.info(f"Board {board.id} created for project {project.key} by user {caller_id}")
        return self._to_dto(board)

    async def get_board_by_project(self, project_id: int) -> Optional[BoardDto]:
        board = await self.boards.get_by_project(project_id)
        return self._to_dto(board) if board else None

    async def update_board(self, project_id: int, request: BoardUpdate, caller_id: int) -> BoardDto:
        project = await self._get_project(project_id)
        board = await self._get_board(project)
        self._ensure_owner(project, caller_id, "update the board")

        updated = await self.boards.update(board.id, request.name, request.description)
        if updated is None:
            raise NotFoundError(f"Board for project ID {project_id} not found")

        logger.info(f"Board {board.id} updated by user {caller_id}")
        return self._to_dto(updated)

    async def delete_board(self, project_id: int, caller_id: int) -> None:
        project = await self._get_project(project_id)
        board = await self._get_board(project)
        self._ensure_owner(project, caller_id, "delete the board")

        await self.boards.delete(board.id)
        logger.info(f"Board {board.id} of project {project.key} deleted by user {caller_id}")

    # ==================== VIEW ====================

    async def get_board_view(
        self,
        project_id: int,
        epic_ids: Optional[Sequence[int]] = None,
        assignee_ids: Optional[Sequence[int]] = None,
        search_text: Optional[str] = None,
    ) -> BoardViewDto:
        """
        Build the board view: the project's work items grouped into the board's columns.

        The underlying reads are not one snapshot; a concurrent write may show
        up in some of them and not in others.
        """
        project = await self._get_project(project_id)
        board = await self._get_board(project)

        items = filter_work_items(
            await self.work_items.get_for_project(project.id),
            epic_ids=epic_ids,
            assignee_ids=assignee_ids,
            search_text=search_text,
        )
        users = await self.users.get_many(item.assignee_id for item in items)

        by_status = {}
        for item in items:
            by_status.setdefault(item.status_id, []).append(item)

        columns = []
        for column in board.columns:
            cards = [
                WorkItemCardDto(
                    id=item.id,
                    key=item.key,
                    summary=item.summary,
                    assignee_name=users[item.assignee_id].full_name if item.assignee_id in users else None,
                    type=item.type,
                    priority=item.priority,
                    status_id=item.status_id,
                )
                for item in by_status.get(column.status_id, [])
            ]
            columns.append(BoardColumnViewDto(
                column_id=column.id,
                status_id=column.status_id,
                status_name=column.status.name,
                status_color=column.status.color or settings.default_status_color,
                order_index=column.order_index,
                wip_limit=column.wip_limit,
                is_collapsed=column.is_collapsed,
                item_count=len(cards),
                over_wip_limit=column.wip_limit is not None and len(cards) > column.wip_limit,
                items=cards,
            ))

        return BoardViewDto(
            board_id=board.id,
            project_id=project.id,
            name=board.name,
            description=board.description,
            columns=columns,
            total_items=sum(column.item_count for column in columns),
        )

    # ==================== COLUMNS ====================

    async def update_column(
        self,
        project_id: int,
        column_id: int,
        request: BoardColumnUpdate,
        caller_id: int,
    ) -> BoardColumnDto:
        """
        Set a column's WIP limit and collapsed flag.

        A WIP limit below the column's current item count is accepted.
        """
        project = await self._get_project(project_id)
        board = await self._get_board(project)
        if not any(column.id == column_id for column in board.columns):
            raise NotFoundError(f"Column with ID {column_id} not found in this board")
        self._ensure_owner(project, caller_id, "update board columns")

        try:
            column = await self.boards.update_column(
                board.id,
                column_id,
                {"wip_limit": request.wip_limit, "is_collapsed": request.is_collapsed},
                expected_version=request.expected_version,
            )
        except DatabaseConcurrencyError as e:
            logger.warning(f"Stale update of column {column_id} on board {board.id}: {e}")
            raise ConflictError(f"Column {column_id} was changed by someone else, reload and retry")

        if column is None:
            raise NotFoundError(f"Column with ID {column_id} not found in this board")

        logger.info(
            f"Column {column_id} on board {board.id} updated by user {caller_id}: "
            f"wip_limit={request.wip_limit}, collapsed={request.is_collapsed}"
        )
        return self._column_to_dto(column)

    async def reorder_columns(self, project_id: int, column_ids: List[int], caller_id: int) -> BoardDto:
        """
        Put the board's columns in the submitted order.

        The submission must name every column of the board exactly once.
        """
        project = await self._get_project(project_id)
        board = await self._get_board(project)
        self._ensure_owner(project, caller_id, "reorder board columns")

        board_column_ids = {column.id for column in board.columns}

        if len(set(column_ids)) != len(column_ids):
            raise BadRequestError("Column IDs must not contain duplicates")

        if len(column_ids) != len(board_column_ids):
            raise BadRequestError(
                f"Column count mismatch: expected {len(board_column_ids)}, got {len(column_ids)}"
            )

        for column_id in column_ids:
            if column_id not in board_column_ids:
                raise BadRequestError(f"Column with ID {column_id} does not belong to this board")

        try:
            await self.boards.reorder_columns(board.id, column_ids)
        except DatabaseConcurrencyError as e:
            logger.warning(f"Stale reorder on board {board.id}: {e}")
            raise ConflictError("Board columns were changed by someone else, reload and retry")

        logger.info(f"Columns of board {board.id} reordered by user {caller_id}")
        return self._to_dto(await self._get_board(project))

    async def reconcile_columns(self, project_id: int, caller_id: int) -> BoardDto:
        """
        Bring the board's columns in line with the current active statuses.

        Columns of deleted or inactive statuses are removed and active
        statuses without a column are appended in status order. Surviving
        columns keep their relative order and settings.
        """
        project = await self._get_project(project_id)
        board = await self._get_board(project)
        self._ensure_owner(project, caller_id, "reconcile board columns")

        active_ids = [status.id for status in await self.statuses.get_all()]

        try:
            changes = await self.boards.reconcile_columns(board.id, active_ids)
        except DatabaseConcurrencyError as e:
            logger.warning(f"Stale reconcile on board {board.id}: {e}")
            raise ConflictError("Board columns were changed by someone else, reload and retry")

        logger.info(
            f"Reconciled board {board.id} by user {caller_id}: "
            f"removed statuses {changes['removed']}, added statuses {changes['added']}"
        )
        return self._to_dto(await self._get_board(project))

    # ==================== MOVES ====================

    async def move_work_item(
        self,
        project_id: int,
        work_item_id: int,
        to_status_id: int,
        caller_id: int,
    ) -> WorkItemCardDto:
        """
        Move a card to the column of another status.

        The target status needs a column on this board. Moving a card to the
        status it is already in does nothing, not even a timestamp update.
        """
        project = await self._get_project(project_id)
        board = await self._get_board(project)

        item = await self.work_items.get_by_id(work_item_id)
        if item is None or item.project_id != project.id:
            raise NotFoundError(f"Work item with ID {work_item_id} not found in this project")

        self._ensure_owner(project, caller_id, "move work items on the board")

        if not any(column.status_id == to_status_id for column in board.columns):
            raise BadRequestError(f"Status with ID {to_status_id} has no column on this board")

        target = await self.status_registry.check_status_change(item.status_id, to_status_id)

        if target.id != item.status_id:
            item = await self.work_items.update(item.id, {
                "status_id": target.id,
                "updated_at": get_local_now(),
            })
            logger.info(f"Work item {item.key} moved to '{target.name}' on board {board.id} by user {caller_id}")

        assignee = await self.users.get_by_id(item.assignee_id) if item.assignee_id else None
        return WorkItemCardDto(
            id=item.id,
            key=item.key,
            summary=item.summary,
            assignee_name=assignee.full_name if assignee else None,
            type=item.type,
            priority=item.priority,
            status_id=item.status_id,
        )

    # ==================== HELPERS ====================

    async def _get_project(self, project_id: int) -> ProjectDB:
        project = await self.projects.get_by_id(project_id)
        if project is None:
            raise NotFoundError(f"Project with ID {project_id} not found")
        return project

    async def _get_board(self, project: ProjectDB) -> BoardDB:
        board = await self.boards.get_by_project(project.id)
        if board is None:
            raise NotFoundError(f"Board for project ID {project.id} not found")
        return board

    @staticmethod
    def _ensure_owner(project: ProjectDB, caller_id: int, action: str) -> None:
        if project.owner_id != caller_id:
            logger.warning(f"User {caller_id} tried to {action} of project {project.key}")
            raise ForbiddenError(f"Only the project owner can {action}")

    @staticmethod
    def _column_to_dto(column: BoardColumnDB) -> BoardColumnDto:
        return BoardColumnDto(
            id=column.id,
            board_id=column.board_id,
            status_id=column.status_id,
            status_name=column.status.name,
            status_color=column.status.color or settings.default_status_color,
            order_index=column.order_index,
            wip_limit=column.wip_limit,
            is_collapsed=column.is_collapsed,
            version=column.version,
        )

    def _to_dto(self, board: BoardDB) -> BoardDto:
        return BoardDto(
            id=board.id,
            project_id=board.project_id,
            name=board.name,
            description=board.description,
            created_at=board.created_at,
            updated_at=board.updated_at,
            columns=[self._column_to_dto(column) for column in board.columns],
        )
