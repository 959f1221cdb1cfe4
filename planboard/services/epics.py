"""Epic service: epic CRUD, assignment and status changes."""

import logging
from typing import Optional, List, Dict, Any

from config import settings
from ..database.connection import Database, get_database
from ..database.exceptions import DatabaseConstraintError
from ..database.models import EpicDB, EntityKindEnum
from ..database.repositories import (
    EpicRepository,
    ProjectRepository,
    UserRepository,
    StatusRepository,
)
from ..models.epic import EpicCreate, EpicUpdate, EpicDto, EpicListItemDto
from ..utils.datetime_utils import get_local_now, to_naive_local, stamp_updates
from .exceptions import NotFoundError, BadRequestError, ConflictError
from .key_allocator import KeyAllocator
from .status_registry import StatusRegistry

logger = logging.getLogger(__name__)


class EpicService:
    """Epics and their workflow status."""

    def __init__(self, db: Optional[Database] = None, status_registry: Optional[StatusRegistry] = None):
        self.db = db or get_database()
        self.epics = EpicRepository(self.db)
        self.projects = ProjectRepository(self.db)
        self.users = UserRepository(self.db)
        self.statuses = StatusRepository(self.db)
        self.status_registry = status_registry or StatusRegistry(self.db)
        self.key_allocator = KeyAllocator(self.db)

    async def get_epic(self, epic_id: int) -> Optional[EpicDto]:
        epic = await self.epics.get_by_id(epic_id)
        return await self._to_dto(epic) if epic else None

    async def get_epic_by_key(self, key: str) -> Optional[EpicDto]:
        epic = await self.epics.get_by_key(key)
        return await self._to_dto(epic) if epic else None

    async def list_epics(
        self,
        project_id: Optional[int] = None,
        status_id: Optional[int] = None,
        assignee_id: Optional[int] = None,
        page: int = 1,
        page_size: Optional[int] = None,
    ) -> List[EpicListItemDto]:
        """List epics with their work item and completed work item counts."""
        epics = await self.epics.get_all(
            project_id=project_id,
            status_id=status_id,
            assignee_id=assignee_id,
            page=max(page, 1),
            page_size=page_size or settings.search_page_size,
        )
        if not epics:
            return []

        statuses = {s.id: s for s in await self.statuses.get_all(include_inactive=True)}
        users = await self.users.get_many(epic.assignee_id for epic in epics)
        counts = await self.epics.work_item_counts([epic.id for epic in epics])

        return [
            EpicListItemDto(
                id=epic.id,
                key=epic.key,
                summary=epic.summary,
                assignee_name=users[epic.assignee_id].full_name if epic.assignee_id in users else None,
                status_name=statuses[epic.status_id].name if epic.status_id in statuses else "Unknown",
                priority=epic.priority,
                due_date=epic.due_date,
                updated_at=epic.updated_at,
                work_item_count=counts.get(epic.id, (0, 0))[0],
                completed_work_item_count=counts.get(epic.id, (0, 0))[1],
            )
            for epic in epics
        ]

    async def create_epic(self, request: EpicCreate, caller_id: int) -> EpicDto:
        """Create an epic in the default-for-new status."""
        project = await self.projects.get_by_id(request.project_id)
        if project is None:
            raise NotFoundError(f"Project with ID {request.project_id} not found")

        await self._ensure_user(request.assignee_id)

        status = await self.statuses.get_default_for_new()
        if status is None:
            raise BadRequestError("No active default status is configured for new epics")

        key = await self.key_allocator.next_key(project.id, EntityKindEnum.EPIC)
        now = get_local_now()

        try:
            epic = await self.epics.create({
                "project_id": project.id,
                "key": key,
                "summary": request.summary,
                "description": request.description,
                "status_id": status.id,
                "assignee_id": request.assignee_id,
                "priority": request.priority,
                "start_date": to_naive_local(request.start_date),
                "due_date": to_naive_local(request.due_date),
                "created_at": now,
                "updated_at": now,
            })
        except DatabaseConstraintError:
            raise ConflictError(f"Epic key {key} is already taken, please retry")

        logger.info(f"Epic {key} created by user {caller_id}")
        return await self._to_dto(epic)

    async def update_epic(self, epic_id: int, request: EpicUpdate, caller_id: int) -> EpicDto:
        epic = await self._get_epic(epic_id)

        # summary, status and priority cannot be cleared
        updates: Dict[str, Any] = {
            field: value
            for field, value in request.model_dump(exclude_unset=True).items()
            if value is not None or field not in ("summary", "status_id", "priority")
        }

        if "assignee_id" in updates:
            await self._ensure_user(updates["assignee_id"])
        if "status_id" in updates:
            await self.status_registry.check_status_change(epic.status_id, updates["status_id"])

        updates = stamp_updates(updates, date_fields=("start_date", "due_date"))
        updated = await self.epics.update(epic.id, updates)

        logger.info(f"Epic {epic.key} updated by user {caller_id}: {', '.join(sorted(updates))}")
        return await self._to_dto(updated)

    async def assign_epic(self, epic_id: int, assignee_id: Optional[int], caller_id: int) -> EpicDto:
        epic = await self._get_epic(epic_id)
        await self._ensure_user(assignee_id)

        updated = await self.epics.update(epic.id, {
            "assignee_id": assignee_id,
            "updated_at": get_local_now(),
        })

        logger.info(f"Epic {epic.key} assigned to {assignee_id} by user {caller_id}")
        return await self._to_dto(updated)

    async def update_epic_status(self, epic_id: int, status_id: int, caller_id: int) -> EpicDto:
        """Move an epic to another status. Moving to the current status changes nothing."""
        epic = await self._get_epic(epic_id)
        target = await self.status_registry.check_status_change(epic.status_id, status_id)

        if target.id == epic.status_id:
            return await self._to_dto(epic)

        updated = await self.epics.update(epic.id, {
            "status_id": target.id,
            "updated_at": get_local_now(),
        })

        logger.info(f"Epic {epic.key} moved to '{target.name}' by user {caller_id}")
        return await self._to_dto(updated)

    async def delete_epic(self, epic_id: int, caller_id: int) -> None:
        """Delete an epic that no longer contains work items."""
        epic = await self._get_epic(epic_id)

        work_item_count = await self.epics.count_work_items(epic.id)
        if work_item_count > 0:
            raise BadRequestError(
                f"Cannot delete epic '{epic.key}' because it has {work_item_count} work items. "
                "Please delete or move them first."
            )

        await self.epics.delete(epic.id)
        logger.info(f"Epic {epic.key} deleted by user {caller_id}")

    async def _get_epic(self, epic_id: int) -> EpicDB:
        epic = await self.epics.get_by_id(epic_id)
        if epic is None:
            raise NotFoundError(f"Epic with ID {epic_id} not found")
        return epic

    async def _ensure_user(self, user_id: Optional[int]) -> None:
        if user_id is not None and await self.users.get_by_id(user_id) is None:
            raise NotFoundError(f"User with ID {user_id} not found")

    async def _to_dto(self, epic: EpicDB) -> EpicDto:
        project = await self.projects.get_by_id(epic.project_id)
        status = await self.statuses.get_by_id(epic.status_id)
        assignee = await self.users.get_by_id(epic.assignee_id) if epic.assignee_id else None
        total, completed = (await self.epics.work_item_counts([epic.id])).get(epic.id, (0, 0))

        return EpicDto(
            id=epic.id,
            project_id=epic.project_id,
            project_key=project.key if project else "",
            key=epic.key,
            summary=epic.summary,
            description=epic.description,
            assignee_id=epic.assignee_id,
            assignee_name=assignee.full_name if assignee else None,
            status_id=epic.status_id,
            status_name=status.name if status else "Unknown",
            status_color=status.color if status else None,
            priority=epic.priority,
            start_date=epic.start_date,
            due_date=epic.due_date,
            created_at=epic.created_at,
            updated_at=epic.updated_at,
            work_item_count=total,
            completed_work_item_count=completed,
        )
