"""
Work item service.

Creates and mutates tasks, bugs and subtasks under the workflow rules:
- new items start in the default-for-new status with a fresh project key
- every status change is checked by the StatusRegistry
- parent changes are checked for loops and against the type rule table
- items with children or comments cannot be deleted
"""

import logging
from typing import Optional, List, Dict, Any

from config import settings
from ..database.connection import Database, get_database
from ..database.exceptions import DatabaseConstraintError
from ..database.models import WorkItemDB, EntityKindEnum, StatusDB
from ..database.repositories import (
    WorkItemRepository,
    EpicRepository,
    ProjectRepository,
    UserRepository,
    StatusRepository,
)
from ..models.work_item import (
    WorkItemCreate,
    WorkItemUpdate,
    WorkItemSearch,
    WorkItemDto,
    WorkItemListItemDto,
)
from ..utils.datetime_utils import get_local_now, to_naive_local, stamp_updates
from ..utils.hierarchy import (
    WORK_ITEM_HIERARCHY,
    check_parent_rule,
    would_create_cycle,
    depth_of,
)
from .exceptions import (
    NotFoundError,
    BadRequestError,
    InvalidHierarchyError,
    CircularHierarchyError,
    ConflictError,
)
from .key_allocator import KeyAllocator
from .status_registry import StatusRegistry

logger = logging.getLogger(__name__)


class WorkItemService:
    """Work item creation, updates and hierarchy changes."""

    def __init__(self, db: Optional[Database] = None, status_registry: Optional[StatusRegistry] = None):
        self.db = db or get_database()
        self.work_items = WorkItemRepository(self.db)
        self.epics = EpicRepository(self.db)
        self.projects = ProjectRepository(self.db)
        self.users = UserRepository(self.db)
        self.statuses = StatusRepository(self.db)
        self.status_registry = status_registry or StatusRegistry(self.db)
        self.key_allocator = KeyAllocator(self.db)

    # ==================== READ ====================

    async def get_work_item(self, work_item_id: int) -> Optional[WorkItemDto]:
        item = await self.work_items.get_by_id(work_item_id)
        return await self._to_dto(item) if item else None

    async def get_work_item_by_key(self, key: str) -> Optional[WorkItemDto]:
        item = await self.work_items.get_by_key(key)
        return await self._to_dto(item) if item else None

    async def search_work_items(self, search: WorkItemSearch) -> List[WorkItemListItemDto]:
        """
        Search work items, most recently updated first.

        search_text is a substring match over key, summary and description.
        Case sensitivity follows the database (SQLite LIKE is
        case-insensitive for ASCII, PostgreSQL LIKE is not).
        """
        items = await self.work_items.search(
            project_id=search.project_id,
            epic_id=search.epic_id,
            status_id=search.status_id,
            assignee_id=search.assignee_id,
            reporter_id=search.reporter_id,
            item_type=search.type.value if search.type else None,
            priority=search.priority,
            search_text=search.search_text,
            page=search.page,
            page_size=search.page_size or settings.search_page_size,
        )
        if not items:
            return []

        ids = [item.id for item in items]
        statuses = {s.id: s for s in await self.statuses.get_all(include_inactive=True)}
        users = await self.users.get_many(item.assignee_id for item in items)
        children = await self.work_items.child_counts(ids)
        comments = await self.work_items.comment_counts(ids)

        return [
            WorkItemListItemDto(
                id=item.id,
                key=item.key,
                type=item.type,
                summary=item.summary,
                assignee_name=users[item.assignee_id].full_name if item.assignee_id in users else None,
                status_name=statuses[item.status_id].name if item.status_id in statuses else "Unknown",
                priority=item.priority,
                due_date=item.due_date,
                updated_at=item.updated_at,
                child_work_item_count=children.get(item.id, 0),
                comment_count=comments.get(item.id, 0),
            )
            for item in items
        ]

    # ==================== CREATE ====================

    async def create_work_item(self, request: WorkItemCreate, caller_id: int) -> WorkItemDto:
        """Create a work item in the project's default-for-new status."""
        project = await self.projects.get_by_id(request.project_id)
        if project is None:
            raise NotFoundError(f"Project with ID {request.project_id} not found")

        if request.epic_id is not None:
            await self._ensure_epic_in_project(request.epic_id, project.id)

        reporter_id = request.reporter_id if request.reporter_id is not None else caller_id
        await self._ensure_user(request.assignee_id)
        await self._ensure_user(reporter_id)

        if request.parent_work_item_id is not None:
            parent = await self._get_parent_in_project(request.parent_work_item_id, project.id)
            await self._check_parent_rule(request.type.value, parent)

        status = await self.statuses.get_default_for_new()
        if status is None:
            raise BadRequestError("No active default status is configured for new work items")

        key = await self.key_allocator.next_key(project.id, EntityKindEnum.WORK_ITEM)
        now = get_local_now()

        try:
            item = await self.work_items.create({
                "project_id": project.id,
                "epic_id": request.epic_id,
                "parent_work_item_id": request.parent_work_item_id,
                "key": key,
                "type": request.type.value,
                "summary": request.summary,
                "description": request.description,
                "status_id": status.id,
                "assignee_id": request.assignee_id,
                "reporter_id": reporter_id,
                "priority": request.priority,
                "due_date": to_naive_local(request.due_date),
                "created_at": now,
                "updated_at": now,
            })
        except DatabaseConstraintError:
            raise ConflictError(f"Work item key {key} is already taken, please retry")

        logger.info(f"Work item {key} created by user {caller_id} in status '{status.name}'")
        return await self._to_dto(item)

    # ==================== UPDATE ====================

    async def update_work_item(self, work_item_id: int, request: WorkItemUpdate, caller_id: int) -> WorkItemDto:
        """
        Apply the fields set on the request.

        A status change here gets the same checks as update_work_item_status.
        """
        item = await self._get_item(work_item_id)

        # summary, status and priority cannot be cleared
        updates: Dict[str, Any] = {
            field: value
            for field, value in request.model_dump(exclude_unset=True).items()
            if value is not None or field not in ("summary", "status_id", "priority")
        }

        if updates.get("epic_id") is not None:
            await self._ensure_epic_in_project(updates["epic_id"], item.project_id)
        if "assignee_id" in updates:
            await self._ensure_user(updates["assignee_id"])
        if "status_id" in updates:
            await self.status_registry.check_status_change(item.status_id, updates["status_id"])

        updates = stamp_updates(updates, date_fields=("due_date",))
        updated = await self.work_items.update(item.id, updates)

        logger.info(f"Work item {item.key} updated by user {caller_id}: {', '.join(sorted(updates))}")
        return await self._to_dto(updated)

    async def assign_work_item(self, work_item_id: int, assignee_id: Optional[int], caller_id: int) -> WorkItemDto:
        """Assign a work item, or unassign it with assignee_id=None."""
        item = await self._get_item(work_item_id)
        await self._ensure_user(assignee_id)

        updated = await self.work_items.update(item.id, {
            "assignee_id": assignee_id,
            "updated_at": get_local_now(),
        })

        logger.info(f"Work item {item.key} assigned to {assignee_id} by user {caller_id}")
        return await self._to_dto(updated)

    async def update_work_item_status(self, work_item_id: int, status_id: int, caller_id: int) -> WorkItemDto:
        """Move a work item to another status. Moving to the current status changes nothing."""
        item = await self._get_item(work_item_id)
        target = await self.status_registry.check_status_change(item.status_id, status_id)

        if target.id == item.status_id:
            return await self._to_dto(item)

        updated = await self.work_items.update(item.id, {
            "status_id": target.id,
            "updated_at": get_local_now(),
        })

        logger.info(f"Work item {item.key} moved to '{target.name}' by user {caller_id}")
        return await self._to_dto(updated)

    async def update_work_item_parent(
        self,
        work_item_id: int,
        parent_work_item_id: Optional[int],
        caller_id: int,
    ) -> WorkItemDto:
        """
        Set or clear the parent of a work item.

        The loop check runs before the type rules so a parent chain that
        leads back to the item is always reported as a circular hierarchy.
        """
        item = await self._get_item(work_item_id)

        if parent_work_item_id is not None:
            parent = await self._get_parent_in_project(parent_work_item_id, item.project_id)

            if await would_create_cycle(item.id, parent.id, self.work_items.get_parent_id):
                logger.warning(f"Rejected parent {parent.key} for {item.key}: circular hierarchy")
                raise CircularHierarchyError("Setting this parent would create a circular reference")

            await self._check_parent_rule(item.type, parent)

        updated = await self.work_items.update(item.id, {
            "parent_work_item_id": parent_work_item_id,
            "updated_at": get_local_now(),
        })

        logger.info(f"Work item {item.key} parent set to {parent_work_item_id} by user {caller_id}")
        return await self._to_dto(updated)

    # ==================== DELETE ====================

    async def delete_work_item(self, work_item_id: int, caller_id: int) -> None:
        """Delete a work item that has no child items and no comments."""
        item = await self._get_item(work_item_id)

        child_count = await self.work_items.count_children(item.id)
        if child_count > 0:
            raise BadRequestError(
                f"Cannot delete work item '{item.key}' because it has {child_count} child work items. "
                "Please delete or reassign them first."
            )

        comment_count = await self.work_items.count_comments(item.id)
        if comment_count > 0:
            raise BadRequestError(
                f"Cannot delete work item '{item.key}' because it has {comment_count} comments. "
                "Please delete the comments first."
            )

        await self.work_items.delete(item.id)
        logger.info(f"Work item {item.key} deleted by user {caller_id}")

    # ==================== HELPERS ====================

    async def _get_item(self, work_item_id: int) -> WorkItemDB:
        item = await self.work_items.get_by_id(work_item_id)
        if item is None:
            raise NotFoundError(f"Work item with ID {work_item_id} not found")
        return item

    async def _ensure_user(self, user_id: Optional[int]) -> None:
        if user_id is not None and await self.users.get_by_id(user_id) is None:
            raise NotFoundError(f"User with ID {user_id} not found")

    async def _ensure_epic_in_project(self, epic_id: int, project_id: int) -> None:
        epic = await self.epics.get_by_id(epic_id)
        if epic is None:
            raise NotFoundError(f"Epic with ID {epic_id} not found")
        if epic.project_id != project_id:
            raise BadRequestError("Epic does not belong to the same project")

    async def _get_parent_in_project(self, parent_id: int, project_id: int) -> WorkItemDB:
        parent = await self.work_items.get_by_id(parent_id)
        if parent is None:
            raise NotFoundError(f"Parent work item with ID {parent_id} not found")
        if parent.project_id != project_id:
            raise BadRequestError("Parent work item does not belong to the same project")
        return parent

    async def _check_parent_rule(self, child_type: str, parent: WorkItemDB) -> None:
        parent_depth = await depth_of(parent.id, self.work_items.get_parent_id)
        check = check_parent_rule(WORK_ITEM_HIERARCHY, child_type, parent.type, parent_depth)
        if not check.ok:
            logger.warning(f"Rejected {child_type} under {parent.key}: {check.reason}")
            raise InvalidHierarchyError(check.message, reason=check.reason)

    async def _to_dto(self, item: WorkItemDB) -> WorkItemDto:
        project = await self.projects.get_by_id(item.project_id)
        status: Optional[StatusDB] = await self.statuses.get_by_id(item.status_id)
        epic = await self.epics.get_by_id(item.epic_id) if item.epic_id else None
        parent = await self.work_items.get_by_id(item.parent_work_item_id) if item.parent_work_item_id else None
        users = await self.users.get_many([item.assignee_id, item.reporter_id])

        return WorkItemDto(
            id=item.id,
            project_id=item.project_id,
            project_key=project.key if project else "",
            key=item.key,
            epic_id=item.epic_id,
            epic_key=epic.key if epic else None,
            parent_work_item_id=item.parent_work_item_id,
            parent_work_item_key=parent.key if parent else None,
            type=item.type,
            summary=item.summary,
            description=item.description,
            assignee_id=item.assignee_id,
            assignee_name=users[item.assignee_id].full_name if item.assignee_id in users else None,
            reporter_id=item.reporter_id,
            reporter_name=users[item.reporter_id].full_name if item.reporter_id in users else None,
            status_id=item.status_id,
            status_name=status.name if status else "Unknown",
            status_color=status.color if status else None,
            priority=item.priority,
            due_date=item.due_date,
            created_at=item.created_at,
            updated_at=item.updated_at,
            child_work_item_count=await self.work_items.count_children(item.id),
            comment_count=await self.work_items.count_comments(item.id),
        )
