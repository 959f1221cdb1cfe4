"""
Status registry.

Owns workflow statuses and the explicit transition rules between them, and
is the single authority on whether a move from one status to another is
allowed.

Two policies decide what an ordered pair with no explicit rule means:
- permissive: allowed unless a rule forbids it
- explicit: forbidden unless a rule allows it

Validation and the allowed-transitions listing go through the same
predicate, so they always agree.
"""

import logging
from typing import Optional, List

from config import settings
from ..database.connection import Database, get_database
from ..database.exceptions import DatabaseConstraintError
from ..database.models import StatusDB
from ..database.repositories import StatusRepository
from ..models.status import StatusCreate, StatusUpdate, StatusDto, StatusTransitionDto
from .exceptions import NotFoundError, BadRequestError, InvalidStatusTransitionError

logger = logging.getLogger(__name__)

PERMISSIVE = "permissive"
EXPLICIT = "explicit"
TRANSITION_POLICIES = (PERMISSIVE, EXPLICIT)

DEFAULT_STATUSES = [
    {"name": "BACKLOG", "color": "#34495e", "order_index": 0},
    {"name": "TODO", "color": "#95a5a6", "order_index": 1, "is_default_for_new": True},
    {"name": "IN PROGRESS", "color": "#3498db", "order_index": 2},
    {"name": "DONE", "color": "#2ecc71", "order_index": 3, "is_completed_status": True},
    {"name": "CANCELLED", "color": "#e74c3c", "order_index": 4, "is_cancelled_status": True},
]


def is_transition_allowed(
    policy: str,
    from_status_id: int,
    to_status_id: int,
    explicit_rule: Optional[bool],
) -> bool:
    """
    Decide a transition from the explicit rule for the pair (None if there is none).

    Staying in the same status is always allowed.
    """
    if from_status_id == to_status_id:
        return True
    if explicit_rule is not None:
        return explicit_rule
    return policy == PERMISSIVE


def to_status_dto(status: StatusDB) -> StatusDto:
    return StatusDto.model_validate(status)


class StatusRegistry:
    """Statuses, transition rules and transition checks."""

    def __init__(self, db: Optional[Database] = None, policy: Optional[str] = None):
        self.db = db or get_database()
        self.statuses = StatusRepository(self.db)
        self.policy = policy or settings.transition_policy
        if self.policy not in TRANSITION_POLICIES:
            raise ValueError(
                f"Unknown transition policy '{self.policy}', expected one of {', '.join(TRANSITION_POLICIES)}"
            )

    # ==================== STATUSES ====================

    async def get_all_statuses(self, include_inactive: bool = False) -> List[StatusDto]:
        statuses = await self.statuses.get_all(include_inactive=include_inactive)
        return [to_status_dto(s) for s in statuses]

    async def get_status(self, status_id: int) -> Optional[StatusDto]:
        status = await self.statuses.get_by_id(status_id)
        return to_status_dto(status) if status else None

    async def create_status(self, request: StatusCreate) -> StatusDto:
        """Create a status. Names are unique across active and inactive statuses."""
        if await self.statuses.name_exists(request.name):
            raise BadRequestError(f"Status with name '{request.name}' already exists")

        try:
            status = await self.statuses.create(request.model_dump())
        except DatabaseConstraintError:
            raise BadRequestError(f"Status with name '{request.name}' already exists")

        return to_status_dto(status)

    async def update_status(self, status_id: int, request: StatusUpdate) -> StatusDto:
        """
        Apply the fields set on the request.

        A status that epics or work items still use cannot be deactivated.
        """
        status = await self.statuses.get_by_id(status_id)
        if status is None:
            raise NotFoundError(f"Status with ID {status_id} not found")

        # Only color may be cleared
        updates = {
            field: value
            for field, value in request.model_dump(exclude_unset=True).items()
            if value is not None or field == "color"
        }

        if "name" in updates and await self.statuses.name_exists(updates["name"], exclude_id=status_id):
            raise BadRequestError(f"Status with name '{updates['name']}' already exists")

        if updates.get("is_active") is False and status.is_active:
            await self._ensure_unused(status, "deactivate")

        if not updates:
            return to_status_dto(status)

        try:
            updated = await self.statuses.update(status_id, updates)
        except DatabaseConstraintError:
            raise BadRequestError(f"Status with name '{updates.get('name')}' already exists")

        logger.info(f"Updated status {status_id}: {', '.join(sorted(updates))}")
        return to_status_dto(updated)

    async def delete_status(self, status_id: int) -> None:
        """Delete an unused status together with its rules and board columns."""
        status = await self.statuses.get_by_id(status_id)
        if status is None:
            raise NotFoundError(f"Status with ID {status_id} not found")

        await self._ensure_unused(status, "delete")

        await self.statuses.delete(status_id)
        logger.info(f"Deleted status '{status.name}' ({status_id})")

    async def _ensure_unused(self, status: StatusDB, action: str) -> None:
        epic_count, work_item_count = await self.statuses.usage_counts(status.id)
        if epic_count or work_item_count:
            raise BadRequestError(
                f"Cannot {action} status '{status.name}' because it is used by "
                f"{epic_count} epic(s) and {work_item_count} work item(s)"
            )

    # ==================== TRANSITIONS ====================

    async def validate_transition(self, from_status_id: int, to_status_id: int) -> bool:
        """Check whether moving from one status to another is allowed."""
        if from_status_id == to_status_id:
            return True

        rule = await self.statuses.get_transition(from_status_id, to_status_id)
        return is_transition_allowed(
            self.policy,
            from_status_id,
            to_status_id,
            rule.is_allowed if rule else None,
        )

    async def check_status_change(self, current_status_id: int, target_status_id: int) -> StatusDB:
        """
        Resolve the target status of a status change and make sure it may happen.

        Raises NotFoundError if the target does not exist, BadRequestError if
        it is inactive and InvalidStatusTransitionError if the move is not
        allowed. Staying in the current status always passes.
        """
        target = await self.statuses.get_by_id(target_status_id)
        if target is None:
            raise NotFoundError(f"Status with ID {target_status_id} not found")

        if target_status_id == current_status_id:
            return target

        if not target.is_active:
            raise BadRequestError(f"Status '{target.name}' is not active")

        if not await self.validate_transition(current_status_id, target_status_id):
            current = await self.statuses.get_by_id(current_status_id)
            current_name = current.name if current else "Unknown"
            logger.warning(f"Rejected status transition '{current_name}' -> '{target.name}'")
            raise InvalidStatusTransitionError(
                f"Cannot transition from '{current_name}' to '{target.name}'",
                from_status_id=current_status_id,
                to_status_id=target_status_id,
            )

        return target

    async def get_allowed_transitions(self, from_status_id: int) -> List[StatusDto]:
        """
        List the active statuses an item in from_status_id may move to.

        The current status itself is not listed.
        """
        if await self.statuses.get_by_id(from_status_id) is None:
            raise NotFoundError(f"Status with ID {from_status_id} not found")

        rules = {
            rule.to_status_id: rule.is_allowed
            for rule in await self.statuses.get_transitions_from(from_status_id)
        }

        return [
            to_status_dto(status)
            for status in await self.statuses.get_all()
            if status.id != from_status_id
            and is_transition_allowed(self.policy, from_status_id, status.id, rules.get(status.id))
        ]

    async def create_status_transition(
        self,
        from_status_id: int,
        to_status_id: int,
        is_allowed: bool = True,
    ) -> StatusTransitionDto:
        """Add an explicit rule for an ordered status pair."""
        from_status = await self.statuses.get_by_id(from_status_id)
        if from_status is None:
            raise NotFoundError(f"Source status with ID {from_status_id} not found")

        to_status = await self.statuses.get_by_id(to_status_id)
        if to_status is None:
            raise NotFoundError(f"Target status with ID {to_status_id} not found")

        if await self.statuses.get_transition(from_status_id, to_status_id) is not None:
            raise BadRequestError(
                f"Transition from '{from_status.name}' to '{to_status.name}' already exists"
            )

        try:
            transition = await self.statuses.create_transition(from_status_id, to_status_id, is_allowed)
        except DatabaseConstraintError:
            raise BadRequestError(
                f"Transition from '{from_status.name}' to '{to_status.name}' already exists"
            )

        return StatusTransitionDto(
            id=transition.id,
            from_status_id=from_status.id,
            from_status_name=from_status.name,
            to_status_id=to_status.id,
            to_status_name=to_status.name,
            is_allowed=transition.is_allowed,
            created_at=transition.created_at,
        )

    async def get_transitions(self) -> List[StatusTransitionDto]:
        return [
            StatusTransitionDto(
                id=t.id,
                from_status_id=t.from_status_id,
                from_status_name=t.from_status.name,
                to_status_id=t.to_status_id,
                to_status_name=t.to_status.name,
                is_allowed=t.is_allowed,
                created_at=t.created_at,
            )
            for t in await self.statuses.get_all_transitions()
        ]

    async def delete_status_transition(self, transition_id: int) -> None:
        if not await self.statuses.delete_transition(transition_id):
            raise NotFoundError(f"Status transition with ID {transition_id} not found")
        logger.info(f"Deleted status transition {transition_id}")

    # ==================== BOOTSTRAP ====================

    async def create_default_statuses(self) -> List[StatusDto]:
        """
        Seed the default workflow when no status exists yet.

        Returns the created statuses, or an empty list when statuses were
        already there.
        """
        if await self.statuses.count() > 0:
            logger.debug("Statuses already exist, skipping default seed")
            return []

        try:
            created = await self.statuses.create_many(DEFAULT_STATUSES)
        except DatabaseConstraintError:
            logger.info("Default statuses were seeded concurrently")
            return []

        logger.info(f"Seeded {len(created)} default statuses")
        return [to_status_dto(s) for s in created]
