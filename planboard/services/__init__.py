"""
Workflow and board services.

Each service opens its own short-lived sessions through the repositories
and raises the errors defined in .exceptions.
"""

from .exceptions import (
    PlanboardError,
    NotFoundError,
    ForbiddenError,
    BadRequestError,
    InvalidStatusTransitionError,
    InvalidHierarchyError,
    CircularHierarchyError,
    ConflictError,
)
from .status_registry import StatusRegistry, is_transition_allowed, DEFAULT_STATUSES
from .key_allocator import KeyAllocator, parse_key_suffixes, key_prefix
from .projects import ProjectService
from .work_items import WorkItemService
from .epics import EpicService
from .boards import BoardService, filter_work_items

__all__ = [
    "PlanboardError",
    "NotFoundError",
    "ForbiddenError",
    "BadRequestError",
    "InvalidStatusTransitionError",
    "InvalidHierarchyError",
    "CircularHierarchyError",
    "ConflictError",
    "StatusRegistry",
    "is_transition_allowed",
    "DEFAULT_STATUSES",
    "KeyAllocator",
    "parse_key_suffixes",
    "key_prefix",
    "ProjectService",
    "WorkItemService",
    "EpicService",
    "BoardService",
    "filter_work_items",
]
