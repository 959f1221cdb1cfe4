"""
Caller-visible errors raised by Planboard services.

Every condition has its own class so callers can tell them apart; none of
them subclasses another. Repositories raise the lower-level errors from
planboard.database.exceptions and the services translate them here.
"""

from typing import Optional


class PlanboardError(Exception):
    """Base class for service errors."""

    code = "error"
    retryable = False

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message


class NotFoundError(PlanboardError):
    """A referenced entity does not exist."""
    code = "not_found"


class ForbiddenError(PlanboardError):
    """The caller does not own the resource it is trying to change."""
    code = "forbidden"


class BadRequestError(PlanboardError):
    """The request is well-formed but breaks a business rule."""
    code = "bad_request"


class InvalidStatusTransitionError(PlanboardError):
    """The move from one status to another is not allowed."""
    code = "invalid_status_transition"

    def __init__(self, message: str, from_status_id: Optional[int] = None, to_status_id: Optional[int] = None):
        super().__init__(message)
        self.from_status_id = from_status_id
        self.to_status_id = to_status_id


class InvalidHierarchyError(PlanboardError):
    """A parent/child type or depth rule was violated."""
    code = "invalid_hierarchy"

    def __init__(self, message: str, reason: str):
        super().__init__(message)
        self.reason = reason


class CircularHierarchyError(PlanboardError):
    """The requested parent would put an item inside its own subtree."""
    code = "circular_hierarchy"


class ConflictError(PlanboardError):
    """A concurrent writer got there first; re-read and retry."""
    code = "conflict"
    retryable = True
