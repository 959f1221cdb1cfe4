"""
Repository classes for database operations.

Each repository handles CRUD and the queries its service needs for one
aggregate. Every method runs in its own session.
"""

from .users import UserRepository
from .projects import ProjectRepository
from .statuses import StatusRepository
from .key_sequences import KeySequenceRepository
from .epics import EpicRepository
from .work_items import WorkItemRepository
from .boards import BoardRepository, renumber_columns

__all__ = [
    "UserRepository",
    "ProjectRepository",
    "StatusRepository",
    "KeySequenceRepository",
    "EpicRepository",
    "WorkItemRepository",
    "BoardRepository",
    "renumber_columns",
]
