"""
Persistence layer for Planboard.

Handles:
- Statuses and transition rules
- Projects, epics and work items with per-project key sequences
- Kanban boards and their status columns

PostgreSQL (asyncpg) in production, SQLite (aiosqlite) for local runs and tests.
"""

from .connection import (
    get_database,
    Database,
    init_database,
    close_database,
)
from .models import (
    Base,
    WorkItemTypeEnum,
    EntityKindEnum,
    UserDB,
    ProjectDB,
    KeySequenceDB,
    StatusDB,
    StatusTransitionDB,
    EpicDB,
    WorkItemDB,
    WorkItemCommentDB,
    BoardDB,
    BoardColumnDB,
)

__all__ = [
    "get_database",
    "Database",
    "init_database",
    "close_database",
    "Base",
    "WorkItemTypeEnum",
    "EntityKindEnum",
    "UserDB",
    "ProjectDB",
    "KeySequenceDB",
    "StatusDB",
    "StatusTransitionDB",
    "EpicDB",
    "WorkItemDB",
    "WorkItemCommentDB",
    "BoardDB",
    "BoardColumnDB",
]
