"""
Per-project display keys for epics and work items.

Keys look like "ABC-42" for work items and "ABC-EPIC-3" for epics. Numbers
come from an atomic per-(project, kind) counter, so two concurrent
creations never get the same key and a key is never handed out again after
its entity is deleted. The counter is floored at the highest key already
stored, which keeps keys entered by hand or imported from elsewhere from
being reissued.
"""

import logging
from typing import Iterable, Optional

from ..database.connection import Database, get_database
from ..database.exceptions import DatabaseConstraintError, DatabaseOperationError
from ..database.models import EntityKindEnum
from ..database.repositories import ProjectRepository, KeySequenceRepository
from .exceptions import NotFoundError, ConflictError

logger = logging.getLogger(__name__)


def key_prefix(project_key: str, kind: EntityKindEnum) -> str:
    """Key prefix for an entity kind, e.g. "ABC-EPIC-" or "ABC-"."""
    if kind == EntityKindEnum.EPIC:
        return f"{project_key}-EPIC-"
    return f"{project_key}-"


def parse_key_suffixes(keys: Iterable[str], prefix: str) -> int:
    """
    Highest integer suffix among keys that start with prefix, 0 if none.

    Keys whose suffix is not a plain non-negative integer are ignored.
    """
    highest = 0
    for key in keys:
        if not key.startswith(prefix):
            continue
        suffix = key[len(prefix):]
        if not (suffix.isascii() and suffix.isdigit()):
            continue
        highest = max(highest, int(suffix))
    return highest


class KeyAllocator:
    """Allocates the next display key for a project and entity kind."""

    def __init__(self, db: Optional[Database] = None):
        self.db = db or get_database()
        self.projects = ProjectRepository(self.db)
        self.sequences = KeySequenceRepository(self.db)

    async def next_key(self, project_id: int, kind: EntityKindEnum) -> str:
        project = await self.projects.get_by_id(project_id)
        if project is None:
            raise NotFoundError(f"Project with ID {project_id} not found")

        prefix = key_prefix(project.key, kind)
        existing = await self.sequences.get_existing_keys(project_id, kind, prefix)
        floor = parse_key_suffixes(existing, prefix)

        try:
            value = await self.sequences.next_value(project_id, kind, floor)
        except (DatabaseConstraintError, DatabaseOperationError) as e:
            logger.warning(f"Key allocation for project {project.key} ({kind.value}) lost a race: {e}")
            raise ConflictError(f"Could not allocate a {kind.value} key for project {project.key}, please retry")

        key = f"{prefix}{value}"
        logger.debug(f"Allocated key {key}")
        return key
