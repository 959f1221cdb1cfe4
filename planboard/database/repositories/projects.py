"""
Project repository.

Projects are plain CRUD owned by an outer layer; the workflow core needs
them for existence checks, ownership checks and the key prefix.
"""

import logging
from typing import Optional, List

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from ..connection import Database, get_database
from ..models import ProjectDB
from ..exceptions import DatabaseConstraintError, DatabaseOperationError

logger = logging.getLogger(__name__)


class ProjectRepository:
    """Repository for project operations."""

    def __init__(self, db: Optional[Database] = None):
        self.db = db or get_database()

    async def create(
        self,
        key: str,
        name: str,
        owner_id: int,
        description: Optional[str] = None,
    ) -> ProjectDB:
        """Create a new project."""
        async with self.db.session() as session:
            try:
                project = ProjectDB(
                    key=key,
                    name=name,
                    description=description,
                    owner_id=owner_id,
                )
                session.add(project)
                await session.flush()

                logger.info(f"Created project {key}: {name}")
                return project

            except IntegrityError as e:
                logger.error(f"Constraint violation creating project {key}: {e}")
                raise DatabaseConstraintError(f"Cannot create project {key}: duplicate or constraint violation")

            except Exception as e:
                logger.error(f"Project creation failed for {key}: {e}", exc_info=True)
                raise DatabaseOperationError(f"Failed to create project {key}: {e}")

    async def get_by_id(self, project_id: int) -> Optional[ProjectDB]:
        """Get project by ID."""
        async with self.db.session() as session:
            result = await session.execute(
                select(ProjectDB).where(ProjectDB.id == project_id)
            )
            return result.scalar_one_or_none()

    async def get_by_key(self, key: str) -> Optional[ProjectDB]:
        """Get project by its key (exact match)."""
        async with self.db.session() as session:
            result = await session.execute(
                select(ProjectDB).where(ProjectDB.key == key)
            )
            return result.scalar_one_or_none()

    async def get_all(self, owner_id: Optional[int] = None) -> List[ProjectDB]:
        """Get all projects, optionally only those owned by one user."""
        async with self.db.session() as session:
            query = select(ProjectDB)

            if owner_id is not None:
                query = query.where(ProjectDB.owner_id == owner_id)

            query = query.order_by(ProjectDB.key)

            result = await session.execute(query)
            return list(result.scalars().all())
