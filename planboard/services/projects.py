"""
Project service.

Projects are managed elsewhere; this is the small slice the workflow core
needs: create a project for an owner and look projects up.
"""

import logging
from typing import Optional, List

from ..database.connection import Database, get_database
from ..database.exceptions import DatabaseConstraintError
from ..database.models import ProjectDB
from ..database.repositories import ProjectRepository, UserRepository
from ..models.project import ProjectCreate, ProjectDto
from .exceptions import NotFoundError, BadRequestError

logger = logging.getLogger(__name__)


class ProjectService:

    def __init__(self, db: Optional[Database] = None):
        self.db = db or get_database()
        self.projects = ProjectRepository(self.db)
        self.users = UserRepository(self.db)

    async def create_project(self, request: ProjectCreate, owner_id: int) -> ProjectDto:
        """Create a project owned by owner_id. Keys are unique and upper-case."""
        owner = await self.users.get_by_id(owner_id)
        if owner is None:
            raise NotFoundError(f"User with ID {owner_id} not found")

        if await self.projects.get_by_key(request.key) is not None:
            raise BadRequestError(f"Project with key '{request.key}' already exists")

        try:
            project = await self.projects.create(
                key=request.key,
                name=request.name,
                owner_id=owner_id,
                description=request.description,
            )
        except DatabaseConstraintError:
            raise BadRequestError(f"Project with key '{request.key}' already exists")

        return self._to_dto(project, owner.full_name)

    async def get_project(self, project_id: int) -> Optional[ProjectDto]:
        project = await self.projects.get_by_id(project_id)
        if project is None:
            return None
        owner = await self.users.get_by_id(project.owner_id)
        return self._to_dto(project, owner.full_name if owner else None)

    async def list_projects(self, owner_id: Optional[int] = None) -> List[ProjectDto]:
        projects = await self.projects.get_all(owner_id=owner_id)
        owners = await self.users.get_many(p.owner_id for p in projects)
        return [
            self._to_dto(p, owners[p.owner_id].full_name if p.owner_id in owners else None)
            for p in projects
        ]

    @staticmethod
    def _to_dto(project: ProjectDB, owner_name: Optional[str]) -> ProjectDto:
        return ProjectDto(
            id=project.id,
            key=project.key,
            name=project.name,
            description=project.description,
            owner_id=project.owner_id,
            owner_name=owner_name,
            is_active=project.is_active,
            is_archived=project.is_archived,
            created_at=project.created_at,
            updated_at=project.updated_at,
        )
