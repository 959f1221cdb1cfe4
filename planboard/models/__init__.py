from .status import StatusCreate, StatusUpdate, StatusDto, StatusTransitionDto
from .project import ProjectCreate, ProjectDto
from .work_item import (
    WorkItemCreate,
    WorkItemUpdate,
    WorkItemSearch,
    WorkItemDto,
    WorkItemListItemDto,
)
from .epic import EpicCreate, EpicUpdate, EpicDto, EpicListItemDto
from .board import (
    BoardCreate,
    BoardUpdate,
    BoardColumnUpdate,
    BoardColumnDto,
    BoardDto,
    WorkItemCardDto,
    BoardColumnViewDto,
    BoardViewDto,
)

__all__ = [
    "StatusCreate",
    "StatusUpdate",
    "StatusDto",
    "StatusTransitionDto",
    "ProjectCreate",
    "ProjectDto",
    "WorkItemCreate",
    "WorkItemUpdate",
    "WorkItemSearch",
    "WorkItemDto",
    "WorkItemListItemDto",
    "EpicCreate",
    "EpicUpdate",
    "EpicDto",
    "EpicListItemDto",
    "BoardCreate",
    "BoardUpdate",
    "BoardColumnUpdate",
    "BoardColumnDto",
    "BoardDto",
    "WorkItemCardDto",
    "BoardColumnViewDto",
    "BoardViewDto",
]
