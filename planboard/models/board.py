"""Board, column and board view models."""

from datetime import datetime
from typing import Optional, List
from pydantic import BaseModel, Field

from ..database.models import WorkItemTypeEnum


class BoardCreate(BaseModel):
    """Input for creating a board. Name defaults to "<project name> Board"."""
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=1000)


class BoardUpdate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=1000)


class BoardColumnUpdate(BaseModel):
    """
    Column display settings.

    wip_limit=None clears the limit. expected_version, when given, must
    match the column's current version or the update is rejected.
    """
    wip_limit: Optional[int] = Field(None, ge=0)
    is_collapsed: bool = False
    expected_version: Optional[int] = None


class BoardColumnDto(BaseModel):
    id: int
    board_id: int
    status_id: int
    status_name: str
    status_color: str
    order_index: int
    wip_limit: Optional[int] = None
    is_collapsed: bool
    version: int


class BoardDto(BaseModel):
    id: int
    project_id: int
    name: str
    description: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    columns: List[BoardColumnDto] = Field(default_factory=list)


class WorkItemCardDto(BaseModel):
    """Lightweight work item as shown on a board card."""
    id: int
    key: str
    summary: str
    assignee_name: Optional[str] = None
    type: WorkItemTypeEnum
    priority: int
    status_id: int


class BoardColumnViewDto(BaseModel):
    column_id: int
    status_id: int
    status_name: str
    status_color: str
    order_index: int
    wip_limit: Optional[int] = None
    is_collapsed: bool
    item_count: int
    over_wip_limit: bool = False
    items: List[WorkItemCardDto] = Field(default_factory=list)


class BoardViewDto(BaseModel):
    board_id: int
    project_id: int
    name: str
    description: Optional[str] = None
    columns: List[BoardColumnViewDto] = Field(default_factory=list)
    total_items: int = 0
