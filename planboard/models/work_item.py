"""Work item request/response models."""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field, field_validator

from ..database.models import WorkItemTypeEnum


class WorkItemCreate(BaseModel):
    """Input for creating a task, bug or subtask."""
    project_id: int
    type: WorkItemTypeEnum
    summary: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    epic_id: Optional[int] = None
    parent_work_item_id: Optional[int] = None
    assignee_id: Optional[int] = None
    reporter_id: Optional[int] = None  # defaults to the caller
    priority: int = Field(default=3, ge=1, le=5)
    due_date: Optional[datetime] = None

    @field_validator("summary")
    @classmethod
    def validate_summary(cls, v):
        stripped = v.strip()
        if not stripped:
            raise ValueError("summary cannot be blank")
        return stripped


class WorkItemUpdate(BaseModel):
    """
    Partial work item update.

    Only fields that are explicitly set are applied, so passing
    assignee_id=None unassigns while leaving it out keeps the assignee.
    Parent and type changes go through their own operations.
    """
    summary: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    epic_id: Optional[int] = None
    assignee_id: Optional[int] = None
    status_id: Optional[int] = None
    priority: Optional[int] = Field(None, ge=1, le=5)
    due_date: Optional[datetime] = None

    @field_validator("summary")
    @classmethod
    def validate_summary(cls, v):
        if v is None:
            return v
        stripped = v.strip()
        if not stripped:
            raise ValueError("summary cannot be blank")
        return stripped


class WorkItemSearch(BaseModel):
    """Filters for searching work items. All filters are optional and combine with AND."""
    project_id: Optional[int] = None
    epic_id: Optional[int] = None
    type: Optional[WorkItemTypeEnum] = None
    status_id: Optional[int] = None
    assignee_id: Optional[int] = None
    reporter_id: Optional[int] = None
    priority: Optional[int] = Field(None, ge=1, le=5)
    search_text: Optional[str] = Field(None, max_length=200)
    page: int = Field(default=1, ge=1)
    page_size: Optional[int] = Field(None, ge=1, le=500)


class WorkItemDto(BaseModel):
    """A work item with the display data callers need."""
    id: int
    project_id: int
    project_key: str
    key: str
    epic_id: Optional[int] = None
    epic_key: Optional[str] = None
    parent_work_item_id: Optional[int] = None
    parent_work_item_key: Optional[str] = None
    type: WorkItemTypeEnum
    summary: str
    description: Optional[str] = None
    assignee_id: Optional[int] = None
    assignee_name: Optional[str] = None
    reporter_id: Optional[int] = None
    reporter_name: Optional[str] = None
    status_id: int
    status_name: str
    status_color: Optional[str] = None
    priority: int
    due_date: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    child_work_item_count: int = 0
    comment_count: int = 0


class WorkItemListItemDto(BaseModel):
    """Compact work item row for search results."""
    id: int
    key: str
    type: WorkItemTypeEnum
    summary: str
    assignee_name: Optional[str] = None
    status_name: str
    priority: int
    due_date: Optional[datetime] = None
    updated_at: datetime
    child_work_item_count: int = 0
    comment_count: int = 0
