"""Epic request/response models."""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field, field_validator


class EpicCreate(BaseModel):
    project_id: int
    summary: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    assignee_id: Optional[int] = None
    priority: int = Field(default=3, ge=1, le=5)
    start_date: Optional[datetime] = None
    due_date: Optional[datetime] = None

    @field_validator("summary")
    @classmethod
    def validate_summary(cls, v):
        stripped = v.strip()
        if not stripped:
            raise ValueError("summary cannot be blank")
        return stripped


class EpicUpdate(BaseModel):
    """Partial epic update; unset fields are left alone."""
    summary: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    assignee_id: Optional[int] = None
    status_id: Optional[int] = None
    priority: Optional[int] = Field(None, ge=1, le=5)
    start_date: Optional[datetime] = None
    due_date: Optional[datetime] = None


class EpicDto(BaseModel):
    id: int
    project_id: int
    project_key: str
    key: str
    summary: str
    description: Optional[str] = None
    assignee_id: Optional[int] = None
    assignee_name: Optional[str] = None
    status_id: int
    status_name: str
    status_color: Optional[str] = None
    priority: int
    start_date: Optional[datetime] = None
    due_date: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    work_item_count: int = 0
    completed_work_item_count: int = 0


class EpicListItemDto(BaseModel):
    id: int
    key: str
    summary: str
    assignee_name: Optional[str] = None
    status_name: str
    priority: int
    due_date: Optional[datetime] = None
    updated_at: datetime
    work_item_count: int = 0
    completed_work_item_count: int = 0
