"""Status and status transition request/response models."""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator


class StatusCreate(BaseModel):
    """Input for creating a status."""
    name: str = Field(..., min_length=1, max_length=50)
    color: Optional[str] = Field(None, max_length=20)
    order_index: int = 0
    is_default_for_new: bool = False
    is_completed_status: bool = False
    is_cancelled_status: bool = False

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        stripped = v.strip()
        if not stripped:
            raise ValueError("name cannot be blank")
        return stripped


class StatusUpdate(BaseModel):
    """Partial status update. Only fields that are set are applied."""
    name: Optional[str] = Field(None, min_length=1, max_length=50)
    color: Optional[str] = Field(None, max_length=20)
    order_index: Optional[int] = None
    is_default_for_new: Optional[bool] = None
    is_completed_status: Optional[bool] = None
    is_cancelled_status: Optional[bool] = None
    is_active: Optional[bool] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        if v is None:
            return v
        stripped = v.strip()
        if not stripped:
            raise ValueError("name cannot be blank")
        return stripped


class StatusDto(BaseModel):
    """A status as returned to callers."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    color: Optional[str] = None
    order_index: int
    is_default_for_new: bool
    is_completed_status: bool
    is_cancelled_status: bool
    is_active: bool
    created_at: datetime


class StatusTransitionDto(BaseModel):
    """An explicit transition rule with both status names."""
    id: int
    from_status_id: int
    from_status_name: str
    to_status_id: int
    to_status_name: str
    is_allowed: bool
    created_at: datetime
