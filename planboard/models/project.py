"""Project request/response models."""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field, field_validator


class ProjectCreate(BaseModel):
    """Input for creating a project. The key is stored upper-case."""
    key: str = Field(..., min_length=1, max_length=10, pattern=r"^[A-Za-z][A-Za-z0-9]*$")
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=1000)

    @field_validator("key")
    @classmethod
    def normalize_key(cls, v):
        return v.upper()

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        stripped = v.strip()
        if not stripped:
            raise ValueError("name cannot be blank")
        return stripped


class ProjectDto(BaseModel):
    id: int
    key: str
    name: str
    description: Optional[str] = None
    owner_id: int
    owner_name: Optional[str] = None
    is_active: bool
    is_archived: bool
    created_at: datetime
    updated_at: datetime
