"""Pydantic schemas for person records."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from ..db.schemas import PersonCategory


class PersonCreate(BaseModel):
    """Schema for registering a person."""

    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    category: PersonCategory = PersonCategory.STUDENT
    document_number: Optional[str] = Field(None, max_length=30)
    grade: Optional[str] = Field(None, max_length=20)
    active: bool = True

    @field_validator("first_name", "last_name")
    @classmethod
    def strip_names(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("name cannot be blank")
        return v


class PersonResponse(BaseModel):
    """Schema for person responses."""

    id: UUID
    first_name: str
    last_name: str
    full_name: str
    category: PersonCategory
    document_number: Optional[str]
    grade: Optional[str]
    active: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
