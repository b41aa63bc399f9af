"""Pydantic schemas for catalog resources."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from ..db.schemas import ResourceCondition, ResourceType


class ResourceCreate(BaseModel):
    """Schema for cataloguing a resource."""

    title: str = Field(..., min_length=1, max_length=500)
    author: Optional[str] = Field(None, max_length=300)
    isbn: Optional[str] = Field(None, max_length=20)
    resource_type: ResourceType = ResourceType.BOOK
    total_quantity: int = Field(1, ge=0)
    condition: ResourceCondition = ResourceCondition.GOOD
    available: bool = True


class ResourceResponse(BaseModel):
    """Schema for resource responses."""

    id: UUID
    title: str
    author: Optional[str]
    isbn: Optional[str]
    resource_type: ResourceType
    total_quantity: int
    currently_loaned: int
    available_quantity: int
    condition: ResourceCondition
    available: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
