"""
Pydantic schemas for categories.
"""
import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from edustream.schemas.common import Pagination
from edustream.schemas.course import PublicCourse


class CategoryCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: str = Field(..., min_length=1)
    icon: str = Field(..., min_length=1)


class CategoryUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    icon: Optional[str] = None
    is_active: Optional[bool] = None


class CategoryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    description: str
    icon: str
    course_count: int
    is_active: bool
    created_at: datetime
    updated_at: datetime


class CategoryCourses(BaseModel):
    category: CategoryOut
    courses: List[PublicCourse]
    pagination: Pagination
