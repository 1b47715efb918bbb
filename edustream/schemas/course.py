"""
Pydantic schemas for courses and lessons.

Two projections of a course exist:
- PublicCourse: served by unauthenticated endpoints, lessons carry no video URL.
- CourseDetail: served to the owning instructor and admins.
"""
import uuid
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from edustream.schemas.common import Pagination

Difficulty = Literal["beginner", "intermediate", "advanced"]
SortBy = Literal["recent", "rating", "popular"]


class LessonIn(BaseModel):
    """Lesson as supplied by an instructor."""
    id: str = Field(..., min_length=1, description="Client-side lesson identifier")
    title: str = Field(..., min_length=1)
    video_url: Optional[str] = None
    duration: int = Field(0, ge=0)
    order: int = 0
    description: Optional[str] = None
    resources: List[str] = []


class PublicLesson(BaseModel):
    id: str
    title: str
    duration: int
    order: int
    description: Optional[str] = None
    resources: List[str] = []


class LessonDetail(PublicLesson):
    video_url: Optional[str] = None


class InstructorInfo(BaseModel):
    id: str
    name: str
    avatar: Optional[str] = None


class CourseSummary(BaseModel):
    """Compact course card used by enrollment listings."""
    id: uuid.UUID
    title: str
    thumbnail: Optional[str] = None
    category: str
    difficulty: Difficulty
    duration: int
    instructor: InstructorInfo


class PublicCourse(BaseModel):
    id: uuid.UUID
    title: str
    description: str
    instructor: InstructorInfo
    category: str
    difficulty: Difficulty
    duration: int
    price: float
    thumbnail: Optional[str] = None
    materials: List[str] = []
    requirements: List[str] = []
    tags: List[str] = []
    rating: float
    rating_count: int
    enrolled_count: int
    is_published: bool
    lessons: List[PublicLesson] = []
    created_at: datetime
    updated_at: datetime


class CourseDetail(PublicCourse):
    lessons: List[LessonDetail] = []


class PublicCourseList(BaseModel):
    courses: List[PublicCourse]
    pagination: Pagination


class CourseDetailList(BaseModel):
    courses: List[CourseDetail]
    pagination: Pagination


class CourseUpdate(BaseModel):
    """Partial update. Lists replace the stored value; lessons replace all lessons."""
    title: Optional[str] = Field(None, min_length=3)
    description: Optional[str] = Field(None, min_length=10)
    category: Optional[str] = Field(None, min_length=1)
    difficulty: Optional[Difficulty] = None
    duration: Optional[int] = Field(None, gt=0)
    price: Optional[float] = Field(None, ge=0)
    materials: Optional[List[str]] = None
    requirements: Optional[List[str]] = None
    tags: Optional[List[str]] = None
    lessons: Optional[List[LessonIn]] = None


class CourseMutationResponse(BaseModel):
    message: str
    course: CourseDetail
