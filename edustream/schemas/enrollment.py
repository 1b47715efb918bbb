"""
Pydantic schemas for enrollments.
"""
import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict

from edustream.schemas.course import CourseSummary, Difficulty


class EnrollmentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    user_id: str
    course_id: uuid.UUID
    enrolled_at: datetime


class EnrolledCourse(BaseModel):
    enrolled_at: datetime
    course: CourseSummary


class EnrollmentSummaryItem(BaseModel):
    course_id: uuid.UUID
    count: int
    title: str
    category: str
    difficulty: Difficulty
    created_at: datetime
