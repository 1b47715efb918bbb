"""
Course and lesson models owned by the course service.
"""
import uuid
from datetime import datetime
from sqlalchemy import Column, String, Text, DateTime, Integer, Float, Boolean, ForeignKey, Index
from sqlalchemy.dialects.postgresql import UUID, JSONB
from sqlalchemy.orm import relationship

from edustream.db.base import Base

DIFFICULTIES = ("beginner", "intermediate", "advanced")


class Course(Base):
    """Course catalog entry. Drafts (is_published=False) are hidden from public endpoints."""

    __tablename__ = "courses"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    title = Column(String(255), nullable=False, index=True)
    description = Column(Text, nullable=False)

    # Instructor reference (user id from the auth service, not enforced)
    instructor_id = Column(String(64), nullable=False, index=True)
    instructor_name = Column(String(255), nullable=False, default="Unknown")
    instructor_avatar = Column(String(1024), nullable=True)

    category = Column(String(255), nullable=False, index=True)  # Category name
    difficulty = Column(String(20), nullable=False)  # beginner, intermediate, advanced
    duration = Column(Integer, nullable=False)  # minutes
    price = Column(Float, nullable=False, default=0.0)

    # Object storage key; the public URL is built at read time
    thumbnail_key = Column(String(1024), nullable=True)

    materials = Column(JSONB, nullable=False, default=list)
    requirements = Column(JSONB, nullable=False, default=list)
    tags = Column(JSONB, nullable=False, default=list)

    # Denormalized stats
    rating = Column(Float, nullable=False, default=0.0)
    rating_count = Column(Integer, nullable=False, default=0)
    enrolled_count = Column(Integer, nullable=False, default=0)

    is_published = Column(Boolean, nullable=False, default=False, index=True)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    lessons = relationship(
        "Lesson",
        back_populates="course",
        cascade="all, delete-orphan",
        order_by="Lesson.position",
    )

    __table_args__ = (
        Index("ix_courses_category_difficulty", "category", "difficulty"),
        Index("ix_courses_rating_enrolled", "rating", "enrolled_count"),
    )

    def __repr__(self):
        return f"<Course(id={self.id}, title={self.title}, published={self.is_published})>"


class Lesson(Base):
    """A lesson inside a course, ordered by position."""

    __tablename__ = "lessons"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    course_id = Column(UUID(as_uuid=True), ForeignKey("courses.id", ondelete="CASCADE"), nullable=False, index=True)
    lesson_ref = Column(String(64), nullable=False)  # Client-supplied lesson id
    title = Column(String(255), nullable=False)
    video_url = Column(String(1024), nullable=True)  # External or legacy stored URL
    video_key = Column(String(1024), nullable=True)  # Uploaded video object key
    duration = Column(Integer, nullable=False, default=0)
    position = Column(Integer, nullable=False, default=0)
    description = Column(Text, nullable=True)
    resources = Column(JSONB, nullable=False, default=list)

    course = relationship("Course", back_populates="lessons")

    def __repr__(self):
        return f"<Lesson(id={self.id}, course_id={self.course_id}, position={self.position})>"
