"""
Course catalog service.

Handles:
- Multipart form validation for course creation
- Public and staff listings (filters, search, sort, pagination)
- Create/update/delete, publish/unpublish
- Thumbnail and lesson video uploads
- Best-effort denormalized counters (category course_count)

Stored files are referenced by object key; URLs are built at read time from
the storage configuration.
"""
import json
import logging
import math
import uuid
from typing import Any, Dict, List, Optional, Tuple

from pydantic import TypeAdapter, ValidationError
from sqlalchemy import String, cast, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Query, Session

from edustream.core.errors import Forbidden, NotFound, ValidationFailed
from edustream.models import Category, Course, Lesson
from edustream.models.course import DIFFICULTIES
from edustream.schemas import (
    CourseDetail,
    CourseSummary,
    CourseUpdate,
    InstructorInfo,
    LessonDetail,
    LessonIn,
    Principal,
    PublicCourse,
    PublicLesson,
)
from edustream.services.events import EventPublisher
from edustream.services.storage import FileStorage

logger = logging.getLogger(__name__)

THUMBNAIL_FOLDER = "course-thumbnails"
VIDEO_FOLDER = "course-videos"

LIST_FIELDS = ("materials", "requirements", "tags")

_string_list = TypeAdapter(List[str])
_lesson_list = TypeAdapter(List[LessonIn])


def _parse_json_list(raw: Optional[str], field: str, adapter: TypeAdapter, errors: List[str]):
    if raw is None or raw == "":
        return []
    try:
        return adapter.validate_python(json.loads(raw))
    except (ValueError, ValidationError):
        errors.append(f"{field.capitalize()} must be a JSON array")
        return []


def validate_course_form(form: Dict[str, Optional[str]]) -> Dict[str, Any]:
    """
    Validate multipart course fields and return typed values.

    All problems are collected and raised together.

    Raises:
        ValidationFailed: with one message per invalid field
    """
    errors: List[str] = []

    title = (form.get("title") or "").strip()
    if len(title) < 3:
        errors.append("Title is required (min 3 chars)")

    description = (form.get("description") or "").strip()
    if len(description) < 10:
        errors.append("Description is required (min 10 chars)")

    category = (form.get("category") or "").strip()
    if not category:
        errors.append("Category is required")

    difficulty = (form.get("difficulty") or "").strip()
    if difficulty not in DIFFICULTIES:
        errors.append("Difficulty must be beginner/intermediate/advanced")

    duration = None
    try:
        duration = float(form.get("duration") or "")
    except ValueError:
        pass
    if duration is None or not math.isfinite(duration) or duration <= 0:
        errors.append("Duration must be a positive number")
    else:
        # Stored in whole minutes
        duration = math.ceil(duration)

    price = None
    raw_price = form.get("price")
    try:
        price = float(raw_price) if raw_price not in (None, "") else 0.0
    except ValueError:
        pass
    if price is None or not math.isfinite(price) or price < 0:
        errors.append("Price must be a non-negative number")

    values: Dict[str, Any] = {
        field: _parse_json_list(form.get(field), field, _string_list, errors) for field in LIST_FIELDS
    }
    lessons = _parse_json_list(form.get("lessons"), "lessons", _lesson_list, errors)

    if errors:
        raise ValidationFailed(details=errors)

    values.update(
        title=title,
        description=description,
        category=category,
        difficulty=difficulty,
        duration=duration,
        price=price,
        lessons=lessons,
    )
    return values


def parse_uuid(value: str, message: str) -> uuid.UUID:
    try:
        return uuid.UUID(str(value))
    except ValueError:
        raise NotFound(message)


def apply_sort(query: Query, sort_by: Optional[str]) -> Query:
    if sort_by == "rating":
        return query.order_by(Course.rating.desc(), Course.rating_count.desc(), Course.created_at.desc())
    if sort_by == "popular":
        return query.order_by(Course.enrolled_count.desc(), Course.created_at.desc())
    return query.order_by(Course.created_at.desc())


def apply_search(query: Query, term: Optional[str]) -> Query:
    if not term:
        return query
    pattern = f"%{term.strip()}%"
    return query.filter(
        or_(
            Course.title.ilike(pattern),
            Course.description.ilike(pattern),
            cast(Course.tags, String).ilike(pattern),
        )
    )


def paginate(query: Query, page: int, limit: int) -> Tuple[List[Course], int]:
    total = query.count()
    items = query.offset((page - 1) * limit).limit(limit).all()
    return items, total


def build_lessons(lessons: List[LessonIn]) -> List[Lesson]:
    return [
        Lesson(
            lesson_ref=item.id,
            title=item.title,
            video_url=item.video_url,
            duration=item.duration,
            position=item.order,
            description=item.description,
            resources=list(item.resources),
        )
        for item in sorted(lessons, key=lambda item: item.order)
    ]


class CourseService:
    """Course operations bound to one request's storage and event handles."""

    def __init__(self, storage: Optional[FileStorage] = None, events: Optional[EventPublisher] = None):
        self.storage = storage
        self.events = events

    # Views

    def _url(self, key: Optional[str]) -> Optional[str]:
        if not key or self.storage is None:
            return None
        return self.storage.public_url(key)

    def _instructor(self, course: Course) -> InstructorInfo:
        return InstructorInfo(id=course.instructor_id, name=course.instructor_name, avatar=course.instructor_avatar)

    def _base_view(self, course: Course) -> Dict[str, Any]:
        return {
            "id": course.id,
            "title": course.title,
            "description": course.description,
            "instructor": self._instructor(course),
            "category": course.category,
            "difficulty": course.difficulty,
            "duration": course.duration,
            "price": course.price,
            "thumbnail": self._url(course.thumbnail_key),
            "materials": list(course.materials or []),
            "requirements": list(course.requirements or []),
            "tags": list(course.tags or []),
            "rating": course.rating,
            "rating_count": course.rating_count,
            "enrolled_count": course.enrolled_count,
            "is_published": course.is_published,
            "created_at": course.created_at,
            "updated_at": course.updated_at,
        }

    def to_public(self, course: Course) -> PublicCourse:
        """Projection without lesson video URLs."""
        lessons = [
            PublicLesson(
                id=lesson.lesson_ref,
                title=lesson.title,
                duration=lesson.duration,
                order=lesson.position,
                description=lesson.description,
                resources=list(lesson.resources or []),
            )
            for lesson in course.lessons
        ]
        return PublicCourse(lessons=lessons, **self._base_view(course))

    def to_detail(self, course: Course) -> CourseDetail:
        lessons = [
            LessonDetail(
                id=lesson.lesson_ref,
                title=lesson.title,
                video_url=self._url(lesson.video_key) or lesson.video_url,
                duration=lesson.duration,
                order=lesson.position,
                description=lesson.description,
                resources=list(lesson.resources or []),
            )
            for lesson in course.lessons
        ]
        return CourseDetail(lessons=lessons, **self._base_view(course))

    def to_summary(self, course: Course) -> CourseSummary:
        return CourseSummary(
            id=course.id,
            title=course.title,
            thumbnail=self._url(course.thumbnail_key),
            category=course.category,
            difficulty=course.difficulty,
            duration=course.duration,
            instructor=self._instructor(course),
        )

    # Lookups

    def get_course(self, course_id: str, db: Session) -> Course:
        key = parse_uuid(course_id, "Course not found")
        course = db.query(Course).filter(Course.id == key).first()
        if not course:
            raise NotFound("Course not found")
        return course

    def get_published(self, course_id: str, db: Session) -> Course:
        """Unpublished courses are reported exactly like missing ones."""
        course = self.get_course(course_id, db)
        if not course.is_published:
            raise NotFound("Course not found")
        return course

    def get_managed(self, course_id: str, principal: Principal, db: Session) -> Course:
        course = self.get_course(course_id, db)
        self.ensure_can_manage(principal, course)
        return course

    @staticmethod
    def ensure_can_manage(principal: Principal, course: Course) -> None:
        if course.instructor_id != principal.user_id and not principal.has_role("admin"):
            raise Forbidden("Not authorized")

    def list_published(
        self,
        db: Session,
        page: int = 1,
        limit: int = 10,
        category: Optional[str] = None,
        difficulty: Optional[str] = None,
        search: Optional[str] = None,
        sort_by: Optional[str] = None,
    ) -> Tuple[List[Course], int]:
        query = db.query(Course).filter(Course.is_published.is_(True))
        if category:
            query = query.filter(Course.category == category)
        if difficulty:
            query = query.filter(Course.difficulty == difficulty)
        query = apply_search(query, search)
        return paginate(apply_sort(query, sort_by), page, limit)

    def list_for_staff(
        self,
        principal: Principal,
        db: Session,
        page: int = 1,
        limit: int = 20,
        include_drafts: bool = True,
        owner: str = "all",
        search: Optional[str] = None,
        sort_by: Optional[str] = None,
    ) -> Tuple[List[Course], int]:
        """
        Listing for instructors and admins.

        Instructors only ever see their own courses. Admins see every course,
        or only their own with owner="me".
        """
        query = db.query(Course)
        if not include_drafts:
            query = query.filter(Course.is_published.is_(True))
        if not principal.has_role("admin") or owner == "me":
            query = query.filter(Course.instructor_id == principal.user_id)
        query = apply_search(query, search)
        return paginate(apply_sort(query, sort_by), page, limit)

    # Mutations

    def create(
        self,
        principal: Principal,
        values: Dict[str, Any],
        db: Session,
        thumbnail: Optional[Tuple[bytes, str, Optional[str]]] = None,
    ) -> Course:
        """
        Create a draft course from validated form values.

        Args:
            principal: Calling instructor or admin (becomes the instructor)
            values: Output of validate_course_form
            db: Database session
            thumbnail: Optional (data, filename, content_type)
        """
        thumbnail_key = None
        if thumbnail is not None:
            data, filename, content_type = thumbnail
            thumbnail_key = self.storage.upload(data, filename, content_type, THUMBNAIL_FOLDER)

        course = Course(
            title=values["title"],
            description=values["description"],
            instructor_id=principal.user_id,
            instructor_name=principal.name or principal.email or "Unknown",
            instructor_avatar=principal.avatar,
            category=values["category"],
            difficulty=values["difficulty"],
            duration=values["duration"],
            price=values["price"],
            thumbnail_key=thumbnail_key,
            materials=values["materials"],
            requirements=values["requirements"],
            tags=values["tags"],
            is_published=False,
        )
        course.lessons = build_lessons(values["lessons"])
        db.add(course)
        try:
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            if thumbnail_key:
                self.storage.delete(thumbnail_key)
            raise
        db.refresh(course)
        logger.info(f"Course {course.id} created by {principal.user_id}")

        self.adjust_category_count(course.category, 1, db)
        self._publish("course.created", course)
        return course

    def update(self, course: Course, changes: CourseUpdate, db: Session) -> Course:
        """Apply a partial update. A lessons list replaces all lessons."""
        data = changes.model_dump(exclude_unset=True)
        lessons = data.pop("lessons", None)
        old_category = course.category

        for field, value in data.items():
            if value is None and field not in LIST_FIELDS:
                continue
            setattr(course, field, value if value is not None else [])

        if lessons is not None:
            course.lessons = build_lessons(changes.lessons)

        db.commit()
        db.refresh(course)

        if course.category != old_category:
            self.adjust_category_count(old_category, -1, db)
            self.adjust_category_count(course.category, 1, db)

        logger.info(f"Course {course.id} updated")
        return course

    def delete(self, course: Course, db: Session) -> None:
        """Delete a course, then remove its stored files and decrement the category count."""
        keys = [course.thumbnail_key] + [lesson.video_key for lesson in course.lessons]
        urls = [lesson.video_url for lesson in course.lessons]
        category = course.category
        course_id = course.id

        db.delete(course)
        db.commit()
        logger.info(f"Course {course_id} deleted")

        if self.storage is not None:
            for key in keys:
                if key:
                    self.storage.delete(key)
            for url in urls:
                if url and self.storage.owns_url(url):
                    self.storage.delete_url(url)

        self.adjust_category_count(category, -1, db)

    def set_published(self, course: Course, published: bool, db: Session) -> Course:
        course.is_published = published
        db.commit()
        db.refresh(course)
        self._publish("course.published" if published else "course.unpublished", course)
        return course

    def replace_thumbnail(self, course: Course, data: bytes, filename: str, content_type: Optional[str], db: Session) -> Course:
        old_key = course.thumbnail_key
        course.thumbnail_key = self.storage.upload(data, filename, content_type, THUMBNAIL_FOLDER)
        db.commit()
        db.refresh(course)

        if old_key:
            self.storage.delete(old_key)
        return course

    def attach_lesson_video(
        self,
        course: Course,
        lesson_ref: str,
        data: bytes,
        filename: str,
        content_type: Optional[str],
        db: Session,
    ) -> Course:
        lesson = next((item for item in course.lessons if item.lesson_ref == lesson_ref), None)
        if lesson is None:
            raise NotFound("Lesson not found")

        old_key = lesson.video_key
        lesson.video_key = self.storage.upload(data, filename, content_type, VIDEO_FOLDER)
        db.commit()
        db.refresh(course)

        if old_key:
            self.storage.delete(old_key)
        logger.info(f"Video attached to lesson {lesson_ref} of course {course.id}")
        return course

    # Best-effort side effects

    def _apply_category_delta(self, name: str, delta: int, db: Session) -> None:
        db.query(Category).filter(Category.name == name).update(
            {Category.course_count: Category.course_count + delta},
            synchronize_session=False,
        )
        db.commit()

    def adjust_category_count(self, name: str, delta: int, db: Session) -> None:
        """
        Move the category's course counter. Runs after the course write has
        committed; a failure here leaves the counter drifted and is only logged.
        """
        try:
            self._apply_category_delta(name, delta, db)
        except SQLAlchemyError as e:
            db.rollback()
            logger.warning(f"Category counter update failed for {name} ({delta:+d}): {e}")

    def _publish(self, event: str, course: Course) -> None:
        if self.events is None:
            return
        self.events.publish(
            event,
            {"courseId": str(course.id), "instructorId": course.instructor_id, "title": course.title},
        )
