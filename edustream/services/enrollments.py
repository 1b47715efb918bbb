"""
Course enrollments.

Enrolling twice is not an error: the second call reports "Already enrolled".
The (user_id, course_id) unique constraint backs the explicit check when two
requests race.
"""
import logging
from typing import List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from edustream.core.errors import NotFound
from edustream.models import Course, Enrollment
from edustream.schemas import EnrolledCourse, EnrollmentSummaryItem
from edustream.services.courses import CourseService, parse_uuid

logger = logging.getLogger(__name__)


class EnrollmentService:
    """Service for enrollments and the course enrolled_count counter."""

    def __init__(self, courses: Optional[CourseService] = None):
        self.courses = courses or CourseService()

    def find(self, user_id: str, course_id, db: Session) -> Optional[Enrollment]:
        return db.query(Enrollment).filter(
            Enrollment.user_id == user_id,
            Enrollment.course_id == course_id,
        ).first()

    def enroll(self, user_id: str, course_id: str, db: Session) -> Tuple[Enrollment, bool]:
        """
        Enroll a user in a published course.

        Returns:
            (enrollment, created). created is False if the user was already enrolled.

        Raises:
            NotFound: course missing or unpublished
        """
        course = self.courses.get_published(course_id, db)

        existing = self.find(user_id, course.id, db)
        if existing:
            return existing, False

        enrollment = Enrollment(user_id=user_id, course_id=course.id)
        db.add(enrollment)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            logger.info(f"Concurrent enrollment detected for user {user_id} in course {course.id}")
            return self.find(user_id, course.id, db), False

        db.refresh(enrollment)
        self.adjust_enrolled_count(course.id, 1, db)
        logger.info(f"User {user_id} enrolled in course {course.id}")
        return enrollment, True

    def unenroll(self, user_id: str, course_id: str, db: Session) -> bool:
        """Remove an enrollment if present. Returns True if a record was removed."""
        try:
            key = parse_uuid(course_id, "Course not found")
        except NotFound:
            return False

        removed = db.query(Enrollment).filter(
            Enrollment.user_id == user_id,
            Enrollment.course_id == key,
        ).delete(synchronize_session=False)
        db.commit()

        if removed:
            self.adjust_enrolled_count(key, -1, db)
            logger.info(f"User {user_id} unenrolled from course {key}")
        return bool(removed)

    def list_for_user(self, user_id: str, db: Session) -> List[EnrolledCourse]:
        """Enrolled courses of a user; enrollments of deleted courses are skipped."""
        enrollments = (
            db.query(Enrollment)
            .filter(Enrollment.user_id == user_id)
            .order_by(Enrollment.enrolled_at.desc())
            .all()
        )
        if not enrollments:
            return []

        ids = [e.course_id for e in enrollments]
        by_id = {c.id: c for c in db.query(Course).filter(Course.id.in_(ids)).all()}

        return [
            EnrolledCourse(enrolled_at=e.enrolled_at, course=self.courses.to_summary(by_id[e.course_id]))
            for e in enrollments
            if e.course_id in by_id
        ]

    def summary(self, db: Session) -> List[EnrollmentSummaryItem]:
        """Enrollment counts per existing course, highest first."""
        count = func.count(Enrollment.id).label("count")
        rows = (
            db.query(Course.id, count, Course.title, Course.category, Course.difficulty, Course.created_at)
            .join(Enrollment, Enrollment.course_id == Course.id)
            .group_by(Course.id, Course.title, Course.category, Course.difficulty, Course.created_at)
            .order_by(count.desc(), Course.created_at.desc())
            .all()
        )
        return [
            EnrollmentSummaryItem(
                course_id=row[0],
                count=row[1],
                title=row[2],
                category=row[3],
                difficulty=row[4],
                created_at=row[5],
            )
            for row in rows
        ]

    def adjust_enrolled_count(self, course_id, delta: int, db: Session) -> None:
        """Best-effort counter update; failures are logged and the counter drifts."""
        try:
            db.query(Course).filter(Course.id == course_id).update(
                {Course.enrolled_count: Course.enrolled_count + delta},
                synchronize_session=False,
            )
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.warning(f"Enrolled counter update failed for course {course_id} ({delta:+d}): {e}")
