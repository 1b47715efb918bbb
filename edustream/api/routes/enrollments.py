"""
API endpoints for enrollments.
"""
from typing import List

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from edustream.api.deps import get_enrollment_service, require_course_admin
from edustream.core.remote_auth import get_remote_principal
from edustream.db.base import get_db
from edustream.schemas import EnrolledCourse, EnrollmentOut, EnrollmentSummaryItem, Principal
from edustream.services.enrollments import EnrollmentService

router = APIRouter()


@router.post("/{course_id}/enroll")
async def enroll(
    course_id: str,
    response: Response,
    principal: Principal = Depends(get_remote_principal),
    enrollments: EnrollmentService = Depends(get_enrollment_service),
    db: Session = Depends(get_db),
):
    """
    Enroll the caller in a published course.

    Returns 201 with the enrollment, or 200 {"message": "Already enrolled"}.
    """
    enrollment, created = enrollments.enroll(principal.user_id, course_id, db)
    if not created:
        response.status_code = status.HTTP_200_OK
        return {"message": "Already enrolled"}

    response.status_code = status.HTTP_201_CREATED
    return EnrollmentOut.model_validate(enrollment)


@router.delete("/{course_id}/enroll")
async def unenroll(
    course_id: str,
    principal: Principal = Depends(get_remote_principal),
    enrollments: EnrollmentService = Depends(get_enrollment_service),
    db: Session = Depends(get_db),
):
    enrollments.unenroll(principal.user_id, course_id, db)
    return {"success": True}


@router.get("/me", response_model=List[EnrolledCourse])
async def my_enrollments(
    principal: Principal = Depends(get_remote_principal),
    enrollments: EnrollmentService = Depends(get_enrollment_service),
    db: Session = Depends(get_db),
):
    return enrollments.list_for_user(principal.user_id, db)


@router.get("/summary", response_model=List[EnrollmentSummaryItem])
async def enrollment_summary(
    admin: Principal = Depends(require_course_admin),
    enrollments: EnrollmentService = Depends(get_enrollment_service),
    db: Session = Depends(get_db),
):
    """Enrollment counts per course (admin only)."""
    return enrollments.summary(db)
