"""
API endpoints for courses.

Endpoints:
- GET /courses - Published courses (public)
- GET /courses/admin - Staff listing, drafts included
- GET /courses/{id} - Published course (public)
- POST /courses - Create a draft (multipart, optional thumbnail)
- PUT /courses/{id} - Partial update
- DELETE /courses/{id} - Delete course and its stored files
- POST /courses/{id}/publish | /unpublish
- POST /courses/{id}/thumbnail - Replace thumbnail
- POST /courses/{id}/lessons/{lesson_ref}/video - Upload a lesson video
"""
import logging
from typing import Literal, Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from sqlalchemy.orm import Session

from edustream.api.deps import get_course_service, read_upload, require_staff
from edustream.db.base import get_db
from edustream.schemas import (
    CourseDetailList,
    CourseMutationResponse,
    CourseUpdate,
    MessageResponse,
    Pagination,
    Principal,
    PublicCourse,
    PublicCourseList,
)
from edustream.schemas.course import Difficulty, SortBy
from edustream.services.courses import CourseService, validate_course_form

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", response_model=PublicCourseList)
async def list_courses(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    category: Optional[str] = None,
    difficulty: Optional[Difficulty] = None,
    q: Optional[str] = None,
    search: Optional[str] = None,
    sort_by: SortBy = "recent",
    courses: CourseService = Depends(get_course_service),
    db: Session = Depends(get_db),
):
    """List published courses with filters, search, sort and pagination."""
    items, total = courses.list_published(
        db,
        page=page,
        limit=limit,
        category=category,
        difficulty=difficulty,
        search=q or search,
        sort_by=sort_by,
    )
    return PublicCourseList(
        courses=[courses.to_public(c) for c in items],
        pagination=Pagination.build(page, limit, total),
    )


@router.get("/admin", response_model=CourseDetailList)
async def list_courses_for_staff(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    include_drafts: bool = True,
    owner: Literal["all", "me"] = "all",
    q: Optional[str] = None,
    sort_by: SortBy = "recent",
    principal: Principal = Depends(require_staff),
    courses: CourseService = Depends(get_course_service),
    db: Session = Depends(get_db),
):
    """
    Staff listing with drafts.

    Instructors see only their own courses; admins see all unless owner=me.
    """
    items, total = courses.list_for_staff(
        principal,
        db,
        page=page,
        limit=limit,
        include_drafts=include_drafts,
        owner=owner,
        search=q,
        sort_by=sort_by,
    )
    return CourseDetailList(
        courses=[courses.to_detail(c) for c in items],
        pagination=Pagination.build(page, limit, total),
    )


@router.get("/{course_id}", response_model=PublicCourse)
async def get_course(
    course_id: str,
    courses: CourseService = Depends(get_course_service),
    db: Session = Depends(get_db),
):
    return courses.to_public(courses.get_published(course_id, db))


@router.post("", response_model=CourseMutationResponse, status_code=status.HTTP_201_CREATED)
async def create_course(
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    category: Optional[str] = Form(None),
    difficulty: Optional[str] = Form(None),
    duration: Optional[str] = Form(None),
    price: Optional[str] = Form(None),
    materials: Optional[str] = Form(None),
    requirements: Optional[str] = Form(None),
    tags: Optional[str] = Form(None),
    lessons: Optional[str] = Form(None),
    thumbnail: Optional[UploadFile] = File(None),
    principal: Principal = Depends(require_staff),
    courses: CourseService = Depends(get_course_service),
    db: Session = Depends(get_db),
):
    """
    Create a draft course.

    List fields (materials, requirements, tags, lessons) are JSON-encoded
    strings. All validation errors are reported together.
    """
    values = validate_course_form(
        {
            "title": title,
            "description": description,
            "category": category,
            "difficulty": difficulty,
            "duration": duration,
            "price": price,
            "materials": materials,
            "requirements": requirements,
            "tags": tags,
            "lessons": lessons,
        }
    )

    upload = None
    if thumbnail is not None and thumbnail.filename:
        upload = await read_upload(thumbnail, "Thumbnail")

    course = courses.create(principal, values, db, thumbnail=upload)
    return CourseMutationResponse(message="Course created successfully", course=courses.to_detail(course))


@router.put("/{course_id}", response_model=CourseMutationResponse)
async def update_course(
    course_id: str,
    changes: CourseUpdate,
    principal: Principal = Depends(require_staff),
    courses: CourseService = Depends(get_course_service),
    db: Session = Depends(get_db),
):
    course = courses.get_managed(course_id, principal, db)
    course = courses.update(course, changes, db)
    return CourseMutationResponse(message="Course updated successfully", course=courses.to_detail(course))


@router.delete("/{course_id}", response_model=MessageResponse)
async def delete_course(
    course_id: str,
    principal: Principal = Depends(require_staff),
    courses: CourseService = Depends(get_course_service),
    db: Session = Depends(get_db),
):
    course = courses.get_managed(course_id, principal, db)
    courses.delete(course, db)
    return MessageResponse(message="Course deleted successfully")


@router.post("/{course_id}/publish", response_model=CourseMutationResponse)
async def publish_course(
    course_id: str,
    principal: Principal = Depends(require_staff),
    courses: CourseService = Depends(get_course_service),
    db: Session = Depends(get_db),
):
    course = courses.set_published(courses.get_managed(course_id, principal, db), True, db)
    return CourseMutationResponse(message="Course published", course=courses.to_detail(course))


@router.post("/{course_id}/unpublish", response_model=CourseMutationResponse)
async def unpublish_course(
    course_id: str,
    principal: Principal = Depends(require_staff),
    courses: CourseService = Depends(get_course_service),
    db: Session = Depends(get_db),
):
    course = courses.set_published(courses.get_managed(course_id, principal, db), False, db)
    return CourseMutationResponse(message="Course unpublished", course=courses.to_detail(course))


@router.post("/{course_id}/thumbnail", response_model=CourseMutationResponse)
async def upload_thumbnail(
    course_id: str,
    thumbnail: UploadFile = File(...),
    principal: Principal = Depends(require_staff),
    courses: CourseService = Depends(get_course_service),
    db: Session = Depends(get_db),
):
    course = courses.get_managed(course_id, principal, db)
    data, filename, content_type = await read_upload(thumbnail, "Thumbnail")
    course = courses.replace_thumbnail(course, data, filename, content_type, db)
    return CourseMutationResponse(message="Thumbnail updated", course=courses.to_detail(course))


@router.post("/{course_id}/lessons/{lesson_ref}/video", response_model=CourseMutationResponse)
async def upload_lesson_video(
    course_id: str,
    lesson_ref: str,
    video: UploadFile = File(...),
    principal: Principal = Depends(require_staff),
    courses: CourseService = Depends(get_course_service),
    db: Session = Depends(get_db),
):
    course = courses.get_managed(course_id, principal, db)
    data, filename, content_type = await read_upload(video, "Video")
    course = courses.attach_lesson_video(course, lesson_ref, data, filename, content_type, db)
    return CourseMutationResponse(message="Lesson video uploaded", course=courses.to_detail(course))
