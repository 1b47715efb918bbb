"""
API endpoints for course categories.

Reads are public; writes require the admin role.
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from edustream.api.deps import get_course_service, require_course_admin
from edustream.db.base import get_db
from edustream.schemas import (
    CategoryCourses,
    CategoryCreate,
    CategoryOut,
    CategoryUpdate,
    MessageResponse,
    Pagination,
    Principal,
)
from edustream.schemas.course import Difficulty, SortBy
from edustream.services.categories import category_service
from edustream.services.courses import CourseService

router = APIRouter()


@router.get("", response_model=List[CategoryOut])
async def list_categories(db: Session = Depends(get_db)):
    """Active categories sorted by name."""
    return category_service.list_active(db)


@router.get("/{category_id}", response_model=CategoryOut)
async def get_category(category_id: str, db: Session = Depends(get_db)):
    return category_service.get_active(category_id, db)


@router.get("/{category_id}/courses", response_model=CategoryCourses)
async def list_category_courses(
    category_id: str,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    difficulty: Optional[Difficulty] = None,
    sort_by: SortBy = "recent",
    courses: CourseService = Depends(get_course_service),
    db: Session = Depends(get_db),
):
    category = category_service.get(category_id, db)
    items, total = courses.list_published(
        db,
        page=page,
        limit=limit,
        category=category.name,
        difficulty=difficulty,
        sort_by=sort_by,
    )
    return CategoryCourses(
        category=CategoryOut.model_validate(category),
        courses=[courses.to_public(c) for c in items],
        pagination=Pagination.build(page, limit, total),
    )


@router.post("", response_model=CategoryOut, status_code=status.HTTP_201_CREATED)
async def create_category(
    payload: CategoryCreate,
    admin: Principal = Depends(require_course_admin),
    db: Session = Depends(get_db),
):
    return category_service.create(payload, db)


@router.put("/{category_id}", response_model=CategoryOut)
async def update_category(
    category_id: str,
    payload: CategoryUpdate,
    admin: Principal = Depends(require_course_admin),
    db: Session = Depends(get_db),
):
    return category_service.update(category_id, payload, db)


@router.delete("/{category_id}", response_model=MessageResponse)
async def delete_category(
    category_id: str,
    admin: Principal = Depends(require_course_admin),
    db: Session = Depends(get_db),
):
    category_service.delete(category_id, db)
    return MessageResponse(message="Category deleted successfully")


@router.post("/{category_id}/toggle", response_model=CategoryOut)
async def toggle_category(
    category_id: str,
    admin: Principal = Depends(require_course_admin),
    db: Session = Depends(get_db),
):
    return category_service.toggle(category_id, db)
