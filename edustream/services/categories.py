"""
Category management.
"""
import logging
from typing import List

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from edustream.core.errors import Conflict, NotFound
from edustream.models import Category, Course
from edustream.schemas import CategoryCreate, CategoryUpdate
from edustream.services.courses import parse_uuid

logger = logging.getLogger(__name__)


class CategoryService:
    """Service for course categories."""

    def list_active(self, db: Session) -> List[Category]:
        return db.query(Category).filter(Category.is_active.is_(True)).order_by(Category.name.asc()).all()

    def get(self, category_id: str, db: Session) -> Category:
        key = parse_uuid(category_id, "Category not found")
        category = db.query(Category).filter(Category.id == key).first()
        if not category:
            raise NotFound("Category not found")
        return category

    def get_active(self, category_id: str, db: Session) -> Category:
        category = self.get(category_id, db)
        if not category.is_active:
            raise NotFound("Category not found")
        return category

    def _name_taken(self, name: str, db: Session, exclude=None) -> bool:
        query = db.query(Category).filter(Category.name == name)
        if exclude is not None:
            query = query.filter(Category.id != exclude)
        return db.query(query.exists()).scalar()

    def create(self, payload: CategoryCreate, db: Session) -> Category:
        name = payload.name.strip()
        if self._name_taken(name, db):
            raise Conflict("Category already exists")

        category = Category(
            name=name,
            description=payload.description,
            icon=payload.icon,
            course_count=0,
            is_active=True,
        )
        db.add(category)
        try:
            db.commit()
        except IntegrityError as exc:
            db.rollback()
            raise Conflict("Category already exists") from exc

        db.refresh(category)
        logger.info(f"Category created: {name}")
        return category

    def update(self, category_id: str, payload: CategoryUpdate, db: Session) -> Category:
        category = self.get(category_id, db)
        data = payload.model_dump(exclude_unset=True, exclude_none=True)

        if "name" in data:
            data["name"] = data["name"].strip()
            if self._name_taken(data["name"], db, exclude=category.id):
                raise Conflict("Category already exists")

        for field, value in data.items():
            setattr(category, field, value)

        try:
            db.commit()
        except IntegrityError as exc:
            db.rollback()
            raise Conflict("Category already exists") from exc

        db.refresh(category)
        return category

    def delete(self, category_id: str, db: Session) -> None:
        category = self.get(category_id, db)

        course_count = db.query(func.count(Course.id)).filter(Course.category == category.name).scalar() or 0
        if course_count > 0:
            raise Conflict("Cannot delete category with existing courses")

        db.delete(category)
        db.commit()
        logger.info(f"Category deleted: {category.name}")

    def toggle(self, category_id: str, db: Session) -> Category:
        category = self.get(category_id, db)
        category.is_active = not category.is_active
        db.commit()
        db.refresh(category)
        return category


# Global service instance
category_service = CategoryService()
