"""
Database models package.

All SQLAlchemy models are exported from this module for easy imports.
"""
from edustream.models.user import User
from edustream.models.category import Category
from edustream.models.course import Course, Lesson
from edustream.models.enrollment import Enrollment
from edustream.models.subscription import Subscription
from edustream.models.payment import Payment

__all__ = [
    "User",
    "Category",
    "Course",
    "Lesson",
    "Enrollment",
    "Subscription",
    "Payment",
]
