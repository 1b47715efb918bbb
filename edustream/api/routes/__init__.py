"""
API route modules.
"""
from edustream.api.routes import (
    admin,
    auth,
    categories,
    courses,
    enrollments,
    payments,
    subscriptions,
    webhooks,
)

__all__ = [
    "admin",
    "auth",
    "categories",
    "courses",
    "enrollments",
    "payments",
    "subscriptions",
    "webhooks",
]
