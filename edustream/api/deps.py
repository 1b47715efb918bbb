"""
Shared route dependencies: role guards, request-scoped services, uploads.
"""
from typing import Optional, Tuple

from fastapi import Depends, UploadFile

from edustream.core.auth import get_session_principal, get_token_principal, require_roles
from edustream.core.config import settings
from edustream.core.errors import PayloadTooLarge
from edustream.core.remote_auth import get_remote_principal
from edustream.core.resources import get_event_publisher, get_file_storage
from edustream.services.courses import CourseService
from edustream.services.enrollments import EnrollmentService
from edustream.services.events import EventPublisher
from edustream.services.storage import FileStorage
from edustream.services.subscription import SubscriptionService

# Auth service: full verification against the session store
require_admin = require_roles(get_session_principal, "admin")

# Course service: verification delegated to the auth service
require_staff = require_roles(get_remote_principal, "instructor", "admin")
require_course_admin = require_roles(get_remote_principal, "admin")

# Payment service: local signature check only
require_payer = get_token_principal


def get_course_service(
    storage: FileStorage = Depends(get_file_storage),
    events: EventPublisher = Depends(get_event_publisher),
) -> CourseService:
    return CourseService(storage=storage, events=events)


def get_enrollment_service(courses: CourseService = Depends(get_course_service)) -> EnrollmentService:
    return EnrollmentService(courses)


def get_subscription_service(events: EventPublisher = Depends(get_event_publisher)) -> SubscriptionService:
    return SubscriptionService(events=events)


async def read_upload(upload: UploadFile, label: str) -> Tuple[bytes, str, Optional[str]]:
    """
    Read an uploaded file into memory, enforcing the upload size cap.

    Returns:
        (data, filename, content_type)

    Raises:
        PayloadTooLarge: the file exceeds MAX_UPLOAD_SIZE_MB
    """
    limit = settings.max_upload_size_bytes
    too_large = PayloadTooLarge(f"{label} too large. Max {settings.max_upload_size_mb}MB")

    if upload.size is not None and upload.size > limit:
        raise too_large

    data = await upload.read()
    if len(data) > limit:
        raise too_large

    return data, upload.filename or "file", upload.content_type
