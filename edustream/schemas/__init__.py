"""
Pydantic schemas for API request/response validation.
"""
from edustream.schemas.common import Pagination, MessageResponse
from edustream.schemas.user import (
    Principal,
    ProviderProfile,
    UserOut,
    UserList,
    TokenResponse,
    AdminGrantRequest,
    RoleUpdateRequest,
)
from edustream.schemas.course import (
    LessonIn,
    PublicLesson,
    LessonDetail,
    InstructorInfo,
    CourseSummary,
    PublicCourse,
    CourseDetail,
    PublicCourseList,
    CourseDetailList,
    CourseUpdate,
    CourseMutationResponse,
)
from edustream.schemas.category import (
    CategoryCreate,
    CategoryUpdate,
    CategoryOut,
    CategoryCourses,
)
from edustream.schemas.enrollment import (
    EnrollmentOut,
    EnrolledCourse,
    EnrollmentSummaryItem,
)
from edustream.schemas.subscription import (
    PlanInfo,
    SubscriptionDetail,
    CurrentSubscriptionResponse,
    SubscriptionCreateRequest,
    SubscriptionCreateResponse,
    ChangePlanRequest,
    PaymentDetail,
    PaymentHistory,
)

__all__ = [
    "Pagination",
    "MessageResponse",
    "Principal",
    "ProviderProfile",
    "UserOut",
    "UserList",
    "TokenResponse",
    "AdminGrantRequest",
    "RoleUpdateRequest",
    "LessonIn",
    "PublicLesson",
    "LessonDetail",
    "InstructorInfo",
    "CourseSummary",
    "PublicCourse",
    "CourseDetail",
    "PublicCourseList",
    "CourseDetailList",
    "CourseUpdate",
    "CourseMutationResponse",
    "CategoryCreate",
    "CategoryUpdate",
    "CategoryOut",
    "CategoryCourses",
    "EnrollmentOut",
    "EnrolledCourse",
    "EnrollmentSummaryItem",
    "PlanInfo",
    "SubscriptionDetail",
    "CurrentSubscriptionResponse",
    "SubscriptionCreateRequest",
    "SubscriptionCreateResponse",
    "ChangePlanRequest",
    "PaymentDetail",
    "PaymentHistory",
]
