"""
FastAPI applications.

One factory builds the three services, each deployable on its own:
- auth_app: Google login, sessions, admin management
- course_app: courses, categories, enrollments, file uploads
- payment_app: subscriptions, payment history, Stripe webhooks

Run one with e.g. `uvicorn edustream.main:course_app`.
"""
import logging
from datetime import datetime, timezone
from typing import Callable, Iterable, Sequence, Tuple

from fastapi import APIRouter, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi.middleware import SlowAPIMiddleware

import edustream.models  # noqa: F401  (registers tables on Base.metadata)
from edustream.api.routes import admin, auth, categories, courses, enrollments, payments, subscriptions, webhooks
from edustream.core.config import settings
from edustream.core.errors import register_exception_handlers
from edustream.core.rate_limit import build_limiter, rate_limit_exception, rate_limit_handler
from edustream.core.resources import Resources
from edustream.db.base import Base, engine

# Configure logging
logging.basicConfig(
    level=settings.log_level,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def create_app(
    service_name: str,
    routers: Sequence[Tuple[APIRouter, str, str]],
    default_rate_limit: str,
    description: str = "",
    with_storage: bool = False,
    with_stripe: bool = False,
    rate_limit_exempt: Iterable[Callable] = (),
) -> FastAPI:
    """
    Build one service application.

    Args:
        service_name: Reported by /health and in logs
        routers: (router, prefix, tag) triples mounted under API_PREFIX
        default_rate_limit: Default per-client limit for every route
        description: OpenAPI description
        with_storage: Open the object storage client at startup
        with_stripe: Configure the Stripe API key at startup
        rate_limit_exempt: Endpoints that carry their own route-level limit
    """
    app = FastAPI(
        title=f"{settings.app_name} {service_name}",
        version=settings.app_version,
        description=description,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.backend_cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Rate limiting
    app.state.limiter = build_limiter(default_rate_limit, exempt=rate_limit_exempt)
    app.add_middleware(SlowAPIMiddleware)
    app.add_exception_handler(rate_limit_exception, rate_limit_handler)

    register_exception_handlers(app)

    @app.on_event("startup")
    async def startup_event():
        """Open process-scoped resources."""
        logger.info(f"Starting {settings.app_name} {service_name} v{settings.app_version}")
        logger.info(f"Environment: {settings.environment}")

        if settings.db_create_all:
            Base.metadata.create_all(bind=engine)
            logger.info("Database tables ensured")

        app.state.resources = Resources.open(settings, with_storage=with_storage, with_stripe=with_stripe)
        logger.info(f"{service_name} startup complete")

    @app.on_event("shutdown")
    async def shutdown_event():
        """Cleanup on shutdown."""
        logger.info(f"Shutting down {service_name}")
        resources = getattr(app.state, "resources", None)
        if resources is not None:
            resources.close()

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {
            "status": "healthy",
            "service": service_name,
            "version": settings.app_version,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    for router, prefix, tag in routers:
        app.include_router(router, prefix=f"{settings.api_prefix}{prefix}", tags=[tag])

    return app


auth_app = create_app(
    "auth-service",
    routers=[
        (auth.router, "", "auth"),
        (admin.router, "", "admin"),
    ],
    default_rate_limit=settings.auth_rate_limit,
    description="Google sign-in, session tokens and role management",
)

course_app = create_app(
    "course-service",
    routers=[
        (courses.router, "/courses", "courses"),
        (categories.router, "/categories", "categories"),
        (enrollments.router, "/enrollments", "enrollments"),
    ],
    default_rate_limit=settings.course_rate_limit,
    description="Course catalog, categories and enrollments",
    with_storage=True,
)

payment_app = create_app(
    "payment-service",
    routers=[
        (subscriptions.router, "/subscriptions", "subscriptions"),
        (payments.router, "/payments", "payments"),
        (webhooks.router, "/webhooks", "webhooks"),
    ],
    default_rate_limit=settings.payment_rate_limit,
    description="Stripe subscriptions, payment history and webhooks",
    with_stripe=True,
    rate_limit_exempt=[webhooks.stripe_webhook],
)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "edustream.main:auth_app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug
    )
