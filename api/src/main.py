"""CourseMarket API - Main Application."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.approvals.router import router as approvals_router
from src.approvals.service import ApprovalWorkflow
from src.config import Settings, get_settings
from src.core.context import get_request_id
from src.core.database import init_async_cassandra, shutdown_async_cassandra
from src.core.exceptions import AccessError
from src.core.logging import configure_structlog, get_logger
from src.core.middleware import RequestContextMiddleware
from src.core.redis import init_redis, shutdown_redis
from src.courses.router import router_courses, router_sessions
from src.courses.service import CourseService
from src.enrollments.capacity import CapacityLedger
from src.enrollments.router import router as enrollments_router
from src.enrollments.router import sessions_router as session_enrollments_router
from src.enrollments.service import EnrollmentService
from src.enterprises.router import admin_router as enterprises_admin_router
from src.enterprises.service import EnterpriseService
from src.entitlements.resolver import EntitlementResolver
from src.events.bus import EventBus
from src.grants.router import admin_router as grants_admin_router
from src.grants.router import router as grants_router
from src.grants.service import AccessGrantService
from src.health.router import router as health_router
from src.notifications.dispatcher import NotificationDispatcher
from src.notifications.router import router as notifications_router
from src.notifications.service import NotificationService
from src.payments.router import router as payments_router
from src.payments.service import CheckoutService, PaymentService
from src.users.router import admin_router as users_admin_router
from src.users.router import router as users_router
from src.users.service import UserService


# Configure logging early (before creating logger)
settings = get_settings()
configure_structlog(settings, log_dir=Path(settings.log_dir))

logger = get_logger(__name__)


def init_services(
    app: FastAPI,
    session: Any,
    redis: Any = None,
    settings: Settings | None = None,
) -> None:
    """Build the service graph on ``app.state``.

    Leaves first: ledger and storage services, then the resolver and the two
    state machines, then the notification dispatcher subscribed to the bus.
    """
    settings = settings or get_settings()
    keyspace = settings.cassandra_keyspace

    bus = EventBus()
    ledger = CapacityLedger(
        session,
        keyspace,
        timeout=settings.capacity_reserve_timeout_seconds,
        backoff_base=settings.capacity_backoff_base_ms / 1000,
        backoff_max=settings.capacity_backoff_max_ms / 1000,
    )
    users = UserService(session, keyspace)
    enterprises = EnterpriseService(session, keyspace)
    grants = AccessGrantService(session, keyspace, redis=redis)
    courses = CourseService(session, keyspace, ledger)
    payments = PaymentService(session, keyspace)
    notifications = NotificationService(session, keyspace, redis=redis)

    resolver = EntitlementResolver(enterprises, grants)
    enrollments = EnrollmentService(
        session,
        keyspace,
        ledger,
        courses,
        resolver,
        bus,
        claim_timeout=settings.enrollment_claim_timeout_seconds,
    )
    approvals = ApprovalWorkflow(
        session,
        keyspace,
        courses=courses,
        payments=payments,
        grants=grants,
        users=users,
        bus=bus,
        fee_rate=settings.platform_fee_rate,
    )
    checkout = CheckoutService(payments, approvals, courses, resolver)

    dispatcher = NotificationDispatcher(
        notifications,
        enrollments,
        courses,
        users,
        queue_size=settings.notification_queue_size,
    )
    dispatcher.register(bus)

    app.state.redis = redis
    app.state.event_bus = bus
    app.state.capacity_ledger = ledger
    app.state.user_service = users
    app.state.enterprise_service = enterprises
    app.state.grant_service = grants
    app.state.course_service = courses
    app.state.payment_service = payments
    app.state.notification_service = notifications
    app.state.entitlement_resolver = resolver
    app.state.enrollment_service = enrollments
    app.state.approval_workflow = approvals
    app.state.checkout_service = checkout
    app.state.notification_dispatcher = dispatcher

    logger.info(
        "services_initialized",
        keyspace=keyspace,
        redis_enabled=redis is not None,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    settings = get_settings()
    logger.info(
        "starting_application",
        app_name=settings.app_name,
        version=settings.app_version,
        environment=settings.environment,
    )

    # Initialize Redis (non-critical - app works without it)
    redis_client = None
    try:
        redis_client = await init_redis()
        logger.info("redis_initialized")
    except Exception as e:
        logger.warning(
            "redis_init_skipped",
            error=str(e),
            message="Running without Redis - grant cache and real-time delivery disabled",
        )

    # Initialize Cassandra (async)
    try:
        cassandra_session = await init_async_cassandra()
        logger.info("cassandra_initialized")
        init_services(app, cassandra_session, redis=redis_client, settings=settings)
    except Exception as e:
        logger.warning(
            "database_init_skipped",
            error=str(e),
            message="Running without database connection",
        )

    dispatcher: NotificationDispatcher | None = getattr(
        app.state, "notification_dispatcher", None
    )
    if dispatcher is not None:
        await dispatcher.start()

    yield

    # Shutdown
    logger.info("shutting_down_application")
    if dispatcher is not None:
        await dispatcher.stop()
    await shutdown_redis()
    await shutdown_async_cassandra()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    # SECURITY: Always set debug=False to prevent Starlette's ServerErrorMiddleware
    # from exposing stack traces in responses.
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="CourseMarket - Access & Approval API",
        debug=False,
        lifespan=lifespan,
        default_response_class=ORJSONResponse,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        openapi_url="/openapi.json" if settings.is_development else None,
    )

    # Request context middleware (must be added first - outermost)
    app.add_middleware(
        RequestContextMiddleware,
        log_requests=settings.log_requests,
        exclude_paths=settings.log_exclude_paths,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
        max_age=settings.cors_max_age,
    )

    def _get_request_id_safe(request: Request) -> str | None:
        """Get request_id from request state or context."""
        if hasattr(request.state, "request_id"):
            return request.state.request_id
        return get_request_id()

    @app.exception_handler(AccessError)
    async def access_error_handler(request: Request, exc: AccessError) -> ORJSONResponse:
        """Render domain errors with their stable code."""
        logger.info(
            "access_error",
            code=exc.code,
            status_code=exc.status_code,
            path=request.url.path,
            method=request.method,
        )
        return ORJSONResponse(
            status_code=exc.status_code,
            content={
                "error": True,
                "status_code": exc.status_code,
                "request_id": _get_request_id_safe(request),
                **exc.to_dict(),
            },
        )

    # Global exception handlers (security: never expose stack traces)
    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> ORJSONResponse:
        """Handle HTTP exceptions with safe error messages."""
        request_id = _get_request_id_safe(request)

        logger.warning(
            "http_exception",
            status_code=exc.status_code,
            detail=str(exc.detail),
            path=request.url.path,
            method=request.method,
        )

        return ORJSONResponse(
            status_code=exc.status_code,
            content={
                "error": True,
                "message": str(exc.detail)
                if exc.status_code < status.HTTP_500_INTERNAL_SERVER_ERROR
                else "Internal server error",
                "status_code": exc.status_code,
                "request_id": request_id,
            },
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> ORJSONResponse:
        """Handle validation errors with safe error messages."""
        request_id = _get_request_id_safe(request)

        logger.warning(
            "validation_error",
            errors=exc.errors(),
            path=request.url.path,
            method=request.method,
        )

        return ORJSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={
                "error": True,
                "code": "validation_error",
                "message": "Validation error",
                "status_code": 422,
                "request_id": request_id,
                "details": [
                    {
                        "field": ".".join(str(loc) for loc in err.get("loc", [])),
                        "message": err.get("msg", "Invalid value"),
                    }
                    for err in exc.errors()
                ],
            },
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(
        request: Request, exc: Exception
    ) -> ORJSONResponse:
        """Catch-all handler for unhandled exceptions.

        SECURITY: Never expose stack traces or internal error details to users.
        """
        request_id = _get_request_id_safe(request)

        logger.exception(
            "unhandled_exception",
            error_type=type(exc).__name__,
            error_message=str(exc),
            path=request.url.path,
            method=request.method,
        )

        return ORJSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": True,
                "code": "internal_error",
                "message": "An unexpected error occurred. Please try again later.",
                "status_code": 500,
                "request_id": request_id,
            },
        )

    # Include routers
    app.include_router(health_router)
    app.include_router(users_router)
    app.include_router(users_admin_router)
    app.include_router(enterprises_admin_router)
    app.include_router(grants_router)
    app.include_router(grants_admin_router)
    app.include_router(router_courses)
    app.include_router(router_sessions)
    app.include_router(enrollments_router)
    app.include_router(session_enrollments_router)
    app.include_router(approvals_router)
    app.include_router(payments_router)
    app.include_router(notifications_router)

    @app.get("/", include_in_schema=False)
    async def root(request: Request) -> dict[str, str]:
        """Root endpoint."""
        return {
            "message": "CourseMarket API",
            "version": settings.app_version,
            "docs": f"{request.url}docs",
        }

    return app


app = create_app()
