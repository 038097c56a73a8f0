from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from sqlalchemy import text
from starlette.middleware.cors import CORSMiddleware

from app.apps.workspaces.routers import invitation_router, workspace_router
from app.core.config import app_logger, settings
from app.core.dependencies import SessionDep
from app.core.exceptions.handlers import (
    authentication_exception_handler,
    conflict_exception_handler,
    database_exception_handler,
    exception_schema,
    expired_invitation_exception_handler,
    forbidden_exception_handler,
    general_exception_handler,
    invalid_state_exception_handler,
    limit_exceeded_exception_handler,
    not_found_exception_handler,
)
from app.core.exceptions.types import (
    AppException,
    AuthenticationException,
    ConflictException,
    DatabaseException,
    ExpiredInvitationException,
    ForbiddenException,
    InvalidStateException,
    LimitExceededException,
    NotFoundException,
)
from app.core.services import register_publisher
from app.core.utils import generate_openapi_json, write_to_file_async
from app.infrastructure.messaging import close_connection, publish_event, start_consumers
from app.infrastructure.scheduler import initialize_scheduler, scheduler


@asynccontextmanager
async def lifespan(app: FastAPI):
    app_logger.info("Starting application...")

    # Activity, notification and email events leave through the broker
    register_publisher(publish_event)

    if settings.ENABLE_SCHEDULER:
        app_logger.info("Starting scheduler...")
        scheduler.start()
        initialize_scheduler()
        app_logger.info("Scheduler started successfully.")
    else:
        app_logger.info("Scheduler disabled via ENABLE_SCHEDULER setting.")

    if settings.ENABLE_MESSAGING:
        app_logger.info("Starting message consumers...")
        await start_consumers(keep_alive=False)
        app_logger.info("Message consumers started successfully.")
    else:
        app_logger.info("Messaging disabled via ENABLE_MESSAGING setting.")

    openapi_schema = generate_openapi_json(app)
    await write_to_file_async("openapi.json", openapi_schema)

    yield

    app_logger.info("Shutting down application...")

    if settings.ENABLE_SCHEDULER and scheduler.running:
        scheduler.shutdown()
        app_logger.info("Scheduler stopped successfully.")

    await close_connection()


app = FastAPI(
    lifespan=lifespan,
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description=settings.APP_DESCRIPTION,
    debug=settings.DEBUG,
    openapi_url="/openapi.json",
    docs_url="/docs",
    redoc_url="/redoc",
    responses=exception_schema,
    root_path_in_servers=False,
    servers=[
        {
            "url": f"{settings.API_DOMAIN}",
        },
    ],
)

# Register exception handlers (more specific first)
app.add_exception_handler(AuthenticationException, authentication_exception_handler)
app.add_exception_handler(ForbiddenException, forbidden_exception_handler)
app.add_exception_handler(NotFoundException, not_found_exception_handler)
app.add_exception_handler(ConflictException, conflict_exception_handler)
app.add_exception_handler(InvalidStateException, invalid_state_exception_handler)
app.add_exception_handler(LimitExceededException, limit_exceeded_exception_handler)
app.add_exception_handler(
    ExpiredInvitationException, expired_invitation_exception_handler
)
app.add_exception_handler(DatabaseException, database_exception_handler)
# Generic fallback, also covers BadRequestException
app.add_exception_handler(AppException, general_exception_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ALLOW_ORIGINS,
    allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(workspace_router, prefix="/api", tags=["Workspaces"])
app.include_router(invitation_router, prefix="/api", tags=["Invitations"])


@app.get("/", include_in_schema=False)
async def root(request: Request):
    base_url = str(request.base_url).rstrip("/")
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "documentations": {
            "swagger": f"{base_url}/docs",
            "redoc": f"{base_url}/redoc",
        },
        "version": settings.APP_VERSION,
    }


@app.head("/health", include_in_schema=False)
@app.get("/health")
async def health_check(session: SessionDep):
    """
    Health check endpoint.

    Checks:
        - Database connectivity
    """
    health_status = {
        "status": "ok",
        "message": f"{settings.APP_NAME} is running.",
        "checks": {"database": "ok"},
    }

    try:
        async with session.begin():
            result = await session.execute(text("SELECT 1"))
            if result.scalar() != 1:
                health_status["checks"]["database"] = "unhealthy"
                health_status["status"] = "degraded"
    except Exception as e:
        app_logger.error(f"Database health check failed: {e}")
        health_status["checks"]["database"] = "unhealthy"
        health_status["status"] = "degraded"

    if health_status["status"] != "ok":
        raise AppException(
            "One or more health checks failed.",
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            details=health_status,
        )

    return health_status
