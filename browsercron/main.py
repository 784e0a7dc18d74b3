"""FastAPI application initialization."""

from contextlib import asynccontextmanager
from uuid import uuid4

from dotenv import load_dotenv

# Load environment variables before anything else
load_dotenv()

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from browsercron.api.cron import router as cron_router
from browsercron.api.me import router as me_router
from browsercron.api.middleware import CorrelationIdMiddleware
from browsercron.api.notifications import router as notifications_router
from browsercron.api.routes import router
from browsercron.api.tasks import router as tasks_router
from browsercron.config import get_settings
from browsercron.database import close_database, init_database, run_migrations
from browsercron.services.automation_client import AutomationClient
from browsercron.services.digest_service import DigestService
from browsercron.services.email_client import EmailClient
from browsercron.services.logging_service import configure_logging, get_logger
from browsercron.services.notification_log_service import NotificationLogService
from browsercron.services.notifier import Notifier
from browsercron.services.run_orchestrator import RunOrchestrator
from browsercron.services.schedule_service import ScheduleService
from browsercron.services.task_service import TaskService
from browsercron.services.usage_service import UsageService
from browsercron.services.user_service import UserService


def build_services(app: FastAPI, automation_client: AutomationClient, email_client) -> None:
    """Wire services together and expose them on app.state."""
    settings = get_settings()

    task_service = TaskService()
    user_service = UserService()
    log_service = NotificationLogService()
    notifier = Notifier(email_client, log_service, app_url=settings.app_url)
    usage_service = UsageService(
        task_service, log_service, notifier, threshold=settings.usage_alert_threshold
    )
    orchestrator = RunOrchestrator(
        task_service=task_service,
        automation_client=automation_client,
        notifier=notifier,
        user_service=user_service,
        usage_service=usage_service,
    )

    app.state.task_service = task_service
    app.state.user_service = user_service
    app.state.log_service = log_service
    app.state.notifier = notifier
    app.state.usage_service = usage_service
    app.state.orchestrator = orchestrator
    app.state.schedule_service = ScheduleService(task_service, orchestrator)
    app.state.digest_service = DigestService(task_service, user_service, notifier)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler: the composition root for clients and services."""
    # Startup; a missing BROWSER_USE_API_KEY fails here
    settings = get_settings()
    configure_logging(settings.log_level)
    logger = get_logger("main")

    await init_database()
    await run_migrations()
    logger.info("database_initialized")

    automation_client = AutomationClient.from_settings(settings)
    email_client = EmailClient.from_settings(settings)
    build_services(app, automation_client, email_client)

    logger.info(
        "application_started",
        email_enabled=email_client is not None,
        log_level=settings.log_level,
    )

    yield

    # Shutdown
    await app.state.orchestrator.await_pending_runs(timeout=settings.shutdown_drain_timeout)

    await automation_client.close()
    if email_client is not None:
        await email_client.close()

    await close_database()
    logger.info("application_shutdown")


app = FastAPI(
    title="BrowserCron",
    description="Scheduled natural-language browser automation with email notifications",
    version="0.1.0",
    lifespan=lifespan,
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Return 400 with the first validation problem and the correlation ID."""
    correlation_id = getattr(request.state, "correlation_id", None) or str(uuid4())
    logger = structlog.get_logger()

    errors = exc.errors()
    if errors:
        first_error = errors[0]
        field = ".".join(str(loc) for loc in first_error.get("loc", ["unknown"]))
        message = first_error.get("msg", "Validation failed")
        detail = f"Field '{field}': {message}"
    else:
        detail = "Request validation failed"

    logger.warning(
        "validation_error",
        correlation_id=correlation_id,
        detail=detail,
    )

    return JSONResponse(
        status_code=400,
        content={
            "error": "Validation error",
            "detail": detail,
            "correlation_id": correlation_id,
        },
        headers={"X-Correlation-Id": correlation_id},
    )


app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(CorrelationIdMiddleware)

app.include_router(me_router)
app.include_router(tasks_router)
app.include_router(notifications_router)
app.include_router(cron_router)
app.include_router(router)
