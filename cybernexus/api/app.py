"""
FastAPI application factory and configuration.
"""

from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict, List, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from cybernexus.analytics.alerts import AlertEvaluator
from cybernexus.analytics.compliance import ComplianceAggregator
from cybernexus.analytics.dashboard import DashboardService
from cybernexus.api.middleware import setup_middleware
from cybernexus.api.routers import (
    audits,
    auth,
    dashboard,
    health,
    notifications,
    policies,
    risks,
    security,
    soa,
    users,
)
from cybernexus.audits.models import Audit
from cybernexus.audits.service import AUDIT_PREFIX, AuditService
from cybernexus.auth.jwt_handler import get_jwt_handler
from cybernexus.auth.models import User
from cybernexus.auth.repository import UserRepository
from cybernexus.auth.service import AuthService
from cybernexus.auth.users import UserAdminService
from cybernexus.core import database
from cybernexus.core.architecture.base_repository import (
    BaseRepository,
    InMemoryRepository,
    PostgresDocumentRepository,
    stamp_updated_at,
)
from cybernexus.core.config import Settings, settings
from cybernexus.core.errors import GRCError
from cybernexus.core.identifiers import InMemorySequenceStore, PostgresSequenceStore, SequenceStore, create_allocator
from cybernexus.core.logging import get_logger
from cybernexus.notifications.models import Notification
from cybernexus.notifications.service import NotificationService
from cybernexus.policies.models import Policy
from cybernexus.policies.service import POLICY_PREFIX, PolicyService
from cybernexus.risk.guard import install_risk_guard
from cybernexus.risk.models import Risk
from cybernexus.risk.service import RISK_PREFIX, RiskService
from cybernexus.security.models import AuditLogEntry
from cybernexus.security.service import SecurityService
from cybernexus.soa.models import Control
from cybernexus.soa.service import SoAService

logger = get_logger(__name__)

# collection name -> (entity class, unique business field)
COLLECTIONS = {
    "risks": (Risk, "risk_id"),
    "controls": (Control, "control_id"),
    "audits": (Audit, "audit_id"),
    "policies": (Policy, "policy_id"),
    "users": (User, "email"),
    "notifications": (Notification, None),
    "audit_logs": (AuditLogEntry, None),
}


async def create_repositories(config: Settings, db_pool=None) -> Dict[str, BaseRepository]:
    """One repository per collection on the configured backend"""
    repositories: Dict[str, BaseRepository] = {}
    for name, (entity_class, unique_field) in COLLECTIONS.items():
        if db_pool is None:
            repositories[name] = InMemoryRepository(name, entity_class, unique_field)
        else:
            repository = PostgresDocumentRepository(db_pool, name, entity_class, unique_field)
            await repository.create_schema()
            repositories[name] = repository

    install_risk_guard(repositories["risks"])
    for name in ("controls", "audits", "policies", "users"):
        repositories[name].register_pre_save_hook(stamp_updated_at)
    return repositories


def build_services(app: FastAPI, config: Settings, repositories: Dict[str, BaseRepository],
                   sequences: SequenceStore, db_pool=None) -> None:
    """Wire services into app.state for the dependency getters"""
    strategy = config.id_allocation_strategy
    notifications = NotificationService(repositories["notifications"])
    security_service = SecurityService(
        repositories["audit_logs"],
        repositories["users"],
        store_probe=database.ping if db_pool is not None else None,
    )
    aggregator = ComplianceAggregator(
        repositories["risks"],
        repositories["controls"],
        repositories["audits"],
        repositories["policies"],
        repositories["users"],
        review_horizon_days=config.policy_review_horizon_days,
    )
    alert_evaluator = AlertEvaluator(
        repositories["risks"],
        repositories["audits"],
        repositories["policies"],
        repositories["users"],
        repositories["audit_logs"],
        audit_horizon_days=config.upcoming_audit_horizon_days,
        policy_horizon_days=config.policy_review_horizon_days,
        findings_limit=config.alert_findings_limit,
        max_failed_logins=config.max_failed_logins,
    )

    app.state.repositories = repositories
    app.state.sequences = sequences
    app.state.notification_service = notifications
    app.state.security_service = security_service
    app.state.auth_service = AuthService(
        UserRepository(repositories["users"]),
        get_jwt_handler(),
        security_service,
        max_failed_logins=config.max_failed_logins,
    )
    app.state.user_admin_service = UserAdminService(repositories["users"])
    app.state.risk_service = RiskService(
        repositories["risks"],
        create_allocator(strategy, repositories["risks"], "risk_id", RISK_PREFIX, sequences),
        notifications,
    )
    app.state.soa_service = SoAService(repositories["controls"])
    app.state.audit_service = AuditService(
        repositories["audits"],
        create_allocator(strategy, repositories["audits"], "audit_id", AUDIT_PREFIX, sequences),
        notifications,
    )
    app.state.policy_service = PolicyService(
        repositories["policies"],
        create_allocator(strategy, repositories["policies"], "policy_id", POLICY_PREFIX, sequences),
        review_horizon_days=config.policy_review_horizon_days,
    )
    app.state.aggregator = aggregator
    app.state.alert_evaluator = alert_evaluator
    app.state.dashboard_service = DashboardService(
        aggregator,
        alert_evaluator,
        repositories["risks"],
        repositories["audits"],
        repositories["policies"],
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan manager.

    Handles startup and shutdown events.
    """
    # Startup
    logger.info("Starting CyberNexus ISMS API", storage_backend=settings.storage_backend)

    db_pool = None
    if settings.storage_backend == "postgres":
        db_pool = await database.init_db_pool()
        sequences: SequenceStore = PostgresSequenceStore(db_pool)
        await sequences.create_schema()
    else:
        sequences = InMemorySequenceStore()

    repositories = await create_repositories(settings, db_pool)
    build_services(app, settings, repositories, sequences, db_pool)

    logger.info("API startup complete")

    yield

    # Shutdown
    logger.info("Shutting down API")
    await database.close_db_pool()
    logger.info("API shutdown complete")


def _field_errors(exc: RequestValidationError) -> List[Dict[str, str]]:
    errors = []
    for error in exc.errors():
        location = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
        errors.append({"field": ".".join(location), "message": error.get("msg", "Invalid value")})
    return errors


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(GRCError)
    async def grc_error_handler(request: Request, exc: GRCError) -> JSONResponse:
        headers: Optional[Dict[str, str]] = None
        if exc.status_code == status.HTTP_401_UNAUTHORIZED:
            headers = {"WWW-Authenticate": "Bearer"}
        if exc.status_code >= 500:
            logger.error("Request failed", path=request.url.path, error=exc.message)
        return JSONResponse(exc.to_dict(), status_code=exc.status_code, headers=headers)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(
            {"message": "Validation failed", "errors": _field_errors(exc)},
            status_code=status.HTTP_400_BAD_REQUEST,
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error("Unhandled exception", path=request.url.path, error=str(exc), exc_info=True)
        return JSONResponse(
            {"message": "An unexpected error occurred"},
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )


def create_app() -> FastAPI:
    """
    Create and configure FastAPI application.

    Returns:
        Configured FastAPI application
    """
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Information security management: risks, Statement of Applicability, audits and policies",
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_url="/openapi.json" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)

    # Include routers
    app.include_router(health.router, tags=["health"])
    routers: List[Any] = [
        (auth.router, "auth", "authentication"),
        (risks.router, "risks", "risks"),
        (soa.router, "soa", "soa"),
        (audits.router, "audits", "audits"),
        (policies.router, "policies", "policies"),
        (users.router, "users", "users"),
        (notifications.router, "notifications", "notifications"),
        (dashboard.router, "dashboard", "dashboard"),
        (security.router, "security", "security"),
    ]
    for router, path, tag in routers:
        app.include_router(router, prefix=f"{settings.api_prefix}/{path}", tags=[tag])

    register_exception_handlers(app)

    return app
