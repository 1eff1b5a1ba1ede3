"""
ITSM Simulation Engine - Main Application
=========================================

Consistency engine for classroom incident-response games.

Modules:
- Topology: service dependency graph and failure cascade
- Health: service status derived from open incidents
- SLA Monitoring: breach detection and priority bumps
- Escalation: rule-driven escalation with audit trail

Clean Architecture Layers:
- Interfaces: FastAPI controllers
- Application: Services and DTOs
- Domain: Entities and value objects
- Infrastructure: Record stores, config reload, Slack, scheduler
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

# Configuration
from simengine.config import settings

# Infrastructure
from simengine.infrastructure.database import (
    init_database, close_database, create_tables, get_session_maker,
)
from simengine.infrastructure.database.store import SQLAlchemyEngineStore
from simengine.sla.infrastructure import EngineConfigManager, SlackClient, EngineScheduler
from simengine.maintenance import MaintenanceCycle, OutboxDispatcher

# Module Routers
from simengine.topology.interfaces import topology_router
from simengine.health.interfaces import health_router
from simengine.sla.interfaces import sla_router
from simengine.escalation.interfaces import escalation_router

# Shared API plumbing
from simengine.shared.api import (
    CorrelationIDMiddleware,
    LoggingMiddleware,
    register_exception_handlers,
)

# Logging
from simengine.shared.infrastructure.logging import setup_logging, get_logger

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan manager.

    STARTUP:
    1. Setup structured logging
    2. Initialize database and record store
    3. Load engine configuration and watch it
    4. Start the maintenance scheduler (unless polling is disabled)

    SHUTDOWN:
    1. Stop the scheduler
    2. Stop the config watcher
    3. Close Slack client and database connections
    """
    # === STARTUP ===
    setup_logging(settings.log_level, settings.environment)
    logger.info("Starting simulation engine", extra={
        "version": settings.app_version,
        "environment": settings.environment
    })

    logger.info("Initializing database")
    init_database()

    # Note: without a database the server still starts; store calls answer 503
    logger.info("Creating database tables")
    try:
        await create_tables()
    except (OSError, SQLAlchemyError) as e:
        logger.warning("Database not available - running in degraded mode", extra={"error": str(e)})

    store = SQLAlchemyEngineStore(get_session_maker())

    logger.info("Loading engine configuration")
    config_manager = EngineConfigManager()
    config_manager.load(settings.engine_config_path)
    config_manager.start_watching()

    slack_client = SlackClient()
    cycle = MaintenanceCycle(store, config_manager)
    dispatcher = OutboxDispatcher(store, config_manager, slack_client, settings.outbox_batch_size)

    async def maintenance_job():
        """Background maintenance pass followed by an outbox drain."""
        await cycle.run_all()
        await dispatcher.drain()

    scheduler = None
    if settings.poll_interval_seconds > 0:
        scheduler = EngineScheduler(
            interval_seconds=settings.poll_interval_seconds,
            timeout_seconds=settings.pass_timeout_seconds,
        )
        await scheduler.start(maintenance_job)
    else:
        logger.info("Polling disabled, maintenance runs on demand only")

    # Store services in app state for dependency injection
    app.state.store = store
    app.state.config_provider = config_manager
    app.state.scheduler = scheduler

    logger.info("Simulation engine started successfully")

    yield  # Application runs here

    # === SHUTDOWN ===
    logger.info("Shutting down simulation engine")

    if scheduler:
        await scheduler.stop()

    config_manager.stop_watching()
    await slack_client.close()
    await close_database()

    logger.info("Simulation engine shutdown complete")


# Create FastAPI application
app = FastAPI(
    title="ITSM Simulation Engine API",
    description="""
    ## Simulation Consistency Engine

    Keeps a classroom ITSM game coherent while students work incidents.

    ---

    ### 🕸️ Dependency Graph
    - `POST /games/{game_id}/dependencies` - Add an edge (cycles rejected)
    - `GET /games/{game_id}/dependency-graph` - Services with neighbours
    - `POST /services/{id}/cascade` - Spread a failure to dependents

    ### 🩺 Service Health
    - `GET /games/{game_id}/services/health` - Statuses and health score
    - `POST /games/{game_id}/services/recompute` - Re-derive every status

    ### ⏱️ SLA Monitoring
    - `POST /games/{game_id}/sla/check` - Process breaches
    - `GET /games/{game_id}/sla/status` - Within / at risk / breached

    ### 📈 Escalation
    - `GET /games/{game_id}/escalations/check` - Incidents due for escalation
    - `POST /incidents/{id}/escalate` - Manual escalation
    - `POST /escalations/{id}/acknowledge` - Acknowledge

    ---

    Hard dependencies take dependents down, soft ones degrade them. SLA
    breaches bump priority once; critical stays critical.
    """,
    version=settings.app_version,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

# === CORS Middleware ===
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# === Custom Middleware (from shared) ===
app.add_middleware(LoggingMiddleware)
app.add_middleware(CorrelationIDMiddleware)
register_exception_handlers(app)

# === Include Module Routers ===
app.include_router(topology_router)
app.include_router(health_router)
app.include_router(sla_router)
app.include_router(escalation_router)


# === Health Check Endpoint ===

@app.get("/health", tags=["Health"])
async def health_check(request: Request):
    """
    Health check endpoint for load balancers and orchestrators.

    Reports whether the engine config is loaded and the scheduler running.
    """
    scheduler = getattr(request.app.state, "scheduler", None)
    config_provider = getattr(request.app.state, "config_provider", None)

    checks = {
        "engine_config": "loaded" if config_provider is not None else "not_loaded",
        "scheduler": "running" if scheduler and scheduler.is_running else "stopped",
    }

    return {
        "status": "healthy",
        "version": settings.app_version,
        "environment": settings.environment,
        "checks": checks
    }


@app.get("/", tags=["Root"])
async def root():
    """Root endpoint with API information."""
    return {
        "service": "ITSM Simulation Engine",
        "version": settings.app_version,
        "architecture": "Clean Architecture / Modular Monolith",
        "docs": "/docs",
        "health": "/health",
        "modules": ["topology", "health", "sla", "escalation"],
    }


# === Development Entry Point ===

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "simengine.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.environment == "development",
        log_level="info"
    )
