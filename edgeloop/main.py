"""
FastAPI application for EdgeLoop
Includes the decision-core REST API, the drift-check job, and health checks

Run with::

    uvicorn edgeloop.main:create_app --factory
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from fastapi import Depends, FastAPI, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse

from edgeloop.auth import verify_admin_api_key, verify_api_key
from edgeloop.config import Settings
from edgeloop.core.drift import DriftVerdict
from edgeloop.core.edge import evaluate_edge
from edgeloop.core.kelly import kelly_to_units
from edgeloop.core.odds_math import (
    decimal_from_american,
    format_american_odds,
    implied_probability,
    remove_vig,
)
from edgeloop.database import Database
from edgeloop.models import utcnow
from edgeloop.schemas import (
    AlertDetailResponse,
    AlertResponse,
    AlertsResponse,
    CriticalCountResponse,
    DriftCheckResponse,
    DriftInfo,
    DriftMetricCreate,
    DriftMetricResponse,
    EdgeRequest,
    EdgeResponse,
    FeatureDrift,
    ModelEvaluationRequest,
    ModelHistoryResponse,
    ModelStatusResponse,
    ModelVersionCreate,
    ModelVersionResponse,
    NoVigRequest,
    NoVigResponse,
    OddsConversionResponse,
)
from edgeloop.services.alerts import AlertGate, run_drift_check
from edgeloop.services.drift_monitor import DriftMonitor
from edgeloop.services.model_registry import (
    DuplicateModelVersion,
    InvalidModelTransition,
    ModelRegistry,
)

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

logger = logging.getLogger(__name__)

MAX_PAGE = 100


# ============================================================================
# SCHEDULED JOB
# ============================================================================

def drift_check_job(app: FastAPI) -> None:
    """Periodic drift check on the active model — runs every DRIFT_CHECK_INTERVAL_MIN."""
    try:
        result = run_drift_check(app.state.registry, app.state.monitor, app.state.gate)
        if result is not None:
            verdict, alert = result
            logger.info(
                "Drift check complete: %s drifted=%s psi=%.4f alert=%s",
                verdict.model_version, verdict.is_drifted, verdict.overall_psi,
                alert.id if alert is not None else None,
            )
    except Exception as exc:
        logger.error("Drift check job failed: %s", exc, exc_info=True)


def _drift_info(verdict: DriftVerdict) -> DriftInfo:
    drifted = set(verdict.drifted_features)
    return DriftInfo(
        overall_psi=verdict.overall_psi,
        is_drifted=verdict.is_drifted,
        feature_drift=[
            FeatureDrift(feature=feature, psi=psi, is_drifted=feature in drifted)
            for feature, psi in verdict.feature_psi.items()
        ],
    )


# ============================================================================
# APPLICATION FACTORY
# ============================================================================

def create_app(settings: Optional[Settings] = None, database: Optional[Database] = None) -> FastAPI:
    """
    Composition root: builds the database handle and services once and hangs
    them off ``app.state``.  Tests pass their own ``settings`` / ``database``.
    """
    settings = settings or Settings.from_env()

    logging.basicConfig(level=settings.log_level, format=LOG_FORMAT)

    if not settings.api_keys:
        raise ValueError("No API keys configured! Set API_KEY_USER1 in environment")

    owns_database = database is None
    database = database or Database(settings.database_url)
    scheduler = BackgroundScheduler()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Startup and shutdown events"""
        logger.info("Starting EdgeLoop decision core (%s)", settings.environment)

        if settings.scheduler_enabled:
            scheduler.add_job(
                drift_check_job,
                IntervalTrigger(minutes=settings.drift_check_interval_min),
                args=[app],
                id="drift_check",
                name="Model Drift Check",
                replace_existing=True,
            )
            scheduler.start()
            logger.info(
                "Scheduler started: drift check every %dmin", settings.drift_check_interval_min
            )

        yield

        logger.info("Shutting down EdgeLoop decision core")
        if scheduler.running:
            scheduler.shutdown()
        if owns_database:
            database.dispose()

    app = FastAPI(
        title="EdgeLoop",
        description="Quantitative decision core: odds math, edge sizing, model registry, drift alerts",
        version="1.0",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.database = database
    app.state.scheduler = scheduler
    app.state.registry = ModelRegistry(database)
    app.state.monitor = DriftMonitor(
        database,
        window=settings.drift_metric_window,
        psi_threshold=settings.drift_psi_threshold,
    )
    app.state.gate = AlertGate(
        database,
        crit_psi=settings.drift_crit_psi,
        notifications=settings.notifications,
    )

    _register_routes(app)
    return app


def _register_routes(app: FastAPI) -> None:
    settings: Settings = app.state.settings
    database: Database = app.state.database
    scheduler: BackgroundScheduler = app.state.scheduler
    registry: ModelRegistry = app.state.registry
    monitor: DriftMonitor = app.state.monitor
    gate: AlertGate = app.state.gate

    # ========================================================================
    # PUBLIC ENDPOINTS
    # ========================================================================

    @app.get("/")
    async def root():
        """Health check"""
        return {
            "app": "EdgeLoop",
            "version": "1.0",
            "status": "operational",
            "timestamp": utcnow().isoformat(),
        }

    @app.get("/health")
    def health_check():
        """Health check endpoint"""
        health = {"status": "healthy", "database": "connected", "scheduler": "running"}

        try:
            database.ping()
        except Exception as e:
            logger.error("Health check database error: %s", e)
            health["status"] = "degraded"
            health["database"] = f"error: {str(e)}"

        if not settings.scheduler_enabled:
            health["scheduler"] = "disabled"
        elif not scheduler.running:
            health["status"] = "degraded"
            health["scheduler"] = "stopped"

        return health

    # ========================================================================
    # AUTHENTICATED ENDPOINTS - ODDS & EDGE
    # ========================================================================

    @app.get("/api/odds/convert", response_model=OddsConversionResponse)
    async def convert_odds(
        american: int = Query(..., description="American odds, e.g. -110 or +150"),
        user: str = Depends(verify_api_key),
    ):
        """Decimal odds and implied probability for one American price."""
        return OddsConversionResponse(
            american=american,
            formatted=format_american_odds(american),
            decimal_odds=decimal_from_american(american),
            implied_prob=implied_probability(american),
        )

    @app.post("/api/odds/no-vig", response_model=NoVigResponse)
    async def no_vig(payload: NoVigRequest, user: str = Depends(verify_api_key)):
        """Fair probabilities for every outcome of one market."""
        return NoVigResponse(odds=payload.odds, fair_probs=remove_vig(payload.odds))

    @app.post("/api/edge", response_model=EdgeResponse)
    async def compute_edge(payload: EdgeRequest, user: str = Depends(verify_api_key)):
        """Edge, EV and fractional-Kelly stake for one model probability vs one price."""
        fraction = payload.kelly_fraction if payload.kelly_fraction is not None else settings.kelly_fraction
        result = evaluate_edge(payload.model_prob, payload.market_odds, kelly_fraction=fraction)
        return EdgeResponse(
            **result.to_dict(),
            kelly_units=round(kelly_to_units(result.kelly_stake), 2),
            kelly_fraction=fraction,
            has_edge=result.has_edge,
        )

    # ========================================================================
    # AUTHENTICATED ENDPOINTS - MODEL
    # ========================================================================

    @app.get("/api/model/status", response_model=ModelStatusResponse)
    def model_status(user: str = Depends(verify_api_key)):
        """Active model, its metrics and the current drift verdict."""
        model = registry.get_active()
        if model is None:
            return ModelStatusResponse(
                as_of=utcnow(),
                model_version="none",
                status="none",
                message="No active model",
            )

        verdict = monitor.check_for_drift(model.version)
        return ModelStatusResponse(
            as_of=utcnow(),
            model_version=model.version,
            status=model.status,
            activated_at=model.activated_at,
            metrics=model.metrics,
            drift=_drift_info(verdict),
        )

    @app.get("/api/model/history", response_model=ModelHistoryResponse)
    def model_history(
        limit: Optional[int] = Query(default=None, ge=1, le=MAX_PAGE),
        user: str = Depends(verify_api_key),
    ):
        """Most recently created model versions first."""
        models = registry.get_history(limit or settings.model_history_limit)
        return ModelHistoryResponse(
            as_of=utcnow(),
            models=[ModelVersionResponse.model_validate(m) for m in models],
        )

    # ========================================================================
    # ADMIN ENDPOINTS - MODEL LIFECYCLE & DRIFT
    # ========================================================================

    @app.post("/admin/models", response_model=ModelVersionResponse, status_code=status.HTTP_201_CREATED)
    def create_model_version(payload: ModelVersionCreate, user: str = Depends(verify_admin_api_key)):
        """Register a new model version in ``training`` status (admin only)."""
        try:
            model = registry.create_version(**payload.model_dump())
        except DuplicateModelVersion as exc:
            raise HTTPException(status_code=409, detail=str(exc))
        return model

    @app.post("/admin/models/{version}/activate", response_model=ModelVersionResponse)
    def activate_model(version: str, user: str = Depends(verify_admin_api_key)):
        """Make ``version`` the single active model (admin only)."""
        try:
            model = registry.activate(version)
        except InvalidModelTransition as exc:
            raise HTTPException(status_code=409, detail=str(exc))
        if model is None:
            raise HTTPException(status_code=404, detail="Model version not found")
        logger.info("Model %s activated by %s", version, user)
        return model

    @app.post("/admin/models/{version}/evaluate", response_model=ModelVersionResponse)
    def evaluate_model(
        version: str,
        payload: ModelEvaluationRequest,
        user: str = Depends(verify_admin_api_key),
    ):
        """Score held-out predictions and store the calibration metrics (admin only)."""
        model = registry.evaluate(version, payload.predictions, payload.outcomes)
        if model is None:
            raise HTTPException(status_code=404, detail="Model version not found")
        return model

    @app.post(
        "/admin/models/{version}/drift",
        response_model=DriftMetricResponse,
        status_code=status.HTTP_201_CREATED,
    )
    def record_drift_metric(
        version: str,
        payload: DriftMetricCreate,
        user: str = Depends(verify_admin_api_key),
    ):
        """Append one drift observation for ``version`` (admin only)."""
        if registry.get_by_version(version) is None:
            raise HTTPException(status_code=404, detail="Model version not found")
        return monitor.record_metric(model_version=version, **payload.model_dump())

    @app.post("/admin/models/{version}/drift-check", response_model=DriftCheckResponse)
    def drift_check(version: str, user: str = Depends(verify_admin_api_key)):
        """Compute the drift verdict for ``version`` and raise an alert if drifted (admin only)."""
        if registry.get_by_version(version) is None:
            raise HTTPException(status_code=404, detail="Model version not found")
        verdict, alert = run_drift_check(registry, monitor, gate, version=version)
        return DriftCheckResponse(
            as_of=utcnow(),
            model_version=version,
            drift=_drift_info(verdict),
            alert=AlertResponse.model_validate(alert) if alert is not None else None,
        )

    @app.get("/admin/scheduler/status")
    async def get_scheduler_status(user: str = Depends(verify_admin_api_key)):
        """Get scheduler job status"""
        jobs = []
        for job in scheduler.get_jobs():
            jobs.append({
                "id": job.id,
                "name": job.name,
                "next_run": job.next_run_time.isoformat() if job.next_run_time else None,
            })
        return {"running": scheduler.running, "jobs": jobs}

    # ========================================================================
    # AUTHENTICATED ENDPOINTS - ALERTS
    # ========================================================================

    @app.get("/api/alerts", response_model=AlertsResponse)
    def list_alerts(
        acknowledged: Optional[bool] = Query(default=None),
        severity: Optional[str] = Query(default=None, pattern="^(info|warn|crit)$"),
        alert_type: Optional[str] = Query(default=None, alias="type"),
        limit: int = Query(default=50, ge=1, le=MAX_PAGE),
        user: str = Depends(verify_api_key),
    ):
        """
        Newest-first alerts.  ``acknowledged``, ``severity`` and ``type`` combine;
        ``limit`` caps the filtered result.
        """
        alerts = gate.query(
            acknowledged=acknowledged,
            severity=severity,
            alert_type=alert_type,
            limit=limit,
        )
        return AlertsResponse(
            as_of=utcnow(),
            alerts=[AlertResponse.model_validate(a) for a in alerts],
        )

    @app.get("/api/alerts/critical-count", response_model=CriticalCountResponse)
    def critical_count(user: str = Depends(verify_api_key)):
        """Unacknowledged crit alerts in the last 24 hours."""
        return CriticalCountResponse(as_of=utcnow(), unacknowledged_critical_24h=gate.critical_count())

    @app.get("/api/alerts/{alert_id}", response_model=AlertDetailResponse)
    def get_alert(alert_id: int, user: str = Depends(verify_api_key)):
        alert = gate.get(alert_id)
        if alert is None:
            raise HTTPException(status_code=404, detail="Alert not found")
        return AlertDetailResponse(as_of=utcnow(), alert=AlertResponse.model_validate(alert))

    @app.post("/api/alerts/{alert_id}/acknowledge", response_model=AlertDetailResponse)
    def acknowledge_alert(alert_id: int, user: str = Depends(verify_api_key)):
        """Mark an alert as acknowledged; repeating the call is a no-op."""
        alert = gate.acknowledge(alert_id, user)
        if alert is None:
            raise HTTPException(status_code=404, detail="Alert not found")
        return AlertDetailResponse(as_of=utcnow(), alert=AlertResponse.model_validate(alert))

    # ========================================================================
    # ERROR HANDLERS
    # ========================================================================

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Catch-all exception handler"""
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error", "type": type(exc).__name__}
        )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("edgeloop.main:create_app", factory=True, host="0.0.0.0", port=8000)
