"""
FastAPI application for the Prop Edge evaluator.
REST surface over the prop and moneyline evaluation core.
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from types import SimpleNamespace
from typing import List

from fastapi import BackgroundTasks, Depends, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.orm import Session

from propedge import __version__
from propedge.auth import Subject, verify_admin_api_key, verify_api_key
from propedge.config import Settings
from propedge.models import EvaluationHistory, SessionLocal, get_db, init_db
from propedge.prop_model import EvaluationResult, PropEdgeModel
from propedge.schemas import BatchRequest, GameLineRequest, HistoryEntry, PropRequest, UsageInfo
from propedge.services.analytics import AnalyticsSink, prop_odds_at_pick, record_history
from propedge.services.batch import evaluate_batch
from propedge.services.cache import CacheService
from propedge.services.fallback_odds import FallbackOddsClient
from propedge.services.features import FeatureCollector
from propedge.services.game_lines import GameLinesEvaluator
from propedge.services.stats_provider import SportsDataClient
from propedge.services.usage import UsageTracker

# Logging setup
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def build_services(settings: Settings) -> SimpleNamespace:
    """Wire the evaluation core once; everything hangs off the shared cache."""
    cache = CacheService(default_ttl=settings.cache_ttl_seconds, cache_dir=settings.cache_dir)
    client = SportsDataClient.from_settings(settings, cache)
    fallback = FallbackOddsClient.from_settings(settings, cache)
    collector = FeatureCollector(client, match_threshold=settings.match_threshold)
    return SimpleNamespace(
        settings=settings,
        cache=cache,
        client=client,
        prop_model=PropEdgeModel(
            collector,
            min_sample_size=settings.min_sample_size,
            calibration_factor=settings.calibration_factor,
            clv_neutral_band=settings.clv_neutral_band,
        ),
        game_evaluator=GameLinesEvaluator(
            client,
            fallback=fallback,
            calibration_factor=settings.calibration_factor,
            clv_neutral_band=settings.clv_neutral_band,
        ),
        usage=UsageTracker(),
        analytics=AnalyticsSink(settings.analytics_url),
        session_factory=SessionLocal,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events"""
    logger.info("Starting Prop Edge evaluator")
    settings = Settings.from_env()
    app.state.services = build_services(settings)
    if not settings.sportsdata_api_key:
        logger.warning("No stat provider key configured; evaluations will PASS on baselines")
    try:
        init_db()
    except Exception as exc:
        logger.error("Database init failed: %s", exc, exc_info=True)

    yield

    logger.info("Shutting down Prop Edge evaluator")


app = FastAPI(
    title="Prop Edge Evaluator",
    description="Player prop and moneyline evaluation API",
    version=__version__,
    lifespan=lifespan,
)

# CORS (adjust origins for production)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_services(request: Request) -> SimpleNamespace:
    return request.app.state.services


def _charge(services: SimpleNamespace, subject: Subject, cost: int = 1) -> None:
    """Consume quota or reject with 429 before any evaluation work."""
    decision = services.usage.check_and_increment(subject.id, subject.tier, cost)
    if not decision.allowed:
        raise HTTPException(
            status_code=429,
            detail={
                "message": "Usage limit reached",
                "remaining": decision.remaining,
                "limit": decision.limit,
            },
        )


def _odds_at_pick(request, result: EvaluationResult):
    if isinstance(request, PropRequest):
        return prop_odds_at_pick(result, request.over_price, request.under_price, request.opening_price)
    return result.raw_numbers.get("line")


def _after_evaluation(background: BackgroundTasks, services: SimpleNamespace,
                      subject: Subject, sport: str, result: EvaluationResult,
                      odds_at_pick=None) -> None:
    background.add_task(record_history, services.session_factory, subject.id, sport, result)
    if services.analytics.enabled:
        background.add_task(services.analytics.send, subject.id, result, odds_at_pick)


# ============================================================================
# PUBLIC ENDPOINTS
# ============================================================================

@app.get("/")
async def root():
    """Health check"""
    return {
        "app": "Prop Edge Evaluator",
        "version": __version__,
        "status": "operational",
        "timestamp": datetime.utcnow().isoformat(),
    }


@app.get("/health")
def health_check(db: Session = Depends(get_db),
                 services: SimpleNamespace = Depends(get_services)):
    """Health check endpoint"""
    health = {
        "status": "healthy",
        "database": "connected",
        "statProvider": "configured" if services.client.has_credentials else "missing_credentials",
    }

    try:
        db.execute(text("SELECT 1"))
    except Exception as e:
        logger.error("Health check database error: %s", e)
        health["status"] = "degraded"
        health["database"] = f"error: {str(e)}"

    return health


# ============================================================================
# AUTHENTICATED ENDPOINTS - EVALUATION
# ============================================================================

@app.post("/api/props/evaluate")
def evaluate_prop(
    payload: PropRequest,
    background: BackgroundTasks,
    subject: Subject = Depends(verify_api_key),
    services: SimpleNamespace = Depends(get_services),
):
    """Evaluate one player prop."""
    _charge(services, subject)
    result = services.prop_model.evaluate(payload.to_input())
    logger.info("Prop evaluated for %s: %s %s → %s (%.1f)", subject.id, payload.subject_name,
                payload.statistic_line, result.decision, result.final_confidence_percent)
    _after_evaluation(background, services, subject, payload.sport or "", result,
                      _odds_at_pick(payload, result))
    return result.to_dict()


@app.post("/api/games/evaluate")
def evaluate_game(
    payload: GameLineRequest,
    background: BackgroundTasks,
    subject: Subject = Depends(verify_api_key),
    services: SimpleNamespace = Depends(get_services),
):
    """Evaluate one moneyline."""
    _charge(services, subject)
    result = services.game_evaluator.evaluate(payload.to_input())
    logger.info("Moneyline evaluated for %s: %s vs %s → %s", subject.id, payload.team,
                payload.opponent, result.decision)
    _after_evaluation(background, services, subject, payload.sport or "", result,
                      _odds_at_pick(payload, result))
    return result.to_dict()


@app.post("/api/batch/evaluate")
def evaluate_batch_endpoint(
    payload: BatchRequest,
    background: BackgroundTasks,
    subject: Subject = Depends(verify_api_key),
    services: SimpleNamespace = Depends(get_services),
):
    """Evaluate a mixed batch; each entry costs one evaluation."""
    _charge(services, subject, cost=max(1, len(payload.entries)))

    def after_entry(request, result):
        _after_evaluation(background, services, subject, request.sport or "", result,
                          _odds_at_pick(request, result))

    return evaluate_batch(payload.entries, services.prop_model, services.game_evaluator,
                          on_result=after_entry)


@app.get("/api/history", response_model=List[HistoryEntry])
def get_history(
    limit: int = Query(50, ge=1, le=500),
    subject: Subject = Depends(verify_api_key),
    db: Session = Depends(get_db),
):
    """Most recent evaluations served to the calling subject."""
    return (
        db.query(EvaluationHistory)
        .filter(EvaluationHistory.subject == subject.id)
        .order_by(EvaluationHistory.timestamp.desc(), EvaluationHistory.id.desc())
        .limit(limit)
        .all()
    )


@app.get("/api/usage", response_model=UsageInfo)
def get_usage(
    subject: Subject = Depends(verify_api_key),
    services: SimpleNamespace = Depends(get_services),
):
    """Remaining quota for the calling subject; does not consume any."""
    decision = services.usage.status(subject.id, subject.tier)
    reset_at = None
    if decision.reset_at is not None:
        reset_at = datetime.fromtimestamp(decision.reset_at, tz=timezone.utc)
    return UsageInfo(
        subject=subject.id,
        tier=subject.tier,
        allowed=decision.allowed,
        remaining=decision.remaining,
        limit=decision.limit,
        reset_at=reset_at,
    )


@app.delete("/api/usage/{subject_id}")
def reset_usage(
    subject_id: str,
    subject: Subject = Depends(verify_admin_api_key),
    services: SimpleNamespace = Depends(get_services),
):
    """Start a fresh quota period for ``subject_id`` (e.g. on plan renewal)."""
    cleared = services.usage.used(subject_id)
    services.usage.reset(subject_id)
    logger.info("Usage reset for %s by %s (%d cleared)", subject_id, subject.id, cleared)
    return {"message": "Usage reset", "subject": subject_id, "cleared": cleared}


# ============================================================================
# CACHE
# ============================================================================

@app.get("/api/cache/stats")
def cache_stats(
    subject: Subject = Depends(verify_api_key),
    services: SimpleNamespace = Depends(get_services),
):
    return services.cache.stats()


@app.delete("/api/cache")
def clear_cache(
    expired_only: bool = Query(False),
    subject: Subject = Depends(verify_admin_api_key),
    services: SimpleNamespace = Depends(get_services),
):
    """Drop every cached provider response (memory and disk).

    With ``expired_only`` only entries past their TTL are evicted.
    """
    if expired_only:
        evicted = services.cache.evict_expired()
        logger.info("Expired cache entries evicted by %s (%d)", subject.id, evicted)
        return {"message": "Expired entries evicted", "removed": evicted}

    removed = services.cache.clear()
    logger.info("Cache cleared by %s (%d entries)", subject.id, removed)
    return {"message": "Cache cleared", "removed": removed}


# ============================================================================
# ERROR HANDLERS
# ============================================================================

@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    """Catch-all exception handler"""
    logger.error("Unhandled exception: %s", exc, exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error", "type": type(exc).__name__}
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
