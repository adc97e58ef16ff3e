"""
Score API endpoints for session scoring, history and final score calculation.
"""

import time
from datetime import datetime, timezone
from typing import Any, Dict, NoReturn

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, Request

from aurum_score.clients.blob_store import StorageError
from aurum_score.config import settings
from aurum_score.models.api_models import (
    EligibilityResponse,
    ErrorResponse,
    FinalScoreRequest,
    FinalScoreResponse,
    ScoreHistoryResponse,
    ScoreRequest,
    ScoreResponse,
    StorageStatsResponse,
    SweepResponse,
)
from aurum_score.models.internal_models import StoredScore, UserProfile
from aurum_score.observability import (
    record_duplicate_score,
    record_final_score_metrics,
    record_score_metrics,
    record_sweep_metrics,
    trace_function,
)
from aurum_score.services.entitlement import (
    ProfileValidationError,
    calculate_final_score,
    score_breakdown,
)
from aurum_score.services.expiry_sweeper import ExpirySweeper
from aurum_score.services.score_generator import InvalidScoreError
from aurum_score.services.score_store import AlreadyScoredError, ScoreStore, get_score_store

logger = structlog.get_logger()
router = APIRouter(prefix="/api/v1", tags=["scores"])

# Identifiers become storage key segments
KEY_SEGMENT_PATTERN = r"^[^/]+$"


def raise_api_error(status_code: int, error_type: str, message: str, correlation_id: str) -> NoReturn:
    """Raise an HTTPException carrying the standard error body."""
    raise HTTPException(
        status_code=status_code,
        detail={
            "error": error_type,
            "message": message,
            "correlation_id": correlation_id,
            "timestamp": datetime.now(timezone.utc).isoformat()
        }
    )


def score_data(stored: StoredScore) -> Dict[str, Any]:
    score = stored.score
    return {
        "userId": stored.user_id,
        "sessionId": stored.session_id,
        "score": score.total_score,
        "percentile": score.percentile,
        "components": score.components.to_dict(),
        "processingTime": score.processing_time_ms,
        "timestamp": score.timestamp,
        "createdAt": stored.created_at,
        "expiresAt": stored.expires_at
    }


def get_expiry_sweeper(store: ScoreStore = Depends(get_score_store)) -> ExpirySweeper:
    return ExpirySweeper(
        store.blob_store,
        page_size=settings.sweep_page_size,
        time_budget_seconds=settings.sweep_time_budget_seconds
    )


@router.post(
    "/score",
    response_model=ScoreResponse,
    responses={409: {"model": ErrorResponse}, 503: {"model": ErrorResponse}}
)
@trace_function("score_endpoint")
async def create_score(
    request: ScoreRequest,
    http_request: Request,
    store: ScoreStore = Depends(get_score_store)
) -> ScoreResponse:
    """
    Generate and store the score for a session.

    Each (userId, sessionId) pair can be scored once while its record is
    live; a second attempt is rejected with 409.
    """
    correlation_id = http_request.headers.get("X-Call-ID", "unknown")
    start_time = time.time()

    logger.info(
        "Score request received",
        user_id=request.userId,
        session_id=request.sessionId,
        correlation_id=correlation_id
    )

    try:
        result = await store.store(request.userId, request.sessionId, request.imageData)
    except AlreadyScoredError as e:
        record_duplicate_score()
        logger.info(
            "Duplicate score rejected",
            user_id=request.userId,
            session_id=request.sessionId,
            correlation_id=correlation_id
        )
        raise_api_error(409, "DuplicateScoreError", str(e), correlation_id)
    except InvalidScoreError as e:
        record_score_metrics(success=False, processing_time=time.time() - start_time)
        logger.error("Score generation failed", error=str(e), correlation_id=correlation_id)
        raise_api_error(500, "GenerationError", str(e), correlation_id)
    except StorageError as e:
        record_score_metrics(success=False, processing_time=time.time() - start_time)
        logger.error("Score storage failed", error=str(e), correlation_id=correlation_id)
        raise_api_error(503, "StorageError", "Score storage is unavailable", correlation_id)

    record_score_metrics(
        success=True,
        processing_time=time.time() - start_time,
        total_score=result.total_score
    )

    logger.info(
        "Score generated",
        user_id=request.userId,
        session_id=request.sessionId,
        total_score=result.total_score,
        correlation_id=correlation_id
    )

    return ScoreResponse(
        success=True,
        data={
            "userId": request.userId,
            "sessionId": request.sessionId,
            "score": result.total_score,
            "percentile": result.percentile,
            "components": result.components.to_dict(),
            "processingTime": result.processing_time_ms,
            "timestamp": result.timestamp
        },
        message="Score generated successfully"
    )


@router.get("/score", response_model=ScoreResponse)
async def read_score(
    http_request: Request,
    userId: str = Query(..., min_length=1, pattern=KEY_SEGMENT_PATTERN),
    sessionId: str = Query(..., min_length=1, pattern=KEY_SEGMENT_PATTERN),
    store: ScoreStore = Depends(get_score_store)
) -> ScoreResponse:
    """Return the live score for a session, or null data when none exists."""
    correlation_id = http_request.headers.get("X-Call-ID", "unknown")

    try:
        stored = await store.get(userId, sessionId)
    except StorageError as e:
        logger.error("Score lookup failed", user_id=userId, error=str(e), correlation_id=correlation_id)
        raise_api_error(503, "StorageError", "Score storage is unavailable", correlation_id)

    if stored is None:
        return ScoreResponse(success=True, data=None, message="No score found for this session")

    return ScoreResponse(success=True, data=score_data(stored), message="Score retrieved successfully")


@router.get("/score/eligibility", response_model=EligibilityResponse)
async def score_eligibility(
    userId: str = Query(..., min_length=1, pattern=KEY_SEGMENT_PATTERN),
    sessionId: str = Query(..., min_length=1, pattern=KEY_SEGMENT_PATTERN),
    store: ScoreStore = Depends(get_score_store)
) -> EligibilityResponse:
    """Pre-check used by clients before offering a retry path."""
    eligibility = await store.check_eligibility(userId, sessionId)
    return EligibilityResponse(
        userId=userId,
        sessionId=sessionId,
        canScore=eligibility.allowed,
        status=eligibility.value
    )


@router.delete("/score")
async def delete_score(
    http_request: Request,
    userId: str = Query(..., min_length=1, pattern=KEY_SEGMENT_PATTERN),
    sessionId: str = Query(..., min_length=1, pattern=KEY_SEGMENT_PATTERN),
    store: ScoreStore = Depends(get_score_store)
) -> Dict[str, Any]:
    correlation_id = http_request.headers.get("X-Call-ID", "unknown")

    try:
        await store.delete(userId, sessionId)
    except StorageError as e:
        logger.error("Score deletion failed", user_id=userId, error=str(e), correlation_id=correlation_id)
        raise_api_error(503, "StorageError", "Score storage is unavailable", correlation_id)

    return {"success": True, "message": "Score deleted"}


@router.get("/users/{user_id}/score-history", response_model=ScoreHistoryResponse)
async def read_score_history(
    user_id: str,
    http_request: Request,
    store: ScoreStore = Depends(get_score_store)
) -> ScoreHistoryResponse:
    correlation_id = http_request.headers.get("X-Call-ID", "unknown")

    try:
        history = await store.get_history(user_id)
    except StorageError as e:
        logger.error("History lookup failed", user_id=user_id, error=str(e), correlation_id=correlation_id)
        raise_api_error(503, "StorageError", "Score storage is unavailable", correlation_id)

    if history is None:
        return ScoreHistoryResponse(success=True, data=None, message="No score history found")

    return ScoreHistoryResponse(
        success=True,
        data=history.to_dict(),
        message="Score history retrieved successfully"
    )


@router.delete("/users/{user_id}/score-history")
async def reset_score_history(
    user_id: str,
    http_request: Request,
    store: ScoreStore = Depends(get_score_store)
) -> Dict[str, Any]:
    """Administrative reset: removes the history and every session score of a user."""
    correlation_id = http_request.headers.get("X-Call-ID", "unknown")

    try:
        deleted = await store.reset_history(user_id)
    except StorageError as e:
        logger.error("History reset failed", user_id=user_id, error=str(e), correlation_id=correlation_id)
        raise_api_error(503, "StorageError", "Score storage is unavailable", correlation_id)

    logger.info("Score history reset", user_id=user_id, deleted_scores=deleted, correlation_id=correlation_id)
    return {"success": True, "deletedScores": deleted, "message": "Score history reset"}


@router.post("/final-score", response_model=FinalScoreResponse, responses={400: {"model": ErrorResponse}})
@trace_function("final_score_endpoint")
async def final_score(request: FinalScoreRequest, http_request: Request) -> FinalScoreResponse:
    """
    Calculate a profile's final score from its facial score, university
    and (for male profiles) NFT tier.
    """
    correlation_id = http_request.headers.get("X-Call-ID", "unknown")

    profile = UserProfile(
        user_id=request.userId,
        gender=request.gender,
        facial_score=request.facialScore,
        university=request.university,
        nft_tier=request.nftTier
    )

    try:
        result = calculate_final_score(profile, ttl_days=settings.final_score_ttl_days)
        breakdown = score_breakdown(profile)
    except ProfileValidationError as e:
        record_final_score_metrics(success=False, gender=request.gender)
        logger.info(
            "Final score validation failed",
            user_id=request.userId,
            error=str(e),
            error_type=type(e).__name__,
            correlation_id=correlation_id
        )
        raise_api_error(400, type(e).__name__, str(e), correlation_id)

    record_final_score_metrics(success=True, gender=result.gender)

    return FinalScoreResponse(
        success=True,
        data={
            **result.to_dict(),
            "score": result.final_score,
            "percentile": round(result.final_score / 100, 2),
            "components": {
                "facial": breakdown.facial,
                "university": breakdown.university,
                "nft": breakdown.nft
            }
        },
        message="Final score calculated successfully"
    )


@router.post("/admin/cleanup-expired", response_model=SweepResponse)
@trace_function("expiry_sweep_endpoint")
async def cleanup_expired(
    http_request: Request,
    sweeper: ExpirySweeper = Depends(get_expiry_sweeper)
) -> SweepResponse:
    correlation_id = http_request.headers.get("X-Call-ID", "unknown")

    try:
        report = await sweeper.sweep()
    except StorageError as e:
        logger.error("Expiry sweep failed", error=str(e), correlation_id=correlation_id)
        raise_api_error(503, "StorageError", "Score storage is unavailable", correlation_id)

    record_sweep_metrics(report.deleted, report.malformed, report.completed)
    return SweepResponse(
        scanned=report.scanned,
        deleted=report.deleted,
        malformed=report.malformed,
        completed=report.completed
    )


@router.get("/admin/storage-stats", response_model=StorageStatsResponse)
async def storage_stats(
    http_request: Request,
    store: ScoreStore = Depends(get_score_store)
) -> StorageStatsResponse:
    correlation_id = http_request.headers.get("X-Call-ID", "unknown")

    try:
        stats = await store.storage_stats()
    except StorageError as e:
        logger.error("Storage stats failed", error=str(e), correlation_id=correlation_id)
        raise_api_error(503, "StorageError", "Score storage is unavailable", correlation_id)

    return StorageStatsResponse(
        totalScores=stats.total_scores,
        totalHistory=stats.total_history,
        expiredScores=stats.expired_scores
    )


@router.get("/health", response_model=Dict[str, Any])
async def score_health_check(store: ScoreStore = Depends(get_score_store)) -> Dict[str, Any]:
    """
    Health check endpoint specific to the score engine.

    Returns:
        Dict with service health status and component checks
    """
    storage_healthy = await store.blob_store.health_check()

    return {
        "status": "healthy" if storage_healthy else "unhealthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "components": {
            "storage": {
                "status": "healthy" if storage_healthy else "unhealthy",
                "backend": settings.storage_backend,
                "bucket": settings.storage_bucket
            }
        }
    }
