"""Data models for the score engine microservice."""

from .api_models import (
    ScoreRequest,
    ScoreResponse,
    EligibilityResponse,
    ScoreHistoryResponse,
    FinalScoreRequest,
    FinalScoreResponse,
    SweepResponse,
    StorageStatsResponse,
    HealthResponse,
    ErrorResponse
)
from .internal_models import (
    ScoreComponents,
    ScoreResult,
    StoredScore,
    ScoreHistory,
    UserProfile,
    Gender,
    NftTier,
    ScoreEligibility,
    SweepReport,
    StorageStats,
    MalformedRecordError
)

__all__ = [
    "ScoreRequest",
    "ScoreResponse",
    "EligibilityResponse",
    "ScoreHistoryResponse",
    "FinalScoreRequest",
    "FinalScoreResponse",
    "SweepResponse",
    "StorageStatsResponse",
    "HealthResponse",
    "ErrorResponse",
    "ScoreComponents",
    "ScoreResult",
    "StoredScore",
    "ScoreHistory",
    "UserProfile",
    "Gender",
    "NftTier",
    "ScoreEligibility",
    "SweepReport",
    "StorageStats",
    "MalformedRecordError"
]
