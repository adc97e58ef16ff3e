"""Pydantic models for API requests and responses."""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ScoreRequest(BaseModel):
    """Request model for the score generation endpoint."""

    userId: str = Field(..., min_length=1, description="Authenticated user identifier")
    sessionId: str = Field(..., min_length=1, description="Caller-defined scoring session")
    imageData: str = Field(..., min_length=1, description="Stable per-attempt image payload or identifier")

    @field_validator('userId', 'sessionId')
    @classmethod
    def validate_key_segment(cls, v):
        """Identifiers become storage key segments and must not contain slashes."""
        if '/' in v:
            raise ValueError('Identifiers must not contain "/"')
        return v


class ScoreComponentsModel(BaseModel):
    symmetry: int = Field(..., ge=0, le=35)
    vibe: int = Field(..., ge=0, le=40)
    mystique: int = Field(..., ge=0, le=25)


class ScoreData(BaseModel):
    """Score payload returned by the score endpoints."""

    userId: str
    sessionId: str
    score: int = Field(..., ge=55, le=95, description="Total score")
    percentile: float
    components: ScoreComponentsModel
    processingTime: int = Field(..., ge=0, description="Processing time in milliseconds")
    timestamp: str
    createdAt: Optional[str] = None
    expiresAt: Optional[str] = None


class ScoreResponse(BaseModel):
    """Response model for score generation and lookup."""

    success: bool = True
    data: Optional[ScoreData] = None
    message: str

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "success": True,
            "data": {
                "userId": "u12345",
                "sessionId": "s-1",
                "score": 78,
                "percentile": 0.78,
                "components": {"symmetry": 27, "vibe": 31, "mystique": 18},
                "processingTime": 3,
                "timestamp": "2024-01-01T12:00:00.000Z"
            },
            "message": "Score generated successfully"
        }
    })


class EligibilityResponse(BaseModel):
    """Response model for the pre-scoring eligibility check."""

    userId: str
    sessionId: str
    canScore: bool
    status: str = Field(..., description="allowed, already_scored or unknown")


class ScoreHistoryData(BaseModel):
    userId: str
    scores: List[Dict[str, Any]]
    totalScores: int = Field(..., ge=0)
    lastScoredAt: Optional[str] = None


class ScoreHistoryResponse(BaseModel):
    success: bool = True
    data: Optional[ScoreHistoryData] = None
    message: str


class FinalScoreRequest(BaseModel):
    """
    Request model for the final score endpoint.

    Fields are optional at this layer so that missing values reach the
    entitlement calculator and fail with its own validation errors.
    """

    userId: Optional[str] = None
    gender: Optional[str] = None
    facialScore: Optional[float] = None
    university: Optional[str] = None
    nftTier: Optional[str] = None


class FinalScoreComponents(BaseModel):
    facial: float
    university: int
    nft: int


class FinalScoreData(BaseModel):
    userId: str
    gender: str
    facialScore: float
    university: str
    nftTier: Optional[str] = None
    finalScore: int
    scoreExpiry: str
    score: int
    percentile: float
    components: FinalScoreComponents


class FinalScoreResponse(BaseModel):
    success: bool = True
    data: FinalScoreData
    message: str

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "success": True,
            "data": {
                "userId": "u12345",
                "gender": "male",
                "facialScore": 84.3,
                "university": "Thammasat Rangsit",
                "nftTier": "elite",
                "finalScore": 114,
                "scoreExpiry": "2024-01-31T12:00:00.000Z",
                "score": 114,
                "percentile": 1.14,
                "components": {"facial": 84.3, "university": 20, "nft": 10}
            },
            "message": "Final score calculated successfully"
        }
    })


class SweepResponse(BaseModel):
    scanned: int
    deleted: int
    malformed: int
    completed: bool


class StorageStatsResponse(BaseModel):
    totalScores: int
    totalHistory: int
    expiredScores: int


class HealthResponse(BaseModel):
    """Response model for health check endpoint."""

    status: str = Field(..., description="Service health status")
    timestamp: datetime = Field(..., description="Health check timestamp")
    version: str = Field(..., description="Service version")

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "status": "healthy",
            "timestamp": "2024-01-01T12:00:00Z",
            "version": "1.0.0"
        }
    })


class ErrorResponse(BaseModel):
    """Standard error response model."""

    error: str = Field(..., description="Error type or category")
    message: str = Field(..., description="Human-readable error message")
    correlation_id: str = Field(..., description="Request correlation ID for tracing")
    timestamp: datetime = Field(..., description="Error timestamp")

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "error": "DuplicateScoreError",
            "message": "Score already exists for this session",
            "correlation_id": "req_123456789",
            "timestamp": "2024-01-01T12:00:00Z"
        }
    })
