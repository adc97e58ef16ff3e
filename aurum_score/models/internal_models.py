"""Internal data models for the score engine."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

# Range invariants of a generated score
SYMMETRY_RANGE = (0, 35)
VIBE_RANGE = (0, 40)
MYSTIQUE_RANGE = (0, 25)
TOTAL_SCORE_RANGE = (55, 95)


class MalformedRecordError(ValueError):
    """Raised when a stored JSON document does not have the expected shape."""
    pass


def _require(data: Dict[str, Any], key: str) -> Any:
    if not isinstance(data, dict):
        raise MalformedRecordError(f"Expected a JSON object, got {type(data).__name__}")
    if key not in data:
        raise MalformedRecordError(f"Missing required field: {key}")
    return data[key]


@dataclass(frozen=True)
class ScoreComponents:
    """Weighted sub-scores of a generated score."""

    symmetry: int  # 35% weight
    vibe: int  # 40% weight
    mystique: int  # 25% weight

    def to_dict(self) -> Dict[str, int]:
        return {"symmetry": self.symmetry, "vibe": self.vibe, "mystique": self.mystique}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ScoreComponents":
        try:
            return cls(
                symmetry=int(_require(data, "symmetry")),
                vibe=int(_require(data, "vibe")),
                mystique=int(_require(data, "mystique")),
            )
        except (TypeError, ValueError) as e:
            raise MalformedRecordError(f"Invalid score components: {e}") from e

    @property
    def total(self) -> int:
        return self.symmetry + self.vibe + self.mystique


@dataclass(frozen=True)
class ScoreResult:
    """A generated score with its component breakdown."""

    total_score: int
    components: ScoreComponents
    processing_time_ms: int
    timestamp: str  # Generation instant, ISO-8601 UTC

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalScore": self.total_score,
            "components": self.components.to_dict(),
            "processingTime": self.processing_time_ms,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ScoreResult":
        try:
            return cls(
                total_score=int(_require(data, "totalScore")),
                components=ScoreComponents.from_dict(_require(data, "components")),
                processing_time_ms=int(_require(data, "processingTime")),
                timestamp=str(_require(data, "timestamp")),
            )
        except (TypeError, ValueError) as e:
            if isinstance(e, MalformedRecordError):
                raise
            raise MalformedRecordError(f"Invalid score result: {e}") from e

    @property
    def percentile(self) -> float:
        return round(self.total_score / 100, 2)


@dataclass(frozen=True)
class StoredScore:
    """A score persisted for one (user, session) pair. Immutable once written."""

    user_id: str
    session_id: str
    score: ScoreResult
    created_at: str
    expires_at: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "userId": self.user_id,
            "sessionId": self.session_id,
            "score": self.score.to_dict(),
            "createdAt": self.created_at,
            "expiresAt": self.expires_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StoredScore":
        return cls(
            user_id=str(_require(data, "userId")),
            session_id=str(_require(data, "sessionId")),
            score=ScoreResult.from_dict(_require(data, "score")),
            created_at=str(_require(data, "createdAt")),
            expires_at=str(_require(data, "expiresAt")),
        )


@dataclass
class ScoreHistory:
    """Bounded, most-recent-first list of a user's stored scores."""

    user_id: str
    scores: List[StoredScore] = field(default_factory=list)
    total_scores: int = 0  # Never decremented when entries are pruned
    last_scored_at: Optional[str] = None
    dropped_entries: int = field(default=0, compare=False, repr=False)  # Not persisted

    def to_dict(self) -> Dict[str, Any]:
        return {
            "userId": self.user_id,
            "scores": [score.to_dict() for score in self.scores],
            "totalScores": self.total_scores,
            "lastScoredAt": self.last_scored_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ScoreHistory":
        scores = _require(data, "scores")
        if not isinstance(scores, list):
            raise MalformedRecordError("Field 'scores' must be a list")
        try:
            total_scores = int(_require(data, "totalScores"))
        except (TypeError, ValueError) as e:
            raise MalformedRecordError(f"Invalid totalScores: {e}") from e

        # Unreadable entries are dropped so the running total survives them
        entries = []
        for entry in scores:
            try:
                entries.append(StoredScore.from_dict(entry))
            except MalformedRecordError:
                continue

        return cls(
            user_id=str(_require(data, "userId")),
            scores=entries,
            total_scores=total_scores,
            last_scored_at=data.get("lastScoredAt"),
            dropped_entries=len(scores) - len(entries),
        )


class Gender(str, Enum):
    MALE = "male"
    FEMALE = "female"


class NftTier(str, Enum):
    NONE = "none"
    BASIC = "basic"
    RARE = "rare"
    ELITE = "elite"
    LEGENDARY = "legendary"


@dataclass
class UserProfile:
    """Entitlement input and output. Callers own persistence of this object."""

    user_id: Optional[str]
    gender: Optional[str]
    facial_score: Optional[float]
    university: Optional[str]
    nft_tier: Optional[str] = None
    final_score: Optional[int] = None
    score_expiry: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "userId": self.user_id,
            "gender": self.gender,
            "facialScore": self.facial_score,
            "university": self.university,
        }
        if self.nft_tier is not None:
            data["nftTier"] = self.nft_tier
        if self.final_score is not None:
            data["finalScore"] = self.final_score
        if self.score_expiry is not None:
            data["scoreExpiry"] = self.score_expiry
        return data


class ScoreEligibility(str, Enum):
    """Outcome of the pre-scoring eligibility check."""

    ALLOWED = "allowed"
    ALREADY_SCORED = "already_scored"
    UNKNOWN = "unknown"  # Storage degraded, proceeding optimistically

    @property
    def allowed(self) -> bool:
        return self is not ScoreEligibility.ALREADY_SCORED


@dataclass
class SweepReport:
    """Summary of one expiry sweep run."""

    scanned: int = 0
    deleted: int = 0
    malformed: int = 0
    completed: bool = True


@dataclass(frozen=True)
class StorageStats:
    total_scores: int
    total_history: int
    expired_scores: int
