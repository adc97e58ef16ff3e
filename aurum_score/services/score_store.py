"""
Score record store.

This module provides the session-scoped scoring workflow:
- Score generation with at-most-one record per (user, session)
- Lazy expiry of stored scores on read
- Fail-open eligibility checks for retry UIs
- Administrative history resets and storage statistics
"""

import logging
from datetime import timedelta
from typing import Optional

from aurum_score.clients.blob_store import BlobStore, MalformedObjectError, StorageError, iter_objects
from aurum_score.config import settings
from aurum_score.models.internal_models import (
    MalformedRecordError,
    ScoreEligibility,
    ScoreHistory,
    ScoreResult,
    StorageStats,
    StoredScore,
)
from aurum_score.services.history_tracker import HISTORY_PREFIX, HistoryTracker
from aurum_score.services.score_generator import InvalidScoreError, generate_score, validate_score
from aurum_score.utils.time_utils import TimestampError, is_expired, to_iso, utc_now

logger = logging.getLogger(__name__)

SCORE_PREFIX = "scores/"
DEFAULT_SCORE_TTL_HOURS = 24


class ScoreStoreError(Exception):
    """Base exception for score store errors."""
    pass


class AlreadyScoredError(ScoreStoreError):
    """Raised when a score already exists for a (user, session) pair."""

    def __init__(self, user_id: str, session_id: str):
        super().__init__("Score already exists for this session")
        self.user_id = user_id
        self.session_id = session_id


def score_key(user_id: str, session_id: str) -> str:
    return f"{SCORE_PREFIX}{user_id}/{session_id}"


def user_score_prefix(user_id: str) -> str:
    return f"{SCORE_PREFIX}{user_id}/"


class ScoreStore:
    """
    Persists generated scores under ``scores/{user_id}/{session_id}``.

    The dedup in ``store`` is a read followed by a write, not an atomic
    put-if-absent: two concurrent calls for the same pair can both pass the
    check, the last write wins and the history records both attempts.
    """

    def __init__(
        self,
        blob_store: BlobStore,
        history: Optional[HistoryTracker] = None,
        ttl_hours: int = DEFAULT_SCORE_TTL_HOURS,
        simulate_delay: bool = False,
        list_page_size: int = 1000
    ):
        """
        Initialize the score store.

        Args:
            blob_store: Backing blob store
            history: History tracker; defaults to one over the same blob store
            ttl_hours: Lifetime of a stored score
            simulate_delay: Passed through to the score generator
            list_page_size: Page size for prefix listings
        """
        self.blob_store = blob_store
        self.history = history or HistoryTracker(blob_store)
        self.ttl = timedelta(hours=ttl_hours)
        self.simulate_delay = simulate_delay
        self.list_page_size = list_page_size

    async def store(self, user_id: str, session_id: str, image_payload: str) -> ScoreResult:
        """
        Generate and persist a score for a session.

        Args:
            user_id: Submitting user
            session_id: Caller-defined scoring session
            image_payload: Stable per-attempt payload

        Returns:
            The generated ScoreResult

        Raises:
            AlreadyScoredError: If a live score exists for the session
            InvalidScoreError: If the generated score breaks its invariants
            StorageError: If the backing store fails
        """
        existing = await self.get(user_id, session_id)
        if existing is not None:
            logger.info(f"Rejected duplicate score for user {user_id} session {session_id}")
            raise AlreadyScoredError(user_id, session_id)

        score = await generate_score(user_id, image_payload, simulate_delay=self.simulate_delay)
        if not validate_score(score):
            raise InvalidScoreError(f"Invalid score generated: {score}")

        now = utc_now()
        stored = StoredScore(
            user_id=user_id,
            session_id=session_id,
            score=score,
            created_at=to_iso(now),
            expires_at=to_iso(now + self.ttl)
        )

        await self.blob_store.store_json(score_key(user_id, session_id), stored.to_dict())
        await self.history.append(user_id, stored)

        logger.info(
            f"Stored score {score.total_score} for user {user_id} session {session_id}, "
            f"expires {stored.expires_at}"
        )
        return score

    async def get(self, user_id: str, session_id: str) -> Optional[StoredScore]:
        """
        Retrieve the live score for a session.

        Expired and unreadable records are deleted and reported as absent.
        Storage errors propagate.
        """
        key = score_key(user_id, session_id)
        try:
            data = await self.blob_store.get_json(key)
            if data is None:
                return None
            stored = StoredScore.from_dict(data)
            expired = is_expired(stored.expires_at, utc_now())
        except (MalformedObjectError, MalformedRecordError, TimestampError) as e:
            logger.warning(f"Discarding unreadable score record {key}: {e}")
            await self.blob_store.delete(key)
            return None

        if expired:
            logger.debug(f"Score record {key} expired at {stored.expires_at}, deleting")
            await self.blob_store.delete(key)
            return None

        return stored

    async def check_eligibility(self, user_id: str, session_id: str) -> ScoreEligibility:
        """
        Check whether a session may still be scored.

        Storage failures fail open and are reported as ``UNKNOWN`` so callers
        can tell a confirmed slot from an optimistic one.
        """
        try:
            existing = await self.get(user_id, session_id)
        except StorageError as e:
            logger.warning(f"Eligibility check degraded for user {user_id} session {session_id}: {e}")
            return ScoreEligibility.UNKNOWN

        return ScoreEligibility.ALREADY_SCORED if existing else ScoreEligibility.ALLOWED

    async def can_score(self, user_id: str, session_id: str) -> bool:
        eligibility = await self.check_eligibility(user_id, session_id)
        return eligibility.allowed

    async def delete(self, user_id: str, session_id: str) -> None:
        await self.blob_store.delete(score_key(user_id, session_id))

    async def get_history(self, user_id: str) -> Optional[ScoreHistory]:
        return await self.history.read(user_id)

    async def reset_history(self, user_id: str) -> int:
        """
        Delete a user's history and all of their session scores.

        Returns:
            Number of session scores deleted
        """
        await self.history.delete(user_id)

        deleted = 0
        async for obj in iter_objects(self.blob_store, user_score_prefix(user_id), self.list_page_size):
            await self.blob_store.delete(obj.key)
            deleted += 1

        logger.info(f"Reset score history for user {user_id}: {deleted} session scores deleted")
        return deleted

    async def storage_stats(self) -> StorageStats:
        """Count stored scores, histories and expired-but-unswept scores."""
        now = utc_now()
        total_scores = 0
        expired_scores = 0

        async for obj in iter_objects(self.blob_store, SCORE_PREFIX, self.list_page_size):
            total_scores += 1
            try:
                data = await self.blob_store.get_json(obj.key)
                if data is not None and is_expired(StoredScore.from_dict(data).expires_at, now):
                    expired_scores += 1
            except (MalformedObjectError, MalformedRecordError, TimestampError):
                expired_scores += 1

        total_history = 0
        async for _ in iter_objects(self.blob_store, HISTORY_PREFIX, self.list_page_size):
            total_history += 1

        return StorageStats(
            total_scores=total_scores,
            total_history=total_history,
            expired_scores=expired_scores
        )


# Global store instance
_score_store: Optional[ScoreStore] = None


def get_score_store() -> ScoreStore:
    """
    Get the global score store, building its blob store from settings.

    Returns:
        ScoreStore: The global score store instance
    """
    global _score_store
    if _score_store is None:
        from aurum_score.clients.blob_store import create_blob_store

        blob_store = create_blob_store()
        _score_store = ScoreStore(
            blob_store=blob_store,
            history=HistoryTracker(blob_store, max_scores=settings.history_max_scores),
            ttl_hours=settings.score_ttl_hours,
            simulate_delay=settings.simulate_processing_delay,
            list_page_size=settings.sweep_page_size
        )
    return _score_store
