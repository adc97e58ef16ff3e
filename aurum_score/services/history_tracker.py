"""
Score history tracking.

Each user has one history document at ``score-history/{user_id}`` holding
the most recent stored scores, newest first.
"""

import logging
from typing import Optional

from aurum_score.clients.blob_store import BlobStore, MalformedObjectError
from aurum_score.models.internal_models import MalformedRecordError, ScoreHistory, StoredScore
from aurum_score.utils.time_utils import TimestampError, is_expired, utc_now

logger = logging.getLogger(__name__)

HISTORY_PREFIX = "score-history/"
DEFAULT_HISTORY_MAX = 10


def history_key(user_id: str) -> str:
    return f"{HISTORY_PREFIX}{user_id}"


class HistoryTracker:
    """Maintains the bounded per-user score history."""

    def __init__(self, blob_store: BlobStore, max_scores: int = DEFAULT_HISTORY_MAX):
        self.blob_store = blob_store
        self.max_scores = max_scores

    async def _load(self, user_id: str) -> Optional[ScoreHistory]:
        """Load a history document, discarding it if it cannot be parsed."""
        key = history_key(user_id)
        try:
            data = await self.blob_store.get_json(key)
            if data is None:
                return None
            history = ScoreHistory.from_dict(data)
            if history.dropped_entries:
                logger.warning(f"Skipping {history.dropped_entries} unreadable history entries for user {user_id}")
            return history
        except (MalformedObjectError, MalformedRecordError) as e:
            logger.warning(f"Discarding unreadable score history for user {user_id}: {e}")
            await self.blob_store.delete(key)
            return None

    async def append(self, user_id: str, record: StoredScore) -> ScoreHistory:
        """
        Prepend a stored score to the user's history.

        Read-modify-write without locking: concurrent appends for one user
        can lose an entry. Storage errors propagate to the caller.
        """
        history = await self._load(user_id) or ScoreHistory(user_id=user_id)

        history.scores.insert(0, record)
        history.total_scores += 1
        history.last_scored_at = record.created_at
        del history.scores[self.max_scores:]

        await self.blob_store.store_json(history_key(user_id), history.to_dict())
        logger.debug(
            f"Appended score to history for user {user_id}: "
            f"{len(history.scores)} kept, {history.total_scores} total"
        )
        return history

    async def read(self, user_id: str) -> Optional[ScoreHistory]:
        """
        Load the user's history with expired entries removed.

        The pruned history is written back only when an entry was removed.
        """
        history = await self._load(user_id)
        if history is None:
            return None

        now = utc_now()
        valid_scores = []
        for score in history.scores:
            try:
                if not is_expired(score.expires_at, now):
                    valid_scores.append(score)
            except TimestampError:
                logger.warning(f"Dropping history entry with invalid expiry for user {user_id}")

        if len(valid_scores) != len(history.scores) or history.dropped_entries:
            logger.info(
                f"Pruned {len(history.scores) - len(valid_scores) + history.dropped_entries} "
                f"expired or unreadable entries from history for user {user_id}"
            )
            history.scores = valid_scores
            history.dropped_entries = 0
            await self.blob_store.store_json(history_key(user_id), history.to_dict())

        return history

    async def delete(self, user_id: str) -> None:
        await self.blob_store.delete(history_key(user_id))
