"""
Expiry sweeper for stored session scores.

Scans every key under ``scores/`` and deletes records that are past their
expiry or cannot be parsed. Cost is linear in the number of stored scores,
so the sweep is meant to run on a schedule rather than per request.
"""

import logging
import time
from typing import Optional

from aurum_score.clients.blob_store import BlobStore, MalformedObjectError, iter_objects
from aurum_score.models.internal_models import MalformedRecordError, StoredScore, SweepReport
from aurum_score.services.score_store import SCORE_PREFIX
from aurum_score.utils.time_utils import TimestampError, is_expired, utc_now

logger = logging.getLogger(__name__)


class ExpirySweeper:
    """Deletes expired and unreadable score records."""

    def __init__(
        self,
        blob_store: BlobStore,
        page_size: int = 1000,
        time_budget_seconds: Optional[float] = 30.0
    ):
        """
        Initialize the sweeper.

        Args:
            blob_store: Backing blob store
            page_size: Keys requested per listing page
            time_budget_seconds: Soft limit after which the sweep stops early;
                None sweeps the whole namespace
        """
        self.blob_store = blob_store
        self.page_size = page_size
        self.time_budget_seconds = time_budget_seconds

    async def sweep(self) -> SweepReport:
        report = SweepReport()
        started = time.monotonic()
        now = utc_now()

        async for obj in iter_objects(self.blob_store, SCORE_PREFIX, self.page_size):
            if self.time_budget_seconds is not None and time.monotonic() - started > self.time_budget_seconds:
                logger.warning(
                    f"Expiry sweep stopped on its {self.time_budget_seconds}s budget "
                    f"after scanning {report.scanned} keys"
                )
                report.completed = False
                break

            report.scanned += 1
            try:
                data = await self.blob_store.get_json(obj.key)
                if data is None:
                    continue
                expired = is_expired(StoredScore.from_dict(data).expires_at, now)
            except (MalformedObjectError, MalformedRecordError, TimestampError) as e:
                # Unparsable records are unrecoverable
                logger.warning(f"Deleting unreadable score record {obj.key}: {e}")
                report.malformed += 1
                expired = True

            if expired:
                await self.blob_store.delete(obj.key)
                report.deleted += 1

        logger.info(
            f"Cleaned up {report.deleted} expired scores "
            f"({report.malformed} unreadable, {report.scanned} scanned)"
        )
        return report
