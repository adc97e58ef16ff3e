"""
Scheduled expiry sweep.

Run from cron or a scheduler:

    python -m aurum_score.jobs.sweep [--time-budget SECONDS | --no-time-budget] [--page-size N]
"""

import argparse
import asyncio
import sys
from typing import Optional

import structlog

from aurum_score.config import settings
from aurum_score.observability import configure_logging, record_sweep_metrics
from aurum_score.services.expiry_sweeper import ExpirySweeper
from aurum_score.services.score_store import get_score_store

logger = structlog.get_logger()


async def run_sweep(
    time_budget: Optional[float] = None,
    page_size: Optional[int] = None,
    unbounded: bool = False
) -> int:
    """
    Run one expiry sweep.

    Args:
        time_budget: Soft limit in seconds; defaults to SWEEP_TIME_BUDGET_SECONDS
        page_size: Keys per listing page; defaults to SWEEP_PAGE_SIZE
        unbounded: Sweep the whole namespace regardless of any time budget

    Returns:
        Number of records deleted
    """
    if unbounded:
        time_budget = None
    elif time_budget is None:
        time_budget = settings.sweep_time_budget_seconds

    store = get_score_store()
    sweeper = ExpirySweeper(
        store.blob_store,
        page_size=settings.sweep_page_size if page_size is None else page_size,
        time_budget_seconds=time_budget
    )

    report = await sweeper.sweep()
    record_sweep_metrics(report.deleted, report.malformed, report.completed)
    logger.info(
        "Expiry sweep finished",
        scanned=report.scanned,
        deleted=report.deleted,
        malformed=report.malformed,
        completed=report.completed
    )
    return report.deleted


async def sweep_forever(interval_seconds: int) -> None:
    """Sweep on a fixed interval until cancelled."""
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            await run_sweep()
        except Exception as e:
            # Keep the loop alive; the next interval retries
            logger.error("Periodic expiry sweep failed", error=str(e), error_type=type(e).__name__)


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Delete expired session scores")
    parser.add_argument("--time-budget", type=float, default=None, help="Soft time limit in seconds")
    parser.add_argument("--page-size", type=int, default=None, help="Keys per listing page")
    parser.add_argument("--no-time-budget", action="store_true", help="Sweep every key regardless of time")
    args = parser.parse_args(argv)

    configure_logging(settings.log_level)

    try:
        asyncio.run(run_sweep(
            time_budget=args.time_budget,
            page_size=args.page_size,
            unbounded=args.no_time_budget
        ))
    except Exception as e:
        logger.error("Expiry sweep failed", error=str(e), error_type=type(e).__name__)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
