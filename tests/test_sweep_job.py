"""
Tests for the scheduled sweep job and shared helpers.
"""

import asyncio
import pytest
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, patch

from pydantic import ValidationError

from aurum_score.clients.memory_store import InMemoryBlobStore
from aurum_score.config import Settings, settings
from aurum_score.jobs.sweep import main, run_sweep, sweep_forever
from aurum_score.models.internal_models import SweepReport
from aurum_score.services.score_store import ScoreStore, score_key
from aurum_score.utils.time_utils import TimestampError, is_expired, parse_iso, to_iso


class TestSweepJob:
    """Test cases for the sweep entry points."""

    @pytest.fixture
    def blob_store(self):
        return InMemoryBlobStore()

    @pytest.fixture
    def store(self, blob_store):
        return ScoreStore(blob_store)

    @pytest.mark.asyncio
    async def test_run_sweep(self, store, blob_store):
        await store.store("u1", "s1", "image")
        blob_store.put_raw(score_key("u1", "s2"), b"garbage")

        with patch('aurum_score.jobs.sweep.get_score_store', return_value=store):
            deleted = await run_sweep(time_budget=5.0, page_size=10)

        assert deleted == 1
        assert blob_store.keys() == sorted([score_key("u1", "s1"), "score-history/u1"])

    def test_main_success(self, store):
        with patch('aurum_score.jobs.sweep.get_score_store', return_value=store), \
             patch('aurum_score.jobs.sweep.configure_logging'):
            assert main(["--time-budget", "5", "--page-size", "50"]) == 0

    @pytest.mark.asyncio
    async def test_run_sweep_budget_selection(self, store):
        """Test the default, explicit and unbounded time budgets reach the sweeper."""
        with patch('aurum_score.jobs.sweep.get_score_store', return_value=store), \
             patch('aurum_score.jobs.sweep.ExpirySweeper') as mock_sweeper_cls:
            mock_sweeper_cls.return_value.sweep = AsyncMock(return_value=SweepReport())

            await run_sweep()
            await run_sweep(time_budget=5.0, page_size=0)
            await run_sweep(time_budget=5.0, unbounded=True)

        budgets = [call.kwargs["time_budget_seconds"] for call in mock_sweeper_cls.call_args_list]
        page_sizes = [call.kwargs["page_size"] for call in mock_sweeper_cls.call_args_list]
        assert budgets == [settings.sweep_time_budget_seconds, 5.0, None]
        assert page_sizes == [settings.sweep_page_size, 0, settings.sweep_page_size]

    def test_main_no_time_budget(self):
        with patch('aurum_score.jobs.sweep.run_sweep', new=AsyncMock(return_value=0)) as mock_run, \
             patch('aurum_score.jobs.sweep.configure_logging'):
            assert main(["--no-time-budget"]) == 0

        mock_run.assert_awaited_once_with(time_budget=None, page_size=None, unbounded=True)

    def test_main_failure(self):
        with patch('aurum_score.jobs.sweep.run_sweep', new=AsyncMock(side_effect=RuntimeError("boom"))), \
             patch('aurum_score.jobs.sweep.configure_logging'):
            assert main([]) == 1

    @pytest.mark.asyncio
    async def test_sweep_forever_survives_failures(self):
        """Test a failed run is logged and the loop keeps sweeping."""
        mock_run = AsyncMock(side_effect=[RuntimeError("boom"), 0, asyncio.CancelledError()])

        with patch('aurum_score.jobs.sweep.run_sweep', new=mock_run), \
             patch('aurum_score.jobs.sweep.asyncio.sleep', new=AsyncMock()):
            with pytest.raises(asyncio.CancelledError):
                await sweep_forever(60)

        assert mock_run.await_count == 3


class TestTimeUtils:
    """Test cases for timestamp helpers."""

    def test_to_iso_millisecond_precision(self):
        value = datetime(2025, 1, 2, 3, 4, 5, 678901, tzinfo=timezone.utc)

        assert to_iso(value) == "2025-01-02T03:04:05.678Z"

    def test_to_iso_converts_offsets(self):
        value = datetime(2025, 1, 2, 10, 0, 0, tzinfo=timezone(timedelta(hours=7)))

        assert to_iso(value) == "2025-01-02T03:00:00.000Z"

    def test_parse_iso_round_trip(self):
        assert to_iso(parse_iso("2025-01-02T03:04:05.678Z")) == "2025-01-02T03:04:05.678Z"

    @pytest.mark.parametrize("value", ["", "yesterday", None, 12])
    def test_parse_iso_rejects_garbage(self, value):
        with pytest.raises(TimestampError):
            parse_iso(value)

    def test_is_expired_is_strict(self):
        expiry = "2025-01-01T00:00:00.000Z"

        assert is_expired(expiry, parse_iso(expiry)) is False
        assert is_expired(expiry, parse_iso(expiry) + timedelta(milliseconds=1)) is True


class TestSettings:
    """Test cases for configuration validation."""

    def test_defaults(self):
        settings = Settings(_env_file=None)

        assert settings.score_ttl_hours == 24
        assert settings.history_max_scores == 10
        assert settings.final_score_ttl_days == 30
        assert settings.simulate_processing_delay is False

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("STORAGE_BACKEND", "MEMORY")
        monkeypatch.setenv("SCORE_TTL_HOURS", "48")

        settings = Settings(_env_file=None)

        assert settings.storage_backend == "memory"
        assert settings.score_ttl_hours == 48

    def test_rejects_unknown_backend(self, monkeypatch):
        monkeypatch.setenv("STORAGE_BACKEND", "s3")

        with pytest.raises(ValidationError):
            Settings(_env_file=None)

    def test_rejects_non_positive_ttl(self, monkeypatch):
        monkeypatch.setenv("SCORE_TTL_HOURS", "0")

        with pytest.raises(ValidationError):
            Settings(_env_file=None)
