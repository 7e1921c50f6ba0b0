"""Tests unitaires du planificateur de la purge RGPD et du worker."""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from logistics.main import run_worker
from logistics.services.retention_scheduler import SWEEP_JOB_ID, RetentionScheduler
from logistics.services.retention_service import run_retention_sweep


def _trigger_fields(job) -> dict[str, str]:
    return {field.name: str(field) for field in job.trigger.fields}


class TestRetentionScheduler:
    """Tests de l'enregistrement de la tâche quotidienne."""

    @pytest.mark.asyncio
    async def test_daily_job_registered(self):
        """Test: une tâche cron quotidienne, jamais deux instances simultanées."""
        store = MagicMock()
        scheduler = RetentionScheduler(store, hour=3, minute=30, timezone="UTC")
        scheduler.start()
        try:
            job = scheduler.get_job()

            assert scheduler.running
            assert job.id == SWEEP_JOB_ID
            assert job.func is run_retention_sweep
            assert job.args == (store,)
            assert job.max_instances == 1
            assert job.coalesce is True
            fields = _trigger_fields(job)
            assert fields["hour"] == "3"
            assert fields["minute"] == "30"
            assert fields["day"] == "*"
            assert job.next_run_time is not None
        finally:
            scheduler.shutdown()

        assert not scheduler.running

    @pytest.mark.asyncio
    async def test_defaults_from_settings(self):
        scheduler = RetentionScheduler(MagicMock())

        assert (scheduler.hour, scheduler.minute, scheduler.timezone) == (2, 0, "UTC")

    @pytest.mark.asyncio
    async def test_start_and_shutdown_are_idempotent(self):
        scheduler = RetentionScheduler(MagicMock())
        scheduler.shutdown()

        scheduler.start()
        scheduler.start()
        scheduler.shutdown()
        scheduler.shutdown()

        assert not scheduler.running


class TestRunRetentionSweep:
    """Tests de la tâche planifiée."""

    @pytest.mark.asyncio
    async def test_exceptions_suppressed(self):
        """Test: une purge en échec ne remonte pas au planificateur."""
        store = MagicMock()
        store.session.side_effect = RuntimeError("base injoignable")

        assert await run_retention_sweep(store) is None

    @pytest.mark.asyncio
    async def test_sweep_executed_in_own_session(self, data_store):
        with patch(
            "logistics.services.retention_service.RetentionSweeper.sweep", new_callable=AsyncMock
        ) as mock_sweep:
            mock_sweep.return_value = "résultat"

            assert await run_retention_sweep(data_store) == "résultat"

        mock_sweep.assert_awaited_once()


class TestRunWorker:
    """Tests du worker."""

    @pytest.mark.asyncio
    async def test_worker_starts_and_stops(self):
        stop_event = asyncio.Event()
        stop_event.set()

        with patch("logistics.main.RetentionScheduler") as mock_scheduler_class:
            await run_worker(stop_event)

        mock_scheduler_class.return_value.start.assert_called_once()
        mock_scheduler_class.return_value.shutdown.assert_called_once()
