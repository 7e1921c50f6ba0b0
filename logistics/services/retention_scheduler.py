"""Déclenchement quotidien de la purge RGPD (APScheduler)."""

import logging

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_EXECUTED, EVENT_JOB_MISSED, JobEvent
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from logistics.core.config import settings
from logistics.core.database import DataStore
from logistics.services.retention_service import run_retention_sweep

logger = logging.getLogger(__name__)

SWEEP_JOB_ID = "client_retention_sweep"


class RetentionScheduler:
    """
    Planificateur de la purge quotidienne des clients expirés.

    Une seule instance de la tâche peut s'exécuter à la fois
    (max_instances=1) et les exécutions manquées sont fusionnées.

    Example:
        ```python
        async with DataStore(settings.SQLALCHEMY_DATABASE_URI) as store:
            scheduler = RetentionScheduler(store)
            scheduler.start()
            ...
            scheduler.shutdown()
        ```
    """

    def __init__(
        self,
        store: DataStore,
        hour: int | None = None,
        minute: int | None = None,
        timezone: str | None = None,
    ):
        self.store = store
        self.hour = settings.RETENTION_SWEEP_HOUR if hour is None else hour
        self.minute = settings.RETENTION_SWEEP_MINUTE if minute is None else minute
        self.timezone = timezone or settings.RETENTION_SWEEP_TIMEZONE

        self._scheduler = AsyncIOScheduler(
            job_defaults={
                "coalesce": True,  # Fusionner les exécutions manquées
                "max_instances": 1,  # Jamais deux purges simultanées
                "misfire_grace_time": 3600,
            },
            timezone=self.timezone,
        )
        self._scheduler.add_listener(self._on_job_error, EVENT_JOB_ERROR)
        self._scheduler.add_listener(self._on_job_missed, EVENT_JOB_MISSED)
        self._scheduler.add_listener(self._on_job_executed, EVENT_JOB_EXECUTED)

        self._scheduler.add_job(
            run_retention_sweep,
            CronTrigger(hour=self.hour, minute=self.minute, timezone=self.timezone),
            args=[self.store],
            id=SWEEP_JOB_ID,
            name="Purge RGPD des clients expirés",
            replace_existing=True,
        )

    @property
    def running(self) -> bool:
        return self._scheduler.running

    def get_job(self):
        """Tâche de purge enregistrée."""
        return self._scheduler.get_job(SWEEP_JOB_ID)

    def start(self) -> None:
        """Démarre le planificateur (doit être appelé dans une boucle asyncio)."""
        if self._scheduler.running:
            return
        self._scheduler.start()
        logger.info(
            f"Scheduler de purge RGPD démarré (quotidien à {self.hour:02d}:{self.minute:02d} {self.timezone})"
        )

    def shutdown(self, wait: bool = False) -> None:
        """Arrête le planificateur."""
        if not self._scheduler.running:
            return
        self._scheduler.shutdown(wait=wait)
        logger.info("Scheduler de purge RGPD arrêté")

    def _on_job_error(self, event: JobEvent) -> None:
        logger.error(f"Tâche {event.job_id} en erreur: {event.exception}")

    def _on_job_missed(self, event: JobEvent) -> None:
        logger.warning(f"Tâche {event.job_id} manquée (prévue à {event.scheduled_run_time})")

    def _on_job_executed(self, event: JobEvent) -> None:
        logger.debug(f"Tâche {event.job_id} exécutée")
