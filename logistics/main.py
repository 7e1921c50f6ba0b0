"""Worker de conformité RGPD.

Construit le DataStore, démarre la purge quotidienne et attend un signal
d'arrêt (SIGINT/SIGTERM).

Usage:
    python -m logistics.main
"""

import asyncio
import logging
import signal

from logistics.core.config import settings
from logistics.core.database import DataStore
from logistics.core.logging import setup_logging
from logistics.services.retention_scheduler import RetentionScheduler

logger = logging.getLogger(__name__)


async def run_worker(stop_event: asyncio.Event | None = None) -> None:
    """
    Exécute le worker jusqu'à l'arrêt.

    Args:
        stop_event: Événement d'arrêt (créé et relié aux signaux si None)
    """
    if stop_event is None:
        stop_event = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, stop_event.set)

    logger.info(f"Démarrage de {settings.PROJECT_NAME} v{settings.VERSION} ({settings.ENVIRONMENT})")

    async with DataStore(settings.SQLALCHEMY_DATABASE_URI, echo=settings.DEBUG) as store:
        await store.ping()
        scheduler = RetentionScheduler(store)
        scheduler.start()
        try:
            await stop_event.wait()
        finally:
            scheduler.shutdown()
            logger.info("Arrêt du worker")


def main() -> None:
    setup_logging()
    asyncio.run(run_worker())


if __name__ == "__main__":
    main()
