#!/usr/bin/env python3
"""Correction des dates de conservation RGPD des clients.

Applique maintenant + RETENTION_REPAIR_YEARS à tout client dont la date de
conservation est nulle ou passée.

Usage:
    python scripts/fix_client_retention_dates.py
    python scripts/fix_client_retention_dates.py --years 2
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# Ajouter le répertoire parent au path pour imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from logistics.core.config import settings
from logistics.core.database import DataStore
from logistics.core.exceptions import DataStoreUnavailableError
from logistics.core.logging import setup_logging
from logistics.services.retention_service import repair_retention_dates

logger = logging.getLogger(__name__)


async def main(years: int | None) -> int:
    try:
        async with DataStore(settings.SQLALCHEMY_DATABASE_URI) as store:
            await store.ping()
            async with store.session() as session:
                result = await repair_retention_dates(session, years=years)
    except DataStoreUnavailableError as e:
        logger.critical(f"Correction impossible: {e.detail}")
        return 1

    logger.info(f"Nouvelle date de conservation: {result.retention_until.isoformat()}")
    logger.info(f"Clients avec dates nulles/expirées avant: {result.invalid_before}")
    logger.info(f"Clients mis à jour: {result.repaired}")
    logger.info(f"Clients avec dates nulles/expirées après: {result.invalid_after}")
    return 0 if result.invalid_after == 0 else 1


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Corrige les dates de conservation des clients")
    parser.add_argument(
        "--years",
        type=int,
        default=None,
        help=f"Horizon en années (défaut: {settings.RETENTION_REPAIR_YEARS})",
    )

    args = parser.parse_args()
    setup_logging()

    sys.exit(asyncio.run(main(args.years)))
