"""Configuration du logging pour les scripts et le worker."""

import logging
from datetime import datetime

from logistics.core.config import settings


def setup_logging(log_file_prefix: str | None = None, level: str | None = None) -> None:
    """
    Configure le logging racine (console + fichier optionnel).

    Args:
        log_file_prefix: Préfixe du fichier de log horodaté (ex: "migration"),
            aucun fichier si None
        level: Niveau de log, par défaut settings.LOG_LEVEL
    """
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file_prefix:
        handlers.append(
            logging.FileHandler(f"{log_file_prefix}_{datetime.now().strftime('%Y%m%d_%H%M%S')}.log")
        )

    logging.basicConfig(
        level=(level or settings.LOG_LEVEL).upper(),
        format="%(asctime)s - %(levelname)s - [%(name)s] %(message)s",
        handlers=handlers,
        force=True,
    )
