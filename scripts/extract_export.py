#!/usr/bin/env python3
"""Extraction des tables de la source externe vers EXPORT_DIR.

Usage:
    python scripts/extract_export.py
    python scripts/extract_export.py --tables Magasins,Clients --export-dir /tmp/export
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# Ajouter le répertoire parent au path pour imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from logistics.core.exceptions import SourceConfigurationError
from logistics.core.logging import setup_logging
from logistics.migration.extractor import ExportExtractor

logger = logging.getLogger(__name__)


async def main(tables: list[str] | None, export_dir: str | None) -> int:
    try:
        async with ExportExtractor(export_dir=export_dir) as extractor:
            results = await extractor.extract(tables)
    except SourceConfigurationError as e:
        logger.error(f"Extraction impossible: {e.detail}")
        return 1

    for result in results:
        if result.success:
            logger.info(f"  {result.table}: {result.count} enregistrements -> {result.file}")
        else:
            logger.error(f"  {result.table}: ÉCHEC ({result.error})")

    return 0 if all(result.success for result in results) else 1


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Extrait les tables de la source externe")
    parser.add_argument(
        "--tables",
        default=None,
        help="Tables source, séparées par des virgules (défaut: toutes les entités migrées)",
    )
    parser.add_argument("--export-dir", default=None, help="Répertoire de destination")

    args = parser.parse_args()
    setup_logging("extraction")

    tables = [table.strip() for table in args.tables.split(",") if table.strip()] if args.tables else None
    sys.exit(asyncio.run(main(tables, args.export_dir)))
