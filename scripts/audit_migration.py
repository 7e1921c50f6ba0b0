#!/usr/bin/env python3
"""Audit de réconciliation entre les fichiers d'export et la base.

Lecture seule: peut être lancé à tout moment, y compris pendant ou après
une migration partielle.

Usage:
    python scripts/audit_migration.py
    python scripts/audit_migration.py --entities commandes --json
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
from logistics.migration.entity_kinds import EntityKind, parse_entity_kinds
from logistics.migration.export_source import ExportSource
from logistics.migration.reconciliation import ReconciliationEngine
from logistics.migration.report import render_audit_report

logger = logging.getLogger(__name__)


async def main(args: argparse.Namespace, entities: list[EntityKind]) -> int:
    source = ExportSource(args.export_dir)

    try:
        async with DataStore(settings.SQLALCHEMY_DATABASE_URI) as store:
            await store.ping()
            async with store.session() as session:
                engine = ReconciliationEngine(session, source, sample_size=args.max_items)
                audit = await engine.audit_all(entities)
    except DataStoreUnavailableError as e:
        logger.critical(f"Audit impossible: {e.detail}")
        return 1

    if args.json:
        print(audit.model_dump_json(indent=2))
    else:
        print(render_audit_report(audit, max_items=args.max_items))

    return 0 if audit.total_missing == 0 and not audit.orphaned else 1


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Audit de réconciliation de la migration")
    parser.add_argument(
        "--entities",
        default=None,
        help="Entités à auditer, séparées par des virgules (défaut: toutes)",
    )
    parser.add_argument("--export-dir", default=None, help="Répertoire des fichiers d'export")
    parser.add_argument(
        "--max-items",
        type=int,
        default=settings.MIGRATION_PROBLEM_SAMPLE_SIZE,
        help="Nombre maximum d'enregistrements listés par catégorie",
    )
    parser.add_argument("--json", action="store_true", help="Sortie JSON structurée")

    args = parser.parse_args()
    try:
        entities = parse_entity_kinds(args.entities)
    except ValueError as e:
        parser.error(str(e))

    setup_logging()
    sys.exit(asyncio.run(main(args, entities)))
