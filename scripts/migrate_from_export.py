#!/usr/bin/env python3
"""Migration des fichiers d'export vers la base relationnelle.

Traite les entités dans l'ordre de dépendance (magasins, clients,
chauffeurs, puis commandes), enregistrement par enregistrement, et termine
par un audit de réconciliation.

Usage:
    # Mode dry-run (aucune écriture)
    python scripts/migrate_from_export.py --dry-run

    # Migration réelle, enregistrements déjà migrés ignorés
    python scripts/migrate_from_export.py

    # Seulement certaines entités (noms anglais ou français)
    python scripts/migrate_from_export.py --entities magasins,clients

    # Repartir de zéro pour les lignes issues de la migration
    python scripts/migrate_from_export.py --recreate

    # Mettre à jour les enregistrements déjà migrés
    python scripts/migrate_from_export.py --update-existing

    # Lister jusqu'à 10 enregistrements problématiques par catégorie
    python scripts/migrate_from_export.py --problems 10

    # Extraire d'abord les tables depuis la source externe
    python scripts/migrate_from_export.py --extract

Prérequis:
    - Variables d'environnement configurées (SQLALCHEMY_DATABASE_URI, EXPORT_DIR)
    - SOURCE_API_TOKEN et SOURCE_BASE_ID pour --extract
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
from logistics.core.exceptions import DataStoreUnavailableError, SourceConfigurationError
from logistics.core.logging import setup_logging
from logistics.migration.entity_kinds import EntityKind, get_spec, parse_entity_kinds
from logistics.migration.export_source import ExportSource
from logistics.migration.extractor import ExportExtractor
from logistics.migration.report import render_run_summary
from logistics.migration.runner import MigrationRunner
from logistics.migration.writer import MigrationOptions

logger = logging.getLogger(__name__)


async def main(args: argparse.Namespace, entities: list[EntityKind]) -> int:
    """Point d'entrée principal de la migration."""
    export_dir = args.export_dir or settings.EXPORT_DIR
    options = MigrationOptions(
        entities=entities,
        existing="update" if args.update_existing else "skip",
        recreate=args.recreate,
        dry_run=args.dry_run,
    )

    logger.info("=" * 50)
    logger.info("DÉBUT DE LA MIGRATION")
    logger.info("=" * 50)
    logger.info(f"Mode dry-run: {options.dry_run}")
    logger.info(f"Mode recreate: {options.recreate}")
    logger.info(f"Enregistrements existants: {options.existing}")
    logger.info(f"Entités: {', '.join(kind.value for kind in entities)}")
    logger.info(f"Export: {export_dir}")
    logger.info(f"Database: {settings.SQLALCHEMY_DATABASE_URI[:50]}...")

    if args.extract:
        try:
            async with ExportExtractor(export_dir=export_dir) as extractor:
                results = await extractor.extract([get_spec(kind).source_table for kind in entities])
        except SourceConfigurationError as e:
            logger.error(f"Extraction impossible: {e.detail}")
            return 1
        for result in results:
            if not result.success:
                logger.warning(f"Table {result.table} non extraite: {result.error}")

    try:
        async with DataStore(settings.SQLALCHEMY_DATABASE_URI) as store:
            report = await MigrationRunner(store, ExportSource(export_dir), options).run()
    except DataStoreUnavailableError as e:
        logger.critical(f"Migration annulée: {e.detail}")
        return 1

    logger.info("\n" + render_run_summary(report, problems=args.problems))

    if report.has_failures:
        logger.error("Migration terminée avec des erreurs")
        return 1

    logger.info("Migration terminée avec succès")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Migre les fichiers d'export vers la base relationnelle"
    )
    parser.add_argument(
        "--entities",
        default=",".join(settings.MIGRATION_ENTITIES),
        help="Entités à migrer, séparées par des virgules (stores,clients,drivers,orders)",
    )
    parser.add_argument(
        "--recreate",
        action="store_true",
        help="Supprime d'abord les lignes issues d'une migration précédente",
    )
    existing = parser.add_mutually_exclusive_group()
    existing.add_argument(
        "--skip-existing",
        action="store_true",
        default=True,
        help="Ignore les enregistrements déjà migrés (défaut)",
    )
    existing.add_argument(
        "--update-existing",
        action="store_true",
        help="Met à jour les enregistrements déjà migrés",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Simule la migration sans modifier les données",
    )
    parser.add_argument(
        "--export-dir",
        default=None,
        help="Répertoire des fichiers d'export (défaut: EXPORT_DIR)",
    )
    parser.add_argument(
        "--problems",
        type=int,
        default=0,
        metavar="N",
        help="Liste jusqu'à N enregistrements problématiques par catégorie",
    )
    parser.add_argument(
        "--extract",
        action="store_true",
        help="Extrait d'abord les tables depuis la source externe",
    )
    return parser


if __name__ == "__main__":
    parser = build_parser()
    args = parser.parse_args()
    try:
        entities = parse_entity_kinds(args.entities)
    except ValueError as e:
        parser.error(str(e))

    setup_logging("migration")
    exit_code = asyncio.run(main(args, entities))
    sys.exit(exit_code)
