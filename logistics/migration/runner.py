"""Orchestration d'un run de migration.

Export -> mapper (validation, coercition) -> résolveur (relations) ->
écriture (créer ou ignorer) -> audit de réconciliation -> rapport.
"""

import logging
from collections.abc import Callable
from datetime import datetime

from logistics.core.database import DataStore, utcnow
from logistics.core.exceptions import ExternalSourceUnavailableError
from logistics.migration.entity_kinds import DEPENDENCY_ORDER, get_spec
from logistics.migration.export_source import ExportSource
from logistics.migration.field_mapper import FieldMapper
from logistics.migration.reconciliation import ReconciliationEngine
from logistics.migration.reference_resolver import ReferenceResolver
from logistics.migration.writer import MigrationOptions, MigrationWriter
from logistics.schemas.migration import EntityMigrationStats, MigrationRunReport, RejectReason

logger = logging.getLogger(__name__)


class MigrationRunner:
    """
    Exécute une migration complète sur un DataStore.

    La seule erreur fatale est l'indisponibilité de la base au démarrage
    (DataStoreUnavailableError, levée avant tout traitement). Un export
    illisible ou une source injoignable marque l'étape de l'entité en échec
    et le run continue avec les entités suivantes.

    Example:
        ```python
        async with DataStore(settings.SQLALCHEMY_DATABASE_URI) as store:
            runner = MigrationRunner(store, ExportSource(), MigrationOptions(dry_run=True))
            report = await runner.run()
        ```
    """

    def __init__(
        self,
        store: DataStore,
        source: ExportSource,
        options: MigrationOptions | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.source = source
        self.options = options or MigrationOptions()
        self.clock = clock

    async def run(self) -> MigrationRunReport:
        """
        Exécute le run.

        Raises:
            DataStoreUnavailableError: Si la base est injoignable au démarrage
        """
        await self.store.ping()

        options = self.options
        selected = [kind for kind in DEPENDENCY_ORDER if kind in options.entities]
        report = MigrationRunReport(dry_run=options.dry_run)
        logger.info(
            f"Migration {'(dry-run) ' if options.dry_run else ''}des entités: "
            f"{', '.join(kind.value for kind in selected)}"
        )

        async with self.store.session() as session:
            resolver = ReferenceResolver(session)
            await resolver.build_all()
            writer = MigrationWriter(session, resolver, FieldMapper(session, self.clock), options)

            if options.recreate:
                report.purged = await writer.purge(selected)

            for kind in selected:
                spec = get_spec(kind)
                missing_dependencies = [dep.value for dep in spec.depends_on if dep not in selected]
                if missing_dependencies:
                    logger.info(
                        f"{spec.label}: dépendances non sélectionnées ({', '.join(missing_dependencies)}), "
                        "résolution depuis la base"
                    )

                try:
                    batch = self.source.load(kind)
                except ExternalSourceUnavailableError as e:
                    logger.error(f"Étape {kind.value} en échec: {e}")
                    stats = EntityMigrationStats(
                        entity=kind.value, label=spec.label, failed=True, error=e.reason
                    )
                    stats.tally(RejectReason.EXTERNAL_SOURCE_UNREACHABLE, None, str(e))
                    report.entities.append(stats)
                    continue

                report.entities.append(await writer.migrate(kind, batch))

            engine = ReconciliationEngine(
                session, self.source, sample_size=options.problem_sample_size
            )
            report.audit = await engine.audit_all(selected)

        if report.has_failures:
            logger.warning("Migration terminée avec des échecs")
        else:
            logger.info("Migration terminée")
        return report
