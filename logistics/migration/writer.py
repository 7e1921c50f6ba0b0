"""Écriture des entités migrées (créer ou ignorer, mettre à jour).

Traitement strictement séquentiel, enregistrement par enregistrement: lire,
mapper, résoudre, écrire, puis passer au suivant. Chaque enregistrement est
commité seul; un échec d'écriture est annulé, comptabilisé, et la boucle
continue.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Literal

from opentelemetry import trace
from sqlalchemy import delete, exists, func, insert, select
from sqlalchemy.ext.asyncio import AsyncSession

from logistics.core.config import settings
from logistics.migration.entity_kinds import (
    DEPENDENCY_ORDER,
    ENTITY_SPECS,
    EntityKind,
    EntitySpec,
    get_spec,
)
from logistics.migration.export_source import ExportBatch
from logistics.migration.field_mapper import FieldMapper, MappingResult
from logistics.migration.reference_resolver import ReferenceResolver
from logistics.schemas.external import ExternalRecord
from logistics.schemas.migration import EntityMigrationStats, RejectReason

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

DRY_RUN_PREFIX = "dry-run:"


@dataclass
class MigrationOptions:
    """
    Options d'un run de migration.

    Attributes:
        entities: Types à migrer (toujours traités dans l'ordre de dépendance)
        existing: "skip" compte les enregistrements déjà migrés comme doublons,
            "update" les re-mappe et les met à jour
        recreate: Supprime d'abord les lignes issues de la migration
        dry_run: Mappe et classe sans rien écrire
    """

    entities: list[EntityKind] = field(default_factory=lambda: list(DEPENDENCY_ORDER))
    existing: Literal["skip", "update"] = "skip"
    recreate: bool = False
    dry_run: bool = False
    batch_size: int = field(default_factory=lambda: settings.MIGRATION_BATCH_SIZE)
    batch_pause_seconds: float = field(
        default_factory=lambda: settings.MIGRATION_BATCH_PAUSE_SECONDS
    )
    problem_sample_size: int = field(
        default_factory=lambda: settings.MIGRATION_PROBLEM_SAMPLE_SIZE
    )


class MigrationWriter:
    """
    Chemin d'écriture générique sur la table des entités.

    Le contrôle "déjà migré" se fait par external_id via le résolveur avant
    toute création: relancer la migration sur le même export ne crée rien.
    """

    def __init__(
        self,
        session: AsyncSession,
        resolver: ReferenceResolver,
        mapper: FieldMapper,
        options: MigrationOptions | None = None,
    ):
        self.session = session
        self.resolver = resolver
        self.mapper = mapper
        self.options = options or MigrationOptions()

    async def migrate(self, kind: EntityKind, batch: ExportBatch) -> EntityMigrationStats:
        """
        Migre tous les enregistrements d'un export.

        Returns:
            Compteurs de l'étape
        """
        spec = get_spec(kind)
        stats = EntityMigrationStats(entity=kind.value, label=spec.label)

        with tracer.start_as_current_span(f"migrate_{kind.value}") as span:
            span.set_attribute("migration.dry_run", self.options.dry_run)

            for item in batch.malformed:
                stats.processed += 1
                stats.skipped += 1
                stats.tally(
                    RejectReason.DATA_INVALID,
                    item.get("id") if isinstance(item, dict) else None,
                    "enregistrement mal formé",
                    self.options.problem_sample_size,
                )

            for index, record in enumerate(batch.records, start=1):
                stats.processed += 1
                await self._migrate_record(spec, record, stats)

                if self.options.batch_size > 0 and index % self.options.batch_size == 0:
                    logger.info(f"{spec.label}: {index}/{len(batch.records)} traités")
                    if self.options.batch_pause_seconds > 0:
                        await asyncio.sleep(self.options.batch_pause_seconds)

            span.set_attribute("migration.processed", stats.processed)
            span.set_attribute("migration.success", stats.success)
            span.set_attribute("migration.skipped", stats.skipped)
            span.set_attribute("migration.errors", stats.errors)

        logger.info(
            stats.summary(),
            extra={"entity": kind.value, "success": stats.success, "errors": stats.errors},
        )
        return stats

    async def _migrate_record(
        self, spec: EntitySpec, record: ExternalRecord, stats: EntityMigrationStats
    ) -> None:
        sample_size = self.options.problem_sample_size
        existing_id = self.resolver.resolve(spec.kind, record.id)

        if existing_id and (
            self.options.existing == "skip" or existing_id.startswith(DRY_RUN_PREFIX)
        ):
            stats.duplicates += 1
            stats.tally(RejectReason.ALREADY_MIGRATED, record.id, "déjà migré", sample_size)
            logger.debug(f"{spec.singular} {record.id} déjà migré, ignoré")
            return

        existing = None
        current_key = None
        if existing_id:
            existing = await self.session.get(spec.model, existing_id)
            if existing is not None and spec.business_key:
                current_key = getattr(existing, spec.business_key)

        result = await self.mapper.map(
            spec.kind,
            record,
            self.resolver,
            exclude_id=existing_id,
            current_key=current_key,
        )
        if not result.ok:
            stats.skipped += 1
            stats.tally(result.reason, record.id, result.detail, sample_size)
            logger.warning(f"{spec.singular} {record.id} ignoré: {result.reason.value} ({result.detail})")
            return

        if result.renamed_from is not None:
            stats.renamed += 1
            stats.tally(
                RejectReason.DUPLICATE_BUSINESS_KEY,
                record.id,
                f"{result.renamed_from} -> {result.payload[spec.business_key]}",
                sample_size,
            )

        if self.options.dry_run:
            if existing is not None:
                stats.updated += 1
            else:
                stats.success += 1
                self.resolver.register(spec.kind, record.id, f"{DRY_RUN_PREFIX}{record.id}")
            self._claim_key(spec, result)
            return

        try:
            if existing is not None:
                entity = await self._update(spec, existing, record, result)
            else:
                entity = await self._create(spec, record, result)
            entity_id = entity.id
            await self.session.commit()
        except Exception as e:
            await self.session.rollback()
            stats.errors += 1
            stats.tally(RejectReason.WRITE_FAILURE, record.id, str(e), sample_size)
            logger.error(f"Échec écriture {spec.singular} {record.id}: {e}", exc_info=True)
            return

        if existing is not None:
            stats.updated += 1
        else:
            stats.success += 1
            self.resolver.register(spec.kind, record.id, entity_id)
        self._claim_key(spec, result)

    def _claim_key(self, spec: EntitySpec, result: MappingResult) -> None:
        if spec.business_key:
            self.mapper.claim(spec.kind, result.payload[spec.business_key])

    async def _create(self, spec: EntitySpec, record: ExternalRecord, result: MappingResult) -> Any:
        entity = spec.model(**result.payload)
        self.session.add(entity)
        await self.session.flush()
        await self._write_links(spec, entity.id, result.links, replace=False)
        if spec.on_write:
            await spec.on_write(self.session, entity, record)
        return entity

    async def _update(
        self, spec: EntitySpec, entity: Any, record: ExternalRecord, result: MappingResult
    ) -> Any:
        for attribute, value in result.payload.items():
            setattr(entity, attribute, value)
        await self.session.flush()
        await self._write_links(spec, entity.id, result.links, replace=True)
        if spec.on_write:
            await spec.on_write(self.session, entity, record)
        return entity

    async def _write_links(
        self, spec: EntitySpec, owner_id: str, links: dict[str, list[str]], replace: bool
    ) -> None:
        for field_spec in spec.relation_fields:
            if not field_spec.many:
                continue
            link = field_spec.link
            owner_column = link.table.c[link.owner_column]
            if replace:
                await self.session.execute(delete(link.table).where(owner_column == owner_id))
            target_ids = links.get(field_spec.target, [])
            if target_ids:
                await self.session.execute(
                    insert(link.table),
                    [{link.owner_column: owner_id, link.target_column: target_id} for target_id in target_ids],
                )

    async def purge(self, kinds: list[EntityKind]) -> dict[str, int]:
        """
        Mode recreate: supprime les lignes issues de la migration.

        Les types sont purgés en ordre de dépendance inverse. Les lignes créées
        manuellement (sans external_id) ne sont jamais touchées, pas plus que
        les lignes encore référencées par une commande conservée.

        Returns:
            Nombre de lignes supprimées par type
        """
        purged: dict[str, int] = {}
        if self.options.dry_run:
            logger.info("Dry-run: purge ignorée")
            return purged

        for kind in reversed(DEPENDENCY_ORDER):
            if kind not in kinds:
                continue
            spec = get_spec(kind)
            model = spec.model
            conditions = [model.external_id.isnot(None), *self._unreferenced(kind, model)]

            result = await self.session.execute(
                delete(model).where(*conditions).execution_options(synchronize_session=False)
            )
            await self.session.commit()
            purged[kind.value] = result.rowcount or 0

            kept = await self.session.scalar(
                select(func.count(model.id)).where(model.external_id.isnot(None))
            )
            if kept:
                logger.warning(
                    f"{kept} {kind.value} migrés conservés: encore référencés par des commandes"
                )
            logger.info(f"Purge {kind.value}: {purged[kind.value]} lignes supprimées")
            await self.resolver.build(kind)

        return purged

    @staticmethod
    def _unreferenced(kind: EntityKind, model: Any) -> list[Any]:
        """Conditions excluant les lignes référencées par une clé étrangère obligatoire."""
        conditions = []
        for spec in ENTITY_SPECS.values():
            for field_spec in spec.relation_fields:
                if field_spec.relation != kind or field_spec.many:
                    continue
                column = getattr(spec.model, field_spec.target)
                conditions.append(~exists().where(column == model.id).correlate(model))
        return conditions
