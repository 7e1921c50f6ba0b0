"""Audit de réconciliation: export comparé à la base.

Lecture seule, utilisable à tout moment (y compris sur une base
partiellement migrée): aucune écriture, aucun commit.
"""

import logging
from collections import Counter

from opentelemetry import trace
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from logistics.core.exceptions import ExportFileError
from logistics.migration.coercion import coerce_string, reference_ids
from logistics.migration.entity_kinds import DEPENDENCY_ORDER, EntityKind, EntitySpec, get_spec
from logistics.migration.export_source import ExportBatch, ExportSource
from logistics.migration.reference_resolver import ReferenceResolver
from logistics.schemas.audit import DuplicateExternalId, EntityAudit, GlobalAudit, OrphanedRecord

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class ReconciliationEngine:
    """
    Classe chaque enregistrement exporté (migré, manquant, orphelin, doublon).

    Les entités sont auditées dans l'ordre de dépendance: la détection des
    commandes orphelines s'appuie sur les correspondances magasins/clients.

    Args:
        session: Session de lecture
        source: Fichiers d'export
        resolver: Résolveur déjà construit (construit à la demande sinon)
        sample_size: Nombre d'identifiants manquants conservés par entité
    """

    def __init__(
        self,
        session: AsyncSession,
        source: ExportSource,
        resolver: ReferenceResolver | None = None,
        sample_size: int = 20,
    ):
        self.session = session
        self.source = source
        self.resolver = resolver or ReferenceResolver(session)
        self.sample_size = sample_size
        self._built: set[EntityKind] = set()
        self._orphaned: dict[EntityKind, list[OrphanedRecord]] = {}
        self._missing: dict[EntityKind, list[str]] = {}

    async def audit(self, kind: EntityKind) -> EntityAudit:
        """
        Audite un type d'entité.

        migrated_count compte les identifiants exportés distincts présents en
        base, donc migrated_count + missing_count == exported_count.
        """
        spec = get_spec(kind)
        audit = EntityAudit(entity=kind.value, label=spec.label)

        with tracer.start_as_current_span(f"audit_{kind.value}") as span:
            result = await self.session.execute(select(spec.model.external_id))
            external_ids = [row[0] for row in result.all()]
            audit.internal_count = len(external_ids)
            audit.manual_count = sum(1 for external_id in external_ids if external_id is None)
            linked = Counter(external_id for external_id in external_ids if external_id is not None)
            audit.duplicate_count = sum(1 for count in linked.values() if count > 1)

            try:
                batch = self.source.load(kind)
            except ExportFileError as e:
                audit.issues.append(f"Export illisible: {e.reason}")
                audit.unlinked_count = sum(linked.values())
                logger.error(f"Audit {kind.value}: {e}")
                return audit

            exported_ids = set(batch.ids)
            audit.exported_count = len(batch.records)
            migrated_ids = exported_ids & linked.keys()
            audit.migrated_count = len(migrated_ids)
            audit.missing_count = audit.exported_count - audit.migrated_count
            audit.unlinked_count = sum(
                count for external_id, count in linked.items() if external_id not in exported_ids
            )

            linked_rows = sum(linked[external_id] for external_id in migrated_ids)
            if linked_rows > audit.exported_count:
                audit.issues.append(
                    f"Anomalie d'intégrité: {linked_rows} lignes liées pour "
                    f"{audit.exported_count} enregistrements exportés"
                )
            if len(exported_ids) < audit.exported_count:
                audit.issues.append(
                    f"{audit.exported_count - len(exported_ids)} identifiants en double dans l'export"
                )
            if batch.malformed:
                audit.issues.append(f"{len(batch.malformed)} enregistrements mal formés dans l'export")
            if audit.duplicate_count:
                audit.issues.append(
                    f"{audit.duplicate_count} identifiants source portés par plusieurs lignes"
                )

            self._missing[kind] = sorted(exported_ids - migrated_ids)[: self.sample_size]

            orphaned = await self._find_orphans(spec, batch)
            self._orphaned[kind] = orphaned
            audit.orphaned_count = len(orphaned)

            span.set_attribute("audit.exported", audit.exported_count)
            span.set_attribute("audit.migrated", audit.migrated_count)
            span.set_attribute("audit.missing", audit.missing_count)
            span.set_attribute("audit.orphaned", audit.orphaned_count)

        logger.info(
            f"Audit {kind.value}: {audit.migrated_count}/{audit.exported_count} migrés "
            f"({audit.migration_rate}%)",
            extra={"entity": kind.value, "missing": audit.missing_count},
        )
        return audit

    async def audit_all(self, kinds: list[EntityKind] | None = None) -> GlobalAudit:
        """Audite toutes les entités (ou celles fournies) dans l'ordre de dépendance."""
        selected = [kind for kind in DEPENDENCY_ORDER if kinds is None or kind in kinds]
        await self.resolver.build_all()
        self._built.update(EntityKind)

        report = GlobalAudit()
        for kind in selected:
            report.entities.append(await self.audit(kind))
            report.orphaned.extend(self._orphaned.get(kind, []))
            if self._missing.get(kind):
                report.missing[kind.value] = self._missing[kind]
            for external_id, internal_ids in self.resolver.collisions(kind).items():
                report.duplicates.append(
                    DuplicateExternalId(
                        entity=kind.value,
                        external_id=external_id,
                        internal_ids=internal_ids,
                        kept_id=internal_ids[0],
                    )
                )
        return report

    async def _find_orphans(self, spec: EntitySpec, batch: ExportBatch) -> list[OrphanedRecord]:
        required = [
            field_spec
            for field_spec in spec.relation_fields
            if field_spec.required and not field_spec.many
        ]
        if not required:
            return []

        for field_spec in required:
            if field_spec.relation not in self._built:
                await self.resolver.build(field_spec.relation)
                self._built.add(field_spec.relation)

        orphaned = []
        for record in batch.records:
            unresolved: dict[str, str | None] = {}
            for field_spec in required:
                references = reference_ids(field_spec.raw(record.fields))
                reference = references[0] if references else None
                if self.resolver.resolve(field_spec.relation, reference) is None:
                    unresolved[get_spec(field_spec.relation).singular] = reference
            if unresolved:
                key_field = spec.business_key_field
                key = coerce_string(key_field.raw(record.fields), nullable=True) if key_field else None
                orphaned.append(
                    OrphanedRecord(
                        entity=spec.kind.value,
                        external_id=record.id,
                        business_key=key,
                        unresolved=unresolved,
                    )
                )
        return orphaned
