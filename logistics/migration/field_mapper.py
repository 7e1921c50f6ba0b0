"""Traduction d'un enregistrement source en payload d'entité.

Le mapper est générique sur la table des entités (entity_kinds). Il ne
fait aucune écriture: seules des lectures servent à vérifier l'unicité de
la clé métier.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from logistics.core.database import utcnow
from logistics.migration.coercion import (
    coerce_date,
    coerce_flag,
    coerce_integer,
    coerce_number,
    coerce_status,
    coerce_string,
    coerce_string_list,
    is_blank,
    reference_ids,
)
from logistics.migration.entity_kinds import EntityKind, EntitySpec, FieldSpec, FieldType, get_spec
from logistics.migration.reference_resolver import ReferenceResolver
from logistics.schemas.external import ExternalRecord
from logistics.schemas.migration import RejectReason

logger = logging.getLogger(__name__)

MIGRATED_KEY_MARKER = "_MIGRATED_"


@dataclass
class MappingResult:
    """Payload prêt à écrire, ou raison du rejet."""

    payload: dict[str, Any] | None = None
    links: dict[str, list[str]] = field(default_factory=dict)
    reason: RejectReason | None = None
    detail: str = ""
    renamed_from: str | None = None
    dropped_references: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.payload is not None

    @classmethod
    def reject(cls, reason: RejectReason, detail: str) -> "MappingResult":
        return cls(reason=reason, detail=detail)


class _Rejected(Exception):
    def __init__(self, reason: RejectReason, detail: str):
        self.reason = reason
        self.detail = detail
        super().__init__(detail)


class FieldMapper:
    """
    Mapper générique enregistrement source -> entité.

    Ordre des contrôles:
    1. champs scalaires requis et coercition (rejet `data_invalid`)
    2. relations (rejet `<relation>_not_found` si requise)
    3. clé métier: suffixe `_MIGRATED_<timestamp>` en cas de collision

    Args:
        session: Session utilisée pour vérifier l'unicité des clés métier
        clock: Horloge (date par défaut des dates optionnelles, suffixes)
    """

    def __init__(self, session: AsyncSession, clock: Callable[[], datetime] = utcnow):
        self.session = session
        self.clock = clock
        self._claimed_keys: dict[EntityKind, set[str]] = {}

    async def map(
        self,
        kind: EntityKind,
        record: ExternalRecord,
        resolver: ReferenceResolver,
        *,
        exclude_id: str | None = None,
        current_key: str | None = None,
    ) -> MappingResult:
        """
        Traduit un enregistrement.

        Args:
            kind: Type d'entité cible
            record: Enregistrement source
            resolver: Résolveur des relations
            exclude_id: Ligne ignorée lors du contrôle de clé métier (mise à jour)
            current_key: Clé métier actuelle de la ligne mise à jour

        Returns:
            MappingResult avec payload, ou reason/detail si rejeté
        """
        spec = get_spec(kind)
        try:
            payload = {"external_id": record.id}
            for field_spec in spec.scalar_fields:
                payload[field_spec.target] = self._coerce(field_spec, record.fields)

            result = MappingResult(payload=payload)
            self._resolve_relations(spec, record, resolver, result)
        except _Rejected as rejected:
            return MappingResult.reject(rejected.reason, rejected.detail)

        if spec.business_key:
            key = payload[spec.business_key]
            unique_key = await self._unique_business_key(spec, key, exclude_id, current_key)
            if unique_key != key:
                payload[spec.business_key] = unique_key
                result.renamed_from = key
                logger.warning(
                    f"{spec.singular} {record.id}: clé métier '{key}' déjà utilisée, renommée en '{unique_key}'",
                    extra={"external_id": record.id, "business_key": key, "renamed": unique_key},
                )

        return result

    def claim(self, kind: EntityKind, key: str) -> None:
        """Réserve une clé métier acceptée pendant ce run (utile en dry-run)."""
        self._claimed_keys.setdefault(kind, set()).add(key)

    def _coerce(self, field_spec: FieldSpec, fields: dict[str, Any]) -> Any:
        raw = field_spec.raw(fields)
        label = field_spec.sources[0]

        if field_spec.required and is_blank(raw):
            raise _Rejected(RejectReason.DATA_INVALID, f"champ requis manquant: {label}")

        if field_spec.type == FieldType.STRING:
            return coerce_string(raw, field_spec.nullable)
        if field_spec.type == FieldType.NUMBER:
            return coerce_number(raw)
        if field_spec.type == FieldType.INTEGER:
            return coerce_integer(raw)
        if field_spec.type == FieldType.FLAG:
            return coerce_flag(raw, field_spec.marker or "")
        if field_spec.type == FieldType.STATUS:
            return coerce_status(raw, dict(field_spec.statuses or {}), field_spec.default)
        if field_spec.type == FieldType.STRING_LIST:
            return coerce_string_list(raw)
        if field_spec.type == FieldType.DATE:
            parsed = coerce_date(raw)
            if parsed is None:
                if field_spec.required:
                    raise _Rejected(RejectReason.DATA_INVALID, f"date illisible: {label}={raw!r}")
                return self.clock()
            return parsed
        raise ValueError(f"Type de champ non géré: {field_spec.type}")

    def _resolve_relations(
        self,
        spec: EntitySpec,
        record: ExternalRecord,
        resolver: ReferenceResolver,
        result: MappingResult,
    ) -> None:
        for field_spec in spec.relation_fields:
            target_kind = field_spec.relation
            singular = get_spec(target_kind).singular
            references = reference_ids(field_spec.raw(record.fields))

            if field_spec.many:
                resolved: list[str] = []
                for reference in references:
                    internal_id = resolver.resolve(target_kind, reference)
                    if internal_id is None:
                        result.dropped_references.append(reference)
                    elif internal_id not in resolved:
                        resolved.append(internal_id)
                if result.dropped_references:
                    logger.warning(
                        f"{spec.singular} {record.id}: {singular} introuvable "
                        f"({', '.join(result.dropped_references)}), affectation ignorée"
                    )
                result.links[field_spec.target] = resolved
                continue

            reference = references[0] if references else None
            internal_id = resolver.resolve(target_kind, reference)
            if internal_id is None and field_spec.required:
                raise _Rejected(
                    RejectReason.not_found(singular),
                    f"{singular} introuvable ({reference or 'aucune référence'})",
                )
            result.payload[field_spec.target] = internal_id

    async def _unique_business_key(
        self,
        spec: EntitySpec,
        key: str,
        exclude_id: str | None,
        current_key: str | None,
    ) -> str:
        claimed = self._claimed_keys.setdefault(spec.kind, set())
        if key not in claimed and not await self._key_taken(spec, key, exclude_id):
            return key

        # Une ligne déjà renommée conserve sa clé lors d'une mise à jour
        if current_key and current_key.startswith(f"{key}{MIGRATED_KEY_MARKER}"):
            return current_key

        base = f"{key}{MIGRATED_KEY_MARKER}{int(self.clock().timestamp() * 1000)}"
        candidate = base
        suffix = 1
        while candidate in claimed or await self._key_taken(spec, candidate, exclude_id):
            candidate = f"{base}_{suffix}"
            suffix += 1
        return candidate

    async def _key_taken(self, spec: EntitySpec, key: str, exclude_id: str | None) -> bool:
        column = getattr(spec.model, spec.business_key)
        query = select(spec.model.id).where(column == key)
        if exclude_id:
            query = query.where(spec.model.id != exclude_id)
        result = await self.session.execute(query.limit(1))
        return result.first() is not None
