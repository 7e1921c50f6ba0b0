"""Résolution des identifiants source vers les identifiants internes.

Le résolveur ne lit que les colonnes external_id déjà persistées: c'est un
cache des jointures existantes, jamais un état nouveau.
"""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from logistics.migration.entity_kinds import EntityKind, get_spec

logger = logging.getLogger(__name__)


class ReferenceResolver:
    """
    Table de correspondance external_id -> id interne, par type d'entité.

    Quand plusieurs lignes portent le même external_id, la plus ancienne
    (created_at puis id) est retenue et la collision est enregistrée dans
    `collisions` pour l'audit.

    Example:
        ```python
        resolver = ReferenceResolver(session)
        await resolver.build_all()
        store_id = resolver.resolve(EntityKind.STORE, "recXXXX")
        ```
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self._mappings: dict[EntityKind, dict[str, str]] = {}
        self._collisions: dict[EntityKind, dict[str, list[str]]] = {}

    async def build(self, kind: EntityKind) -> dict[str, str]:
        """
        Construit (ou reconstruit) la correspondance d'un type d'entité.

        Returns:
            Copie de la correspondance, une entrée par external_id distinct
        """
        model = get_spec(kind).model
        result = await self.session.execute(
            select(model.id, model.external_id)
            .where(model.external_id.isnot(None))
            .order_by(model.created_at, model.id)
        )

        mapping: dict[str, str] = {}
        collisions: dict[str, list[str]] = {}
        for internal_id, external_id in result.all():
            if external_id in mapping:
                collisions.setdefault(external_id, [mapping[external_id]]).append(internal_id)
                continue
            mapping[external_id] = internal_id

        if collisions:
            logger.warning(
                f"{len(collisions)} identifiants source partagés par plusieurs {kind.value}",
                extra={"entity": kind.value, "collisions": len(collisions)},
            )

        self._mappings[kind] = mapping
        self._collisions[kind] = collisions
        logger.debug(f"Correspondance {kind.value}: {len(mapping)} entrées")
        return dict(mapping)

    async def build_all(self, kinds: tuple[EntityKind, ...] | list[EntityKind] | None = None) -> None:
        """Construit les correspondances de tous les types (ou de ceux fournis)."""
        for kind in kinds or tuple(EntityKind):
            await self.build(kind)

    def resolve(self, kind: EntityKind, external_id: str | None) -> str | None:
        """Identifiant interne, ou None si inconnu (cas normal, jamais une erreur)."""
        if not external_id:
            return None
        return self._mappings.get(kind, {}).get(external_id)

    def register(self, kind: EntityKind, external_id: str, internal_id: str) -> None:
        """Ajoute une jointure créée pendant le run (la première reste prioritaire)."""
        self._mappings.setdefault(kind, {}).setdefault(external_id, internal_id)

    def forget(self, kind: EntityKind) -> None:
        """Vide la correspondance d'un type (après purge)."""
        self._mappings[kind] = {}
        self._collisions[kind] = {}

    def mapping(self, kind: EntityKind) -> dict[str, str]:
        return dict(self._mappings.get(kind, {}))

    def collisions(self, kind: EntityKind) -> dict[str, list[str]]:
        """external_id -> ids internes (le premier est celui retenu)."""
        return {key: list(ids) for key, ids in self._collisions.get(kind, {}).items()}

    def __contains__(self, item: tuple[EntityKind, str]) -> bool:
        kind, external_id = item
        return external_id in self._mappings.get(kind, {})
