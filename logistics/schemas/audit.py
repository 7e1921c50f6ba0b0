"""Schémas Pydantic de l'audit de réconciliation.

Ces objets sont la sortie structurée de l'audit; le rendu console est
produit par logistics.migration.report.
"""

from pydantic import BaseModel, Field, computed_field


class EntityAudit(BaseModel):
    """Audit d'un type d'entité: export comparé à la base."""

    entity: str = Field(..., description="Type d'entité")
    label: str = Field("", description="Libellé du rapport")
    exported_count: int = Field(0, description="Enregistrements valides dans l'export")
    internal_count: int = Field(0, description="Lignes en base (toutes origines)")
    migrated_count: int = Field(
        0, description="Identifiants exportés ayant au moins une ligne en base"
    )
    missing_count: int = Field(0, description="Identifiants exportés absents de la base")
    orphaned_count: int = Field(0, description="Commandes exportées aux relations non résolues")
    duplicate_count: int = Field(
        0, description="Identifiants source portés par plusieurs lignes en base"
    )
    unlinked_count: int = Field(
        0, description="Lignes en base dont l'identifiant source est absent de l'export"
    )
    manual_count: int = Field(0, description="Lignes créées manuellement (sans identifiant)")
    issues: list[str] = Field(default_factory=list, description="Anomalies détectées")

    @computed_field
    @property
    def migration_rate(self) -> float:
        """Taux de migration en pourcentage (0 si rien n'est exporté)."""
        if self.exported_count == 0:
            return 0.0
        return round(self.migrated_count * 100 / self.exported_count, 1)


class OrphanedRecord(BaseModel):
    """Enregistrement exporté (commande) dont une relation obligatoire ne se résout pas."""

    entity: str = Field(..., description="Type d'entité")
    external_id: str = Field(..., description="Identifiant source")
    business_key: str | None = Field(None, description="Clé métier (numéro de commande)")
    unresolved: dict[str, str | None] = Field(
        default_factory=dict,
        description="Relation -> référence source non résolue (None si absente)",
    )


class DuplicateExternalId(BaseModel):
    """Identifiant source porté par plusieurs lignes internes."""

    entity: str
    external_id: str
    internal_ids: list[str] = Field(default_factory=list)
    kept_id: str = Field(..., description="Ligne retenue par le résolveur (la plus ancienne)")


class GlobalAudit(BaseModel):
    """Audit de toutes les entités, dans l'ordre de dépendance."""

    entities: list[EntityAudit] = Field(default_factory=list)
    orphaned: list[OrphanedRecord] = Field(default_factory=list)
    missing: dict[str, list[str]] = Field(
        default_factory=dict, description="Échantillon d'identifiants manquants par entité"
    )
    duplicates: list[DuplicateExternalId] = Field(default_factory=list)

    @computed_field
    @property
    def total_exported(self) -> int:
        return sum(audit.exported_count for audit in self.entities)

    @computed_field
    @property
    def total_migrated(self) -> int:
        return sum(audit.migrated_count for audit in self.entities)

    @computed_field
    @property
    def total_missing(self) -> int:
        return sum(audit.missing_count for audit in self.entities)

    @computed_field
    @property
    def migration_rate(self) -> float:
        if self.total_exported == 0:
            return 0.0
        return round(self.total_migrated * 100 / self.total_exported, 1)

    def get(self, entity: str) -> EntityAudit | None:
        """Audit d'une entité par nom, None si elle n'a pas été auditée."""
        return next((audit for audit in self.entities if audit.entity == entity), None)
