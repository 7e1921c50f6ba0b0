"""Schémas Pydantic des résultats de migration et d'extraction."""

from enum import Enum

from pydantic import BaseModel, Field

from logistics.schemas.audit import GlobalAudit


class RejectReason(str, Enum):
    """Catégories de résultat par enregistrement.

    Les trois premières variantes `*_not_found` sont paramétrées par la
    relation non résolue.
    """

    DATA_INVALID = "data_invalid"
    STORE_NOT_FOUND = "store_not_found"
    CLIENT_NOT_FOUND = "client_not_found"
    DRIVER_NOT_FOUND = "driver_not_found"
    DUPLICATE_BUSINESS_KEY = "duplicate_business_key"
    ALREADY_MIGRATED = "already_migrated"
    WRITE_FAILURE = "write_failure"
    EXTERNAL_SOURCE_UNREACHABLE = "external_source_unreachable"

    @classmethod
    def not_found(cls, relation: str) -> "RejectReason":
        """Variante `<relation>_not_found` pour une relation donnée."""
        return cls(f"{relation}_not_found")


class ProblemRecord(BaseModel):
    """Enregistrement problématique conservé pour le rapport détaillé."""

    external_id: str | None = Field(None, description="Identifiant source")
    reason: RejectReason = Field(..., description="Catégorie du problème")
    detail: str = Field("", description="Message explicatif")


class EntityMigrationStats(BaseModel):
    """Compteurs d'une étape de migration (une entité)."""

    entity: str = Field(..., description="Type d'entité (stores, clients, ...)")
    label: str = Field("", description="Libellé du rapport")
    processed: int = Field(0, description="Enregistrements lus")
    success: int = Field(0, description="Enregistrements créés")
    updated: int = Field(0, description="Enregistrements mis à jour (mode update)")
    duplicates: int = Field(0, description="Déjà migrés, ignorés")
    renamed: int = Field(0, description="Clés métier suffixées pour unicité")
    skipped: int = Field(0, description="Rejetés (donnée invalide, relation introuvable)")
    errors: int = Field(0, description="Échecs d'écriture")
    details: dict[str, int] = Field(
        default_factory=dict, description="Nombre d'enregistrements par catégorie"
    )
    problems: dict[str, list[ProblemRecord]] = Field(
        default_factory=dict, description="Échantillon d'enregistrements par catégorie"
    )
    failed: bool = Field(False, description="Étape en échec au niveau entité")
    error: str | None = Field(None, description="Cause de l'échec de l'étape")

    def tally(
        self,
        reason: RejectReason,
        external_id: str | None = None,
        detail: str = "",
        sample_size: int = 20,
    ) -> None:
        """Comptabilise une catégorie et conserve au plus `sample_size` exemples."""
        self.details[reason.value] = self.details.get(reason.value, 0) + 1
        samples = self.problems.setdefault(reason.value, [])
        if len(samples) < sample_size:
            samples.append(ProblemRecord(external_id=external_id, reason=reason, detail=detail))

    def summary(self) -> str:
        """Résumé d'une ligne, au format du rapport console."""
        if self.failed:
            return f"{self.label or self.entity}: ÉCHEC ({self.error})"
        return (
            f"{self.label or self.entity}: {self.processed} traités, {self.success} créés, "
            f"{self.updated} mis à jour, {self.duplicates} doublons, {self.skipped} ignorés, "
            f"{self.errors} erreurs"
        )


class ExtractionResult(BaseModel):
    """Résultat de l'extraction d'une table source."""

    table: str = Field(..., description="Nom de la table source")
    success: bool = Field(..., description="True si la table a été exportée")
    count: int = Field(0, description="Nombre d'enregistrements écrits")
    file: str | None = Field(None, description="Chemin du fichier écrit")
    error: str | None = Field(None, description="Cause de l'échec")


class MigrationRunReport(BaseModel):
    """Résultat complet d'un run de migration."""

    dry_run: bool = Field(False, description="Aucune écriture effectuée")
    entities: list[EntityMigrationStats] = Field(default_factory=list)
    purged: dict[str, int] = Field(
        default_factory=dict, description="Lignes supprimées par le mode recreate"
    )
    audit: GlobalAudit | None = Field(None, description="Audit de réconciliation final")

    @property
    def has_failures(self) -> bool:
        """Vrai si une étape a échoué ou si un enregistrement n'a pas pu être écrit."""
        return any(stats.failed or stats.errors > 0 for stats in self.entities)

