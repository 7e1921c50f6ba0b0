"""Schémas Pydantic de la conservation RGPD des clients."""

from datetime import datetime

from pydantic import BaseModel, Field


class SweepResult(BaseModel):
    """Résultat d'une exécution de la purge quotidienne."""

    started_at: datetime
    expired: int = Field(0, description="Clients EXPIRÉS trouvés")
    pseudonymized: int = Field(0, description="Clients pseudonymisés")
    failed: int = Field(0, description="Échecs (restent EXPIRÉS jusqu'au prochain run)")
    client_ids: list[str] = Field(default_factory=list, description="Clients pseudonymisés")


class RetentionRepairResult(BaseModel):
    """Résultat de la correction des dates de conservation."""

    invalid_before: int = Field(0, description="Dates nulles ou passées avant correction")
    repaired: int = Field(0, description="Clients corrigés")
    invalid_after: int = Field(0, description="Dates nulles ou passées après correction")
    retention_until: datetime | None = Field(None, description="Nouvelle date appliquée")


class MaskedClient(BaseModel):
    """Vue d'affichage d'un client aux champs partiellement masqués.

    Jamais réécrite en base.
    """

    id: str
    name: str
    first_name: str | None = None
    phone: str
    secondary_phone: str | None = None
    email: str | None = None
    address: str
    pseudonymized: bool = False
