"""Schéma des enregistrements de l'export source.

Chaque fichier d'export est un tableau JSON de
`{"id": str, "fields": {...}, "createdTime": ISO8601}`. Les clés de `fields`
sont du texte libre défini par la source; seule la table des entités
(logistics.migration.entity_kinds) en fait un contrat.
"""

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field, field_validator


class ExternalRecord(BaseModel):
    """Enregistrement immuable lu depuis un export."""

    id: str = Field(..., min_length=1, description="Identifiant opaque attribué par la source")
    fields: dict[str, Any] = Field(default_factory=dict, description="Sac de champs source")
    created_time: datetime | None = Field(
        None, alias="createdTime", description="Date de création côté source"
    )

    model_config = {
        "frozen": True,
        "extra": "ignore",
        "populate_by_name": True,  # Accepte created_time et createdTime
    }

    @field_validator("fields", mode="before")
    @classmethod
    def none_fields_as_empty(cls, v: Any) -> Any:
        return {} if v is None else v

    @field_validator("created_time")
    @classmethod
    def created_time_as_utc(cls, v: datetime | None) -> datetime | None:
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=UTC)
        return v

    def to_export(self) -> dict[str, Any]:
        """Forme sérialisable identique au format d'export."""
        return self.model_dump(mode="json", by_alias=True)
