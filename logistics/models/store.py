"""Modèle de données Magasin."""

from datetime import datetime
from uuid import uuid4

from sqlalchemy import JSON, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from logistics.core.database import Base, UTCDateTime, utcnow


class Store(Base):
    """
    Magasin partenaire.

    Créé par la migration (external_id renseigné) ou manuellement
    (external_id nul). external_id est la clé de jointure vers l'export.
    """

    __tablename__ = "stores"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid4()), comment="UUID interne"
    )
    external_id: Mapped[str | None] = mapped_column(
        String(64),
        unique=True,
        nullable=True,
        index=True,
        comment="Identifiant de l'enregistrement source (nul si créé manuellement)",
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False, comment="Nom du magasin")
    address: Mapped[str] = mapped_column(Text, nullable=False, default="", comment="Adresse")
    phone: Mapped[str] = mapped_column(String(50), nullable=False, default="", comment="Téléphone")
    email: Mapped[str | None] = mapped_column(String(255), nullable=True, comment="Email")
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="Actif", comment="Actif ou Inactif"
    )
    categories: Mapped[list[str]] = mapped_column(
        JSON, nullable=False, default=list, comment="Catégories de produits (ensemble)"
    )

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=utcnow, comment="Date de création"
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
        comment="Date de dernière modification",
    )

    def __repr__(self) -> str:
        return f"<Store(id={self.id}, name={self.name}, external_id={self.external_id})>"
