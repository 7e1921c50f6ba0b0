"""Modèle de données Client.

Les champs RGPD (retention_until, deletion_requested, pseudonymized) pilotent
la machine à états de la purge quotidienne:

- ACTIF: retention_until >= maintenant, non pseudonymisé
- EXPIRÉ: retention_until < maintenant, sans demande de suppression, non pseudonymisé
- PSEUDONYMISÉ: état terminal, champs identifiants écrasés
"""

from datetime import datetime
from uuid import uuid4

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from logistics.core.database import Base, UTCDateTime, utcnow


class Client(Base):
    """Client final livré par les magasins."""

    __tablename__ = "clients"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid4()), comment="UUID interne"
    )
    # Non unique: des doublons manuels peuvent pointer vers le même enregistrement source
    external_id: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
        index=True,
        comment="Identifiant de l'enregistrement source (nul si créé manuellement)",
    )

    # Données identifiantes (écrasées par la pseudonymisation)
    name: Mapped[str] = mapped_column(String(255), nullable=False, comment="Nom")
    first_name: Mapped[str | None] = mapped_column(String(255), nullable=True, comment="Prénom")
    phone: Mapped[str] = mapped_column(String(50), nullable=False, default="", comment="Téléphone")
    secondary_phone: Mapped[str | None] = mapped_column(
        String(50), nullable=True, comment="Téléphone secondaire"
    )
    address: Mapped[str] = mapped_column(
        Text, nullable=False, default="", comment="Adresse de livraison"
    )
    email: Mapped[str | None] = mapped_column(String(255), nullable=True, comment="Email")

    # RGPD
    last_activity_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime, nullable=True, comment="Date de dernière activité (commande, création)"
    )
    retention_until: Mapped[datetime | None] = mapped_column(
        UTCDateTime,
        nullable=True,
        index=True,
        comment="Fin de la période de conservation (dernière activité + durée fixe)",
    )
    deletion_requested: Mapped[bool] = mapped_column(
        nullable=False, default=False, comment="Demande de suppression explicite en cours"
    )
    pseudonymized: Mapped[bool] = mapped_column(
        nullable=False, default=False, index=True, comment="Données identifiantes écrasées"
    )
    pseudonymized_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime, nullable=True, comment="Date de pseudonymisation"
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
        return f"<Client(id={self.id}, external_id={self.external_id}, pseudonymized={self.pseudonymized})>"
