"""Modèle de données Chauffeur."""

from datetime import datetime
from uuid import uuid4

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from logistics.core.database import Base, UTCDateTime, utcnow


class Driver(Base):
    """Chauffeur affectable aux livraisons."""

    __tablename__ = "drivers"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid4()), comment="UUID interne"
    )
    external_id: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
        index=True,
        comment="Identifiant de l'enregistrement source (nul si créé manuellement)",
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False, comment="Nom")
    first_name: Mapped[str] = mapped_column(
        String(255), nullable=False, default="", comment="Prénom"
    )
    phone: Mapped[str] = mapped_column(String(50), nullable=False, default="", comment="Téléphone")
    email: Mapped[str | None] = mapped_column(String(255), nullable=True, comment="Email")
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="Actif", comment="Actif ou Inactif"
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
