"""Modèle de données Commande.

Une commande n'existe que si son magasin et son client existent: les clés
étrangères sont non nulles et protégées (ON DELETE RESTRICT). Les
affectations de chauffeurs passent par la table d'association order_drivers.
"""

from datetime import datetime
from uuid import uuid4

from sqlalchemy import Column, Float, ForeignKey, Integer, String, Table, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from logistics.core.database import Base, UTCDateTime, utcnow
from logistics.models.driver import Driver

order_drivers = Table(
    "order_drivers",
    Base.metadata,
    Column(
        "order_id",
        String(36),
        ForeignKey("orders.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column(
        "driver_id",
        String(36),
        ForeignKey("drivers.id", ondelete="CASCADE"),
        primary_key=True,
    ),
)


class Order(Base):
    """Commande de livraison."""

    __tablename__ = "orders"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid4()), comment="UUID interne"
    )
    external_id: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
        index=True,
        comment="Identifiant de l'enregistrement source (nul si créé manuellement)",
    )
    number: Mapped[str] = mapped_column(
        String(128), unique=True, nullable=False, index=True, comment="Numéro de commande"
    )

    store_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("stores.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
        comment="Magasin émetteur",
    )
    client_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("clients.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
        comment="Client livré",
    )

    # Dates et créneau
    order_date: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, comment="Date de commande"
    )
    delivery_date: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, comment="Date de livraison prévue"
    )
    delivery_slot: Mapped[str] = mapped_column(
        String(50), nullable=False, default="", comment="Créneau de livraison"
    )

    # Statuts
    order_status: Mapped[str] = mapped_column(
        String(30), nullable=False, default="En attente", comment="Statut de la commande"
    )
    delivery_status: Mapped[str] = mapped_column(
        String(30), nullable=False, default="EN ATTENTE", comment="Statut de la livraison"
    )

    # Tarification et options
    tariff: Mapped[float] = mapped_column(Float, nullable=False, default=0, comment="Tarif HT")
    transport_reserve: Mapped[bool] = mapped_column(
        nullable=False, default=False, comment="Réserve transport"
    )
    elevator: Mapped[bool] = mapped_column(nullable=False, default=False, comment="Ascenseur")
    vehicle_category: Mapped[str] = mapped_column(
        String(50), nullable=False, default="", comment="Catégorie de véhicule"
    )
    crew_option: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, comment="Nombre d'équipiers de manutention"
    )
    item_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, comment="Nombre total d'articles"
    )

    # Informations complémentaires
    delivery_address: Mapped[str] = mapped_column(
        Text, nullable=False, default="", comment="Adresse de livraison"
    )
    seller_first_name: Mapped[str] = mapped_column(
        String(255), nullable=False, default="", comment="Prénom du vendeur/interlocuteur"
    )
    remarks: Mapped[str | None] = mapped_column(Text, nullable=True, comment="Autres remarques")

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

    # Lecture seule: les affectations sont écrites via la table d'association
    drivers: Mapped[list[Driver]] = relationship(
        secondary=order_drivers, lazy="selectin", viewonly=True
    )

    def __repr__(self) -> str:
        return f"<Order(id={self.id}, number={self.number}, external_id={self.external_id})>"
