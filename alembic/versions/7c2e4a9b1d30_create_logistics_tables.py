"""Create stores, clients, drivers, orders and order_drivers

Revision ID: 7c2e4a9b1d30
Revises:
Create Date: 2026-10-19 09:12:44.218311

"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "7c2e4a9b1d30"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at", sa.DateTime(timezone=True), nullable=False, comment="Date de création"
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            comment="Date de dernière modification",
        ),
    ]


def upgrade() -> None:
    op.create_table(
        "stores",
        sa.Column("id", sa.String(length=36), nullable=False, comment="UUID interne"),
        sa.Column(
            "external_id",
            sa.String(length=64),
            nullable=True,
            comment="Identifiant de l'enregistrement source (nul si créé manuellement)",
        ),
        sa.Column("name", sa.String(length=255), nullable=False, comment="Nom du magasin"),
        sa.Column("address", sa.Text(), nullable=False, comment="Adresse"),
        sa.Column("phone", sa.String(length=50), nullable=False, comment="Téléphone"),
        sa.Column("email", sa.String(length=255), nullable=True, comment="Email"),
        sa.Column("status", sa.String(length=20), nullable=False, comment="Actif ou Inactif"),
        sa.Column(
            "categories", sa.JSON(), nullable=False, comment="Catégories de produits (ensemble)"
        ),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_stores_external_id"), "stores", ["external_id"], unique=True)

    op.create_table(
        "clients",
        sa.Column("id", sa.String(length=36), nullable=False, comment="UUID interne"),
        sa.Column(
            "external_id",
            sa.String(length=64),
            nullable=True,
            comment="Identifiant de l'enregistrement source (nul si créé manuellement)",
        ),
        sa.Column("name", sa.String(length=255), nullable=False, comment="Nom"),
        sa.Column("first_name", sa.String(length=255), nullable=True, comment="Prénom"),
        sa.Column("phone", sa.String(length=50), nullable=False, comment="Téléphone"),
        sa.Column(
            "secondary_phone", sa.String(length=50), nullable=True, comment="Téléphone secondaire"
        ),
        sa.Column("address", sa.Text(), nullable=False, comment="Adresse de livraison"),
        sa.Column("email", sa.String(length=255), nullable=True, comment="Email"),
        sa.Column(
            "last_activity_at",
            sa.DateTime(timezone=True),
            nullable=True,
            comment="Date de dernière activité (commande, création)",
        ),
        sa.Column(
            "retention_until",
            sa.DateTime(timezone=True),
            nullable=True,
            comment="Fin de la période de conservation (dernière activité + durée fixe)",
        ),
        sa.Column(
            "deletion_requested",
            sa.Boolean(),
            nullable=False,
            comment="Demande de suppression explicite en cours",
        ),
        sa.Column(
            "pseudonymized", sa.Boolean(), nullable=False, comment="Données identifiantes écrasées"
        ),
        sa.Column(
            "pseudonymized_at",
            sa.DateTime(timezone=True),
            nullable=True,
            comment="Date de pseudonymisation",
        ),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_clients_external_id"), "clients", ["external_id"], unique=False)
    op.create_index(
        op.f("ix_clients_retention_until"), "clients", ["retention_until"], unique=False
    )
    op.create_index(op.f("ix_clients_pseudonymized"), "clients", ["pseudonymized"], unique=False)

    op.create_table(
        "drivers",
        sa.Column("id", sa.String(length=36), nullable=False, comment="UUID interne"),
        sa.Column(
            "external_id",
            sa.String(length=64),
            nullable=True,
            comment="Identifiant de l'enregistrement source (nul si créé manuellement)",
        ),
        sa.Column("name", sa.String(length=255), nullable=False, comment="Nom"),
        sa.Column("first_name", sa.String(length=255), nullable=False, comment="Prénom"),
        sa.Column("phone", sa.String(length=50), nullable=False, comment="Téléphone"),
        sa.Column("email", sa.String(length=255), nullable=True, comment="Email"),
        sa.Column("status", sa.String(length=20), nullable=False, comment="Actif ou Inactif"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_drivers_external_id"), "drivers", ["external_id"], unique=False)

    op.create_table(
        "orders",
        sa.Column("id", sa.String(length=36), nullable=False, comment="UUID interne"),
        sa.Column(
            "external_id",
            sa.String(length=64),
            nullable=True,
            comment="Identifiant de l'enregistrement source (nul si créé manuellement)",
        ),
        sa.Column("number", sa.String(length=128), nullable=False, comment="Numéro de commande"),
        sa.Column("store_id", sa.String(length=36), nullable=False, comment="Magasin émetteur"),
        sa.Column("client_id", sa.String(length=36), nullable=False, comment="Client livré"),
        sa.Column(
            "order_date", sa.DateTime(timezone=True), nullable=False, comment="Date de commande"
        ),
        sa.Column(
            "delivery_date",
            sa.DateTime(timezone=True),
            nullable=False,
            comment="Date de livraison prévue",
        ),
        sa.Column(
            "delivery_slot", sa.String(length=50), nullable=False, comment="Créneau de livraison"
        ),
        sa.Column(
            "order_status", sa.String(length=30), nullable=False, comment="Statut de la commande"
        ),
        sa.Column(
            "delivery_status",
            sa.String(length=30),
            nullable=False,
            comment="Statut de la livraison",
        ),
        sa.Column("tariff", sa.Float(), nullable=False, comment="Tarif HT"),
        sa.Column("transport_reserve", sa.Boolean(), nullable=False, comment="Réserve transport"),
        sa.Column("elevator", sa.Boolean(), nullable=False, comment="Ascenseur"),
        sa.Column(
            "vehicle_category",
            sa.String(length=50),
            nullable=False,
            comment="Catégorie de véhicule",
        ),
        sa.Column(
            "crew_option", sa.Integer(), nullable=False, comment="Nombre d'équipiers de manutention"
        ),
        sa.Column("item_count", sa.Integer(), nullable=False, comment="Nombre total d'articles"),
        sa.Column("delivery_address", sa.Text(), nullable=False, comment="Adresse de livraison"),
        sa.Column(
            "seller_first_name",
            sa.String(length=255),
            nullable=False,
            comment="Prénom du vendeur/interlocuteur",
        ),
        sa.Column("remarks", sa.Text(), nullable=True, comment="Autres remarques"),
        *_timestamps(),
        sa.ForeignKeyConstraint(["client_id"], ["clients.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["store_id"], ["stores.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_orders_external_id"), "orders", ["external_id"], unique=False)
    op.create_index(op.f("ix_orders_number"), "orders", ["number"], unique=True)
    op.create_index(op.f("ix_orders_store_id"), "orders", ["store_id"], unique=False)
    op.create_index(op.f("ix_orders_client_id"), "orders", ["client_id"], unique=False)

    op.create_table(
        "order_drivers",
        sa.Column("order_id", sa.String(length=36), nullable=False),
        sa.Column("driver_id", sa.String(length=36), nullable=False),
        sa.ForeignKeyConstraint(["driver_id"], ["drivers.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["order_id"], ["orders.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("order_id", "driver_id"),
    )


def downgrade() -> None:
    op.drop_table("order_drivers")
    op.drop_index(op.f("ix_orders_client_id"), table_name="orders")
    op.drop_index(op.f("ix_orders_store_id"), table_name="orders")
    op.drop_index(op.f("ix_orders_number"), table_name="orders")
    op.drop_index(op.f("ix_orders_external_id"), table_name="orders")
    op.drop_table("orders")
    op.drop_index(op.f("ix_drivers_external_id"), table_name="drivers")
    op.drop_table("drivers")
    op.drop_index(op.f("ix_clients_pseudonymized"), table_name="clients")
    op.drop_index(op.f("ix_clients_retention_until"), table_name="clients")
    op.drop_index(op.f("ix_clients_external_id"), table_name="clients")
    op.drop_table("clients")
    op.drop_index(op.f("ix_stores_external_id"), table_name="stores")
    op.drop_table("stores")
