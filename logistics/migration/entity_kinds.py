"""Table des types d'entités migrées.

Chaque type d'entité est décrit une seule fois: champs requis, règles de
coercition, relations, clé métier, table source et hook post-écriture. Le
mapper, le résolveur, l'écriture et l'audit sont génériques sur cette table.
"""

import re
from collections.abc import Awaitable, Callable, Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from sqlalchemy import Table
from sqlalchemy.ext.asyncio import AsyncSession

from logistics.core.database import Base, utcnow
from logistics.models import Client, Driver, Order, Store, order_drivers
from logistics.schemas.external import ExternalRecord
from logistics.services.retention_service import record_client_activity


class EntityKind(str, Enum):
    """Types d'entités, la valeur est le nom utilisé en ligne de commande."""

    STORE = "stores"
    CLIENT = "clients"
    DRIVER = "drivers"
    ORDER = "orders"


class FieldType(str, Enum):
    """Règle de coercition appliquée à un champ (voir logistics.migration.coercion)."""

    STRING = "string"
    NUMBER = "number"
    INTEGER = "integer"
    FLAG = "flag"
    DATE = "date"
    STATUS = "status"
    STRING_LIST = "string_list"
    RELATION = "relation"


@dataclass(frozen=True)
class LinkSpec:
    """Table d'association d'une relation multiple."""

    table: Table
    owner_column: str
    target_column: str


@dataclass(frozen=True)
class FieldSpec:
    """
    Champ cible et ses clés source.

    Attributes:
        target: Attribut du modèle (ou clé de payload pour une relation multiple)
        sources: Clés candidates dans `fields`, la première présente est utilisée
        type: Règle de coercition
        required: Rejet `data_invalid` si absent (ou `<relation>_not_found`)
        nullable: Valeur absente -> None au lieu de ""
        marker: Valeur exacte qui rend un drapeau vrai
        statuses: Table de traduction d'un statut
        default: Statut par défaut
        relation: Type d'entité référencé
        link: Table d'association pour une relation multiple
    """

    target: str
    sources: tuple[str, ...]
    type: FieldType = FieldType.STRING
    required: bool = False
    nullable: bool = False
    marker: str | None = None
    statuses: Mapping[str, str] | None = None
    default: Any = None
    relation: EntityKind | None = None
    link: LinkSpec | None = None

    @property
    def many(self) -> bool:
        return self.link is not None

    def raw(self, fields: Mapping[str, Any]) -> Any:
        """Valeur brute de la première clé source présente et non nulle."""
        for key in self.sources:
            value = fields.get(key)
            if value is not None:
                return value
        return None


def export_file_name(table: str) -> str:
    """Nom du fichier d'export d'une table: caractères non alphanumériques remplacés par `_`."""
    return f"{re.sub(r'[^a-zA-Z0-9]', '_', table)}.json"


WriteHook = Callable[[AsyncSession, Any, ExternalRecord], Awaitable[None]]


@dataclass(frozen=True)
class EntitySpec:
    """Description complète d'un type d'entité."""

    kind: EntityKind
    singular: str
    label: str
    model: type[Base]
    source_table: str
    fields: tuple[FieldSpec, ...]
    business_key: str | None = None
    depends_on: tuple[EntityKind, ...] = ()
    record_filter: Callable[[ExternalRecord], bool] | None = None
    on_write: WriteHook | None = None
    aliases: tuple[str, ...] = field(default=())

    @property
    def export_file(self) -> str:
        return export_file_name(self.source_table)

    @property
    def scalar_fields(self) -> tuple[FieldSpec, ...]:
        return tuple(spec for spec in self.fields if spec.type != FieldType.RELATION)

    @property
    def business_key_field(self) -> FieldSpec | None:
        if self.business_key is None:
            return None
        return next(spec for spec in self.fields if spec.target == self.business_key)

    @property
    def relation_fields(self) -> tuple[FieldSpec, ...]:
        return tuple(spec for spec in self.fields if spec.type == FieldType.RELATION)

    def accepts(self, record: ExternalRecord) -> bool:
        """Vrai si l'enregistrement appartient à ce type (filtre de table partagée)."""
        return self.record_filter is None or self.record_filter(record)


# ============================================================================
# Tables de traduction
# ============================================================================

ACTIVITY_STATUSES = {
    "Actif": "Actif",
    "Inactif": "Inactif",
    "ACTIF": "Actif",
    "INACTIF": "Inactif",
}

ORDER_STATUSES = {
    "En attente": "En attente",
    "Confirmée": "Confirmée",
    "Transmise": "Transmise",
    "Modifiée": "Modifiée",
    "Annulée": "Annulée",
}

DELIVERY_STATUSES = {
    "EN ATTENTE": "EN ATTENTE",
    "CONFIRMEE": "CONFIRMEE",
    "EN COURS DE LIVRAISON": "EN COURS",
    "LIVREE": "LIVREE",
    "ANNULEE": "ANNULEE",
    "ECHEC": "ECHEC",
    "ENLEVEE": "ENLEVEE",
}


# ============================================================================
# Filtres et hooks
# ============================================================================


def _is_driver(record: ExternalRecord) -> bool:
    """La table du personnel mélange les rôles: seuls les chauffeurs sont migrés."""
    role = record.fields.get("RÔLE", record.fields.get("ROLE"))
    values = role if isinstance(role, list) else [role]
    return any(isinstance(value, str) and "chauffeur" in value.lower() for value in values)


async def _client_written(session: AsyncSession, client: Client, record: ExternalRecord) -> None:
    record_client_activity(client, record.created_time or utcnow())


async def _order_written(session: AsyncSession, order: Order, record: ExternalRecord) -> None:
    client = await session.get(Client, order.client_id)
    if client is not None:
        record_client_activity(client, order.order_date)


# ============================================================================
# Table des entités
# ============================================================================

ENTITY_SPECS: dict[EntityKind, EntitySpec] = {
    EntityKind.STORE: EntitySpec(
        kind=EntityKind.STORE,
        singular="store",
        label="Magasins",
        model=Store,
        source_table="Magasins",
        aliases=("store", "magasin", "magasins"),
        fields=(
            FieldSpec("name", ("NOM DU MAGASIN", "NOM"), required=True),
            FieldSpec("address", ("ADRESSE DU MAGASIN", "ADRESSE")),
            FieldSpec("phone", ("TELEPHONE",)),
            FieldSpec("email", ("EMAIL", "E-MAIL"), nullable=True),
            FieldSpec(
                "status",
                ("STATUT",),
                FieldType.STATUS,
                statuses=ACTIVITY_STATUSES,
                default="Actif",
            ),
            FieldSpec("categories", ("CATEGORIES",), FieldType.STRING_LIST),
        ),
    ),
    EntityKind.CLIENT: EntitySpec(
        kind=EntityKind.CLIENT,
        singular="client",
        label="Clients",
        model=Client,
        source_table="Clients",
        aliases=("client",),
        on_write=_client_written,
        fields=(
            FieldSpec("name", ("NOM", "NOM DU CLIENT"), required=True),
            FieldSpec("first_name", ("PRENOM", "PRENOM DU CLIENT"), nullable=True),
            FieldSpec("phone", ("TELEPHONE", "TELEPHONE DU CLIENT")),
            FieldSpec(
                "secondary_phone", ("TELEPHONE 2", "TELEPHONE DU CLIENT 2"), nullable=True
            ),
            FieldSpec("address", ("ADRESSE", "ADRESSE DE LIVRAISON")),
            FieldSpec("email", ("E-MAIL", "EMAIL"), nullable=True),
        ),
    ),
    EntityKind.DRIVER: EntitySpec(
        kind=EntityKind.DRIVER,
        singular="driver",
        label="Chauffeurs",
        model=Driver,
        source_table="Personnel My Truck",
        aliases=("driver", "chauffeur", "chauffeurs"),
        record_filter=_is_driver,
        fields=(
            FieldSpec("name", ("NOM",), required=True),
            FieldSpec("first_name", ("PRENOM",)),
            FieldSpec("email", ("E-MAIL", "EMAIL"), nullable=True),
            FieldSpec("phone", ("TELEPHONE",)),
            FieldSpec(
                "status",
                ("STATUT",),
                FieldType.STATUS,
                statuses=ACTIVITY_STATUSES,
                default="Actif",
            ),
        ),
    ),
    EntityKind.ORDER: EntitySpec(
        kind=EntityKind.ORDER,
        singular="order",
        label="Commandes",
        model=Order,
        source_table="Commandes",
        aliases=("order", "commande", "commandes"),
        business_key="number",
        depends_on=(EntityKind.STORE, EntityKind.CLIENT, EntityKind.DRIVER),
        on_write=_order_written,
        fields=(
            FieldSpec("number", ("NUMERO DE COMMANDE",), required=True),
            FieldSpec("delivery_date", ("DATE DE LIVRAISON",), FieldType.DATE, required=True),
            FieldSpec("order_date", ("DATE DE COMMANDE",), FieldType.DATE),
            FieldSpec(
                "store_id",
                ("Magasins",),
                FieldType.RELATION,
                required=True,
                relation=EntityKind.STORE,
            ),
            FieldSpec(
                "client_id",
                ("Clients",),
                FieldType.RELATION,
                required=True,
                relation=EntityKind.CLIENT,
            ),
            FieldSpec(
                "driver_ids",
                ("CHAUFFEUR(S)",),
                FieldType.RELATION,
                relation=EntityKind.DRIVER,
                link=LinkSpec(order_drivers, "order_id", "driver_id"),
            ),
            FieldSpec("delivery_slot", ("CRENEAU DE LIVRAISON",)),
            FieldSpec(
                "order_status",
                ("STATUT DE LA COMMANDE",),
                FieldType.STATUS,
                statuses=ORDER_STATUSES,
                default="En attente",
            ),
            FieldSpec(
                "delivery_status",
                ("STATUT DE LA LIVRAISON (ENCART MYTRUCK)",),
                FieldType.STATUS,
                statuses=DELIVERY_STATUSES,
                default="EN ATTENTE",
            ),
            FieldSpec("tariff", ("TARIF HT",), FieldType.NUMBER),
            FieldSpec("transport_reserve", ("RESERVE TRANSPORT",), FieldType.FLAG, marker="OUI"),
            FieldSpec("elevator", ("ASCENSEUR",), FieldType.FLAG, marker="Oui"),
            FieldSpec("vehicle_category", ("CATEGORIE DE VEHICULE",)),
            FieldSpec("crew_option", ("OPTION EQUIPIER DE MANUTENTION",), FieldType.INTEGER),
            FieldSpec("item_count", ("NOMBRE TOTAL D'ARTICLES",), FieldType.INTEGER),
            FieldSpec("delivery_address", ("ADRESSE DE LIVRAISON",)),
            FieldSpec("seller_first_name", ("PRENOM DU VENDEUR/INTERLOCUTEUR",)),
            FieldSpec("remarks", ("AUTRES REMARQUES",), nullable=True),
        ),
    ),
}

# Magasins, clients et chauffeurs doivent être résolvables avant les commandes
DEPENDENCY_ORDER: tuple[EntityKind, ...] = (
    EntityKind.STORE,
    EntityKind.CLIENT,
    EntityKind.DRIVER,
    EntityKind.ORDER,
)

# Types dont le résolveur construit une table de correspondance
RESOLVABLE_KINDS: tuple[EntityKind, ...] = (EntityKind.STORE, EntityKind.CLIENT, EntityKind.DRIVER)


def get_spec(kind: EntityKind | str) -> EntitySpec:
    """Description d'un type d'entité."""
    return ENTITY_SPECS[EntityKind(kind)]


def parse_entity_kinds(values: Iterable[str] | str | None) -> list[EntityKind]:
    """
    Parse un filtre d'entités (noms anglais ou français), trié dans l'ordre de dépendance.

    Args:
        values: Liste de noms ou chaîne séparée par des virgules; None = toutes

    Returns:
        Types d'entités sans doublon, dans l'ordre de dépendance

    Raises:
        ValueError: Si un nom est inconnu
    """
    if values is None:
        return list(DEPENDENCY_ORDER)
    if isinstance(values, str):
        values = values.split(",")

    lookup: dict[str, EntityKind] = {}
    for kind, spec in ENTITY_SPECS.items():
        lookup[kind.value] = kind
        for alias in spec.aliases:
            lookup[alias] = kind

    selected: set[EntityKind] = set()
    for value in values:
        name = value.strip().lower()
        if not name:
            continue
        if name not in lookup:
            raise ValueError(
                f"Entité inconnue: '{value}' (valeurs acceptées: {', '.join(sorted(lookup))})"
            )
        selected.add(lookup[name])

    return [kind for kind in DEPENDENCY_ORDER if kind in selected]
