"""Tests unitaires du mapper générique et du résolveur de références."""

from datetime import UTC, datetime

import pytest

from logistics.migration.entity_kinds import EntityKind
from logistics.migration.field_mapper import FieldMapper
from logistics.migration.reference_resolver import ReferenceResolver
from logistics.models import Client, Order, Store
from logistics.schemas.external import ExternalRecord
from logistics.schemas.migration import RejectReason

NOW = datetime(2025, 6, 15, 12, 0, tzinfo=UTC)


def _record(record_id: str, fields: dict) -> ExternalRecord:
    return ExternalRecord.model_validate(
        {"id": record_id, "fields": fields, "createdTime": "2025-01-15T10:00:00.000Z"}
    )


def _order_fields(**extra) -> dict:
    fields = {
        "NUMERO DE COMMANDE": "CMD001",
        "DATE DE LIVRAISON": "2025-06-01",
        "Magasins": ["recS1"],
        "Clients": ["recC1"],
    }
    fields.update(extra)
    return fields


@pytest.fixture
def resolver(db_session) -> ReferenceResolver:
    resolver = ReferenceResolver(db_session)
    resolver.register(EntityKind.STORE, "recS1", "store-1")
    resolver.register(EntityKind.CLIENT, "recC1", "client-1")
    resolver.register(EntityKind.DRIVER, "recD1", "driver-1")
    return resolver


@pytest.fixture
def mapper(db_session) -> FieldMapper:
    return FieldMapper(db_session, clock=lambda: NOW)


# ============================================================================
# Champs scalaires
# ============================================================================


class TestScalarFields:
    """Tests de la coercition des champs scalaires."""

    @pytest.mark.asyncio
    async def test_store_mapping(self, mapper, resolver):
        """Test: un magasin complet est traduit champ par champ."""
        record = _record(
            "recS9",
            {
                "NOM DU MAGASIN": " Maison du Lit ",
                "ADRESSE DU MAGASIN": "3 avenue Foch",
                "TELEPHONE": "0145454545",
                "STATUT": "INACTIF",
                "CATEGORIES": ["Literie", "Literie", "Meubles"],
            },
        )

        result = await mapper.map(EntityKind.STORE, record, resolver)

        assert result.ok
        assert result.payload == {
            "external_id": "recS9",
            "name": "Maison du Lit",
            "address": "3 avenue Foch",
            "phone": "0145454545",
            "email": None,
            "status": "Inactif",
            "categories": ["Literie", "Meubles"],
        }

    @pytest.mark.asyncio
    async def test_alternative_source_key(self, mapper, resolver):
        """Test: la clé source alternative est utilisée si la première manque."""
        result = await mapper.map(EntityKind.STORE, _record("recS9", {"NOM": "Déco+"}), resolver)

        assert result.payload["name"] == "Déco+"
        assert result.payload["status"] == "Actif"

    @pytest.mark.asyncio
    async def test_missing_required_field_rejected(self, mapper, resolver):
        """Test: champ requis absent -> data_invalid."""
        result = await mapper.map(EntityKind.CLIENT, _record("recC9", {"PRENOM": "Luc"}), resolver)

        assert not result.ok
        assert result.reason == RejectReason.DATA_INVALID
        assert "NOM" in result.detail

    @pytest.mark.asyncio
    async def test_blank_required_field_rejected(self, mapper, resolver):
        result = await mapper.map(EntityKind.CLIENT, _record("recC9", {"NOM": "   "}), resolver)

        assert result.reason == RejectReason.DATA_INVALID

    @pytest.mark.asyncio
    async def test_order_flags_numbers_and_statuses(self, mapper, resolver):
        """Test: drapeaux au marqueur exact, nombres à 0 par défaut, statuts traduits."""
        record = _record(
            "recO1",
            _order_fields(
                **{
                    "RESERVE TRANSPORT": "OUI",
                    "ASCENSEUR": "OUI",
                    "TARIF HT": "n/a",
                    "OPTION EQUIPIER DE MANUTENTION": "2",
                    "STATUT DE LA LIVRAISON (ENCART MYTRUCK)": ["EN COURS DE LIVRAISON"],
                }
            ),
        )

        result = await mapper.map(EntityKind.ORDER, record, resolver)

        assert result.ok
        payload = result.payload
        assert payload["transport_reserve"] is True
        assert payload["elevator"] is False  # marqueur attendu: "Oui"
        assert payload["tariff"] == 0.0
        assert payload["crew_option"] == 2
        assert payload["item_count"] == 0
        assert payload["order_status"] == "En attente"
        assert payload["delivery_status"] == "EN COURS"
        assert payload["remarks"] is None

    @pytest.mark.asyncio
    async def test_missing_optional_date_defaults_to_now(self, mapper, resolver):
        """Test: date de commande absente -> maintenant."""
        result = await mapper.map(EntityKind.ORDER, _record("recO1", _order_fields()), resolver)

        assert result.payload["order_date"] == NOW
        assert result.payload["delivery_date"] == datetime(2025, 6, 1, tzinfo=UTC)

    @pytest.mark.asyncio
    async def test_unparseable_required_date_rejected(self, mapper, resolver):
        """Test: date de livraison illisible -> data_invalid."""
        record = _record("recO1", _order_fields(**{"DATE DE LIVRAISON": "semaine prochaine"}))

        result = await mapper.map(EntityKind.ORDER, record, resolver)

        assert result.reason == RejectReason.DATA_INVALID
        assert "date illisible" in result.detail


# ============================================================================
# Relations
# ============================================================================


class TestRelations:
    """Tests de la résolution des relations."""

    @pytest.mark.asyncio
    async def test_relations_resolved(self, mapper, resolver):
        record = _record("recO1", _order_fields(**{"CHAUFFEUR(S)": ["recD1"]}))

        result = await mapper.map(EntityKind.ORDER, record, resolver)

        assert result.payload["store_id"] == "store-1"
        assert result.payload["client_id"] == "client-1"
        assert result.links == {"driver_ids": ["driver-1"]}

    @pytest.mark.asyncio
    async def test_unknown_client_rejected(self, mapper, resolver):
        """Test: client introuvable -> client_not_found."""
        record = _record("recO1", _order_fields(Clients=["recInconnu"]))

        result = await mapper.map(EntityKind.ORDER, record, resolver)

        assert result.reason == RejectReason.CLIENT_NOT_FOUND
        assert "recInconnu" in result.detail

    @pytest.mark.asyncio
    async def test_missing_store_reference_rejected(self, mapper, resolver):
        """Test: aucune référence magasin -> store_not_found."""
        fields = _order_fields()
        del fields["Magasins"]

        result = await mapper.map(EntityKind.ORDER, _record("recO1", fields), resolver)

        assert result.reason == RejectReason.STORE_NOT_FOUND

    @pytest.mark.asyncio
    async def test_unknown_driver_dropped(self, mapper, resolver):
        """Test: chauffeur introuvable -> affectation ignorée, commande acceptée."""
        record = _record("recO1", _order_fields(**{"CHAUFFEUR(S)": ["recD1", "recDX", "recD1"]}))

        result = await mapper.map(EntityKind.ORDER, record, resolver)

        assert result.ok
        assert result.links["driver_ids"] == ["driver-1"]
        assert result.dropped_references == ["recDX"]


# ============================================================================
# Clé métier
# ============================================================================


class TestBusinessKey:
    """Tests de l'unicité de la clé métier (numéro de commande)."""

    async def _persist_order(self, db_session, number: str) -> Order:
        store = Store(name="Magasin")
        client = Client(name="Client")
        db_session.add_all([store, client])
        await db_session.flush()
        order = Order(
            number=number,
            store_id=store.id,
            client_id=client.id,
            order_date=NOW,
            delivery_date=NOW,
        )
        db_session.add(order)
        await db_session.commit()
        return order

    @pytest.mark.asyncio
    async def test_free_key_kept(self, mapper, resolver):
        result = await mapper.map(EntityKind.ORDER, _record("recO1", _order_fields()), resolver)

        assert result.payload["number"] == "CMD001"
        assert result.renamed_from is None

    @pytest.mark.asyncio
    async def test_key_taken_in_database_renamed(self, db_session, mapper, resolver):
        """Test: numéro déjà en base -> suffixe _MIGRATED_<timestamp>."""
        await self._persist_order(db_session, "CMD001")

        result = await mapper.map(EntityKind.ORDER, _record("recO1", _order_fields()), resolver)

        expected = f"CMD001_MIGRATED_{int(NOW.timestamp() * 1000)}"
        assert result.payload["number"] == expected
        assert result.renamed_from == "CMD001"

    @pytest.mark.asyncio
    async def test_key_claimed_in_run_renamed(self, mapper, resolver):
        """Test: numéro réservé pendant le run -> renommé."""
        mapper.claim(EntityKind.ORDER, "CMD001")

        result = await mapper.map(EntityKind.ORDER, _record("recO2", _order_fields()), resolver)

        assert result.payload["number"].startswith("CMD001_MIGRATED_")

    @pytest.mark.asyncio
    async def test_suffix_collision_gets_counter(self, mapper, resolver):
        base = f"CMD001_MIGRATED_{int(NOW.timestamp() * 1000)}"
        mapper.claim(EntityKind.ORDER, "CMD001")
        mapper.claim(EntityKind.ORDER, base)

        result = await mapper.map(EntityKind.ORDER, _record("recO3", _order_fields()), resolver)

        assert result.payload["number"] == f"{base}_1"

    @pytest.mark.asyncio
    async def test_update_excludes_own_row(self, db_session, mapper, resolver):
        """Test: la ligne mise à jour ne bloque pas son propre numéro."""
        order = await self._persist_order(db_session, "CMD001")

        result = await mapper.map(
            EntityKind.ORDER,
            _record("recO1", _order_fields()),
            resolver,
            exclude_id=order.id,
            current_key="CMD001",
        )

        assert result.payload["number"] == "CMD001"
        assert result.renamed_from is None

    @pytest.mark.asyncio
    async def test_update_keeps_existing_suffix(self, db_session, mapper, resolver):
        """Test: une ligne déjà renommée conserve son suffixe à la mise à jour."""
        await self._persist_order(db_session, "CMD001")

        result = await mapper.map(
            EntityKind.ORDER,
            _record("recO2", _order_fields()),
            resolver,
            exclude_id="order-renamed",
            current_key="CMD001_MIGRATED_1700000000000",
        )

        assert result.payload["number"] == "CMD001_MIGRATED_1700000000000"


# ============================================================================
# Résolveur
# ============================================================================


class TestReferenceResolver:
    """Tests du résolveur de références."""

    @pytest.mark.asyncio
    async def test_unknown_reference_returns_none(self, resolver):
        assert resolver.resolve(EntityKind.STORE, "recInconnu") is None
        assert resolver.resolve(EntityKind.STORE, None) is None

    @pytest.mark.asyncio
    async def test_register_keeps_first_mapping(self, resolver):
        resolver.register(EntityKind.STORE, "recS1", "store-2")

        assert resolver.resolve(EntityKind.STORE, "recS1") == "store-1"
        assert (EntityKind.STORE, "recS1") in resolver

    @pytest.mark.asyncio
    async def test_build_detects_collisions(self, db_session):
        """Test: deux clients pour le même external_id -> le plus ancien est retenu."""
        older = Client(
            name="Dupont", external_id="recC1", created_at=datetime(2024, 1, 1, tzinfo=UTC)
        )
        newer = Client(
            name="Dupont (doublon)",
            external_id="recC1",
            created_at=datetime(2024, 3, 1, tzinfo=UTC),
        )
        db_session.add_all([newer, older])
        await db_session.commit()

        resolver = ReferenceResolver(db_session)
        mapping = await resolver.build(EntityKind.CLIENT)

        assert mapping == {"recC1": older.id}
        assert resolver.collisions(EntityKind.CLIENT) == {"recC1": [older.id, newer.id]}

    @pytest.mark.asyncio
    async def test_build_ignores_manual_rows(self, db_session):
        db_session.add(Store(name="Créé à la main"))
        await db_session.commit()

        resolver = ReferenceResolver(db_session)

        assert await resolver.build(EntityKind.STORE) == {}
