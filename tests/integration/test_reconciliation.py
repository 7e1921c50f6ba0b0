"""Tests d'intégration de l'audit de réconciliation."""

from datetime import UTC, datetime

import pytest
from sqlalchemy import func, select

from logistics.migration.entity_kinds import EntityKind
from logistics.migration.export_source import ExportSource
from logistics.migration.reconciliation import ReconciliationEngine
from logistics.models import Client, Store


async def _add_clients(db_session, *clients: Client) -> None:
    db_session.add_all(clients)
    await db_session.commit()


class TestReconciliationEngine:
    """Tests du classement migré / manquant / doublon."""

    @pytest.mark.asyncio
    async def test_duplicate_external_ids_reported(self, db_session, export_dir, write_export, records):
        """Test: deux lignes pour le même identifiant source -> doublon signalé."""
        write_export(EntityKind.CLIENT, [records.client("recC1"), records.client("recC2")])
        older = Client(name="Dupont", external_id="recC1", created_at=datetime(2024, 1, 1, tzinfo=UTC))
        newer = Client(
            name="Dupont bis", external_id="recC1", created_at=datetime(2024, 2, 1, tzinfo=UTC)
        )
        await _add_clients(db_session, older, newer)

        report = await ReconciliationEngine(db_session, ExportSource(export_dir)).audit_all(
            [EntityKind.CLIENT]
        )

        audit = report.get("clients")
        assert audit.exported_count == 2
        assert audit.internal_count == 2
        assert audit.migrated_count == 1
        assert audit.missing_count == 1
        assert audit.duplicate_count == 1
        assert any("portés par plusieurs lignes" in issue for issue in audit.issues)
        assert report.missing == {"clients": ["recC2"]}
        assert len(report.duplicates) == 1
        duplicate = report.duplicates[0]
        assert duplicate.external_id == "recC1"
        assert duplicate.kept_id == older.id
        assert duplicate.internal_ids == [older.id, newer.id]

    @pytest.mark.asyncio
    async def test_manual_and_unlinked_rows_counted(self, db_session, export_dir, write_export, records):
        write_export(EntityKind.STORE, [records.store("recS1")])
        db_session.add_all(
            [
                Store(name="Migré", external_id="recS1"),
                Store(name="Manuel"),
                Store(name="Supprimé de la source", external_id="recS9"),
            ]
        )
        await db_session.commit()

        audit = await ReconciliationEngine(db_session, ExportSource(export_dir)).audit(EntityKind.STORE)

        assert audit.internal_count == 3
        assert audit.manual_count == 1
        assert audit.unlinked_count == 1
        assert audit.migrated_count == 1
        assert audit.missing_count == 0

    @pytest.mark.asyncio
    async def test_export_duplicates_and_malformed_reported(
        self, db_session, export_dir, write_export, records
    ):
        write_export(
            EntityKind.STORE, [records.store("recS1"), records.store("recS1"), {"fields": {}}]
        )

        audit = await ReconciliationEngine(db_session, ExportSource(export_dir)).audit(EntityKind.STORE)

        assert audit.exported_count == 2
        assert audit.migrated_count + audit.missing_count == audit.exported_count
        assert any("en double dans l'export" in issue for issue in audit.issues)
        assert any("mal formés" in issue for issue in audit.issues)

    @pytest.mark.asyncio
    async def test_audit_is_read_only(self, db_session, export_dir, write_export, records):
        """Test: l'audit n'écrit rien, même sur une base partiellement migrée."""
        write_export(EntityKind.STORE, [records.store("recS1"), records.store("recS2")])
        write_export(EntityKind.CLIENT, [records.client("recC1")])
        write_export(EntityKind.ORDER, [records.order("recO1", "CMD001", "recS1", "recC1")])
        db_session.add(Store(name="Migré", external_id="recS1"))
        await db_session.commit()

        engine = ReconciliationEngine(db_session, ExportSource(export_dir))
        report = await engine.audit_all()

        assert not db_session.new and not db_session.dirty and not db_session.deleted
        assert await db_session.scalar(select(func.count()).select_from(Store)) == 1
        assert [audit.entity for audit in report.entities] == ["stores", "clients", "drivers", "orders"]
        assert any("Export illisible" in issue for issue in report.get("drivers").issues)
        assert report.orphaned[0].unresolved == {"client": "recC1"}

    @pytest.mark.asyncio
    async def test_integrity_anomaly_reported_not_clamped(
        self, db_session, export_dir, write_export, records
    ):
        """Test: plus de lignes liées que d'enregistrements exportés -> anomalie signalée."""
        write_export(EntityKind.CLIENT, [records.client("recC1")])
        await _add_clients(
            db_session,
            Client(name="Dupont", external_id="recC1"),
            Client(name="Dupont bis", external_id="recC1"),
        )

        audit = await ReconciliationEngine(db_session, ExportSource(export_dir)).audit(EntityKind.CLIENT)

        assert audit.migrated_count == 1
        assert audit.missing_count == 0
        assert any("Anomalie d'intégrité: 2 lignes liées" in issue for issue in audit.issues)
