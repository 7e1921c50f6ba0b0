"""Tests unitaires du rendu console des rapports."""

from logistics.migration.report import render_audit_report, render_run_summary
from logistics.schemas.audit import DuplicateExternalId, EntityAudit, GlobalAudit, OrphanedRecord
from logistics.schemas.migration import EntityMigrationStats, MigrationRunReport, RejectReason


def _audit() -> GlobalAudit:
    return GlobalAudit(
        entities=[
            EntityAudit(
                entity="stores", label="Magasins", exported_count=10, internal_count=11, migrated_count=10
            ),
            EntityAudit(
                entity="orders",
                label="Commandes",
                exported_count=4,
                internal_count=3,
                migrated_count=3,
                missing_count=1,
                orphaned_count=1,
                issues=["1 enregistrements mal formés dans l'export"],
            ),
        ],
        orphaned=[
            OrphanedRecord(
                entity="orders",
                external_id="recO4",
                business_key="CMD004",
                unresolved={"client": "recC9"},
            )
        ],
        duplicates=[
            DuplicateExternalId(
                entity="clients", external_id="recC1", internal_ids=["a", "b"], kept_id="a"
            )
        ],
    )


class TestEntityAudit:
    """Tests des taux calculés."""

    def test_migration_rate(self):
        audit = EntityAudit(entity="orders", exported_count=3, migrated_count=2)
        assert audit.migration_rate == 66.7

    def test_migration_rate_nothing_exported(self):
        assert EntityAudit(entity="orders").migration_rate == 0.0

    def test_global_totals(self):
        audit = _audit()
        assert audit.total_exported == 14
        assert audit.total_migrated == 13
        assert audit.total_missing == 1
        assert audit.migration_rate == 92.9
        assert audit.get("orders").orphaned_count == 1
        assert audit.get("drivers") is None


class TestRenderAuditReport:
    """Tests du tableau de réconciliation."""

    def test_table_rows(self):
        text = render_audit_report(_audit())

        assert "RAPPORT DE RÉCONCILIATION" in text
        header = next(line for line in text.splitlines() if line.startswith("Entité"))
        assert "Migrés" in header and "Taux (%)" in header
        stores = next(line for line in text.splitlines() if line.startswith("Magasins"))
        assert [cell.strip() for cell in stores.split("|")] == [
            "Magasins", "10", "11", "10", "0", "0", "0", "100.0"
        ]
        total = next(line for line in text.splitlines() if line.startswith("TOTAL"))
        assert total.rstrip().endswith("92.9")

    def test_anomalies_orphans_and_duplicates_listed(self):
        text = render_audit_report(_audit())

        assert "Commandes: 1 enregistrements mal formés" in text
        assert "recO4 (CMD004): client=recC9" in text
        assert "clients recC1: 2 lignes, retenue a" in text

    def test_max_items_limits_orphans(self):
        audit = GlobalAudit(
            orphaned=[
                OrphanedRecord(entity="orders", external_id=f"recO{i}", unresolved={"store": None})
                for i in range(5)
            ]
        )

        text = render_audit_report(audit, max_items=2)

        assert "recO1 (sans numéro): store=absent" in text
        assert "recO2" not in text
        assert "... et 3 autres" in text


class TestRenderRunSummary:
    """Tests du résumé de migration."""

    def _report(self) -> MigrationRunReport:
        orders = EntityMigrationStats(
            entity="orders", label="Commandes", processed=3, success=1, skipped=2
        )
        orders.tally(RejectReason.CLIENT_NOT_FOUND, "recO2", "client introuvable (recC9)")
        orders.tally(RejectReason.DATA_INVALID, "recO3", "champ requis manquant: NUMERO DE COMMANDE")
        clients = EntityMigrationStats(
            entity="clients", label="Clients", failed=True, error="fichier introuvable"
        )
        return MigrationRunReport(entities=[clients, orders], audit=_audit())

    def test_summary_counts_and_failure(self):
        text = render_run_summary(self._report())

        assert "RÉSUMÉ DE MIGRATION" in text
        assert "Clients: ÉCHEC - fichier introuvable" in text
        assert "Ignorés:     2 (data_invalid: 1, client_not_found: 1)" in text
        assert "Étapes en échec: Clients" in text
        assert "RAPPORT DE RÉCONCILIATION" in text

    def test_problems_listed_on_request(self):
        report = self._report()

        assert "recO2" not in render_run_summary(report, problems=0)
        text = render_run_summary(report, problems=5)
        assert "Problèmes [client_not_found] (1):" in text
        assert "* recO2: client introuvable (recC9)" in text

    def test_dry_run_title(self):
        assert "(DRY-RUN)" in render_run_summary(MigrationRunReport(dry_run=True))

    def test_has_failures(self):
        assert self._report().has_failures
        ok = MigrationRunReport(entities=[EntityMigrationStats(entity="stores", success=3)])
        assert not ok.has_failures
        errored = MigrationRunReport(entities=[EntityMigrationStats(entity="stores", errors=1)])
        assert errored.has_failures
