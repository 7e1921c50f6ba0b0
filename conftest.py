"""
Configuration pytest.

Les tests s'exécutent sur une base SQLite en mémoire (aiosqlite, StaticPool):
aucun service externe n'est requis.

Usage:
    pip install -e ".[test]"
    pytest
"""

import json
import os
from collections.abc import AsyncGenerator, Callable
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import pytest
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.pool import StaticPool

# Variables d'environnement pour les tests
# Doivent être définies avant l'import de logistics.core.config
TEST_ENV = {
    "SQLALCHEMY_DATABASE_URI": "sqlite+aiosqlite:///:memory:",
    "ENVIRONMENT": "test",
    "DEBUG": "false",
    "LOG_LEVEL": "DEBUG",
    "MIGRATION_BATCH_PAUSE_SECONDS": "0",
    "SOURCE_PAGE_PAUSE_SECONDS": "0",
    "SOURCE_RETRY_MIN_WAIT_SECONDS": "0",
    "SOURCE_RETRY_MAX_WAIT_SECONDS": "0",
    "OTEL_SERVICE_NAME": "core-logistics-migration-test",
}

for key, value in TEST_ENV.items():
    os.environ[key] = value

from logistics.core.database import DataStore  # noqa: E402
from logistics.migration.entity_kinds import EntityKind, get_spec  # noqa: E402

# Horloge fixe des tests
FIXED_NOW = datetime(2025, 6, 15, 12, 0, tzinfo=UTC)


# ============================================================================
# Fixtures base de données
# ============================================================================


@pytest.fixture
async def data_store() -> AsyncGenerator[DataStore, None]:
    """
    DataStore sur une base SQLite en mémoire avec toutes les tables.

    StaticPool: toutes les sessions partagent la même connexion, donc la
    même base en mémoire.
    """
    store = DataStore(
        TEST_ENV["SQLALCHEMY_DATABASE_URI"],
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await store.create_all()
    yield store
    await store.dispose()


@pytest.fixture
async def db_session(data_store: DataStore) -> AsyncGenerator[AsyncSession, None]:
    """Session de base de données pour chaque test."""
    async with data_store.session() as session:
        yield session
        await session.rollback()


@pytest.fixture
def fixed_clock() -> Callable[[], datetime]:
    """Horloge renvoyant toujours FIXED_NOW."""
    return lambda: FIXED_NOW


# ============================================================================
# Fixtures export
# ============================================================================


@pytest.fixture
def export_dir(tmp_path: Path) -> Path:
    """Répertoire des fichiers d'export du test."""
    path = tmp_path / "airtable-export"
    path.mkdir()
    return path


@pytest.fixture
def write_export(export_dir: Path) -> Callable[[EntityKind, list[Any]], Path]:
    """Écrit le fichier d'export d'un type d'entité."""

    def _write(kind: EntityKind, records: list[Any]) -> Path:
        path = export_dir / get_spec(kind).export_file
        path.write_text(json.dumps(records, ensure_ascii=False), encoding="utf-8")
        return path

    return _write


class RecordFactory:
    """Fabrique d'enregistrements d'export au format de la source."""

    created_time = "2025-01-15T10:00:00.000Z"

    def record(self, record_id: str, fields: dict[str, Any], created_time: str | None = None) -> dict:
        return {
            "id": record_id,
            "fields": fields,
            "createdTime": created_time or self.created_time,
        }

    def store(self, record_id: str, name: str | None = None, **extra: Any) -> dict:
        fields = {"NOM DU MAGASIN": name or f"Magasin {record_id}", "STATUT": "Actif"}
        fields.update(extra)
        return self.record(record_id, fields)

    def client(
        self, record_id: str, name: str | None = None, created_time: str | None = None, **extra: Any
    ) -> dict:
        fields = {
            "NOM": name or f"Client {record_id}",
            "PRENOM": "Marie",
            "TELEPHONE": "0612345678",
            "ADRESSE": "12 rue de la Paix, 75002 Paris",
        }
        fields.update(extra)
        return self.record(record_id, fields, created_time)

    def driver(self, record_id: str, name: str | None = None, role: Any = "Chauffeur") -> dict:
        return self.record(
            record_id,
            {"NOM": name or f"Chauffeur {record_id}", "PRENOM": "Paul", "RÔLE": role},
        )

    def order(
        self,
        record_id: str,
        number: str,
        store: str | None,
        client: str | None,
        drivers: list[str] | None = None,
        delivery_date: str = "2025-06-01",
        **extra: Any,
    ) -> dict:
        fields: dict[str, Any] = {
            "NUMERO DE COMMANDE": number,
            "DATE DE LIVRAISON": delivery_date,
            "DATE DE COMMANDE": "2025-05-20T09:30:00.000Z",
            "CRENEAU DE LIVRAISON": "07h-09h",
            "STATUT DE LA COMMANDE": "Confirmée",
            "TARIF HT": 120.5,
        }
        if store is not None:
            fields["Magasins"] = [store]
        if client is not None:
            fields["Clients"] = [client]
        if drivers is not None:
            fields["CHAUFFEUR(S)"] = drivers
        fields.update(extra)
        return self.record(record_id, fields)


@pytest.fixture
def records() -> RecordFactory:
    """Fabrique d'enregistrements d'export."""
    return RecordFactory()
