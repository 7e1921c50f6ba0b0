import json
from typing import Literal, TypeAlias

from pydantic import computed_field, field_validator
from pydantic_settings import BaseSettings

# Type personnalisé pour les listes configurables depuis l'environnement
ConfigurableList: TypeAlias = str | list[str]


def parse_list_from_env(value: ConfigurableList, field_name: str = "field") -> list[str]:
    """
    Fonction utilitaire pour parser une liste depuis une variable d'environnement.

    Supporte les formats suivants:
    - Liste Python directe: ['val1', 'val2']
    - Format JSON: '["val1", "val2"]'
    - Format virgules: "val1,val2,val3"
    - Chaîne vide: "" → []

    Args:
        value: La valeur à parser (chaîne ou liste)
        field_name: Nom du champ pour les messages d'erreur

    Returns:
        Liste de chaînes parsée

    Raises:
        ValueError: Si le format n'est pas valide
    """
    if isinstance(value, list):
        return value
    elif isinstance(value, str):
        value = value.strip()
        # Si c'est du JSON (commence par [ et finit par ])
        if value.startswith("[") and value.endswith("]"):
            try:
                return json.loads(value)
            except json.JSONDecodeError:
                raise ValueError(f"Format JSON invalide pour {field_name}: {value}")
        # Sinon, traiter comme une chaîne séparée par des virgules
        elif value:
            return [item.strip() for item in value.split(",") if item.strip()]
        else:
            return []
    raise ValueError(f"Valeur invalide pour {field_name}: {value}")


class Settings(BaseSettings):
    # Importation de la version depuis __init__.py
    try:
        from logistics import __version__
    except ImportError:
        __version__ = "0.1.0"  # Version par défaut si non trouvée

    PROJECT_NAME: str = "core-logistics-migration"
    PROJECT_SLUG: str = "logistics"
    VERSION: str = __version__

    # Environnement
    ENVIRONMENT: Literal["development", "staging", "production", "test"] = "development"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Base de données
    # PostgreSQL (asyncpg) en production, SQLite (aiosqlite) pour les tests
    SQLALCHEMY_DATABASE_URI: str

    # Source externe (export tabulaire type Airtable)
    SOURCE_API_URL: str = "https://api.airtable.com/v0"
    SOURCE_BASE_ID: str | None = None
    SOURCE_API_TOKEN: str | None = None
    SOURCE_TIMEOUT_SECONDS: float = 30.0  # Timeout global par table
    SOURCE_PAGE_SIZE: int = 100
    SOURCE_MAX_RECORDS: int = 1000
    SOURCE_PAGE_PAUSE_SECONDS: float = 0.2  # Respect du rate limit de la source
    SOURCE_RETRY_ATTEMPTS: int = 3
    SOURCE_RETRY_MIN_WAIT_SECONDS: float = 1.0
    SOURCE_RETRY_MAX_WAIT_SECONDS: float = 10.0

    # Migration
    EXPORT_DIR: str = "data/airtable-export"
    # Définir dans .env, ex: MIGRATION_ENTITIES='stores,clients'
    MIGRATION_ENTITIES: ConfigurableList = ["stores", "clients", "drivers", "orders"]
    MIGRATION_BATCH_SIZE: int = 10
    MIGRATION_BATCH_PAUSE_SECONDS: float = 0.1
    MIGRATION_PROBLEM_SAMPLE_SIZE: int = 20

    @field_validator("MIGRATION_ENTITIES", mode="before")
    @classmethod
    def assemble_migration_entities(cls, v: ConfigurableList) -> list[str]:
        """Parse MIGRATION_ENTITIES depuis une variable d'environnement."""
        return parse_list_from_env(v, "MIGRATION_ENTITIES")

    # RGPD - Conservation des données clients
    RETENTION_YEARS: int = 3  # Durée de conservation après la dernière activité
    RETENTION_REPAIR_YEARS: int = 2  # Horizon appliqué par la correction des dates
    RETENTION_SWEEP_HOUR: int = 2
    RETENTION_SWEEP_MINUTE: int = 0
    RETENTION_SWEEP_TIMEZONE: str = "UTC"

    # OpenTelemetry
    OTEL_SERVICE_NAME: str = "core-logistics-migration"

    @computed_field
    @property
    def source_configured(self) -> bool:
        """Indique si la source externe est joignable (token + base)."""
        return bool(self.SOURCE_API_TOKEN and self.SOURCE_BASE_ID)

    class Config:
        case_sensitive = True
        env_file = ".env"
        extra = "ignore"


# Instance unique des paramètres chargée depuis .env
settings = Settings()
