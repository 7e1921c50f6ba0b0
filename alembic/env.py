import asyncio
from logging.config import fileConfig

from sqlalchemy import pool
from sqlalchemy.engine import Connection

from alembic import context
from logistics.core.config import settings
from logistics.core.database import Base, DataStore

# Importer tous les modèles pour qu'Alembic puisse les détecter
from logistics.models import *  # noqa: F403

config = context.config

# Interpréter le fichier de configuration pour Python logging.
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# Métadonnées des modèles pour le support 'autogenerate'
target_metadata = Base.metadata


def get_url() -> str:
    return settings.SQLALCHEMY_DATABASE_URI


def run_migrations_offline() -> None:
    """Exécute les migrations en mode 'offline'.

    Le contexte est configuré avec une URL seulement: les appels à
    context.execute() émettent la DDL vers la sortie script.
    """
    context.configure(
        url=get_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        compare_type=True,
    )

    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection: Connection) -> None:
    context.configure(
        connection=connection,
        target_metadata=target_metadata,
        compare_type=True,
        render_as_batch=connection.dialect.name == "sqlite",
    )

    with context.begin_transaction():
        context.run_migrations()


async def run_async_migrations() -> None:
    """
    Exécute les migrations en mode 'online' via le DataStore du projet.

    La connectivité est vérifiée d'abord (DataStoreUnavailableError explicite)
    et, sur SQLite, les clés étrangères sont activées comme à l'exécution.
    """
    async with DataStore(get_url(), poolclass=pool.NullPool) as store:
        await store.ping()
        async with store.engine.connect() as connection:
            await connection.run_sync(do_run_migrations)


def run_migrations_online() -> None:
    asyncio.run(run_async_migrations())


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
