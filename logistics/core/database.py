"""
Accès à la base de données pour core-logistics-migration.

Base de données: PostgreSQL avec SQLAlchemy 2.0 et AsyncSession.

Il n'y a pas de moteur global: chaque run (migration, audit, purge RGPD)
construit explicitement un DataStore, l'utilise puis le libère.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import DateTime, event, select
from sqlalchemy.engine.interfaces import Dialect
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.types import TypeDecorator

from logistics.core.exceptions import DataStoreUnavailableError

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Base class pour tous les modèles SQLAlchemy."""

    pass


class UTCDateTime(TypeDecorator):
    """Datetime toujours timezone-aware, normalisé en UTC.

    PostgreSQL renvoie déjà des valeurs aware; SQLite les renvoie naïves,
    on les considère alors comme UTC.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        if value is None:
            return value
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        if value is None:
            return value
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)


def utcnow() -> datetime:
    """Horodatage courant en UTC."""
    return datetime.now(UTC)


def _enable_sqlite_foreign_keys(dbapi_connection: Any, connection_record: Any) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class DataStore:
    """
    Handle explicite vers la base relationnelle.

    Possède le moteur async et la fabrique de sessions. Les composants
    (résolveur, moteur de réconciliation, purge RGPD) reçoivent une session
    issue de ce handle dans leur constructeur.

    Example:
        ```python
        async with DataStore(settings.SQLALCHEMY_DATABASE_URI) as store:
            await store.ping()
            async with store.session() as session:
                resolver = ReferenceResolver(session)
                await resolver.build_all()
        ```
    """

    def __init__(self, url: str, echo: bool = False, **engine_kwargs: Any):
        """
        Initialise le handle (le moteur ne se connecte qu'au premier usage).

        Args:
            url: URL SQLAlchemy async (postgresql+asyncpg://, sqlite+aiosqlite://)
            echo: Active le log SQL
            **engine_kwargs: Options supplémentaires passées à create_async_engine
        """
        self.url = url
        self.engine: AsyncEngine = create_async_engine(url, echo=echo, **engine_kwargs)
        if self.engine.dialect.name == "sqlite":
            event.listen(self.engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
        self._session_maker = async_sessionmaker(
            self.engine, class_=AsyncSession, expire_on_commit=False
        )

    async def __aenter__(self) -> "DataStore":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.dispose()

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Ouvre une session de base de données pour la durée du bloc."""
        async with self._session_maker() as session:
            yield session

    async def ping(self) -> None:
        """
        Vérifie la connectivité.

        Raises:
            DataStoreUnavailableError: Si la base ne répond pas
        """
        try:
            async with self.engine.connect() as conn:
                await conn.execute(select(1))
        except (SQLAlchemyError, OSError) as e:
            logger.critical(f"Base de données injoignable: {e}")
            raise DataStoreUnavailableError(f"Base de données injoignable: {e}") from e

    async def create_all(self) -> None:
        """Crée toutes les tables (tests et environnements locaux)."""
        # Importer les modèles pour enregistrer les tables dans Base.metadata
        import logistics.models  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def dispose(self) -> None:
        """Libère les connexions du moteur."""
        await self.engine.dispose()
