"""Extraction des tables de la source externe vers les fichiers d'export.

Chaque table est lue page par page (pageSize + curseur offset) avec une
pause entre les pages pour respecter le rate limit de la source. Chaque page
bénéficie d'un retry borné avec backoff exponentiel; la table entière est
bornée par un timeout. Une table en échec n'empêche pas les suivantes.
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Any

import httpx
from opentelemetry import trace

from logistics.core.config import settings
from logistics.core.exceptions import ExternalSourceUnavailableError, SourceConfigurationError
from logistics.core.retry import retry_async_operation
from logistics.migration.entity_kinds import DEPENDENCY_ORDER, export_file_name, get_spec
from logistics.schemas.external import ExternalRecord
from logistics.schemas.migration import ExtractionResult

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})


class RetryableStatusError(Exception):
    """Réponse en erreur transitoire (rate limit, erreur serveur)."""

    def __init__(self, status_code: int, table: str):
        self.status_code = status_code
        super().__init__(f"HTTP {status_code} pour '{table}'")


class InvalidPageError(Exception):
    """Page reçue illisible (corps non JSON ou qui n'est pas un objet)."""

    def __init__(self, table: str, reason: str):
        self.table = table
        super().__init__(f"Page illisible pour '{table}': {reason}")


class ExportExtractor:
    """
    Client asynchrone de la source externe.

    Example:
        ```python
        async with ExportExtractor() as extractor:
            results = await extractor.extract()
        ```

    Raises:
        SourceConfigurationError: Si le token ou l'identifiant de base manque
    """

    def __init__(
        self,
        export_dir: str | Path | None = None,
        base_url: str | None = None,
        base_id: str | None = None,
        token: str | None = None,
        timeout: float | None = None,
        page_size: int | None = None,
        max_records: int | None = None,
        page_pause_seconds: float | None = None,
        retry_attempts: int | None = None,
        retry_min_wait_seconds: float | None = None,
        retry_max_wait_seconds: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_id = base_id or settings.SOURCE_BASE_ID
        self.token = token or settings.SOURCE_API_TOKEN
        if not (self.base_id and self.token):
            raise SourceConfigurationError()

        self.export_dir = Path(export_dir or settings.EXPORT_DIR)
        self.base_url = (base_url or settings.SOURCE_API_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.SOURCE_TIMEOUT_SECONDS
        self.page_size = page_size or settings.SOURCE_PAGE_SIZE
        self.max_records = max_records or settings.SOURCE_MAX_RECORDS
        self.page_pause_seconds = (
            settings.SOURCE_PAGE_PAUSE_SECONDS if page_pause_seconds is None else page_pause_seconds
        )
        self.retry_attempts = retry_attempts or settings.SOURCE_RETRY_ATTEMPTS
        self.retry_min_wait_seconds = (
            settings.SOURCE_RETRY_MIN_WAIT_SECONDS
            if retry_min_wait_seconds is None
            else retry_min_wait_seconds
        )
        self.retry_max_wait_seconds = (
            settings.SOURCE_RETRY_MAX_WAIT_SECONDS
            if retry_max_wait_seconds is None
            else retry_max_wait_seconds
        )
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "ExportExtractor":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the async HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                headers={
                    "Authorization": f"Bearer {self.token}",
                    "Accept": "application/json",
                },
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()

    async def _fetch_page(self, table: str, offset: str | None) -> dict[str, Any]:
        client = await self._get_client()
        params: dict[str, Any] = {"pageSize": self.page_size}
        if offset:
            params["offset"] = offset

        response = await client.get(f"/{self.base_id}/{table}", params=params)
        if response.status_code in RETRYABLE_STATUS_CODES:
            raise RetryableStatusError(response.status_code, table)
        response.raise_for_status()

        try:
            page = response.json()
        except ValueError as e:
            raise InvalidPageError(table, "corps non JSON") from e
        if not isinstance(page, dict):
            raise InvalidPageError(table, f"objet attendu, reçu {type(page).__name__}")
        if not isinstance(page.get("records", []), list):
            raise InvalidPageError(table, "'records' n'est pas une liste")
        return page

    async def _fetch_all(self, table: str) -> list[dict[str, Any]]:
        records: list[dict[str, Any]] = []
        offset: str | None = None

        while True:
            page = await retry_async_operation(
                self._fetch_page,
                table,
                offset,
                max_attempts=self.retry_attempts,
                min_wait_seconds=self.retry_min_wait_seconds,
                max_wait_seconds=self.retry_max_wait_seconds,
                exceptions=(httpx.TransportError, RetryableStatusError),
            )
            records.extend(page.get("records", []))
            logger.debug(f"{table}: {len(records)} enregistrements récupérés")

            if len(records) >= self.max_records:
                logger.warning(f"{table}: limite de {self.max_records} enregistrements atteinte")
                return records[: self.max_records]

            offset = page.get("offset")
            if not offset:
                return records
            if self.page_pause_seconds > 0:
                await asyncio.sleep(self.page_pause_seconds)

    async def fetch_table(self, table: str) -> list[ExternalRecord]:
        """
        Lit tous les enregistrements d'une table.

        Raises:
            ExternalSourceUnavailableError: Timeout, erreur de transport ou réponse en erreur
        """
        try:
            raw_records = await asyncio.wait_for(self._fetch_all(table), timeout=self.timeout)
        except TimeoutError as e:
            raise ExternalSourceUnavailableError(table, f"timeout après {self.timeout}s") from e
        except (httpx.HTTPError, RetryableStatusError, InvalidPageError) as e:
            raise ExternalSourceUnavailableError(table, str(e)) from e

        records = []
        for raw in raw_records:
            try:
                records.append(ExternalRecord.model_validate(raw))
            except ValueError:
                logger.warning(f"{table}: enregistrement mal formé ignoré ({raw!r:.80})")
        return records

    async def extract_table(self, table: str) -> ExtractionResult:
        """Extrait une table et écrit son fichier d'export (n'échoue jamais)."""
        with tracer.start_as_current_span("extract_table") as span:
            span.set_attribute("source.table", table)
            try:
                records = await self.fetch_table(table)
            except ExternalSourceUnavailableError as e:
                span.record_exception(e)
                logger.error(f"Extraction {table} en échec: {e.reason}")
                return ExtractionResult(table=table, success=False, error=e.reason)

            self.export_dir.mkdir(parents=True, exist_ok=True)
            path = self.export_dir / export_file_name(table)
            path.write_text(
                json.dumps([record.to_export() for record in records], ensure_ascii=False, indent=2),
                encoding="utf-8",
            )
            span.set_attribute("source.count", len(records))

        logger.info(f"{table}: {len(records)} enregistrements exportés vers {path}")
        return ExtractionResult(table=table, success=True, count=len(records), file=str(path))

    async def extract(self, tables: list[str] | None = None) -> list[ExtractionResult]:
        """
        Extrait les tables demandées (défaut: toutes les tables des entités migrées).

        Returns:
            Un résultat par table, dans l'ordre demandé
        """
        if tables is None:
            tables = [get_spec(kind).source_table for kind in DEPENDENCY_ORDER]

        results = []
        for table in tables:
            results.append(await self.extract_table(table))

        succeeded = sum(1 for result in results if result.success)
        logger.info(f"Extraction terminée: {succeeded}/{len(results)} tables exportées")
        return results
