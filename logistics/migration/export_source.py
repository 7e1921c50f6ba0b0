"""Lecture des fichiers d'export (un tableau JSON par table source)."""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from logistics.core.config import settings
from logistics.core.exceptions import ExportFileError
from logistics.migration.entity_kinds import EntityKind, get_spec
from logistics.schemas.external import ExternalRecord

logger = logging.getLogger(__name__)


@dataclass
class ExportBatch:
    """Enregistrements valides d'un export et éléments rejetés à la lecture."""

    kind: EntityKind
    records: list[ExternalRecord] = field(default_factory=list)
    malformed: list[Any] = field(default_factory=list)
    filtered: int = 0

    @property
    def ids(self) -> list[str]:
        return [record.id for record in self.records]


class ExportSource:
    """
    Source d'enregistrements basée sur les fichiers d'export.

    Args:
        export_dir: Répertoire des fichiers (défaut: settings.EXPORT_DIR)
    """

    def __init__(self, export_dir: str | Path | None = None):
        self.export_dir = Path(export_dir or settings.EXPORT_DIR)

    def path_for(self, kind: EntityKind) -> Path:
        return self.export_dir / get_spec(kind).export_file

    def load(self, kind: EntityKind) -> ExportBatch:
        """
        Charge l'export d'un type d'entité.

        Les éléments qui ne sont pas des enregistrements valides (sans id, champs
        non objet) sont conservés dans `malformed`. Les enregistrements exclus
        par le filtre du type (ex: personnel non chauffeur) sont seulement comptés.

        Raises:
            ExportFileError: Si le fichier est absent, illisible ou n'est pas un tableau JSON
        """
        spec = get_spec(kind)
        path = self.path_for(kind)
        if not path.exists():
            raise ExportFileError(spec.source_table, f"fichier introuvable: {path}")

        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            raise ExportFileError(spec.source_table, f"fichier illisible {path}: {e}") from e

        if not isinstance(data, list):
            raise ExportFileError(spec.source_table, f"{path} n'est pas un tableau JSON")

        batch = ExportBatch(kind=kind)
        for item in data:
            try:
                record = ExternalRecord.model_validate(item)
            except ValidationError:
                batch.malformed.append(item)
                continue
            if not spec.accepts(record):
                batch.filtered += 1
                continue
            batch.records.append(record)

        logger.info(
            f"{len(batch.records)} enregistrements {kind.value} chargés depuis {path}",
            extra={
                "entity": kind.value,
                "count": len(batch.records),
                "malformed": len(batch.malformed),
                "filtered": batch.filtered,
            },
        )
        return batch
