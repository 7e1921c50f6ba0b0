"""Schemas Pydantic pour les exports, la migration, l'audit et la conservation RGPD."""

from logistics.schemas.audit import (
    DuplicateExternalId,
    EntityAudit,
    GlobalAudit,
    OrphanedRecord,
)
from logistics.schemas.external import ExternalRecord
from logistics.schemas.migration import (
    EntityMigrationStats,
    ExtractionResult,
    MigrationRunReport,
    ProblemRecord,
    RejectReason,
)
from logistics.schemas.retention import MaskedClient, RetentionRepairResult, SweepResult

__all__ = [
    "DuplicateExternalId",
    "EntityAudit",
    "EntityMigrationStats",
    "ExternalRecord",
    "ExtractionResult",
    "GlobalAudit",
    "MaskedClient",
    "MigrationRunReport",
    "OrphanedRecord",
    "ProblemRecord",
    "RejectReason",
    "RetentionRepairResult",
    "SweepResult",
]
