"""Rendu console des résultats de migration et de l'audit."""

from logistics.schemas.audit import GlobalAudit
from logistics.schemas.migration import EntityMigrationStats, MigrationRunReport, RejectReason

RULE = "=" * 86

COLUMNS = (
    ("Entité", 12),
    ("Export", 8),
    ("Base", 8),
    ("Migrés", 8),
    ("Manquants", 9),
    ("Orphelins", 9),
    ("Doublons", 8),
    ("Taux (%)", 8),
)

# Catégories affichées comme "ignorés" dans le détail
SKIP_REASONS = (
    RejectReason.DATA_INVALID,
    RejectReason.STORE_NOT_FOUND,
    RejectReason.CLIENT_NOT_FOUND,
    RejectReason.DRIVER_NOT_FOUND,
)


def _row(values: list[str]) -> str:
    cells = []
    for (name, width), value in zip(COLUMNS, values, strict=True):
        cells.append(value.ljust(width) if name == "Entité" else value.rjust(width))
    return " | ".join(cells)


def _separator() -> str:
    return "-+-".join("-" * width for _, width in COLUMNS)


def render_audit_report(audit: GlobalAudit, max_items: int = 20) -> str:
    """
    Tableau de réconciliation par entité, suivi des anomalies.

    Args:
        audit: Audit global
        max_items: Nombre maximum d'orphelins et de doublons listés
    """
    lines = [RULE, "        RAPPORT DE RÉCONCILIATION", RULE, ""]
    lines.append(_row([name for name, _ in COLUMNS]))
    lines.append(_separator())
    for entity in audit.entities:
        lines.append(
            _row(
                [
                    entity.label or entity.entity,
                    str(entity.exported_count),
                    str(entity.internal_count),
                    str(entity.migrated_count),
                    str(entity.missing_count),
                    str(entity.orphaned_count),
                    str(entity.duplicate_count),
                    f"{entity.migration_rate:.1f}",
                ]
            )
        )
    lines.append(_separator())
    lines.append(
        _row(
            [
                "TOTAL",
                str(audit.total_exported),
                "-",
                str(audit.total_migrated),
                str(audit.total_missing),
                str(len(audit.orphaned)),
                str(len(audit.duplicates)),
                f"{audit.migration_rate:.1f}",
            ]
        )
    )

    issues = [(entity.label or entity.entity, issue) for entity in audit.entities for issue in entity.issues]
    if issues:
        lines += ["", "Anomalies:"]
        lines += [f"  - {label}: {issue}" for label, issue in issues]

    if audit.orphaned:
        lines += ["", f"Enregistrements orphelins ({len(audit.orphaned)}):"]
        for orphan in audit.orphaned[:max_items]:
            references = ", ".join(
                f"{relation}={reference or 'absent'}" for relation, reference in orphan.unresolved.items()
            )
            label = orphan.business_key or "sans numéro"
            lines.append(f"  - {orphan.external_id} ({label}): {references}")
        if len(audit.orphaned) > max_items:
            lines.append(f"  ... et {len(audit.orphaned) - max_items} autres")

    if audit.duplicates:
        lines += ["", f"Identifiants source en double ({len(audit.duplicates)}):"]
        for duplicate in audit.duplicates[:max_items]:
            lines.append(
                f"  - {duplicate.entity} {duplicate.external_id}: "
                f"{len(duplicate.internal_ids)} lignes, retenue {duplicate.kept_id}"
            )

    lines += ["", RULE]
    return "\n".join(lines)


def _render_entity(stats: EntityMigrationStats, problems: int) -> list[str]:
    title = stats.label or stats.entity
    if stats.failed:
        return [f"{title}: ÉCHEC - {stats.error}"]

    skipped_detail = ", ".join(
        f"{reason.value}: {stats.details[reason.value]}"
        for reason in SKIP_REASONS
        if stats.details.get(reason.value)
    )
    lines = [
        f"{title}:",
        f"  - Traités:     {stats.processed}",
        f"  - Créés:       {stats.success}",
        f"  - Mis à jour:  {stats.updated}",
        f"  - Doublons:    {stats.duplicates}",
        f"  - Renommés:    {stats.renamed}",
        f"  - Ignorés:     {stats.skipped}" + (f" ({skipped_detail})" if skipped_detail else ""),
        f"  - Erreurs:     {stats.errors}",
    ]

    if problems > 0:
        for category, samples in stats.problems.items():
            if category == RejectReason.ALREADY_MIGRATED.value or not samples:
                continue
            lines.append(f"  Problèmes [{category}] ({stats.details.get(category, len(samples))}):")
            for problem in samples[:problems]:
                lines.append(f"    * {problem.external_id or '?'}: {problem.detail}")
    return lines


def render_run_summary(report: MigrationRunReport, problems: int = 0) -> str:
    """
    Résumé d'un run de migration, suivi du rapport de réconciliation.

    Args:
        report: Résultat du run
        problems: Nombre d'enregistrements problématiques listés par catégorie (0 = aucun)
    """
    title = "RÉSUMÉ DE MIGRATION (DRY-RUN)" if report.dry_run else "RÉSUMÉ DE MIGRATION"
    lines = [RULE, f"        {title}", RULE, ""]

    if report.purged:
        purged = ", ".join(f"{entity}: {count}" for entity, count in report.purged.items())
        lines += [f"Purge (recreate): {purged}", ""]

    for stats in report.entities:
        lines += _render_entity(stats, problems)
        lines.append("")

    total_success = sum(stats.success for stats in report.entities)
    total_errors = sum(stats.errors for stats in report.entities)
    total_skipped = sum(stats.skipped for stats in report.entities)
    total_duplicates = sum(stats.duplicates for stats in report.entities)
    failed = [stats.label or stats.entity for stats in report.entities if stats.failed]
    lines.append(
        f"Total: {total_success} créés, {total_duplicates} doublons, "
        f"{total_skipped} ignorés, {total_errors} erreurs"
    )
    if failed:
        lines.append(f"Étapes en échec: {', '.join(failed)}")
    lines.append(RULE)

    text = "\n".join(lines)
    if report.audit is not None:
        text += "\n\n" + render_audit_report(report.audit, max_items=max(problems, 20))
    return text
