"""
Exceptions du noyau de migration et de conformité RGPD.

Les erreurs par enregistrement (champ manquant, relation introuvable, échec
d'écriture) ne sont pas des exceptions: elles sont comptabilisées localement
(voir logistics.schemas.migration.RejectReason). Seules les défaillances de
niveau entité ou de niveau run sont levées.
"""


class LogisticsError(Exception):
    """
    Exception de base du projet.

    Attributes:
        detail: Description détaillée de l'erreur
    """

    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(detail)


class DataStoreUnavailableError(LogisticsError):
    """
    Exception levée lorsque la base de données est injoignable au démarrage d'un run.

    Cette erreur est fatale: le run est interrompu avant le traitement du
    premier enregistrement.

    Example:
        ```python
        try:
            await store.ping()
        except DataStoreUnavailableError:
            logger.critical("Base injoignable, migration annulée")
            return 1
        ```
    """

    def __init__(self, detail: str = "Data store is unavailable"):
        super().__init__(detail)


class ExternalSourceUnavailableError(LogisticsError):
    """
    Exception levée lorsqu'une table de la source externe ne peut pas être lue.

    Timeout, erreur de transport ou réponse en erreur. L'étape de l'entité est
    marquée en échec et le run continue avec les entités suivantes.

    Attributes:
        table: Nom de la table source concernée
        reason: Cause de l'échec
    """

    def __init__(self, table: str, reason: str):
        self.table = table
        self.reason = reason
        super().__init__(f"Source externe indisponible pour '{table}': {reason}")


class ExportFileError(ExternalSourceUnavailableError):
    """Fichier d'export absent ou qui n'est pas un tableau JSON."""


class SourceConfigurationError(LogisticsError):
    """
    Exception levée lorsque l'extraction est demandée sans configuration source.

    SOURCE_API_TOKEN et SOURCE_BASE_ID sont requis pour interroger la source.
    """

    def __init__(self, detail: str = "SOURCE_API_TOKEN et SOURCE_BASE_ID requis"):
        super().__init__(detail)


__all__ = [
    "DataStoreUnavailableError",
    "ExportFileError",
    "ExternalSourceUnavailableError",
    "LogisticsError",
    "SourceConfigurationError",
]
