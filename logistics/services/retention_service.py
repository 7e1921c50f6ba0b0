"""Conservation RGPD des données clients.

Machine à états par client, pilotée par retention_until, deletion_requested
et le drapeau pseudonymized:

- ACTIF -> EXPIRÉ: par simple passage du temps (prédicat de requête)
- EXPIRÉ -> PSEUDONYMISÉ: seule mutation effectuée par la purge

La date de conservation est recalculée à chaque nouvelle activité du client
(création, commande) via record_client_activity, jamais par la purge.
La purge ne supprime jamais de commande: seuls les champs identifiants du
client sont réécrits.
"""

import calendar
import logging
from collections.abc import Callable
from datetime import datetime

from opentelemetry import trace
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from logistics.core.config import settings
from logistics.core.database import DataStore, utcnow
from logistics.models.client import Client
from logistics.schemas.retention import MaskedClient, RetentionRepairResult, SweepResult

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

# Valeurs fixes écrites à la pseudonymisation
PSEUDONYMIZED_NAME = "Anonyme"
PSEUDONYMIZED_PHONE = "+ANONYMIZED"
MASKED_ADDRESS = "Adresse masquée"


def add_years(moment: datetime, years: int) -> datetime:
    """Ajoute des années calendaires (29 février -> 28 février si besoin)."""
    year = moment.year + years
    day = min(moment.day, calendar.monthrange(year, moment.month)[1])
    return moment.replace(year=year, day=day)


def compute_retention_until(last_activity_at: datetime, years: int | None = None) -> datetime:
    """
    Fin de la période de conservation: dernière activité + durée fixe.

    Args:
        last_activity_at: Date de dernière activité du client
        years: Durée en années (défaut: settings.RETENTION_YEARS)
    """
    return add_years(last_activity_at, settings.RETENTION_YEARS if years is None else years)


def record_client_activity(client: Client, at: datetime, years: int | None = None) -> None:
    """
    Enregistre une activité du client et recalcule sa date de conservation.

    La dernière activité n'avance que si `at` est plus récente. La date de
    conservation vaut toujours dernière activité + durée fixe après l'appel.
    """
    if client.last_activity_at is None or at > client.last_activity_at:
        client.last_activity_at = at
    client.retention_until = compute_retention_until(client.last_activity_at, years)


def pseudonymize_client(client: Client, now: datetime) -> None:
    """Écrase les champs identifiants par des valeurs fixes (irréversible)."""
    client.name = PSEUDONYMIZED_NAME
    client.first_name = None
    client.phone = PSEUDONYMIZED_PHONE
    client.secondary_phone = None
    client.address = MASKED_ADDRESS
    client.email = None
    client.pseudonymized = True
    client.pseudonymized_at = now


def _mask_text(value: str) -> str:
    return f"{value[:2]}***"


def _mask_phone(value: str) -> str:
    return f"{value[:4]}***{value[-2:]}"


def _mask_email(value: str) -> str:
    local, _, domain = value.partition("@")
    return f"{local[:2]}***@{domain}" if domain else _mask_text(local)


def mask_client_for_display(client: Client) -> MaskedClient:
    """
    Vue partiellement masquée d'un client pour les consommateurs en lecture seule.

    Le client n'est pas modifié.

    Example:
        Dupont / 0612345678 / 12 rue X -> Du*** / 0612***78 / Adresse masquée
    """
    return MaskedClient(
        id=client.id,
        name=_mask_text(client.name),
        first_name=_mask_text(client.first_name) if client.first_name else None,
        phone=_mask_phone(client.phone) if client.phone else "",
        secondary_phone=_mask_phone(client.secondary_phone) if client.secondary_phone else None,
        email=_mask_email(client.email) if client.email else None,
        address=MASKED_ADDRESS,
        pseudonymized=bool(client.pseudonymized),
    )


class RetentionSweeper:
    """
    Purge quotidienne: pseudonymise les clients dont la conservation a expiré.

    Chaque client est traité et commité individuellement; un échec est
    journalisé, annulé, et le client reste EXPIRÉ jusqu'au prochain run.
    """

    def __init__(
        self,
        session: AsyncSession,
        clock: Callable[[], datetime] = utcnow,
        retention_years: int | None = None,
    ):
        self.session = session
        self.clock = clock
        self.retention_years = retention_years

    async def find_expired(self, now: datetime | None = None) -> list[str]:
        """Identifiants des clients EXPIRÉS (conservation dépassée, non traités)."""
        now = now or self.clock()
        result = await self.session.execute(
            select(Client.id)
            .where(
                Client.retention_until.isnot(None),
                Client.retention_until < now,
                Client.deletion_requested.is_(False),
                Client.pseudonymized.is_(False),
            )
            .order_by(Client.retention_until)
        )
        return list(result.scalars().all())

    async def backfill_missing_dates(self) -> int:
        """
        Calcule la date de conservation des clients qui n'en ont pas.

        Base de calcul: dernière activité, à défaut date de création. Un
        client dont la date ainsi calculée est passée devient EXPIRÉ et est
        traité par la même purge.
        """
        result = await self.session.execute(
            select(Client).where(
                Client.retention_until.is_(None),
                Client.pseudonymized.is_(False),
            )
        )
        clients = result.scalars().all()
        for client in clients:
            record_client_activity(
                client, client.last_activity_at or client.created_at, self.retention_years
            )
        if clients:
            await self.session.commit()
            logger.info(
                f"{len(clients)} dates de conservation calculées",
                extra={"count": len(clients)},
            )
        return len(clients)

    async def sweep(self) -> SweepResult:
        """
        Pseudonymise tous les clients EXPIRÉS au moment de l'appel.

        Returns:
            Compteurs de la purge
        """
        now = self.clock()
        result = SweepResult(started_at=now)

        with tracer.start_as_current_span("retention_sweep") as span:
            await self.backfill_missing_dates()
            expired_ids = await self.find_expired(now)
            result.expired = len(expired_ids)
            span.set_attribute("retention.expired", result.expired)

            if not expired_ids:
                logger.info("Aucun client à pseudonymiser")
                return result

            logger.info(
                f"Trouvé {len(expired_ids)} clients à pseudonymiser",
                extra={"count": len(expired_ids)},
            )

            for client_id in expired_ids:
                try:
                    client = await self.session.get(Client, client_id)
                    if client is None or client.pseudonymized:
                        continue

                    logger.info(
                        f"Pseudonymisation du client {client_id} (conservation jusqu'au {client.retention_until})"
                    )
                    pseudonymize_client(client, now)
                    await self.session.commit()

                    result.pseudonymized += 1
                    result.client_ids.append(client_id)

                except Exception as e:
                    logger.error(f"Échec pseudonymisation client {client_id}: {e}", exc_info=True)
                    await self.session.rollback()
                    result.failed += 1
                    continue

            span.set_attribute("retention.pseudonymized", result.pseudonymized)
            span.set_attribute("retention.failed", result.failed)

        logger.info(
            f"Purge terminée: {result.pseudonymized}/{result.expired} clients pseudonymisés",
            extra={"pseudonymized": result.pseudonymized, "failed": result.failed},
        )
        return result


async def run_retention_sweep(store: DataStore) -> SweepResult | None:
    """
    Tâche planifiée: exécute une purge dans sa propre session.

    Les exceptions sont journalisées et absorbées pour que le planificateur
    puisse relancer la purge le lendemain.
    """
    try:
        async with store.session() as session:
            return await RetentionSweeper(session).sweep()
    except Exception as e:
        logger.error(f"Échec de la purge RGPD: {e}", exc_info=True)
        return None


async def repair_retention_dates(
    session: AsyncSession,
    clock: Callable[[], datetime] = utcnow,
    years: int | None = None,
) -> RetentionRepairResult:
    """
    Corrige les dates de conservation nulles ou passées.

    Applique maintenant + RETENTION_REPAIR_YEARS à chaque client concerné.

    Args:
        session: Session de base de données
        clock: Horloge (injectable pour les tests)
        years: Horizon en années (défaut: settings.RETENTION_REPAIR_YEARS)

    Returns:
        Compteurs avant/après correction
    """
    now = clock()
    new_date = add_years(now, settings.RETENTION_REPAIR_YEARS if years is None else years)
    invalid = or_(Client.retention_until.is_(None), Client.retention_until < now)

    result = await session.execute(select(Client).where(invalid))
    clients = result.scalars().all()
    repair = RetentionRepairResult(invalid_before=len(clients), retention_until=new_date)

    for client in clients:
        client.retention_until = new_date
    await session.commit()
    repair.repaired = len(clients)

    repair.invalid_after = await session.scalar(select(func.count(Client.id)).where(invalid)) or 0

    logger.info(
        f"Dates de conservation corrigées: {repair.repaired} clients (reste {repair.invalid_after})",
        extra={"repaired": repair.repaired, "remaining": repair.invalid_after},
    )
    return repair
