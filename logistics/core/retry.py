"""Module de retry avec backoff exponentiel pour opérations asynchrones.

Utilisé pour les appels à la source externe (timeouts, connexions perdues,
rate limit): chaque page est retentée un nombre borné de fois avec un
backoff exponentiel plafonné.
"""

import logging
from collections.abc import Callable
from typing import Any

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    RetryError,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

logger = logging.getLogger(__name__)


def _log_before_retry(operation_name: str, max_attempts: int) -> Callable[[RetryCallState], None]:
    def log(retry_state: RetryCallState) -> None:
        exception = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(
            f"{operation_name}: tentative {retry_state.attempt_number}/{max_attempts} échouée "
            f"({exception}), nouvel essai dans {retry_state.next_action.sleep:.2f}s"
        )

    return log


async def retry_async_operation(
    operation: Callable[..., Any],
    *args: Any,
    max_attempts: int = 3,
    min_wait_seconds: float = 1,
    max_wait_seconds: float = 10,
    exceptions: tuple[type[Exception], ...] = (Exception,),
    **kwargs: Any,
) -> Any:
    """
    Exécute une opération async avec retry et backoff exponentiel.

    Args:
        operation: Fonction async à exécuter
        *args: Arguments positionnels pour operation
        max_attempts: Nombre maximum de tentatives
        min_wait_seconds: Attente minimale entre tentatives (secondes)
        max_wait_seconds: Attente maximale entre tentatives (secondes)
        exceptions: Tuple des exceptions qui déclenchent un retry
        **kwargs: Arguments keyword pour operation

    Returns:
        Résultat de l'opération

    Raises:
        Exception: La dernière exception levée si toutes les tentatives échouent
    """
    async for attempt_state in AsyncRetrying(
        retry=retry_if_exception_type(exceptions),
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(min=min_wait_seconds, max=max_wait_seconds),
        before_sleep=_log_before_retry(operation.__name__, max_attempts),
        reraise=True,
    ):
        with attempt_state:
            return await operation(*args, **kwargs)

    # Jamais atteint avec reraise=True
    raise RetryError("Max retries exceeded")
