"""Règles de coercition des champs source.

Les valeurs de l'export arrivent faiblement typées: chaînes, nombres, ou
tableaux singletons (champs de sélection et liens). Ces règles encodent des
hypothèses métier et ne doivent pas être assouplies:

- un drapeau n'est vrai que si la valeur est exactement le marqueur attendu
  (pas de coercition "truthy");
- un nombre illisible ou absent vaut 0;
- un statut inconnu ou absent prend le statut par défaut, jamais nul.
"""

import logging
import math
from datetime import UTC, date, datetime, time
from typing import Any

logger = logging.getLogger(__name__)


def first_value(raw: Any) -> Any:
    """Premier élément d'un tableau source, la valeur elle-même sinon."""
    if isinstance(raw, list | tuple):
        return raw[0] if raw else None
    return raw


def coerce_string(raw: Any, nullable: bool = False) -> str | None:
    """
    Chaîne nettoyée (trim).

    Args:
        raw: Valeur source
        nullable: Champ nullable côté cible

    Returns:
        La chaîne nettoyée; pour une valeur absente ou vide, None si le champ
        est nullable, "" sinon
    """
    value = first_value(raw)
    if value is None or isinstance(value, dict):
        return None if nullable else ""
    text = str(value).strip()
    if not text and nullable:
        return None
    return text


def coerce_number(raw: Any) -> float:
    """Nombre flottant fini, 0 si absent ou illisible."""
    value = first_value(raw)
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        if isinstance(value, int | float):
            number = float(value)
        else:
            number = float(str(value).strip().replace(",", "."))
    except (ValueError, OverflowError):
        return 0.0
    if not math.isfinite(number):
        return 0.0
    return number


def coerce_integer(raw: Any) -> int:
    """Entier (partie entière), 0 si absent ou illisible."""
    return int(coerce_number(raw))


def coerce_flag(raw: Any, marker: str) -> bool:
    """Vrai uniquement si la valeur source est exactement `marker`."""
    return first_value(raw) == marker


def coerce_status(raw: Any, statuses: dict[str, str], default: str) -> str:
    """
    Statut traduit via la table fournie.

    La source envoie parfois les statuts en tableau singleton: seul le premier
    élément est considéré.
    """
    value = first_value(raw)
    if not isinstance(value, str):
        return default
    return statuses.get(value.strip(), default)


def coerce_date(raw: Any) -> datetime | None:
    """
    Date ISO 8601 en datetime UTC.

    Une date seule (AAAA-MM-JJ) devient minuit UTC; une date naïve est
    considérée comme UTC.

    Returns:
        Le datetime aware, ou None si la valeur est absente ou illisible
    """
    value = first_value(raw)
    if value is None:
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime.combine(value, time.min)
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            logger.debug(f"Date illisible: {text!r}")
            return None
    else:
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


def coerce_string_list(raw: Any) -> list[str]:
    """Ensemble de chaînes nettoyées, sans doublon, dans l'ordre d'apparition."""
    if raw is None:
        return []
    values = raw if isinstance(raw, list | tuple) else [raw]
    result: list[str] = []
    for value in values:
        if value is None:
            continue
        text = str(value).strip()
        if text and text not in result:
            result.append(text)
    return result


def reference_ids(raw: Any) -> list[str]:
    """Identifiants source référencés par un champ lien (chaîne ou tableau)."""
    return coerce_string_list(raw)


def is_blank(raw: Any) -> bool:
    """Vrai si la valeur est absente, vide ou un tableau vide."""
    value = first_value(raw)
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    return False
