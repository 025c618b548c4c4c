
import hashlib
import json
import logging
from typing import Any


logger = logging.getLogger(__name__)


def composite_key(category: str, identifier: str) -> str:
    """Стабильный ключ потока событий для пары (category, identifier)."""
    composite = f"{category}:{identifier}"
    return hashlib.sha256(composite.encode('utf-8')).hexdigest()


def _normalize(value: Any) -> Any:
    # json.dumps(sort_keys=True) падает на ключах разных типов, поэтому ключи приводим к str
    if isinstance(value, dict):
        return {str(k): _normalize(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_normalize(v) for v in value]
    return value


def details_fingerprint(details: Any) -> str:
    """
    Отпечаток содержимого события.

    Ключи сортируются на всех уровнях вложенности, поэтому одинаковые
    по значению payload с разным порядком полей дают один и тот же отпечаток.
    Для отсутствующих или неструктурированных details возвращается ''.
    """
    if not isinstance(details, (dict, list)):
        return ''
    try:
        canonical_string = json.dumps(_normalize(details), sort_keys=True, separators=(',', ':'), default=str)
    except (TypeError, ValueError, RecursionError) as e:
        logger.error(f"Ошибка генерации отпечатка для details {str(details)[:100]}: {e}")
        return ''
    return hashlib.sha256(canonical_string.encode('utf-8')).hexdigest()
