
import logging

import redis
from rest_framework.decorators import api_view, permission_classes, authentication_classes
from rest_framework.response import Response
from rest_framework import status
from rest_framework.permissions import AllowAny

from .conf import get_tracker
from .tasks import track_event

logger = logging.getLogger(__name__)


def _extract_event_data(request):
    event_data_raw = request.data

    if isinstance(event_data_raw, list) and len(event_data_raw) == 1 and isinstance(event_data_raw[0], dict):
        return event_data_raw[0]
    if isinstance(event_data_raw, dict):
        return event_data_raw

    logger.warning(f"Неожиданный формат JSON в теле: {type(event_data_raw)}")
    return None


def _parse_event(request):
    """Возвращает (category, identifier, event_data) или Response с ошибкой."""
    event_data = _extract_event_data(request)
    if event_data is None:
        return None, Response({"error": "Invalid JSON format in body."}, status=status.HTTP_400_BAD_REQUEST)

    category = event_data.get('category')
    identifier = event_data.get('identifier')
    if not isinstance(category, str) or not isinstance(identifier, str) or not category or not identifier:
        return None, Response(
            {"error": "'category' and 'identifier' must be non-empty strings."},
            status=status.HTTP_400_BAD_REQUEST
        )
    return (category, identifier, event_data), None


@api_view(['POST'])
@authentication_classes([])
@permission_classes([AllowAny])
def track_event_api(request):
    parsed, error_response = _parse_event(request)
    if error_response is not None:
        return error_response
    category, identifier, event_data = parsed
    details = event_data.get('details')

    try:
        result = get_tracker().track_event(category, identifier, details)
    except redis.RedisError as e:
        logger.error(f"Ошибка Redis при учёте события {category}:{identifier}: {e}")
        return Response(
            {"error": "Event storage is unavailable"},
            status=status.HTTP_503_SERVICE_UNAVAILABLE
        )

    return Response({
        "type": result.type,
        "reason": result.reason,
        "record": result.record.to_dict() if result.record is not None else None,
    }, status=status.HTTP_200_OK)


@api_view(['POST'])
@authentication_classes([])
@permission_classes([AllowAny])
def enqueue_event_api(request):
    parsed, error_response = _parse_event(request)
    if error_response is not None:
        return error_response
    category, identifier, event_data = parsed
    details = event_data.get('details')

    try:
        # --- Отправляем задачу в Celery ---
        track_event.delay(category=category, identifier=identifier, details=details)
        logger.info(f"Событие {category}:{identifier} отправлено в очередь: {str(details)[:100]}...")
        return Response({"message": "Event accepted for processing"}, status=status.HTTP_202_ACCEPTED)

    except Exception as e:
        # Ошибка может возникнуть, если Celery брокер недоступен
        logger.exception(f"Ошибка при отправке задачи в Celery: {e}")
        return Response(
            {"error": "Failed to queue event for processing"},
            status=status.HTTP_500_INTERNAL_SERVER_ERROR
        )


@api_view(['GET'])
@authentication_classes([])
@permission_classes([AllowAny])
def deferred_events_api(request):
    try:
        records = get_tracker().get_deferred_events()
    except redis.RedisError as e:
        logger.error(f"Ошибка Redis при чтении отложенных событий: {e}")
        return Response(
            {"error": "Event storage is unavailable"},
            status=status.HTTP_503_SERVICE_UNAVAILABLE
        )
    return Response([record.to_dict() for record in records], status=status.HTTP_200_OK)


@api_view(['POST'])
@authentication_classes([])
@permission_classes([AllowAny])
def update_config_api(request):
    parsed, error_response = _parse_event(request)
    if error_response is not None:
        return error_response
    category, identifier, event_data = parsed

    patch = event_data.get('config')
    if not isinstance(patch, dict) or not patch:
        return Response({"error": "'config' must be a non-empty object."}, status=status.HTTP_400_BAD_REQUEST)

    try:
        updated = get_tracker().update_config(category, identifier, patch)
    except ValueError as e:
        logger.warning(f"Отклонена конфигурация {category}:{identifier} {patch}: {e}")
        return Response({"error": str(e)}, status=status.HTTP_400_BAD_REQUEST)
    except redis.RedisError as e:
        logger.error(f"Ошибка Redis при обновлении конфигурации {category}:{identifier}: {e}")
        return Response(
            {"error": "Event storage is unavailable"},
            status=status.HTTP_503_SERVICE_UNAVAILABLE
        )

    if not updated:
        return Response({"updated": False, "error": "No tracked record for this key."}, status=status.HTTP_404_NOT_FOUND)
    return Response({"updated": True}, status=status.HTTP_200_OK)
