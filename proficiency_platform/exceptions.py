import logging

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler

logger = logging.getLogger(__name__)


def _message(detail):
    if isinstance(detail, dict):
        if 'detail' in detail:
            return _message(detail['detail'])
        field, value = next(iter(detail.items()))
        message = _message(value)
        if field == 'non_field_errors':
            return message
        return f"{field}: {message}"
    if isinstance(detail, list):
        return _message(detail[0]) if detail else ''
    return str(detail)


def exception_handler(exc, context):
    """
    Every API error goes out as {"error": "<message>"}.
    Validation errors keep their per-field breakdown under "details".
    """
    response = drf_exception_handler(exc, context)

    if response is None:
        view = context.get('view')
        logger.exception(f"Unhandled error in {view.__class__.__name__ if view else 'view'}: {exc}")
        return Response({"error": "Internal server error"}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)

    data = {"error": _message(response.data)}
    if isinstance(response.data, dict) and 'detail' not in response.data:
        data["details"] = response.data
    response.data = data
    return response
