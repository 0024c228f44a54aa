"""
DRF rendering of TrainException.
"""
import logging

from django.conf import settings
from rest_framework.response import Response
from rest_framework.views import exception_handler

from .constants import ResponseCode
from .exceptions import TrainException

logger = logging.getLogger(__name__)


def train_exception_handler(exc, context):
    """
    Render TrainException as {'error_code', 'message'} with its status.
    Driver messages on 5xx responses are only exposed in DEBUG mode.
    """
    if not isinstance(exc, TrainException):
        return exception_handler(exc, context)

    message = exc.error_message
    if exc.status_code >= 500:
        logger.error("%s: %s", exc.error_code, exc.error_message)
        if not settings.DEBUG:
            code = exc.response_code or ResponseCode.INTERNAL_SERVER_ERROR
            message = code.message

    return Response(
        {'error_code': exc.error_code, 'message': message},
        status=exc.status_code,
    )
