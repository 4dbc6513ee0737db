"""
DRF exception handler rendering application errors.

Configured via REST_FRAMEWORK["EXCEPTION_HANDLER"]. Any BaseApplicationError
raised from a view or service becomes a JSON body of the form:

    {"error": "...", "error_code": "...", "details": {...}}

with the HTTP status declared on the exception class. Everything else is
delegated to DRF's default handler.
"""

from __future__ import annotations

import logging

from rest_framework.response import Response
from rest_framework.views import exception_handler

from core.exceptions import BaseApplicationError

logger = logging.getLogger(__name__)


def api_exception_handler(exc, context):
    if isinstance(exc, BaseApplicationError):
        view = context.get("view")
        logger.info(
            f"Application error: {exc.error_code}",
            extra={
                "error_code": exc.error_code,
                "status_code": exc.status_code,
                "view": view.__class__.__name__ if view else None,
            },
        )
        return Response(exc.to_dict(), status=exc.status_code)

    return exception_handler(exc, context)
