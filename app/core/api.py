"""
ViewSet mixins shared by the API layer.

Mixins:
    DomainErrorMixin: Turn BaseApplicationError into a JSON error response

Usage:
    from rest_framework import viewsets
    from core.api import DomainErrorMixin

    class EscrowViewSet(DomainErrorMixin, viewsets.GenericViewSet):
        ...

Any domain exception raised from an action is rendered with the
exception's ``to_dict()`` payload and ``http_status``. Everything else
falls through to DRF's default handling.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from rest_framework.response import Response

from core.exceptions import BaseApplicationError

if TYPE_CHECKING:
    from typing import Any

logger = logging.getLogger(__name__)


class DomainErrorMixin:
    """Render domain errors raised inside DRF views."""

    def handle_exception(self, exc: Exception) -> Any:
        if isinstance(exc, BaseApplicationError):
            logger.info(
                "Domain error returned to client",
                extra={
                    "error_code": exc.error_code,
                    "http_status": exc.http_status,
                    "view": self.__class__.__name__,
                },
            )
            return Response(exc.to_dict(), status=exc.http_status)
        return super().handle_exception(exc)
