"""Middleware translating domain errors into JSON responses."""

import logging
from collections.abc import Callable
from typing import final

from django.http import HttpRequest, HttpResponse, JsonResponse

from server.apps.drive.exceptions import DomainError

logger = logging.getLogger(__name__)


@final
class DomainErrorMiddleware:
    """Render ``DomainError`` raised by views as ``{"error": ...}``.

    Any other exception is left to Django, which answers with a generic
    500 page without internal details.
    """

    def __init__(self, get_response: Callable[[HttpRequest], HttpResponse]) -> None:
        """Store the next handler in the chain."""
        self.get_response = get_response

    def __call__(self, request: HttpRequest) -> HttpResponse:
        """Pass the request through unchanged."""
        return self.get_response(request)

    def process_exception(
        self,
        request: HttpRequest,
        exception: Exception,
    ) -> HttpResponse | None:
        """Convert a domain error into a response.

        Args:
            request: Current request.
            exception: Exception raised by the view.

        Returns:
            JSON response for domain errors, None to let Django handle
            everything else.
        """
        if not isinstance(exception, DomainError):
            return None

        logger.info(
            '%s %s failed with %d: %s',
            request.method,
            request.path,
            exception.status_code,
            exception.message,
        )
        return JsonResponse(
            {'error': exception.message},
            status=exception.status_code,
        )
