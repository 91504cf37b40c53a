from __future__ import annotations

import logging
import time
from typing import Callable

from django.http import HttpRequest, HttpResponse

logger = logging.getLogger(__name__)


class RequestLogMiddleware:
    def __init__(self, get_response: Callable[[HttpRequest], HttpResponse]) -> None:
        self.get_response = get_response

    def __call__(self, request: HttpRequest) -> HttpResponse:
        started = time.monotonic()
        response = self.get_response(request)
        if not request.path.startswith("/api/"):
            return response

        # DRF copies the JWT-authenticated user back onto the Django request.
        user = getattr(getattr(request, "user", None), "pk", None)
        logger.info(
            "%s %s -> %s user=%s %.0fms",
            request.method,
            request.path,
            response.status_code,
            user or "anonymous",
            (time.monotonic() - started) * 1000,
        )
        return response
