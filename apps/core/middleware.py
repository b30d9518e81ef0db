"""
Request middleware - correlation id propagation
"""

import uuid

from .logging import set_correlation_id

CORRELATION_HEADER = 'HTTP_X_REQUEST_ID'
CORRELATION_RESPONSE_HEADER = 'X-Request-ID'


class CorrelationIdMiddleware:
    """
    Stamps every request with a correlation id.

    Reuses the caller's ``X-Request-ID`` when present so log lines can be
    joined across services, and echoes it back on the response.
    """

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        correlation_id = request.META.get(CORRELATION_HEADER) or uuid.uuid4().hex
        request.correlation_id = correlation_id
        set_correlation_id(correlation_id)
        try:
            response = self.get_response(request)
        finally:
            set_correlation_id(None)
        response[CORRELATION_RESPONSE_HEADER] = correlation_id
        return response
