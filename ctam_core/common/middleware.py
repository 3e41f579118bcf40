# ctam_core/common/middleware.py
from __future__ import annotations

from django.utils.deprecation import MiddlewareMixin

from ctam_core.common.api.exceptions import ensure_request_id


class RequestIdMiddleware(MiddlewareMixin):
    """
    Attaches a request_id to every request (honouring an inbound X-Request-Id)
    and echoes it back so error envelopes and logs can be correlated.
    """

    HEADER = "X-Request-Id"

    def process_request(self, request):
        inbound = request.META.get("HTTP_X_REQUEST_ID")
        if inbound:
            request.request_id = inbound[:64]
        ensure_request_id(request)

    def process_response(self, request, response):
        rid = getattr(request, "request_id", None)
        if rid and self.HEADER not in response:
            response[self.HEADER] = rid
        return response
