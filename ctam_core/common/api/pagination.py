# ctam_core/common/api/pagination.py
from __future__ import annotations

from typing import Any

from rest_framework.pagination import PageNumberPagination
from rest_framework.response import Response


class DefaultPagination(PageNumberPagination):
    page_size = 50
    page_size_query_param = "page_size"
    max_page_size = 500


def paginate(
    request,
    queryset,
    serializer_class,
    *,
    paginator: PageNumberPagination | None = None,
    context: dict[str, Any] | None = None,
) -> Response:
    """
    Shared pagination helper with a stable contract:
      { count, next, previous, results }
    """
    p = paginator or DefaultPagination()
    ctx = {"request": request, **(context or {})}
    page = p.paginate_queryset(queryset, request)
    if page is not None:
        return p.get_paginated_response(serializer_class(page, many=True, context=ctx).data)

    return Response(serializer_class(queryset, many=True, context=ctx).data)
