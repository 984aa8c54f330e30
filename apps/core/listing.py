"""
Search, sort and pagination helpers shared by the list endpoints.

Sort input is clamped, never rejected: an unknown column or direction
falls back to the default ordering.
"""
from dataclasses import dataclass
from functools import reduce
import operator
from typing import Iterable, Optional, Tuple

from django.db.models import Q
from rest_framework.pagination import PageNumberPagination

DEFAULT_SORT = 'id'
DEFAULT_DIRECTION = 'desc'
DIRECTIONS = ('asc', 'desc')


@dataclass(frozen=True)
class ListParams:
    """Normalized list query: search term and clamped sort."""
    search: Optional[str] = None
    sort: str = DEFAULT_SORT
    direction: str = DEFAULT_DIRECTION

    @property
    def ordering(self) -> str:
        return self.sort if self.direction == 'asc' else f'-{self.sort}'


def clamp_sort(sort, direction, allowed_sorts: Iterable[str],
               default_sort: str = DEFAULT_SORT,
               default_direction: str = DEFAULT_DIRECTION) -> Tuple[str, str]:
    """
    Return a (sort, direction) pair that is safe to order by.

    >>> clamp_sort('password', 'up', ['id', 'name'])
    ('id', 'desc')
    """
    if sort not in set(allowed_sorts):
        sort = default_sort

    direction = (direction or '').lower() if isinstance(direction, str) else ''
    if direction not in DIRECTIONS:
        direction = default_direction

    return sort, direction


def parse_list_params(query_params, allowed_sorts) -> ListParams:
    """
    Build ListParams from request query params (search, sort, dir).

    Page size is left to the paginator (per_page query param).
    """
    search = (query_params.get('search') or '').strip() or None
    sort, direction = clamp_sort(
        query_params.get('sort'),
        query_params.get('dir'),
        allowed_sorts,
    )
    return ListParams(search=search, sort=sort, direction=direction)


def apply_search(queryset, search, fields):
    """Case-insensitive substring match of search against any of fields."""
    if not search:
        return queryset
    condition = reduce(operator.or_, (Q(**{f'{field}__icontains': search}) for field in fields))
    return queryset.filter(condition)


def apply_list_params(queryset, params: ListParams, search_fields=('name',)):
    """Apply search and ordering. Ties are broken by id for a stable order."""
    queryset = apply_search(queryset, params.search, search_fields)
    ordering = [params.ordering]
    if params.sort != 'id':
        ordering.append('-id' if params.direction == 'desc' else 'id')
    return queryset.order_by(*ordering)


class StandardResultsSetPagination(PageNumberPagination):
    """Standard pagination for list endpoints."""
    page_size = 10
    page_size_query_param = 'per_page'
    max_page_size = 100


class LargeResultsSetPagination(StandardResultsSetPagination):
    """Pagination for the permission catalog, which allows bigger pages."""
    max_page_size = 200


class ItemResultsSetPagination(StandardResultsSetPagination):
    """Pagination for note and file listings."""
    page_size = 12


def paginated_response(request, queryset, serializer_class, pagination_class=StandardResultsSetPagination,
                       extra=None, context=None):
    """Paginate queryset and wrap the serialized page in the paginator's response."""
    paginator = pagination_class()
    page = paginator.paginate_queryset(queryset, request)
    serializer = serializer_class(page, many=True, context=context or {'request': request})
    response = paginator.get_paginated_response(serializer.data)
    if extra:
        response.data.update(extra)
    return response
