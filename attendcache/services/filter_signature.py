"""Canonical keys for filter/sort/search combinations.

Layout: ``<scope>:<sort field>-<direction>:<category>:<search mode>:<search query>``.
Every free-form value is percent-encoded with no safe characters, so it can
never contain ``:`` or the parenthesised sentinels used for "no filter" and
"no search". The direction is a closed enum, which keeps the ``-`` between
field and direction unambiguous.
"""
from typing import Optional, Union
from urllib.parse import quote

from attendcache.core.exceptions.exceptions import InvalidSortDirectionError
from attendcache.schemas.pagination import SearchParams, SortDirection, SortOption

ALL_SENTINEL = "(all)"
NONE_SENTINEL = "(none)"

# value the list views use for "no category filter"
UI_ALL_CATEGORIES = "all"


def _encode(value: str) -> str:
    return quote(value, safe="")


def _direction(direction: Union[SortDirection, str]) -> str:
    try:
        return SortDirection(direction).value
    except ValueError:
        raise InvalidSortDirectionError(direction)


def build_filter_signature(
    scope: str,
    sort: SortOption,
    category_filter: Optional[str] = None,
    search: Optional[SearchParams] = None,
) -> str:
    category = ALL_SENTINEL
    if category_filter is not None and category_filter != UI_ALL_CATEGORIES:
        category = _encode(category_filter)

    search_mode = search_query = NONE_SENTINEL
    # a search without text filters nothing
    if search is not None and search.query:
        search_mode = _encode(search.type)
        search_query = _encode(search.query)

    return ":".join([
        _encode(scope),
        f"{_encode(sort.field)}-{_direction(sort.direction)}",
        category,
        search_mode,
        search_query,
    ])
