from abc import ABC, abstractmethod
from typing import Any, Optional

from attendcache.schemas.pagination import QueryFilter, QueryPage, SortOption


class DataSource(ABC):
    """Forward-only query capability of the remote document store.

    The cursor is opaque here; only the adapter knows its concrete shape.
    """

    @abstractmethod
    async def query(
        self,
        sort: SortOption,
        query_filter: Optional[QueryFilter],
        cursor: Optional[Any],
        page_size: int,
    ) -> QueryPage:
        """Fetch the page that starts after `cursor` (or at the beginning when None)."""

    def close(self) -> None:
        """Release transport resources. Nothing to release by default."""
