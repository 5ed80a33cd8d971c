import asyncio
from typing import Any, Dict, Optional

from attendcache.clients.base_http_client import BaseHTTPClient
from attendcache.clients.data_source import DataSource
from attendcache.core.exceptions.exceptions import ExternalAPIError
from attendcache.schemas.pagination import QueryFilter, QueryPage, SortOption
from attendcache.utils.log import app_logger


class DocumentStoreClient(BaseHTTPClient, DataSource):
    """DataSource over the document store's REST query endpoint.

    Request body: ``{"sort": {...}, "filter": {...}, "cursor": ..., "pageSize": n}``.
    Response body: ``{"records": [...], "nextCursor": token | null, "totalCount": n}``.
    Cursors are whatever JSON value the store hands back; they are echoed verbatim.
    """

    SERVICE = "document-store"

    def __init__(self, base_url: str, api_key: Optional[str] = None, collection: str = "attendance", **kwargs):
        super().__init__(base_url=base_url, api_key=api_key, timeout=kwargs.pop("timeout", 20), **kwargs)
        self.collection = collection

    @classmethod
    def from_settings(cls, settings) -> Optional["DocumentStoreClient"]:
        """Build the client from DOCUMENT_STORE_* settings, or None when no store is configured."""
        if not settings.DOCUMENT_STORE_URL:
            return None
        return cls(settings.DOCUMENT_STORE_URL, api_key=settings.DOCUMENT_STORE_API_KEY)

    def _build_payload(self, sort: SortOption, query_filter: Optional[QueryFilter], cursor: Any,
                       page_size: int) -> Dict[str, Any]:
        return {
            "sort": sort.model_dump(mode="json"),
            "filter": query_filter.model_dump(mode="json", exclude_none=True) if query_filter else None,
            "cursor": cursor,
            "pageSize": page_size,
        }

    def query_sync(self, sort: SortOption, query_filter: Optional[QueryFilter], cursor: Any,
                   page_size: int) -> QueryPage:
        payload = self._build_payload(sort, query_filter, cursor, page_size)
        response = self.post(f"/collections/{self.collection}/query", data=payload)

        if not isinstance(response, dict) or not isinstance(response.get("records"), list):
            raise ExternalAPIError(self.SERVICE, "response has no records list")

        app_logger.debug("document_store.page", collection=self.collection, records=len(response["records"]),
                         has_next=response.get("nextCursor") is not None)
        return QueryPage(
            records=response["records"],
            next_cursor=response.get("nextCursor"),
            total_count=response.get("totalCount"),
        )

    async def query(self, sort: SortOption, query_filter: Optional[QueryFilter], cursor: Any,
                    page_size: int) -> QueryPage:
        # requests is blocking; keep the event loop free while it runs
        return await asyncio.to_thread(self.query_sync, sort, query_filter, cursor, page_size)
