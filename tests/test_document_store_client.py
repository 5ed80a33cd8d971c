from unittest.mock import MagicMock

import pytest
import requests

from attendcache.clients.document_store_client import DocumentStoreClient
from attendcache.core.exceptions.exceptions import ExternalAPIError
from attendcache.schemas.pagination import QueryFilter, SearchParams, SortOption


def make_client(response_json=None, status_code=200, side_effect=None):
    session = MagicMock(spec=requests.Session)
    session.headers = {}
    response = MagicMock()
    response.status_code = status_code
    response.headers = {}
    response.json.return_value = response_json
    if status_code >= 400:
        response.raise_for_status.side_effect = requests.exceptions.HTTPError(f"{status_code} error")
    session.request.return_value = response
    if side_effect is not None:
        session.request.side_effect = side_effect
    client = DocumentStoreClient("https://store.example.org/v1/", api_key="secret", session=session,
                                 max_retries=1, retry_delay=0)
    return client, session


async def test_query_posts_sort_filter_and_cursor():
    client, session = make_client({"records": [{"id": "a"}], "nextCursor": {"after": "a"}, "totalCount": 31})
    sort = SortOption(field="timestamp", direction="desc")
    query_filter = QueryFilter(scope="evt-1", category="BSCS", search=SearchParams(type="name", query="ana"))

    page = await client.query(sort, query_filter, {"after": "z"}, 10)

    assert page.records == [{"id": "a"}]
    assert page.next_cursor == {"after": "a"}
    assert page.total_count == 31
    kwargs = session.request.call_args.kwargs
    assert kwargs["method"] == "POST"
    assert kwargs["url"] == "https://store.example.org/v1/collections/attendance/query"
    assert kwargs["json"] == {
        "sort": {"field": "timestamp", "direction": "desc"},
        "filter": {"scope": "evt-1", "category": "BSCS", "search": {"type": "name", "query": "ana"}},
        "cursor": {"after": "z"},
        "pageSize": 10,
    }
    assert session.headers["Authorization"] == "Bearer secret"


async def test_last_page_has_no_cursor():
    client, _ = make_client({"records": []})

    page = await client.query(SortOption(field="name"), None, None, 10)
    assert page.next_cursor is None
    assert page.total_count is None


async def test_http_failure_becomes_external_api_error():
    client, session = make_client(status_code=503)

    with pytest.raises(ExternalAPIError):
        await client.query(SortOption(field="name"), None, None, 10)
    # first try plus one retry
    assert session.request.call_count == 2


async def test_malformed_response_is_rejected():
    client, _ = make_client({"items": []})

    with pytest.raises(ExternalAPIError):
        await client.query(SortOption(field="name"), None, None, 10)


async def test_client_error_is_not_retried():
    client, session = make_client(status_code=404)

    with pytest.raises(ExternalAPIError, match="404"):
        await client.query(SortOption(field="name"), None, None, 10)
    assert session.request.call_count == 1


def test_retry_after_is_honoured_but_capped(monkeypatch):
    client, session = make_client(status_code=429)
    client.max_retry_after = 5
    session.request.return_value.headers = {"Retry-After": "120"}
    waits = []
    monkeypatch.setattr("attendcache.clients.base_http_client.time.sleep", waits.append)

    with pytest.raises(ExternalAPIError):
        client.query_sync(SortOption(field="name"), None, None, 10)
    assert waits == [5]


def test_connection_error_is_retried_then_wrapped():
    client, session = make_client(side_effect=requests.exceptions.ConnectionError("refused at 0xdeadbeef"))

    with pytest.raises(ExternalAPIError, match="<ptr>"):
        client.query_sync(SortOption(field="name"), None, None, 10)
    assert session.request.call_count == 2


def test_non_json_body_is_rejected():
    client, session = make_client()
    session.request.return_value.json.side_effect = ValueError("no JSON")

    with pytest.raises(ExternalAPIError, match="non-JSON"):
        client.query_sync(SortOption(field="name"), None, None, 10)
