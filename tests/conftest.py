import pytest

from attendcache.clients.data_source import DataSource
from attendcache.schemas.pagination import QueryPage, SortOption
from attendcache.services.cursor_registry import CursorRegistry
from attendcache.services.durable_cache import DurableCacheStore
from attendcache.services.persistence import InMemoryPersistence, PersistenceBackend
from attendcache.core.exceptions.exceptions import PersistenceError


class FakeClock:
    def __init__(self, now: float = 1_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeDataSource(DataSource):
    """Serves `total` numbered records; the cursor after page k is 'c<k>'."""

    def __init__(self, total: int = 95, report_total: bool = True):
        self.total = total
        self.report_total = report_total
        self.calls = []
        self.fail_on_cursors = set()

    async def query(self, sort, query_filter, cursor, page_size):
        self.calls.append(cursor)
        if cursor in self.fail_on_cursors:
            raise ConnectionError(f"backend unavailable for {cursor}")

        page_index = 0 if cursor is None else int(cursor[1:])
        start = page_index * page_size
        records = [{"id": i} for i in range(start, min(start + page_size, self.total))]
        has_more = start + page_size < self.total
        return QueryPage(
            records=records,
            next_cursor=f"c{page_index + 1}" if has_more else None,
            total_count=self.total if self.report_total else None,
        )


class BrokenPersistence(PersistenceBackend):
    name = "broken"

    def __init__(self, blob=None):
        self.blob = blob

    def load(self):
        if self.blob is None:
            raise PersistenceError(self.name, "storage unavailable")
        return self.blob

    def save(self, blob):
        raise PersistenceError(self.name, "quota exceeded")

    def remove(self):
        raise PersistenceError(self.name, "storage unavailable")


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def persistence():
    return InMemoryPersistence()


@pytest.fixture
def cache(persistence, clock):
    return DurableCacheStore(persistence, default_ttl=3600, clock=clock)


@pytest.fixture
def registry(clock):
    return CursorRegistry(freshness_seconds=1800, clock=clock)


@pytest.fixture
def data_source():
    return FakeDataSource()


@pytest.fixture
def name_asc():
    return SortOption(field="name", direction="asc")
