import time
from typing import Callable, Dict, List, Optional

from attendcache.clients.data_source import DataSource
from attendcache.clients.document_store_client import DocumentStoreClient
from attendcache.schemas.pagination import SearchParams, SortOption
from attendcache.services.cursor_registry import DEFAULT_FRESHNESS_SECONDS, CursorRegistry
from attendcache.services.durable_cache import DEFAULT_TTL_SECONDS, DurableCacheStore
from attendcache.services.invalidation import CACHE_DURATIONS, EventsCacheService
from attendcache.services.page_loader import PageLoader
from attendcache.services.pagination_controller import PaginationController
from attendcache.services.persistence import PersistenceBackend, build_persistence
from attendcache.utils.log import app_logger


class SessionEvents:
    """Change notifications for session-wide flags.

    Views subscribe to a topic and are called with the new value whenever it
    changes, instead of re-reading the flag on a timer.
    """

    SIGNING_OUT = "signing_out"

    def __init__(self):
        self._flags: Dict[str, bool] = {}
        self._subscribers: Dict[str, List[Callable[[bool], None]]] = {}

    def subscribe(self, topic: str, callback: Callable[[bool], None]) -> Callable[[], None]:
        """Register `callback` for `topic`; returns a function that unsubscribes it."""
        self._subscribers.setdefault(topic, []).append(callback)

        def unsubscribe():
            callbacks = self._subscribers.get(topic, [])
            if callback in callbacks:
                callbacks.remove(callback)

        return unsubscribe

    def publish(self, topic: str, value: bool) -> bool:
        """Set a flag and notify subscribers. Returns False when the value did not change."""
        if self._flags.get(topic, False) == value:
            return False
        self._flags[topic] = value
        for callback in list(self._subscribers.get(topic, [])):
            try:
                callback(value)
            except Exception as e:
                # one broken view must not keep the others from hearing about it
                app_logger.error("session.subscriber_failed", topic=topic, exc_info=e)
        return True

    def is_set(self, topic: str) -> bool:
        return self._flags.get(topic, False)

    def is_signing_out(self) -> bool:
        return self.is_set(self.SIGNING_OUT)


class CacheContext:
    """Process-wide cache handles for one application run.

    Built once at start-up and handed to every consumer; `init` loads the
    persisted cache, `teardown` releases the storage backend and
    `end_session` flushes everything on sign-out.
    """

    def __init__(
        self,
        persistence: PersistenceBackend,
        default_ttl: float = DEFAULT_TTL_SECONDS,
        freshness_seconds: float = DEFAULT_FRESHNESS_SECONDS,
        page_size: int = 10,
        clock: Callable[[], float] = time.time,
        data_source: Optional[DataSource] = None,
    ):
        self.persistence = persistence
        self.data_source = data_source
        self.page_size = page_size
        self.cache = DurableCacheStore(persistence, default_ttl=default_ttl, clock=clock)
        self.cursors = CursorRegistry(freshness_seconds=freshness_seconds, clock=clock)
        self.events = SessionEvents()
        self.events_cache = EventsCacheService(self.cache)
        self.initialized = False

    @classmethod
    def from_settings(cls, settings) -> "CacheContext":
        return cls(
            build_persistence(settings),
            default_ttl=settings.CACHE_DEFAULT_TTL_SECONDS,
            freshness_seconds=settings.CURSOR_FRESHNESS_SECONDS,
            page_size=settings.PAGE_SIZE,
            data_source=DocumentStoreClient.from_settings(settings),
        )

    def init(self) -> "CacheContext":
        if not self.initialized:
            loaded = self.cache.load()
            self.initialized = True
            app_logger.info("context.init", backend=self.persistence.name, entries=loaded)
        return self

    def teardown(self) -> None:
        if not self.initialized:
            return
        self.persistence.close()
        if self.data_source is not None:
            self.data_source.close()
        self.initialized = False
        app_logger.info("context.teardown", backend=self.persistence.name)

    def controller(
        self,
        scope: str,
        sort: SortOption,
        category_filter: Optional[str] = None,
        search: Optional[SearchParams] = None,
    ) -> PaginationController:
        return PaginationController(self.cursors, scope, sort, category_filter, search)

    def page_loader(
        self,
        controller: PaginationController,
        data_source: Optional[DataSource] = None,
        page_size: Optional[int] = None,
        ttl: float = CACHE_DURATIONS["ATTENDANCE"],
    ) -> PageLoader:
        if data_source is None:
            data_source = self.data_source
        if data_source is None:
            raise ValueError("no data source configured; set DOCUMENT_STORE_URL or pass one in")
        return PageLoader(self.cache, controller, data_source, page_size or self.page_size, ttl)

    def begin_session(self) -> None:
        self.events.publish(SessionEvents.SIGNING_OUT, False)

    def end_session(self) -> Dict[str, int]:
        """Sign-out flush: every cache entry, every cursor chain and the hit/miss counters."""
        self.events.publish(SessionEvents.SIGNING_OUT, True)
        entries = len(self.cache)
        self.cache.clear()
        self.cache.reset_metrics()
        chains = self.cursors.clear()
        app_logger.info("session.flushed", cache_entries=entries, cursor_chains=chains)
        return {"cache_entries": entries, "cursor_chains": chains}
