import asyncio
import json
import time
from typing import Any, Awaitable, Callable, Dict, Optional

from pydantic import ValidationError

from attendcache.core.exceptions.exceptions import InvalidCacheTTLError, PersistenceError
from attendcache.models.cache_entry import CacheEntry
from attendcache.schemas.pagination import CacheMetrics, CacheStats
from attendcache.services.persistence import PersistenceBackend
from attendcache.utils.log import app_logger

DEFAULT_TTL_SECONDS = 60 * 60
# hot keys get at least this much life left after optimize()
HOT_KEY_EXTENSION_SECONDS = 30 * 60
HOT_KEY_MIN_HITS = 10
HOT_KEY_MIN_RATIO = 0.8


class DurableCacheStore:
    """String-keyed cache of time-boxed entries, snapshotted to one persistent blob.

    Expired entries read as absent but stay in the store until they are
    overwritten, invalidated or cleared. Every mutation rewrites the whole
    blob; a failed write is logged and the in-memory state is kept, so the
    cache keeps working for the session even when persistence degrades.

    Concurrent misses on the same key share a single fetch.
    """

    def __init__(
        self,
        persistence: PersistenceBackend,
        default_ttl: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        if default_ttl <= 0:
            raise InvalidCacheTTLError("<default>", default_ttl)
        self.persistence = persistence
        self.default_ttl = default_ttl
        self._clock = clock
        self._store: Dict[str, CacheEntry] = {}
        self._in_flight: Dict[str, asyncio.Task] = {}
        # bumped by clear(); fetches started under an older epoch must not write back
        self._epoch = 0
        self.reset_metrics()

    # ---- persistence ----

    def load(self) -> int:
        """Hydrate the store from the persisted blob. Returns the number of entries loaded.

        A missing, unreadable or corrupt blob leaves the cache empty.
        """
        try:
            blob = self.persistence.load()
        except PersistenceError as e:
            app_logger.error("cache.load_failed", backend=self.persistence.name, exc_info=e)
            return 0

        if not blob:
            return 0

        try:
            parsed = json.loads(blob)
        except ValueError as e:
            app_logger.warning("cache.load_corrupt", backend=self.persistence.name, exc_info=e)
            return 0

        if not isinstance(parsed, dict):
            app_logger.warning("cache.load_corrupt", backend=self.persistence.name, found=type(parsed).__name__)
            return 0

        skipped = 0
        for key, raw in parsed.items():
            try:
                self._store[key] = CacheEntry.model_validate(raw)
            except ValidationError:
                skipped += 1

        if skipped:
            app_logger.warning("cache.load_skipped_entries", skipped=skipped)
        app_logger.info("cache.loaded", entries=len(self._store))
        return len(self._store)

    def _serialize(self) -> str:
        return json.dumps({key: entry.model_dump(mode="json") for key, entry in self._store.items()})

    def _persist(self) -> None:
        try:
            self.persistence.save(self._serialize())
        except (TypeError, ValueError, PersistenceError) as e:
            # in-memory state stays authoritative for this session
            app_logger.error("cache.persist_failed", backend=self.persistence.name, exc_info=e)

    # ---- reads ----

    def _resolve_ttl(self, key: str, ttl: Optional[float]) -> float:
        ttl = self.default_ttl if ttl is None else ttl
        if ttl <= 0:
            raise InvalidCacheTTLError(key, ttl)
        return ttl

    def _key_metrics(self, key: str) -> Dict[str, int]:
        return self._metrics_by_key.setdefault(key, {"hits": 0, "misses": 0})

    def get(self, key: str) -> Optional[CacheEntry]:
        """Return the live entry for `key` without fetching, or None."""
        entry = self._store.get(key)
        if entry is not None and entry.is_live(self._clock()):
            return entry
        return None

    async def get_or_fetch(
        self,
        key: str,
        fetch_fn: Callable[[], Awaitable[Any]],
        ttl: Optional[float] = None,
    ) -> Any:
        """Return the cached value for `key`, fetching and storing it on a miss.

        Errors raised by `fetch_fn` reach the caller unchanged and nothing is
        cached. Callers that miss while a fetch for the same key is already
        running wait for that fetch instead of starting another one.
        """
        ttl = self._resolve_ttl(key, ttl)
        key_metrics = self._key_metrics(key)

        entry = self.get(key)
        if entry is not None:
            self._hits += 1
            key_metrics["hits"] += 1
            app_logger.debug("cache.hit", key=key)
            return entry.value

        self._misses += 1
        key_metrics["misses"] += 1

        task = self._in_flight.get(key)
        if task is None:
            app_logger.debug("cache.miss", key=key)
            task = asyncio.ensure_future(self._fetch_and_store(key, fetch_fn, ttl, self._epoch))
            self._in_flight[key] = task
        else:
            app_logger.debug("cache.coalesced", key=key)

        # one caller being cancelled must not cancel the fetch the others wait on
        return await asyncio.shield(task)

    async def _fetch_and_store(self, key: str, fetch_fn: Callable[[], Awaitable[Any]], ttl: float,
                               epoch: int) -> Any:
        try:
            value = await fetch_fn()
            if epoch != self._epoch:
                # the store was flushed while this fetch ran; hand the value back without caching it
                app_logger.debug("cache.fetch_discarded", key=key)
                return value
            self._write(key, value, ttl)
            self._persist()
            return value
        finally:
            if epoch == self._epoch:
                self._in_flight.pop(key, None)

    # ---- writes ----

    def _write(self, key: str, value: Any, ttl: float) -> None:
        now = self._clock()
        self._store[key] = CacheEntry(value=value, created_at=now, expires_at=now + ttl)

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        self._write(key, value, self._resolve_ttl(key, ttl))
        self._persist()

    def invalidate(self, key: str) -> bool:
        removed = self._store.pop(key, None) is not None
        self._persist()
        return removed

    def invalidate_by_prefix(self, prefix: str) -> int:
        doomed = [key for key in self._store if key.startswith(prefix)]
        for key in doomed:
            del self._store[key]
        self._persist()
        app_logger.debug("cache.invalidated_prefix", prefix=prefix, removed=len(doomed))
        return len(doomed)

    def clear(self) -> None:
        self._epoch += 1
        self._store.clear()
        self._in_flight.clear()
        try:
            self.persistence.remove()
        except PersistenceError as e:
            app_logger.error("cache.remove_failed", backend=self.persistence.name, exc_info=e)

    def extend_ttl(self, key: str, additional_seconds: float) -> bool:
        entry = self._store.get(key)
        if entry is None:
            return False
        self._store[key] = entry.model_copy(update={"expires_at": entry.expires_at + additional_seconds})
        self._persist()
        return True

    def optimize(self) -> int:
        """Give frequently hit entries at least HOT_KEY_EXTENSION_SECONDS more life."""
        now = self._clock()
        extended = 0
        for key, counts in self._metrics_by_key.items():
            total = counts["hits"] + counts["misses"]
            if counts["hits"] <= HOT_KEY_MIN_HITS or counts["hits"] / total <= HOT_KEY_MIN_RATIO:
                continue
            entry = self._store.get(key)
            if entry is None:
                continue
            expires_at = max(entry.expires_at, now + HOT_KEY_EXTENSION_SECONDS)
            if expires_at != entry.expires_at:
                self._store[key] = entry.model_copy(update={"expires_at": expires_at})
                extended += 1
        self._persist()
        app_logger.info("cache.optimized", extended=extended)
        return extended

    # ---- diagnostics ----

    def reset_metrics(self) -> None:
        self._hits = 0
        self._misses = 0
        self._metrics_by_key: Dict[str, Dict[str, int]] = {}

    def _estimate_size_kb(self) -> int:
        try:
            return round(len(self._serialize()) / 1024)
        except (TypeError, ValueError):
            return 0

    def stats(self) -> CacheStats:
        lookups = self._hits + self._misses
        hit_rate = (self._hits / lookups) * 100 if lookups else 0
        return CacheStats(
            size=len(self._store),
            keys=list(self._store.keys()),
            total_size_kb=self._estimate_size_kb(),
            metrics=CacheMetrics(hits=self._hits, misses=self._misses, hit_rate=f"{hit_rate:.2f}%"),
        )

    def __len__(self) -> int:
        return len(self._store)
