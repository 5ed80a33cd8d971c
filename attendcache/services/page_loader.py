import math
from typing import Optional, Tuple

from attendcache.clients.data_source import DataSource
from attendcache.schemas.pagination import PageResult, QueryPage
from attendcache.services.durable_cache import DurableCacheStore
from attendcache.services.invalidation import CACHE_DURATIONS, CACHE_KEYS
from attendcache.services.pagination_controller import PaginationController
from attendcache.utils.log import app_logger


class StaleResultError(Exception):
    """Raised internally when the view's filters changed while a fetch was in flight."""


class PageLoader:
    """Fetches the controller's current page through the cache.

    Each page is cached under its own content key. A pending jump is resolved
    by walking forward from the last known cursor, one page at a time, until
    the cursor for the target page has been discovered. Results that arrive
    after the view's filters changed are dropped (load_page returns None).
    """

    def __init__(
        self,
        cache: DurableCacheStore,
        controller: PaginationController,
        data_source: DataSource,
        page_size: int = 10,
        ttl: float = CACHE_DURATIONS["ATTENDANCE"],
    ):
        self.cache = cache
        self.controller = controller
        self.data_source = data_source
        self.page_size = page_size
        self.ttl = ttl

    def page_key(self, page: int) -> str:
        return CACHE_KEYS.attendees_page(self.controller.signature, page, self.page_size)

    async def _fetch_page(self, page: int, generation: int, force_refresh: bool = False) -> Tuple[QueryPage, str]:
        controller = self.controller
        key = self.page_key(page)
        cursor = controller.cursor_for_page(page)
        sort = controller.sort
        query_filter = controller.query_filter()
        source = "cache"

        async def fetch():
            nonlocal source
            source = "server"
            return await self.data_source.query(sort, query_filter, cursor, self.page_size)

        if force_refresh:
            result = await fetch()
            self.cache.set(key, result, self.ttl)
        else:
            result = await self.cache.get_or_fetch(key, fetch, self.ttl)

        if not controller.is_current(generation):
            raise StaleResultError(key)

        # values reloaded from the persisted blob come back as plain dicts
        result = QueryPage.model_validate(result)
        controller.record_next_cursor(page, result.next_cursor)
        self._apply_totals(page, result)
        return result, source

    def _apply_totals(self, page: int, result: QueryPage) -> None:
        if result.total_count is not None:
            total_pages = math.ceil(result.total_count / self.page_size)
        elif result.next_cursor is None:
            total_pages = page
        else:
            total_pages = max(self.controller.total_pages, page + 1)
        self.controller.set_total_pages(max(1, total_pages))

    async def _replay_to(self, target: int, generation: int) -> None:
        controller = self.controller
        while controller.chain.known_pages < target:
            page = controller.chain.known_pages
            result, _ = await self._fetch_page(page, generation)
            if result.next_cursor is None:
                # the result set ends before the target page
                break

    async def load_page(self, force_refresh: bool = False) -> Optional[PageResult]:
        controller = self.controller
        generation = controller.generation

        if controller.resume_lost_position():
            app_logger.info("pagination.chain_lost", signature=controller.signature, page=controller.current_page)

        try:
            target = controller.pending_jump_target
            if target is not None and target > controller.chain.known_pages:
                app_logger.info("pagination.replay", signature=controller.signature, target=target,
                                known_pages=controller.chain.known_pages)
                try:
                    await self._replay_to(target, generation)
                except StaleResultError:
                    raise
                except Exception as e:
                    app_logger.error("pagination.replay_failed", signature=controller.signature,
                                     target=target, exc_info=e)
                    controller.abandon_jump()
                    raise
                if controller.chain.known_pages < target:
                    controller.abandon_jump()

            page = controller.current_page
            try:
                result, source = await self._fetch_page(page, generation, force_refresh)
            except StaleResultError:
                raise
            except Exception:
                if controller.is_current(generation):
                    controller.clear_pending_jump()
                raise
        except StaleResultError as e:
            app_logger.debug("pagination.stale_result_dropped", key=str(e))
            return None

        controller.clear_pending_jump()
        return PageResult(
            records=result.records,
            page=page,
            total_pages=controller.total_pages,
            total_count=result.total_count,
            data_source=source,
        )
