from typing import Any, List, Optional, Union

from attendcache.core.exceptions.exceptions import InvalidCursorChainError
from attendcache.models.cursor_chain import CursorChain
from attendcache.schemas.pagination import (
    PageDirection,
    PaginationState,
    QueryFilter,
    SearchParams,
    SortOption,
)
from attendcache.services.cursor_registry import CursorRegistry
from attendcache.services.filter_signature import build_filter_signature
from attendcache.utils.log import app_logger

# marks an update_filters argument the caller did not pass
_KEEP = object()


class PaginationController:
    """Page state for one list view over a forward-only cursor source.

    Moving forward needs the cursor returned by the previous page, so `next`
    only works once that cursor is in the chain. A direct jump past the known
    chain is accepted but flagged through `pending_jump_target`; the data
    fetching layer has to replay the intermediate pages to discover the
    cursor. Out-of-range pages are ignored.
    """

    def __init__(
        self,
        registry: CursorRegistry,
        scope: str,
        sort: SortOption,
        category_filter: Optional[str] = None,
        search: Optional[SearchParams] = None,
    ):
        self.registry = registry
        self.scope = scope
        self.sort = sort
        self.category_filter = category_filter
        self.search = search
        self.signature = build_filter_signature(scope, sort, category_filter, search)
        # a view coming back to a fresh chain keeps what it already knows
        self.state = PaginationState(total_pages=self.chain.total_pages)

    # ---- read side ----

    @property
    def chain(self) -> CursorChain:
        return self.registry.get(self.signature)

    @property
    def cursors(self) -> List[Any]:
        return list(self.chain.cursors)

    @property
    def current_page(self) -> int:
        return self.state.current_page

    @property
    def total_pages(self) -> int:
        return self.state.total_pages

    @property
    def pending_jump_target(self) -> Optional[int]:
        return self.state.pending_jump_target

    @property
    def generation(self) -> int:
        return self.state.generation

    def is_current(self, generation: int) -> bool:
        return generation == self.state.generation

    def query_filter(self) -> QueryFilter:
        return QueryFilter(scope=self.scope, category=self.category_filter, search=self.search)

    def cursor_for_page(self, page: int) -> Any:
        cursors = self.chain.cursors
        if page < 1 or page > len(cursors):
            raise InvalidCursorChainError(self.signature, f"no cursor known for page {page}")
        return cursors[page - 1]

    # ---- events ----

    def update_filters(self, sort=_KEEP, category_filter=_KEEP, search=_KEEP) -> bool:
        """Apply a filter/sort/search change. Returns False when the signature did not change."""
        sort = self.sort if sort is _KEEP else sort
        category_filter = self.category_filter if category_filter is _KEEP else category_filter
        search = self.search if search is _KEEP else search

        signature = build_filter_signature(self.scope, sort, category_filter, search)
        if signature == self.signature:
            return False

        self.sort = sort
        self.category_filter = category_filter
        self.search = search
        self.signature = signature
        self.registry.reset(signature)
        self.state = PaginationState(generation=self.state.generation + 1)
        app_logger.debug("pagination.filters_changed", signature=signature)
        return True

    def handle_page_change(self, direction: Union[PageDirection, str]) -> bool:
        direction = PageDirection(direction)
        if direction is PageDirection.NEXT and self.state.current_page < self.chain.known_pages:
            self.state.current_page += 1
            return True
        if direction is PageDirection.PREV and self.state.current_page > 1:
            self.state.current_page -= 1
            return True
        return False

    def go_to_specific_page(self, page: int) -> bool:
        if page < 1 or page > self.state.total_pages:
            return False

        if page <= self.chain.known_pages:
            self.state.current_page = page
            self.state.pending_jump_target = None
            return True

        self.state.pending_jump_target = page
        self.state.current_page = page
        app_logger.debug("pagination.jump_pending", signature=self.signature, target=page,
                         known_pages=self.chain.known_pages)
        return True

    def reset_pagination(self) -> None:
        self.registry.set_cursors(self.signature, [None])
        self.state.current_page = 1
        self.state.pending_jump_target = None
        self.state.generation += 1

    def set_total_pages(self, total_pages: int) -> None:
        chain = self.registry.set_total_pages(self.signature, total_pages)
        self.state.total_pages = chain.total_pages

    def record_next_cursor(self, page: int, cursor: Any) -> bool:
        """Append `cursor` as the token for page + 1 if `page` is the last known page."""
        if cursor is None or self.chain.known_pages != page:
            return False
        self.registry.append_cursor(self.signature, cursor)
        return True

    def clear_pending_jump(self) -> None:
        self.state.pending_jump_target = None

    def resume_lost_position(self) -> bool:
        """Re-arm a jump to the current page when its cursor is no longer in the chain.

        The chain shrinks under a view when it outlives the freshness window or
        another view on the same signature resets it. Returns True when the
        pages up to the current one have to be replayed.
        """
        if self.state.pending_jump_target is not None or self.state.current_page <= self.chain.known_pages:
            return False
        if self.state.current_page > self.state.total_pages:
            self.state.current_page = 1
            return False
        self.state.pending_jump_target = self.state.current_page
        return True

    def abandon_jump(self) -> None:
        """Drop a jump that could not be replayed and land on the furthest known page."""
        self.state.pending_jump_target = None
        self.state.current_page = max(1, min(self.state.current_page, self.chain.known_pages))
