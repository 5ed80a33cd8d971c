import time
from typing import Any, Callable, Dict, List

from attendcache.core.exceptions.exceptions import InvalidCursorChainError
from attendcache.models.cursor_chain import CursorChain
from attendcache.utils.log import app_logger

# cursors may point into data that changed since they were handed out
DEFAULT_FRESHNESS_SECONDS = 30 * 60


class CursorRegistry:
    """In-memory cursor chains keyed by filter signature.

    A chain older than the freshness window is thrown away on the next `get`
    and rebuilt from the start of the result set.
    """

    def __init__(self, freshness_seconds: float = DEFAULT_FRESHNESS_SECONDS, clock: Callable[[], float] = time.time):
        self.freshness_seconds = freshness_seconds
        self._clock = clock
        self._chains: Dict[str, CursorChain] = {}

    def _fresh_chain(self) -> CursorChain:
        return CursorChain(cursors=[None], total_pages=1, last_updated=self._clock())

    def get(self, signature: str) -> CursorChain:
        chain = self._chains.get(signature)
        if chain is not None and self._clock() - chain.last_updated < self.freshness_seconds:
            return chain

        if chain is not None:
            app_logger.debug("cursors.stale", signature=signature, known_pages=chain.known_pages)
        chain = self._fresh_chain()
        self._chains[signature] = chain
        return chain

    def set_cursors(self, signature: str, cursors: List[Any]) -> CursorChain:
        if not cursors or cursors[0] is not None:
            raise InvalidCursorChainError(signature, "first cursor must be None")
        chain = self.get(signature)
        chain.cursors = list(cursors)
        chain.last_updated = self._clock()
        return chain

    def append_cursor(self, signature: str, cursor: Any) -> CursorChain:
        """Record the token for the page after the last known one."""
        if cursor is None:
            raise InvalidCursorChainError(signature, "only the first cursor may be None")
        chain = self.get(signature)
        chain.cursors.append(cursor)
        chain.last_updated = self._clock()
        return chain

    def set_total_pages(self, signature: str, total_pages: int) -> CursorChain:
        chain = self.get(signature)
        chain.total_pages = max(1, int(total_pages))
        return chain

    def reset(self, signature: str) -> CursorChain:
        chain = self._fresh_chain()
        self._chains[signature] = chain
        return chain

    def clear(self) -> int:
        dropped = len(self._chains)
        self._chains.clear()
        return dropped

    def __contains__(self, signature: str) -> bool:
        return signature in self._chains

    def __len__(self) -> int:
        return len(self._chains)
