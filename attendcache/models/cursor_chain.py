from typing import Any, List

from pydantic import BaseModel, Field


class CursorChain(BaseModel):
    """Cursors discovered so far for one filter signature.

    cursors[0] is always None (start of the result set); cursors[i] is the
    opaque token that fetches page i + 1. Held in memory only.
    """

    cursors: List[Any] = Field(default_factory=lambda: [None])
    total_pages: int = Field(default=1, ge=1)
    # epoch seconds
    last_updated: float

    @property
    def known_pages(self) -> int:
        return len(self.cursors)
