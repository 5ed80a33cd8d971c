from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field
from enum import Enum


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


class PageDirection(str, Enum):
    NEXT = "next"
    PREV = "prev"


class SortOption(BaseModel):
    field: str
    direction: SortDirection = SortDirection.ASC


class SearchParams(BaseModel):
    # search mode, e.g. 'name' or 'studentId'
    type: str
    query: str


class QueryFilter(BaseModel):
    """Filter half of a data-source query."""
    scope: str
    category: Optional[str] = None
    search: Optional[SearchParams] = None


class QueryPage(BaseModel):
    """One page returned by the data source."""
    records: List[Any] = Field(default_factory=list)
    # opaque token, None when there is no more data
    next_cursor: Optional[Any] = None
    total_count: Optional[int] = None


class PaginationState(BaseModel):
    current_page: int = Field(default=1, ge=1)
    total_pages: int = Field(default=1, ge=1)
    pending_jump_target: Optional[int] = None
    # bumped on every filter change so in-flight results can be discarded
    generation: int = 0


class PageResult(BaseModel):
    records: List[Any]
    page: int
    total_pages: int
    total_count: Optional[int] = None
    data_source: str = Field(..., description="'cache' or 'server'")


class CacheMetrics(BaseModel):
    hits: int
    misses: int
    hit_rate: str


class CacheStats(BaseModel):
    size: int
    keys: List[str]
    total_size_kb: int
    metrics: CacheMetrics


class InvalidateRequest(BaseModel):
    key: Optional[str] = None
    prefix: Optional[str] = None


class InvalidateResponse(BaseModel):
    removed: int


class SignOutResponse(BaseModel):
    status: str = Field(..., description="Status of the sign-out flush")
    detail: Dict[str, int] = Field(default_factory=dict)
