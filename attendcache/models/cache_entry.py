from typing import Any

from pydantic import BaseModel, ConfigDict, model_validator


class CacheEntry(BaseModel):
    """A time-boxed cached value. Never mutated; re-setting a key replaces the entry."""

    model_config = ConfigDict(frozen=True)

    value: Any
    # epoch seconds
    created_at: float
    expires_at: float

    @model_validator(mode="after")
    def _check_window(self) -> "CacheEntry":
        if self.expires_at <= self.created_at:
            raise ValueError("expires_at must be later than created_at")
        return self

    def is_live(self, now: float) -> bool:
        return now < self.expires_at
