from datetime import datetime

from sqlmodel import Field, Column, DateTime, SQLModel
from sqlalchemy import Text


class CacheBlob(SQLModel, table=True):
    __tablename__ = "cache_blobs"

    # well-known storage key (one row per persisted cache)
    key: str = Field(primary_key=True, nullable=False)
    # whole cache serialized as a JSON object
    payload: str = Field(sa_column=Column(Text, nullable=False))
    updated_at: datetime = Field(default_factory=datetime.now, sa_column=Column(DateTime, nullable=False))
