import os
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Optional

from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import SQLModel

from attendcache.core.exceptions.exceptions import PersistenceError
from attendcache.models.cache_blob import CacheBlob
from attendcache.services.database import create_cache_engine, make_session_factory
from attendcache.utils.log import app_logger


class PersistenceBackend(ABC):
    """Key/value slot holding the serialized cache blob.

    Implementations raise PersistenceError on storage failures; callers decide
    whether that is fatal.
    """

    name = "abstract"

    @abstractmethod
    def load(self) -> Optional[str]:
        """Return the stored blob, or None when nothing has been saved."""

    @abstractmethod
    def save(self, blob: str) -> None:
        """Replace the stored blob."""

    @abstractmethod
    def remove(self) -> None:
        """Delete the stored blob. Removing a missing blob is not an error."""

    def close(self) -> None:
        pass


class InMemoryPersistence(PersistenceBackend):
    name = "memory"

    def __init__(self, blob: Optional[str] = None):
        self.blob = blob
        self.save_count = 0

    def load(self) -> Optional[str]:
        return self.blob

    def save(self, blob: str) -> None:
        self.blob = blob
        self.save_count += 1

    def remove(self) -> None:
        self.blob = None


class JsonFilePersistence(PersistenceBackend):
    name = "file"

    def __init__(self, path):
        self.path = Path(path)

    def load(self) -> Optional[str]:
        try:
            return self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            raise PersistenceError(self.name, str(e)) from e

    def save(self, blob: str) -> None:
        # write then rename so a crash never leaves half a blob behind
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(blob, encoding="utf-8")
            os.replace(tmp_path, self.path)
        except OSError as e:
            raise PersistenceError(self.name, str(e)) from e

    def remove(self) -> None:
        try:
            self.path.unlink(missing_ok=True)
        except OSError as e:
            raise PersistenceError(self.name, str(e)) from e


class SqlPersistence(PersistenceBackend):
    """Stores the blob as a single row of the cache_blobs table."""

    name = "sql"

    def __init__(self, engine: Engine, storage_key: str):
        self.engine = engine
        self.storage_key = storage_key
        self.SessionLocal = make_session_factory(engine)
        try:
            SQLModel.metadata.create_all(engine, tables=[CacheBlob.__table__])
        except SQLAlchemyError as e:
            raise PersistenceError(self.name, str(e)) from e

    def load(self) -> Optional[str]:
        db = self.SessionLocal()
        try:
            row = db.get(CacheBlob, self.storage_key)
            return row.payload if row else None
        except SQLAlchemyError as e:
            raise PersistenceError(self.name, str(e)) from e
        finally:
            db.close()

    def save(self, blob: str) -> None:
        db = self.SessionLocal()
        try:
            row = db.get(CacheBlob, self.storage_key)
            if row is None:
                db.add(CacheBlob(key=self.storage_key, payload=blob))
            else:
                row.payload = blob
                row.updated_at = datetime.now()
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            raise PersistenceError(self.name, str(e)) from e
        finally:
            db.close()

    def remove(self) -> None:
        db = self.SessionLocal()
        try:
            row = db.get(CacheBlob, self.storage_key)
            if row is not None:
                db.delete(row)
                db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            raise PersistenceError(self.name, str(e)) from e
        finally:
            db.close()

    def close(self) -> None:
        self.engine.dispose()


def build_persistence(settings) -> PersistenceBackend:
    """Pick the backend named by settings.CACHE_BACKEND."""
    backend = (settings.CACHE_BACKEND or "memory").strip().lower()
    if backend == "file":
        return JsonFilePersistence(settings.CACHE_FILE_PATH)
    if backend == "sql":
        return SqlPersistence(create_cache_engine(settings.CACHE_DB_URL), settings.CACHE_STORAGE_KEY)
    if backend != "memory":
        app_logger.warning("persistence.unknown_backend", backend=backend, fallback="memory")
    return InMemoryPersistence()
