from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool


def create_cache_engine(url: str) -> Engine:
    """
    create the engine backing the persisted cache blob.
    """
    if url.startswith("sqlite"):
        # in-memory sqlite must share one connection or every session sees an empty db
        pool_args = {"poolclass": StaticPool} if url in ("sqlite://", "sqlite:///:memory:") else {}
        return create_engine(
            url,
            connect_args={"check_same_thread": False},
            echo=False,
            **pool_args,
        )

    return create_engine(
        url,
        pool_pre_ping=True,
        pool_size=5,
        max_overflow=10,
        pool_timeout=30,
        echo=False
    )


def make_session_factory(engine: Engine) -> sessionmaker:
    # session factory bound to the cache engine
    return sessionmaker(autoflush=False, bind=engine)
