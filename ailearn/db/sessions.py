import logging
from typing import Iterator, Optional

from fastapi import Request
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from ailearn.db.base import Base

logger = logging.getLogger("ailearn.db.session")


class Database:
    """Engine and session factory with explicit init/teardown.

    One instance is built by the app factory and kept on ``app.state.db``.
    """

    def __init__(self, url: str):
        if not url:
            raise RuntimeError(
                "DATABASE_URL is not configured. Set the DATABASE_URL env var."
            )
        self.url = url
        self.engine: Optional[Engine] = None
        self.SessionLocal: Optional[sessionmaker] = None

    def init(self) -> None:
        if self.engine is not None:
            return

        logger.info("Initializing DB engine (sqlite=%s)", self.url.startswith("sqlite"))
        kwargs = {}
        if self.url.startswith("sqlite"):
            # TestClient and uvicorn's threadpool share connections across threads
            kwargs["connect_args"] = {"check_same_thread": False}
            if ":memory:" in self.url or self.url == "sqlite://":
                kwargs["poolclass"] = StaticPool
        else:
            # enable pool_pre_ping to avoid stale/closed connections
            kwargs["pool_pre_ping"] = True

        self.engine = create_engine(self.url, **kwargs)
        self.SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)

    def create_all(self) -> None:
        # Import all models to ensure they're registered with Base
        import ailearn.models  # noqa: F401

        Base.metadata.create_all(bind=self.engine)

    def session(self) -> Session:
        if self.SessionLocal is None:
            raise RuntimeError("Database.init() has not been called")
        return self.SessionLocal()

    def dispose(self) -> None:
        if self.engine is not None:
            self.engine.dispose()
            logger.info("DB engine disposed")
        self.engine = None
        self.SessionLocal = None


def get_db(request: Request) -> Iterator[Session]:
    db = request.app.state.db.session()
    try:
        yield db
    finally:
        db.close()
