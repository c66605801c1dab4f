from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Iterator

import structlog
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from app.core.config import Settings
from app.db.base import Base

logger = structlog.get_logger(__name__)


def build_engine(database_url: str) -> Engine:
    connect_args = {}
    if database_url.startswith("sqlite"):
        # Sessions are handed between the event loop and the worker threadpool.
        connect_args["check_same_thread"] = False
    return create_engine(database_url, connect_args=connect_args, pool_pre_ping=True)


@dataclass
class ServiceContext:
    """Everything a request needs that outlives the request.

    One context is built per application (or per CLI run) and shared by all
    requests; the engine's pool is the only long-lived storage handle.
    """

    settings: Settings
    engine: Engine
    session_factory: sessionmaker = field(repr=False)

    @classmethod
    def from_settings(cls, settings: Settings) -> "ServiceContext":
        engine = build_engine(settings.DATABASE_URL)
        session_factory = sessionmaker(bind=engine, autocommit=False, autoflush=False)
        return cls(settings=settings, engine=engine, session_factory=session_factory)

    def init_storage(self, *, with_uploads: bool = True) -> None:
        """Create the upload directory, the SQLite parent directory and the tables."""
        import app.models  # noqa: F401  (registers the mapped tables)

        if with_uploads:
            os.makedirs(self.settings.UPLOAD_DIR, exist_ok=True)

        database = self.engine.url.database
        if self.engine.url.get_backend_name() == "sqlite" and database and database != ":memory:":
            parent = os.path.dirname(os.path.abspath(database))
            os.makedirs(parent, exist_ok=True)

        Base.metadata.create_all(bind=self.engine)
        logger.info(
            "storage_ready",
            database=self.engine.url.render_as_string(hide_password=True),
            upload_dir=self.settings.UPLOAD_DIR if with_uploads else None,
        )

    def session(self) -> Session:
        return self.session_factory()

    def iter_session(self) -> Iterator[Session]:
        db = self.session_factory()
        try:
            yield db
        finally:
            db.close()

    def dispose(self) -> None:
        self.engine.dispose()
