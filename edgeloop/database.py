"""
Database handle.

``Database`` owns the SQLAlchemy engine and session factory.  One instance
is created by the composition root (``edgeloop.main.create_app`` or a
script) and injected into every service; there is no module-level engine.
"""

from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from edgeloop.models import Base


class Database:
    """Engine + session factory with commit/rollback session scopes."""

    def __init__(self, url: str, engine: Optional[Engine] = None, echo: bool = False):
        if engine is None:
            engine = create_engine(url, pool_pre_ping=True, echo=echo)
        self.engine = engine
        self._session_factory = sessionmaker(
            bind=self.engine,
            autoflush=False,
            expire_on_commit=False,
        )

    @classmethod
    def from_engine(cls, engine: Engine) -> "Database":
        return cls(str(engine.url), engine=engine)

    @property
    def dialect(self) -> str:
        return self.engine.dialect.name

    def create_all(self) -> None:
        Base.metadata.create_all(bind=self.engine)

    def drop_all(self) -> None:
        Base.metadata.drop_all(bind=self.engine)

    @contextmanager
    def session(self) -> Iterator[Session]:
        """Session scope: commit on success, roll back and re-raise on error.

        Returned ORM objects stay readable after the scope closes
        (``expire_on_commit=False``).
        """
        db = self._session_factory()
        try:
            yield db
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def ping(self) -> None:
        """Round-trip ``SELECT 1``; raises if the database is unreachable."""
        with self.engine.connect() as conn:
            conn.execute(text("SELECT 1"))

    def dispose(self) -> None:
        self.engine.dispose()
