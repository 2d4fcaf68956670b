"""
Engine and session management for the transaction store.

All persistence goes through ``Database.session_scope()``, which commits on
success and rolls back on any error. Connection-level failures and timeouts
surface as ``StorageUnavailableError``.
"""

from contextlib import contextmanager
from typing import Iterator, Optional
import logging

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from ..config import ReconConfig
from ..utils.exceptions import StorageUnavailableError
from .tables import Base

logger = logging.getLogger(__name__)


def _is_memory_sqlite(url: str) -> bool:
    return url in ("sqlite://", "sqlite:///:memory:") or "mode=memory" in url


class Database:
    """Owns the SQLAlchemy engine and session factory."""

    def __init__(self, url: str, timeout_seconds: float = 10.0, echo: bool = False):
        """
        Create the engine.

        Args:
            url: SQLAlchemy database URL
            timeout_seconds: Bound on lock waits and pool checkouts
            echo: Log all SQL statements
        """
        self.url = url
        self.timeout_seconds = timeout_seconds

        kwargs: dict = {"echo": echo}
        if url.startswith("sqlite"):
            kwargs["connect_args"] = {"timeout": timeout_seconds, "check_same_thread": False}
            if _is_memory_sqlite(url):
                # One shared connection, otherwise every session sees an empty database
                kwargs["poolclass"] = StaticPool
        else:
            kwargs["pool_pre_ping"] = True
            kwargs["pool_timeout"] = timeout_seconds

        self.engine: Engine = create_engine(url, **kwargs)
        self._session_factory = sessionmaker(bind=self.engine, expire_on_commit=False)
        logger.debug(f"Database engine created for {self.engine.url.render_as_string(hide_password=True)}")

    @classmethod
    def from_config(cls, config: ReconConfig, url: Optional[str] = None) -> "Database":
        storage = config.storage
        return cls(url or storage.database_url, storage.timeout_seconds, storage.echo)

    def create_tables(self) -> None:
        """Create all tables that do not exist yet."""
        try:
            Base.metadata.create_all(self.engine)
        except OperationalError as e:
            raise StorageUnavailableError(f"Cannot create tables: {e}") from e

    def drop_tables(self) -> None:
        Base.metadata.drop_all(self.engine)

    def ping(self) -> None:
        """
        Check that the database answers.

        Raises:
            StorageUnavailableError: If no connection can be made
        """
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except DBAPIError as e:
            logger.error(f"Transaction store unreachable: {e}")
            raise StorageUnavailableError(f"Transaction store unreachable: {e}") from e

    @contextmanager
    def session_scope(self) -> Iterator[Session]:
        """
        Transactional scope around a series of operations.

        Yields:
            Session committed on normal exit, rolled back on error
        """
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except OperationalError as e:
            session.rollback()
            raise StorageUnavailableError(f"Storage operation failed: {e}") from e
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def dispose(self) -> None:
        self.engine.dispose()
