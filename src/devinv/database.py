"""Local SQLite store holding users, devices and the audit log."""

import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from sqlalchemy import (
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    create_engine,
    event,
    text,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from .config import Settings, settings as default_settings
from .exceptions import StoreUnavailableError

logger = logging.getLogger(__name__)

Base = declarative_base()

MEMORY_PATH = ":memory:"


class Device(Base):
    """SQLAlchemy model for one inventory entry owned by a user."""

    __tablename__ = "devices"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), index=True)
    name = Column(String)
    type = Column(String)
    ip_address = Column(String)
    calibration = Column(Float)


class LogEntry(Base):
    """SQLAlchemy model for an append-only audit row."""

    __tablename__ = "logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    timestamp = Column(DateTime, default=datetime.now, nullable=False)
    category = Column(String)
    message = Column(String)


def _enable_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class Store:
    """Owns the single connection pool to the application database.

    ``open`` is idempotent: while the store is open further calls return the
    live engine instead of creating a second one. Failure to open the file or
    create the schema raises :class:`StoreUnavailableError`; every other
    failure is logged and reported through the return value.
    """

    def __init__(
        self,
        path: Union[str, Path, None] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or default_settings
        if path is None:
            path = self.settings.resolved_database_path()
        self.path = path if str(path) == MEMORY_PATH else Path(path)
        self._engine: Optional[Engine] = None
        self._session_factory: Optional[sessionmaker] = None

    @property
    def is_open(self) -> bool:
        return self._engine is not None

    def open(self) -> Engine:
        """Open the database, creating the file, tables and default admin if needed."""
        if self._engine is not None:
            return self._engine

        try:
            engine = self._create_engine()
        except (OSError, SQLAlchemyError) as exc:
            logger.critical("could not open database %s: %s", self.path, exc)
            raise StoreUnavailableError(f"could not open database at {self.path}") from exc

        # users must be registered on the metadata before create_all
        from .models.user import User  # noqa: F401

        try:
            Base.metadata.create_all(bind=engine)
        except SQLAlchemyError as exc:
            engine.dispose()
            logger.critical("could not create schema in %s: %s", self.path, exc)
            raise StoreUnavailableError(f"could not create tables in {self.path}") from exc

        self._engine = engine
        self._session_factory = sessionmaker(
            bind=engine, autoflush=False, autocommit=False, future=True
        )
        try:
            self._seed_default_admin()
        except StoreUnavailableError:
            self.close()
            raise
        logger.info("opened database %s", self.path)
        return engine

    def _create_engine(self) -> Engine:
        if self.path == MEMORY_PATH:
            engine = create_engine(
                "sqlite://",
                future=True,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        else:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            engine = create_engine(f"sqlite:///{self.path}", future=True)
        event.listen(engine, "connect", _enable_foreign_keys)
        # force a connection so an unopenable file fails here
        with engine.connect():
            pass
        return engine

    def _seed_default_admin(self) -> None:
        from .models.user import User
        from .security import hash_password

        session = self.session()
        try:
            if session.query(User).count() == 0:
                session.add(
                    User(
                        username=self.settings.default_admin_username,
                        password_hash=hash_password(
                            self.settings.default_admin_password,
                            iterations=self.settings.password_hash_iterations,
                        ),
                        role=self.settings.default_admin_role,
                    )
                )
                session.commit()
                logger.info(
                    "created default administrator %s",
                    self.settings.default_admin_username,
                )
        except SQLAlchemyError as exc:
            session.rollback()
            logger.critical("could not seed default administrator: %s", exc)
            raise StoreUnavailableError("could not create default administrator") from exc
        finally:
            session.close()

    def close(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
            logger.info("closed database %s", self.path)
        self._engine = None
        self._session_factory = None

    def session(self) -> Session:
        """Return a new ORM session bound to the open store."""
        if self._session_factory is None:
            raise StoreUnavailableError("store is not open")
        return self._session_factory()

    def execute(self, sql: str, params: Optional[Dict[str, Any]] = None) -> bool:
        """Run one parameterized write statement in its own transaction."""
        if self._engine is None:
            logger.error("execute on closed store: %s", sql)
            return False
        try:
            with self._engine.begin() as conn:
                conn.execute(text(sql), params or {})
            return True
        except SQLAlchemyError:
            logger.exception("statement failed: %s", sql)
            return False

    def query(self, sql: str, params: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        """Run one parameterized select and return its rows as dicts."""
        if self._engine is None:
            logger.error("query on closed store: %s", sql)
            return []
        try:
            with self._engine.connect() as conn:
                result = conn.execute(text(sql), params or {})
                return [dict(row) for row in result.mappings().all()]
        except SQLAlchemyError:
            logger.exception("query failed: %s", sql)
            return []

    def __enter__(self) -> "Store":
        self.open()
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
