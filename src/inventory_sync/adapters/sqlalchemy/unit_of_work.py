"""Engine lifecycle and the SQLAlchemy unit of work."""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Self

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from inventory_sync.adapters.sqlalchemy.mappings import start_mappers
from inventory_sync.adapters.sqlalchemy.migrations import upgrade_head
from inventory_sync.adapters.sqlalchemy.repositories import (
    SqlAlchemyCanonicalRecordRepository,
    SqlAlchemyScopeRecordRepository,
)
from inventory_sync.config import get_database_config
from inventory_sync.domain.ports.unit_of_work import InventoryRepositories

if TYPE_CHECKING:
    from types import TracebackType

    from sqlalchemy.engine import Engine

log = logging.getLogger(__name__)


class StartupError(RuntimeError):
    """The adapter was used before ``startup`` or started twice."""


_lock = threading.Lock()
_engine: Engine | None = None
_sessions: sessionmaker[Session] | None = None


def startup(
    *,
    engine: Engine | None = None,
    database_uri: str | None = None,
    force: bool = False,
) -> None:
    """Bind the adapter to an engine and bring its schema to the latest revision."""

    global _engine, _sessions
    with _lock:
        if _engine is not None and not force:
            raise StartupError("Record store already started; pass force=True to rebind")
        bound = engine if engine is not None else create_engine(database_uri or get_database_config().uri)
        start_mappers()
        upgrade_head(engine=bound)
        if _engine is not None and _engine is not bound:
            _engine.dispose()
        _engine = bound
        _sessions = sessionmaker(bind=bound, expire_on_commit=False)
    log.debug("Record store bound to %s", bound.url.render_as_string(hide_password=True))


def shutdown() -> None:
    global _engine, _sessions
    with _lock:
        if _engine is not None:
            _engine.dispose()
        _engine = None
        _sessions = None


def is_started() -> bool:
    return _engine is not None


def _session_factory() -> sessionmaker[Session]:
    if _sessions is None:
        raise StartupError("Record store not started; call startup() first")
    return _sessions


class SqlAlchemyInventoryUnitOfWork:
    """One session per ``with`` block; rolled back on error, always closed."""

    def __init__(self) -> None:
        self._factory = _session_factory()
        self._session: Session | None = None
        self._repositories: InventoryRepositories | None = None

    def __enter__(self) -> Self:
        if self._session is not None:
            raise StartupError("Unit of work is already open")
        self._session = self._factory()
        self._repositories = InventoryRepositories(
            records=SqlAlchemyCanonicalRecordRepository(self._session),
            scopes=SqlAlchemyScopeRecordRepository(self._session),
        )
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        session, self._session, self._repositories = self._session, None, None
        if session is None:
            return
        try:
            if exc_type is not None:
                session.rollback()
        finally:
            session.close()

    @property
    def repositories(self) -> InventoryRepositories:
        if self._repositories is None:
            raise StartupError("Unit of work used outside its with block")
        return self._repositories

    def commit(self) -> None:
        self._active().commit()

    def rollback(self) -> None:
        self._active().rollback()

    def _active(self) -> Session:
        if self._session is None:
            raise StartupError("Unit of work used outside its with block")
        return self._session


if TYPE_CHECKING:
    from inventory_sync.domain.ports.unit_of_work import InventoryUnitOfWork

    _uow_check: InventoryUnitOfWork = SqlAlchemyInventoryUnitOfWork()
