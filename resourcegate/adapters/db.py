from contextlib import contextmanager
from sqlite3 import Connection as SQLite3Connection
from typing import Any, Dict, Iterator, Optional, cast

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, scoped_session, sessionmaker

from resourcegate import config, resourcegate_logging
from resourcegate.adapters.errors import BackendMissing

logger = resourcegate_logging.init_logging("db")


@event.listens_for(Engine, "connect")  # type: ignore
def _enforce_sqlite_foreign_keys(dbapi_connection: SQLite3Connection, _) -> None:
    if not isinstance(dbapi_connection, SQLite3Connection):
        return

    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def _engine_options(url: str) -> Dict[str, Any]:
    """Options of ``create_engine`` for ``url``, read from the ``[database]`` section."""
    if url.startswith("sqlite"):
        options: Dict[str, Any] = {"connect_args": {"check_same_thread": False}}
    else:
        options = {
            "pool_size": config.getint("resourcegate", "pool_size", section="database", fallback=5),
            "max_overflow": config.getint("resourcegate", "max_overflow", section="database", fallback=10),
            "pool_pre_ping": True,
        }

    if config.getboolean("resourcegate", "echo", section="database", fallback=False):
        options["echo"] = True

    return options


class DBManager:
    """Holds the engine and the thread-local sessions through which ``SQLAlchemyAdapter`` queries mapped models.

    ``make_engine`` must be called once before any resource backed by a mapped model is loaded::

        db_manager.make_engine("postgresql://gate@localhost/projects")

        with db_manager.session_context() as session:
            session.add(Project(name="apollo"))
    """

    def __init__(self) -> None:
        self._engine: Optional[Engine] = None
        self._sessions: Optional[scoped_session] = None

    def make_engine(self, url: Optional[str] = None) -> Engine:
        """Creates the engine from ``url`` or else from the ``database_url`` option of the ``[database]`` section,
        which defaults to an in-memory SQLite database. Sessions bound to a previous engine are discarded.
        """
        if not url:
            url = config.get("resourcegate", "database_url", section="database", fallback="sqlite://")
            logger.info("Connecting to the database given by the database_url option")

        self._discard_sessions()
        self._engine = create_engine(url, **_engine_options(url))

        return self._engine

    def _discard_sessions(self) -> None:
        if self._sessions is not None:
            self._sessions.remove()
            self._sessions = None

    @property
    def engine(self) -> Engine:
        """
        :raises: :class:`BackendMissing`: ``make_engine`` has not been called
        """
        if self._engine is None:
            raise BackendMissing("no database engine has been created, call db_manager.make_engine() first")

        return self._engine

    def session(self) -> Session:
        """Returns the session of the current thread.

        :raises: :class:`BackendMissing`: ``make_engine`` has not been called
        """
        engine = self.engine

        if self._sessions is None:
            try:
                self._sessions = scoped_session(sessionmaker(bind=engine, expire_on_commit=False))
            except SQLAlchemyError as err:
                logger.error("Could not create the session factory: %s", err)
                raise

        return cast(Session, self._sessions())

    @contextmanager
    def session_context(self) -> Iterator[Session]:
        """Yields the session of the current thread, committing on exit and rolling back if an exception is raised."""
        session = self.session()

        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise


db_manager = DBManager()
