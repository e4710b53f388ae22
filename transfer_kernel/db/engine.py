"""
Module: transfer_kernel.db.engine
Responsibility: SQLAlchemy engine initialization and session factories for
    the two data stores a transfer touches.  This is the single point of
    database connection configuration.
Architecture position: Kernel > DB.  MUST NOT import from transfer_pipeline,
    transfer_services or transfer_config.

Engines are registered by name:
    - ``main``   -- source table, cross-reference table and both targets.
    - ``lookup`` -- the customer lookup table on the second database.
    Registering only ``main`` is allowed; ``lookup`` then falls back to it.

Failure modes:
    - RuntimeError if get_engine/get_session is called for a name that was
      never initialized.
    - Connection pool exhaustion if pool_size + max_overflow is exceeded.
"""

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker

from transfer_kernel.logging_config import get_logger

logger = get_logger("db.engine")

MAIN = "main"
LOOKUP = "lookup"

_engines: dict[str, Engine] = {}
_session_factories: dict[str, sessionmaker[Session]] = {}


def init_engine_from_url(
    database_url: str,
    name: str = MAIN,
    echo: bool = False,
    pool_size: int = 5,
    max_overflow: int = 5,
    pool_pre_ping: bool = True,
    pool_timeout: int = 30,
    pool_recycle: int = 1800,
) -> Engine:
    """
    Initialize and register a SQLAlchemy engine under ``name``.

    A second call with the same name disposes the previous engine first.

    Args:
        database_url: SQLAlchemy URL (oracle+oracledb://, postgresql://, sqlite://).
        name: Registry name, ``main`` or ``lookup``.
        echo: If True, log all SQL statements.
        pool_size: Connections kept in the pool (pooled backends only).
        max_overflow: Connections allowed beyond pool_size.
        pool_pre_ping: Test connections before use (handles stale connections).
        pool_timeout: Seconds to wait for a pooled connection.
        pool_recycle: Seconds after which a connection is recycled.

    Returns:
        SQLAlchemy Engine instance.
    """
    url = make_url(database_url)
    kwargs: dict = {"echo": echo}
    # SQLite uses its own single-connection pools which reject sizing arguments
    if url.get_backend_name() != "sqlite":
        kwargs.update(
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_pre_ping=pool_pre_ping,
            pool_timeout=pool_timeout,
            pool_recycle=pool_recycle,
        )

    previous = _engines.pop(name, None)
    if previous is not None:
        previous.dispose()

    engine = create_engine(url, **kwargs)
    _engines[name] = engine
    _session_factories[name] = sessionmaker(bind=engine, expire_on_commit=False)

    logger.info(
        "engine_initialized",
        extra={
            "engine_name": name,
            "dialect": engine.dialect.name,
            "database": url.render_as_string(hide_password=True),
            "echo": echo,
        },
    )
    return engine


def register_engine(engine: Engine, name: str = MAIN) -> None:
    """Register an externally created engine (used by tests and embedders)."""
    _engines[name] = engine
    _session_factories[name] = sessionmaker(bind=engine, expire_on_commit=False)


def _resolve(name: str) -> str:
    if name in _engines:
        return name
    if name == LOOKUP and MAIN in _engines:
        return MAIN
    raise RuntimeError(
        f"Engine {name!r} not initialized. Call init_engine_from_url() first."
    )


def get_engine(name: str = MAIN) -> Engine:
    """Get a registered engine.

    Raises:
        RuntimeError: If the engine has not been initialized.
    """
    return _engines[_resolve(name)]


def get_session(name: str = MAIN) -> Session:
    """Get a new session bound to the named engine."""
    return _session_factories[_resolve(name)]()



def reset_engines() -> None:
    """Dispose every registered engine and forget the session factories."""
    for engine in _engines.values():
        engine.dispose()
    _engines.clear()
    _session_factories.clear()
