"""Database layer - named engines and sessions."""

from transfer_kernel.db.engine import (
    LOOKUP,
    MAIN,
    get_engine,
    get_session,
    init_engine_from_url,
    register_engine,
    reset_engines,
)

__all__ = [
    "LOOKUP",
    "MAIN",
    "get_engine",
    "get_session",
    "init_engine_from_url",
    "register_engine",
    "reset_engines",
]
