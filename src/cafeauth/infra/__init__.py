"""Infrastructure connections (DB)."""

from cafeauth.infra.postgresql import (
    close_db,
    get_engine,
    get_session,
    get_session_factory,
    init_db,
    store_operation,
)

__all__ = [
    "init_db",
    "close_db",
    "get_engine",
    "get_session",
    "get_session_factory",
    "store_operation",
]
