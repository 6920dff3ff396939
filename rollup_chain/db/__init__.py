"""
Database package for engine, session and connection management.

CHANGELOG:
- 2026-10-18: Initial creation

TODO:
- None
"""

from rollup_chain.db.session import (
    autocommit_connection,
    create_engine,
    create_session_factory,
    get_async_session,
    get_engine,
    init_engine,
)

__all__ = [
    "autocommit_connection",
    "create_engine",
    "create_session_factory",
    "get_async_session",
    "get_engine",
    "init_engine",
]
