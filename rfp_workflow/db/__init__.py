"""Relational persistence layer."""

from rfp_workflow.db.base import Base, utcnow
from rfp_workflow.db.session import get_engine, get_session_factory, init_db, session_scope

__all__ = [
    "Base",
    "utcnow",
    "get_engine",
    "get_session_factory",
    "init_db",
    "session_scope",
]
