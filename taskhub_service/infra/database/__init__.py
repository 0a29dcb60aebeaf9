"""SQLAlchemy async database support for the event log."""

from .base import Base
from .session import create_engine, create_session_factory, init_database

__all__ = ["Base", "create_engine", "create_session_factory", "init_database"]
