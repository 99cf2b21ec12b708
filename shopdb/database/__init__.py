"""
Database Module
"""
from .connection import (
    close_database,
    create_engine,
    create_session_factory,
    get_engine,
    get_session_factory,
    init_database,
)
from .models import Base

__all__ = [
    "close_database",
    "create_engine",
    "create_session_factory",
    "get_engine",
    "get_session_factory",
    "init_database",
    "Base",
]
