"""
Database Lifecycle Module
"""
from .manager import DatabaseLifecycleManager, DatabaseStatistics, LifecycleState

__all__ = [
    "DatabaseLifecycleManager",
    "DatabaseStatistics",
    "LifecycleState",
]
