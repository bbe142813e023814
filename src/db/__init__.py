"""Database package: async engine, billing models, availability monitor."""

from .session import DatabaseMonitor, async_engine, close_db
from .models import Base

__all__ = ["DatabaseMonitor", "async_engine", "close_db", "Base"]
