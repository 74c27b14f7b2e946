"""
SQLAlchemy persistence for JSON documents such as learned baselines.
"""

from newsradar.datastore.engine import Database
from newsradar.datastore.models import Base, CachedJsonDB
from newsradar.datastore.repositories import CachedJsonRepository, SqlJsonStore

__all__ = [
    "Database",
    "Base",
    "CachedJsonDB",
    "CachedJsonRepository",
    "SqlJsonStore",
]
