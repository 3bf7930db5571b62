"""Document store package for dynapi.

Provides the database abstraction used by the endpoint registry, the asset
metadata store and persisted settings.
"""

from .database import Database
from .factory import (
    get_database,
    list_available_databases,
    register_database,
)
from .jsondb import JsonDB
from .query import QueryEngine

__all__ = [
    "Database",
    "JsonDB",
    "QueryEngine",
    "get_database",
    "list_available_databases",
    "register_database",
]
