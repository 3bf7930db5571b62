"""Database factory with registry-based configuration."""

import os
from typing import Any, Callable, Dict, Optional, Type

from dynapi.exceptions import ConfigurationError

from .database import Database

# Registry for database implementations
_DATABASE_REGISTRY: Dict[str, Type[Database]] = {}
# Registry for database configuration functions
_DATABASE_CONFIGURATORS: Dict[str, Callable[[Dict[str, Any]], Database]] = {}
_DEFAULT_DATABASE: str = "json"


def register_database(
    name: str,
    database_class: Type[Database],
    configurator: Optional[Callable[[Dict[str, Any]], Database]] = None,
) -> None:
    """Register a database implementation.

    Args:
        name: Database type name to register
        database_class: Database class that implements the Database interface
        configurator: Optional function to configure the database with kwargs

    Raises:
        ConfigurationError: If the class is not a Database or the name is taken
    """
    if not (isinstance(database_class, type) and issubclass(database_class, Database)):
        raise ConfigurationError(
            f"Database class {database_class!r} must inherit from Database",
            details={"name": name},
        )
    if name in _DATABASE_REGISTRY:
        raise ConfigurationError(
            f"Database type '{name}' is already registered", details={"name": name}
        )

    _DATABASE_REGISTRY[name] = database_class
    _DATABASE_CONFIGURATORS[name] = configurator or (
        lambda kwargs: database_class(**kwargs)
    )


def list_available_databases() -> Dict[str, Type[Database]]:
    """Get all available database types."""
    return _DATABASE_REGISTRY.copy()


def get_database(db_type: Optional[str] = None, **kwargs: Any) -> Database:
    """Get a database instance.

    Args:
        db_type: Database type (registered name).
                Defaults to env var DYNAPI_DB_TYPE or "json"
        **kwargs: Database-specific configuration

    Returns:
        Database instance

    Raises:
        ConfigurationError: If db_type is unknown or cannot be configured
    """
    if db_type is None:
        db_type = os.getenv("DYNAPI_DB_TYPE", _DEFAULT_DATABASE)

    if db_type not in _DATABASE_REGISTRY:
        available = ", ".join(sorted(_DATABASE_REGISTRY))
        raise ConfigurationError(
            f"Unsupported database type: '{db_type}'. Available types: {available}"
        )

    try:
        return _DATABASE_CONFIGURATORS[db_type](kwargs)
    except Exception as e:
        raise ConfigurationError(
            f"Failed to configure database: {e}", details={"db_type": db_type}
        ) from e


def _register_builtin_databases() -> None:
    """Register built-in database implementations."""
    from .jsondb import JsonDB

    def json_configurator(kwargs: Dict[str, Any]) -> JsonDB:
        base_path = kwargs.get("base_path") or os.getenv("DYNAPI_DATA_DIR", "data")
        return JsonDB(str(base_path), cache_size=kwargs.get("cache_size"))

    register_database("json", JsonDB, json_configurator)


_register_builtin_databases()
