"""Database abstraction layer for the endpoint registry."""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional


class Database(ABC):
    """Abstract base class for document store adapters.

    Provides a generic interface for document persistence organised in
    collections. All implementations must support:
    - Async CRUD operations (save, get, delete, find)
    - Collection-based data organization
    - Query operations with dict-based filters
    """

    @abstractmethod
    async def save(self, collection: str, data: Dict[str, Any]) -> Dict[str, Any]:
        """Save a record to the database.

        Args:
            collection: Collection name
            data: Record data

        Returns:
            Saved record with any database-generated fields
        """

    @abstractmethod
    async def get(self, collection: str, id: str) -> Optional[Dict[str, Any]]:
        """Retrieve a record by ID.

        Args:
            collection: Collection name
            id: Record ID

        Returns:
            Record data or None if not found
        """

    @abstractmethod
    async def delete(self, collection: str, id: str) -> None:
        """Delete a record by ID.

        Args:
            collection: Collection name
            id: Record ID
        """

    @abstractmethod
    async def find(
        self, collection: str, query: Dict[str, Any]
    ) -> List[Dict[str, Any]]:
        """Find records matching a query.

        Args:
            collection: Collection name
            query: Query parameters (empty dict for all records)

        Returns:
            List of matching records
        """

    async def count(
        self, collection: str, query: Optional[Dict[str, Any]] = None
    ) -> int:
        """Count records matching a query.

        Args:
            collection: Collection name
            query: Field/value equality filter (empty dict for all records)

        Returns:
            Number of matching records
        """
        if query is None:
            query = {}
        results = await self.find(collection, query)
        return len(results)

    async def delete_many(
        self, collection: str, filter_query: Dict[str, Any]
    ) -> Dict[str, Any]:
        """Delete all documents matching the filter.

        Args:
            collection: Collection name
            filter_query: Field/value equality filter

        Returns:
            Result information
        """
        documents = await self.find(collection, filter_query)
        deleted_count = 0

        for doc in documents:
            if "id" in doc:
                await self.delete(collection, doc["id"])
                deleted_count += 1

        return {"deleted_count": deleted_count}
