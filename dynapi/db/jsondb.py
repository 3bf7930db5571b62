"""JSON-based document store implementation."""

import asyncio
import contextlib
import json
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from dynapi.db.database import Database
from dynapi.db.query import QueryEngine
from dynapi.exceptions import StorageError


class JsonDB(Database):
    """JSON file-based document store with a stat-validated read cache.

    Each document is one ``<collection>/<id>.json`` file. Writes go to a
    temporary file that is atomically renamed over the target, so readers
    in other processes never observe a half-written document.
    """

    def __init__(
        self, base_path: str = "data", cache_size: Optional[int] = None
    ) -> None:
        """Initialize JSON database.

        Args:
            base_path: Base directory for JSON files
            cache_size: Maximum number of documents to cache. If None, reads from
                       DYNAPI_CACHE_SIZE environment variable (default: 500).
                       Set to 0 to disable caching.
        """
        self.base_path = Path(base_path).resolve()
        try:
            self.base_path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(
                f"Cannot create database directory {base_path}: {e}"
            ) from e
        self._lock: Optional[asyncio.Lock] = None  # Lazy initialization
        self._cache: Dict[str, Dict[str, Any]] = {}
        self._cache_stamp: Dict[str, Tuple[int, int, int]] = {}

        if cache_size is None:
            cache_size = int(os.getenv("DYNAPI_CACHE_SIZE", "500"))
        self._cache_size = cache_size

    def _get_lock(self) -> asyncio.Lock:
        """Get or create the async lock lazily."""
        if self._lock is None:
            self._lock = asyncio.Lock()
        return self._lock

    @property
    def data_dir(self) -> Path:
        """Get the data directory path."""
        return self.base_path

    def _get_collection_path(self, collection: str) -> Path:
        """Get path for collection directory.

        Args:
            collection: Collection name

        Returns:
            Path to collection directory

        Raises:
            ValueError: If collection name is invalid
            StorageError: If directory cannot be created
        """
        if not collection or "/" in collection or "\\" in collection:
            raise ValueError(f"Invalid collection name: {collection}")

        path = self.base_path / collection
        try:
            path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Cannot create collection directory {path}: {e}") from e
        return path

    def _get_file_path(self, collection: str, id: str) -> Path:
        """Get file path for a document.

        Raises:
            ValueError: If id contains invalid characters
        """
        if not id or "/" in id or "\\" in id or id.startswith("."):
            raise ValueError(f"Invalid document ID: {id}")

        return self._get_collection_path(collection) / f"{id}.json"

    @staticmethod
    def _stamp(file_path: Path) -> Tuple[int, int, int]:
        stat = file_path.stat()
        return (stat.st_mtime_ns, stat.st_size, stat.st_ino)

    def _forget(self, cache_key: str) -> None:
        self._cache.pop(cache_key, None)
        self._cache_stamp.pop(cache_key, None)

    async def save(self, collection: str, data: Dict[str, Any]) -> Dict[str, Any]:
        """Save document to JSON file.

        Args:
            collection: Collection name
            data: Document data

        Returns:
            Saved document

        Raises:
            KeyError: If document data lacks required 'id' field
            ValueError: If collection name or document ID is invalid
            StorageError: If file cannot be written
        """
        if "id" not in data:
            raise KeyError("Document data must contain 'id' field")

        file_path = self._get_file_path(collection, data["id"])
        temp_path = file_path.with_suffix(".json.tmp")
        async with self._get_lock():
            try:
                with open(temp_path, "w", encoding="utf-8") as f:
                    json.dump(data, f, indent=2, ensure_ascii=False)
                os.replace(temp_path, file_path)
            except OSError as e:
                with contextlib.suppress(OSError):
                    temp_path.unlink()
                raise StorageError(f"Cannot write to file {file_path}: {e}") from e
            except (TypeError, ValueError) as e:
                with contextlib.suppress(OSError):
                    temp_path.unlink()
                raise StorageError(f"Cannot serialize data to JSON: {e}") from e
            self._forget(f"{collection}:{data['id']}")
        return data

    async def get(self, collection: str, id: str) -> Optional[Dict[str, Any]]:
        """Get document by ID with caching.

        Args:
            collection: Collection name
            id: Document ID

        Returns:
            Document data or None if not found
        """
        try:
            file_path = self._get_file_path(collection, id)
        except ValueError:
            return None  # Invalid ID returns None instead of error

        cache_key = f"{collection}:{id}"
        if not file_path.exists():
            self._forget(cache_key)
            return None

        if self._cache_size > 0 and cache_key in self._cache:
            try:
                if self._cache_stamp.get(cache_key) == self._stamp(file_path):
                    return dict(self._cache[cache_key])
            except OSError:
                pass

        async with self._get_lock():
            try:
                with open(file_path, "r", encoding="utf-8") as f:
                    result = json.load(f)
                stamp = self._stamp(file_path)
            except (OSError, json.JSONDecodeError):
                # Corrupted or inaccessible file
                return None
            if not isinstance(result, dict):
                return None
            if self._cache_size > 0:
                if len(self._cache) >= self._cache_size and cache_key not in self._cache:
                    self._forget(next(iter(self._cache)))
                self._cache[cache_key] = result
                self._cache_stamp[cache_key] = stamp
            return dict(result)

    async def delete(self, collection: str, id: str) -> None:
        """Delete document by ID.

        Args:
            collection: Collection name
            id: Document ID
        """
        try:
            file_path = self._get_file_path(collection, id)
        except ValueError:
            return  # Invalid ID is silently ignored

        async with self._get_lock():
            self._forget(f"{collection}:{id}")
            with contextlib.suppress(FileNotFoundError):
                file_path.unlink()

    async def find(
        self, collection: str, query: Dict[str, Any]
    ) -> List[Dict[str, Any]]:
        """Find documents matching query.

        Args:
            collection: Collection name
            query: Query parameters (empty dict for all records)

        Returns:
            List of matching documents
        """
        try:
            collection_path = self._get_collection_path(collection)
        except (ValueError, StorageError):
            return []  # Invalid collection returns empty list

        results = []
        seen_ids = set()

        for file_path in sorted(collection_path.glob("*.json")):
            try:
                with open(file_path, "r", encoding="utf-8") as f:
                    doc = json.load(f)
            except (json.JSONDecodeError, OSError):
                # Skip unreadable files and files removed mid-scan
                continue

            if not isinstance(doc, dict) or "id" not in doc:
                continue
            if doc["id"] in seen_ids:
                continue
            seen_ids.add(doc["id"])

            if QueryEngine.match(doc, query):
                results.append(doc)

        return results
