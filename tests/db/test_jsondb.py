"""Test suite for the JsonDB document store.

Tests JSON file-based operations including:
- Basic CRUD and query filtering
- Atomic writes and document ID validation
- Cache invalidation when files change underneath
"""

import json
import os
import tempfile

import pytest

from dynapi.db import get_database, list_available_databases
from dynapi.db.jsondb import JsonDB
from dynapi.db.query import QueryEngine
from dynapi.exceptions import ConfigurationError


class TestJsonDBBasicOperations:
    """Test basic JsonDB operations."""

    @pytest.fixture
    def temp_db_dir(self):
        """Create temporary directory for database."""
        with tempfile.TemporaryDirectory() as tmpdir:
            yield tmpdir

    @pytest.fixture
    def jsondb(self, temp_db_dir):
        """Create JsonDB instance for testing."""
        return JsonDB(base_path=temp_db_dir)

    @pytest.mark.asyncio
    async def test_save_and_get(self, jsondb, temp_db_dir):
        saved = await jsondb.save("endpoints", {"id": "e1", "path": "/a"})
        assert saved["id"] == "e1"
        assert os.path.exists(os.path.join(temp_db_dir, "endpoints", "e1.json"))

        loaded = await jsondb.get("endpoints", "e1")
        assert loaded == {"id": "e1", "path": "/a"}

    @pytest.mark.asyncio
    async def test_save_requires_id(self, jsondb):
        with pytest.raises(KeyError):
            await jsondb.save("endpoints", {"path": "/a"})

    @pytest.mark.asyncio
    async def test_get_missing_and_invalid_ids(self, jsondb):
        assert await jsondb.get("endpoints", "missing") is None
        assert await jsondb.get("endpoints", "../escape") is None
        assert await jsondb.get("endpoints", ".hidden") is None

    @pytest.mark.asyncio
    async def test_delete(self, jsondb):
        await jsondb.save("endpoints", {"id": "e1"})
        await jsondb.delete("endpoints", "e1")
        assert await jsondb.get("endpoints", "e1") is None
        # Deleting again is a no-op
        await jsondb.delete("endpoints", "e1")

    @pytest.mark.asyncio
    async def test_find_with_query(self, jsondb):
        await jsondb.save("endpoints", {"id": "a", "enabled": True, "method": "GET"})
        await jsondb.save("endpoints", {"id": "b", "enabled": False, "method": "POST"})
        await jsondb.save("endpoints", {"id": "c", "enabled": True, "method": "POST"})

        assert len(await jsondb.find("endpoints", {})) == 3
        enabled = await jsondb.find("endpoints", {"enabled": True})
        assert {doc["id"] for doc in enabled} == {"a", "c"}
        posts = await jsondb.find("endpoints", {"method": "POST", "enabled": True})
        assert [doc["id"] for doc in posts] == ["c"]
        assert await jsondb.count("endpoints", {"enabled": False}) == 1

    @pytest.mark.asyncio
    async def test_find_skips_corrupt_files(self, jsondb, temp_db_dir):
        await jsondb.save("endpoints", {"id": "ok"})
        with open(os.path.join(temp_db_dir, "endpoints", "bad.json"), "w") as f:
            f.write("{not json")
        docs = await jsondb.find("endpoints", {})
        assert [doc["id"] for doc in docs] == ["ok"]

    @pytest.mark.asyncio
    async def test_delete_many(self, jsondb):
        for i in range(3):
            await jsondb.save("assets", {"id": f"a{i}"})
        result = await jsondb.delete_many("assets", {})
        assert result == {"deleted_count": 3}
        assert await jsondb.count("assets") == 0

    @pytest.mark.asyncio
    async def test_no_temp_files_left_behind(self, jsondb, temp_db_dir):
        await jsondb.save("registry", {"id": "meta", "version": 1})
        assert os.listdir(os.path.join(temp_db_dir, "registry")) == ["meta.json"]


class TestJsonDBCache:
    """Test the stat-validated read cache."""

    @pytest.mark.asyncio
    async def test_external_write_is_visible(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            writer = JsonDB(base_path=tmpdir)
            reader = JsonDB(base_path=tmpdir)

            await writer.save("registry", {"id": "meta", "stamp": "1"})
            assert (await reader.get("registry", "meta"))["stamp"] == "1"

            await writer.save("registry", {"id": "meta", "stamp": "2"})
            assert (await reader.get("registry", "meta"))["stamp"] == "2"

    @pytest.mark.asyncio
    async def test_cached_documents_are_copies(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            db = JsonDB(base_path=tmpdir)
            await db.save("settings", {"id": "server", "logLevel": "info"})
            first = await db.get("settings", "server")
            first["logLevel"] = "debug"
            assert (await db.get("settings", "server"))["logLevel"] == "info"

    @pytest.mark.asyncio
    async def test_cache_disabled(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            db = JsonDB(base_path=tmpdir, cache_size=0)
            await db.save("settings", {"id": "server"})
            assert await db.get("settings", "server") == {"id": "server"}
            assert db._cache == {}

    @pytest.mark.asyncio
    async def test_file_contents_are_json(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            db = JsonDB(base_path=tmpdir)
            await db.save("endpoints", {"id": "e1", "path": "/é"})
            with open(os.path.join(tmpdir, "endpoints", "e1.json"), encoding="utf-8") as f:
                assert json.load(f)["path"] == "/é"


class TestDatabaseFactory:
    """Test database factory registration."""

    def test_json_is_registered(self):
        assert "json" in list_available_databases()

    def test_get_database_json(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            db = get_database("json", base_path=tmpdir)
            assert isinstance(db, JsonDB)
            assert str(db.base_path) == os.path.realpath(tmpdir)

    def test_unknown_type(self):
        with pytest.raises(ConfigurationError):
            get_database("nosuchdb")


class TestQueryEngine:
    """Test equality filter matching."""

    def test_empty_query_matches_everything(self):
        assert QueryEngine.match({"id": "a"}, {})
        assert QueryEngine.match({"id": "a"}, None)

    def test_all_fields_must_be_equal(self):
        document = {"id": "a", "enabled": True, "protected": False}
        assert QueryEngine.match(document, {"enabled": True, "protected": False})
        assert not QueryEngine.match(document, {"enabled": True, "protected": True})

    def test_missing_field_only_matches_none(self):
        assert not QueryEngine.match({"id": "a"}, {"enabled": True})
        assert QueryEngine.match({"id": "a"}, {"enabled": None})
