"""Local filesystem asset storage.

Asset bytes live as ``<id><ext>`` files under the asset root; asset
metadata lives as documents in the ``assets`` collection of the document
store. Every path is validated against the root directory, and all file
I/O runs in a worker thread via ``asyncio.to_thread``.
"""

import asyncio
import base64
import logging
import uuid
from pathlib import Path
from typing import Dict, List, Optional, Tuple, cast

from dynapi.constants import CONTENT_TYPES, Collections, LogIcons
from dynapi.db.database import Database
from dynapi.exceptions import PathTraversalError, StorageError
from dynapi.models import Asset

logger = logging.getLogger(__name__)


class AssetStore:
    """Asset storage backed by a local directory and a document store.

    Args:
        root_dir: Root directory for asset files
        database: Document store holding asset metadata
        create_root: Automatically create root directory if missing (default: True)

    Example:
        >>> store = AssetStore("./data/assets", database)
        >>> asset = await store.save_asset("logo.png", png_bytes)
        >>> await store.resolve_by_path(asset.path)
        b'\\x89PNG...'
    """

    def __init__(self, root_dir: str, database: Database, create_root: bool = True):
        self.root_dir = Path(root_dir).resolve()
        self.database = database

        if create_root:
            self.root_dir.mkdir(parents=True, exist_ok=True)
            logger.info(f"{LogIcons.STORAGE} Asset storage initialized at: {self.root_dir}")

        if not self.root_dir.exists():
            raise StorageError(f"Asset root does not exist: {self.root_dir}")

    def _get_full_path(self, file_path: str) -> Path:
        """Get and validate full filesystem path.

        Args:
            file_path: Path relative to the asset root

        Returns:
            Validated absolute Path object

        Raises:
            PathTraversalError: If path escapes root directory
        """
        relative = file_path.replace("\\", "/").lstrip("/")
        if not relative or "\x00" in relative:
            raise PathTraversalError("Invalid asset path", path=file_path)

        full_path = (self.root_dir / relative).resolve()
        try:
            full_path.relative_to(self.root_dir)
        except ValueError:
            logger.warning(f"Path escape attempt blocked: {file_path}")
            raise PathTraversalError("Path escapes asset root", path=file_path)
        return full_path

    @staticmethod
    def content_type_for(ext: str) -> Optional[str]:
        """Content type registered for a file extension, if any."""
        return CONTENT_TYPES.get(ext.lower())

    async def _read(self, full_path: Path) -> Optional[bytes]:
        if not await asyncio.to_thread(full_path.is_file):
            return None
        try:
            return cast(bytes, await asyncio.to_thread(full_path.read_bytes))
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StorageError(f"Failed to read asset {full_path.name}: {e}") from e

    async def _write(self, full_path: Path, content: bytes) -> None:
        await asyncio.to_thread(full_path.parent.mkdir, parents=True, exist_ok=True)
        temp_path = full_path.with_suffix(full_path.suffix + ".tmp")
        try:
            await asyncio.to_thread(temp_path.write_bytes, content)
            await asyncio.to_thread(temp_path.replace, full_path)
        except OSError as e:
            if temp_path.exists():
                await asyncio.to_thread(temp_path.unlink)
            raise StorageError(f"Failed to write asset {full_path.name}: {e}") from e

    async def save_asset(
        self, filename: str, content: bytes, content_type: Optional[str] = None
    ) -> Asset:
        """Store an uploaded file and its metadata.

        Args:
            filename: Original file name
            content: File bytes
            content_type: Declared content type, if the uploader sent one

        Returns:
            The created Asset record
        """
        asset_id = str(uuid.uuid4())
        ext = Path(filename).suffix.lower()
        stored_name = f"{asset_id}{ext}"
        await self._write(self._get_full_path(stored_name), content)

        asset = Asset(
            id=asset_id,
            filename=filename,
            path=stored_name,
            ext=ext,
            content_type=content_type or self.content_type_for(ext),
            size=len(content),
        )
        await self.database.save(Collections.ASSETS, asset.to_document())
        logger.info(f"{LogIcons.REGISTERED} Asset saved: {filename} -> {stored_name}")
        return asset

    async def resolve_by_path(self, relative_path: str) -> Optional[bytes]:
        """Read an asset file by its path relative to the asset root.

        Raises:
            PathTraversalError: If the path escapes the asset root
        """
        return await self._read(self._get_full_path(relative_path))

    async def get_asset(self, asset_id: str) -> Optional[Asset]:
        document = await self.database.get(Collections.ASSETS, asset_id)
        return Asset(**document) if document else None

    async def resolve_by_id(self, asset_id: str) -> Optional[Tuple[Asset, bytes]]:
        """Resolve an asset record and its bytes by id.

        Falls back to scanning the asset root for a file named after the id,
        which covers asset files restored without a metadata record.

        Returns:
            (Asset, bytes) or None if unknown
        """
        asset = await self.get_asset(asset_id)
        if asset is not None:
            content = await self._read(self._get_full_path(asset.path))
            return (asset, content) if content is not None else None

        for candidate in await asyncio.to_thread(lambda: sorted(self.root_dir.iterdir())):
            if candidate.is_file() and candidate.name.startswith(asset_id):
                content = await self._read(candidate)
                if content is None:
                    continue
                legacy = Asset(
                    id=asset_id,
                    filename=candidate.name,
                    path=candidate.name,
                    ext=candidate.suffix.lower(),
                    content_type=self.content_type_for(candidate.suffix),
                    size=len(content),
                )
                return legacy, content
        return None

    async def list_assets(self) -> List[Asset]:
        documents = await self.database.find(Collections.ASSETS, {})
        assets = [Asset(**doc) for doc in documents]
        return sorted(assets, key=lambda asset: asset.created_at)

    async def delete_asset(self, asset_id: str) -> bool:
        """Delete an asset file and its metadata.

        Returns:
            True if anything was deleted, False if the asset was unknown
        """
        deleted = False
        asset = await self.get_asset(asset_id)
        names = [asset.path] if asset else []
        if not names:
            names = [
                p.name
                for p in await asyncio.to_thread(lambda: list(self.root_dir.iterdir()))
                if p.is_file() and p.name.startswith(asset_id)
            ]
        for name in names:
            full_path = self._get_full_path(name)
            if await asyncio.to_thread(full_path.is_file):
                await asyncio.to_thread(full_path.unlink)
                deleted = True
        if asset is not None:
            await self.database.delete(Collections.ASSETS, asset_id)
            deleted = True
        if deleted:
            logger.info(f"{LogIcons.UNREGISTERED} Asset deleted: {asset_id}")
        return deleted

    async def export_files(self) -> Dict[str, str]:
        """Every stored file as ``{file name: base64 content}``."""
        files: Dict[str, str] = {}
        entries = await asyncio.to_thread(lambda: sorted(self.root_dir.iterdir()))
        for entry in entries:
            if not entry.is_file() or entry.name.endswith(".tmp"):
                continue
            content = await self._read(entry)
            if content is not None:
                files[entry.name] = base64.b64encode(content).decode("ascii")
        return files

    async def import_files(self, files: Dict[str, str]) -> int:
        """Restore files produced by ``export_files``.

        Returns:
            Number of files written
        """
        for name, encoded in files.items():
            await self._write(self._get_full_path(name), base64.b64decode(encoded))
        return len(files)

    async def import_records(self, records: List[Dict[str, object]]) -> None:
        for record in records:
            await self.database.save(Collections.ASSETS, Asset(**record).to_document())
