"""Endpoint registry persistence.

``EndpointStore`` is the single owner of the ``endpoints`` collection. The
request engine only calls ``list`` and ``get``; the admin surface uses the
write operations. Every write bumps a version stamp held in the
``registry/meta`` document and notifies in-process listeners, which is what
``RegistrySnapshot`` keys its reloads on.
"""

import logging
import uuid
from typing import Any, Callable, Dict, Iterable, List, Optional

from pydantic.alias_generators import to_camel

from dynapi.constants import (
    REGISTRY_META_ID,
    Collections,
    ErrorMessages,
    HTTPMethods,
    LogIcons,
    ParameterSources,
    is_reserved_path,
)
from dynapi.db.database import Database
from dynapi.exceptions import BadRequestError, ConflictError
from dynapi.models import Endpoint, ResponseRule, utc_now_iso

logger = logging.getLogger(__name__)

Listener = Callable[[str], None]


def validate_endpoint(endpoint: Endpoint) -> None:
    """Check the declaration rules enforced at creation time.

    Raises:
        BadRequestError: If the declaration is not acceptable
    """
    if not endpoint.path or not endpoint.method:
        raise BadRequestError("Path and method are required")
    if not endpoint.path.startswith("/"):
        raise BadRequestError(ErrorMessages.PATH_INVALID, {"path": endpoint.path})
    if is_reserved_path(endpoint.path):
        raise BadRequestError(ErrorMessages.PATH_RESERVED, {"path": endpoint.path})
    if endpoint.method not in HTTPMethods.DECLARABLE:
        raise BadRequestError(
            f"Method must be one of {', '.join(HTTPMethods.DECLARABLE)}",
            {"method": endpoint.method},
        )
    if endpoint.parameter_source not in ParameterSources.ALL:
        raise BadRequestError(
            f"parameterSource must be one of {', '.join(ParameterSources.ALL)}",
            {"parameterSource": endpoint.parameter_source},
        )
    if endpoint.protected and not endpoint.token:
        raise BadRequestError("Protected endpoints require a token")
    if not endpoint.responses:
        raise BadRequestError("At least one response is required")


def methods_overlap(first: str, second: str) -> bool:
    return first == second or HTTPMethods.ANY in (first, second)


def find_conflict(
    endpoint: Endpoint, existing: Iterable[Endpoint]
) -> Optional[Endpoint]:
    """First enabled declaration that would shadow or be shadowed by ``endpoint``."""
    if not endpoint.enabled:
        return None
    for other in existing:
        if other.id == endpoint.id or not other.enabled:
            continue
        if other.path == endpoint.path and methods_overlap(other.method, endpoint.method):
            return other
    return None


def _normalize_keys(updates: Dict[str, Any]) -> Dict[str, Any]:
    return {
        (to_camel(key) if "_" in key else key): value for key, value in updates.items()
    }


class EndpointStore:
    """Ordered endpoint declarations over a document store."""

    def __init__(self, database: Database):
        self.database = database
        self._listeners: List[Listener] = []

    def add_listener(self, listener: Listener) -> None:
        """Register a callback invoked with the new stamp after each write."""
        self._listeners.append(listener)

    async def _meta(self) -> Dict[str, Any]:
        meta = await self.database.get(Collections.REGISTRY, REGISTRY_META_ID)
        return meta or {"id": REGISTRY_META_ID, "version": 0, "stamp": ""}

    async def version_stamp(self) -> str:
        """Opaque token that changes on every registry write."""
        return str((await self._meta()).get("stamp", ""))

    async def _bump(self, **extra: Any) -> str:
        meta = await self._meta()
        meta["version"] = int(meta.get("version", 0)) + 1
        meta["stamp"] = f"{meta['version']}-{uuid.uuid4().hex}"
        meta.update(extra)
        await self.database.save(Collections.REGISTRY, meta)
        for listener in list(self._listeners):
            listener(meta["stamp"])
        return str(meta["stamp"])

    async def is_seeded(self) -> bool:
        return bool((await self._meta()).get("seeded"))

    async def mark_seeded(self) -> None:
        await self._bump(seeded=True)

    async def list(self) -> List[Endpoint]:
        """All declarations in storage order."""
        documents = await self.database.find(Collections.ENDPOINTS, {})
        endpoints = [Endpoint(**doc) for doc in documents]
        endpoints.sort(key=lambda e: (e.position, e.created_at or ""))
        return endpoints

    async def get(self, endpoint_id: str) -> Optional[Endpoint]:
        document = await self.database.get(Collections.ENDPOINTS, endpoint_id)
        return Endpoint(**document) if document else None

    async def create(self, endpoint: Endpoint) -> Endpoint:
        """Persist a new declaration at the end of storage order.

        Raises:
            BadRequestError: If the declaration is invalid
            ConflictError: If an enabled declaration already serves path+method
        """
        if not endpoint.responses:
            endpoint.responses = [ResponseRule(condition=None, data={})]
        validate_endpoint(endpoint)

        existing = await self.list()
        conflict = find_conflict(endpoint, existing)
        if conflict is not None:
            raise ConflictError(
                f"Endpoint {conflict.method} {conflict.path} already exists",
                {"conflicting_id": conflict.id},
            )

        endpoint.id = endpoint.id or str(uuid.uuid4())
        endpoint.position = max((e.position for e in existing), default=0) + 1
        endpoint.created_at = utc_now_iso()
        endpoint.updated_at = None
        await self.database.save(Collections.ENDPOINTS, endpoint.to_document())
        await self._bump()
        logger.info(
            f"{LogIcons.REGISTERED} Endpoint created: {endpoint.method} {endpoint.path}"
        )
        return endpoint

    async def update(
        self, endpoint_id: str, updates: Dict[str, Any]
    ) -> Optional[Endpoint]:
        """Shallow-merge ``updates`` into a declaration.

        Returns:
            The updated endpoint, or None if the id is unknown

        Raises:
            BadRequestError: If the merged declaration is invalid
            ConflictError: If the merged declaration collides with another
        """
        current = await self.get(endpoint_id)
        if current is None:
            return None

        document = current.to_document()
        document.update(_normalize_keys(updates))
        document["id"] = current.id
        document["position"] = current.position
        document["createdAt"] = current.created_at
        document["updatedAt"] = utc_now_iso()
        endpoint = Endpoint(**document)
        validate_endpoint(endpoint)

        conflict = find_conflict(endpoint, await self.list())
        if conflict is not None:
            raise ConflictError(
                f"Endpoint {conflict.method} {conflict.path} already exists",
                {"conflicting_id": conflict.id},
            )

        await self.database.save(Collections.ENDPOINTS, endpoint.to_document())
        await self._bump()
        logger.info(f"{LogIcons.DYNAMIC} Endpoint updated: {endpoint.method} {endpoint.path}")
        return endpoint

    async def delete(self, endpoint_id: str) -> bool:
        if await self.get(endpoint_id) is None:
            return False
        await self.database.delete(Collections.ENDPOINTS, endpoint_id)
        await self._bump()
        logger.info(f"{LogIcons.UNREGISTERED} Endpoint deleted: {endpoint_id}")
        return True

    async def replace_all(self, documents: List[Dict[str, Any]]) -> List[Endpoint]:
        """Replace the whole registry, keeping the given order.

        Imported declarations are stored as-is; no conflict or prefix checks
        run, so earlier entries keep winning on duplicate path+method.
        """
        await self.database.delete_many(Collections.ENDPOINTS, {})
        endpoints = []
        for index, document in enumerate(documents, start=1):
            endpoint = Endpoint(**document)
            endpoint.position = index
            await self.database.save(Collections.ENDPOINTS, endpoint.to_document())
            endpoints.append(endpoint)
        await self._bump(seeded=True)
        logger.info(f"{LogIcons.DYNAMIC} Registry replaced with {len(endpoints)} endpoints")
        return endpoints
