"""Persisted runtime settings and resource sizing."""

import logging
import math
import secrets
from typing import Any, Dict, Optional

from dynapi.constants import SETTINGS_DOCUMENT_ID, Collections, LogIcons
from dynapi.db.database import Database
from dynapi.models import ScalabilitySettings, ServerSettings

logger = logging.getLogger(__name__)

# Sizing model for the resource estimate (MB / cores / requests)
BASE_MEMORY_MB = 50
PER_WORKER_MEMORY_MB = 40
PER_CONNECTION_MEMORY_MB = 0.05
CPU_PER_WORKER = 0.25
REQUESTS_PER_WORKER = 500


def _clamp(value: Any, low: int, high: int) -> int:
    return max(low, min(high, int(value)))


def estimate_resources(scalability: ScalabilitySettings) -> Dict[str, Any]:
    """Estimate memory, CPU and throughput for a scalability setting."""
    workers = scalability.workers or 1
    max_connections = scalability.max_connections or 1000

    memory = (
        BASE_MEMORY_MB
        + workers * PER_WORKER_MEMORY_MB
        + max_connections * PER_CONNECTION_MEMORY_MB
    )
    cpu = workers * CPU_PER_WORKER

    return {
        "memory": {
            "estimated": math.ceil(memory),
            "recommended": math.ceil(memory * 1.5),
            "unit": "MB",
        },
        "cpu": {
            "estimated": cpu,
            "recommended": math.ceil(cpu * 1.5 * 10) / 10,
            "unit": "cores",
        },
        "throughput": {"estimated": workers * REQUESTS_PER_WORKER, "unit": "requests/sec"},
        "concurrency": {
            "max": max_connections,
            "perWorker": math.ceil(max_connections / workers),
        },
    }


class SettingsStore:
    """Single-document settings persistence."""

    def __init__(self, database: Database):
        self.database = database

    async def load(self) -> ServerSettings:
        """Load settings, creating defaults and a session secret on first use."""
        document = await self.database.get(Collections.SETTINGS, SETTINGS_DOCUMENT_ID)
        settings = ServerSettings(**document) if document else ServerSettings()
        if not settings.session_secret:
            settings.session_secret = secrets.token_hex(32)
            await self.save(settings)
            logger.info(f"{LogIcons.CONFIG} Generated new session secret")
        return settings

    async def save(self, settings: ServerSettings) -> ServerSettings:
        await self.database.save(Collections.SETTINGS, settings.to_document())
        return settings

    async def update_scalability(self, updates: Dict[str, Any]) -> ScalabilitySettings:
        """Apply clamped scalability updates.

        Args:
            updates: Any of workers, maxConnections, connectionTimeout,
                keepAliveTimeout (snake_case accepted too)
        """
        settings = await self.load()
        scalability = settings.scalability

        def pick(camel: str, snake: str) -> Optional[Any]:
            return updates.get(camel, updates.get(snake))

        workers = pick("workers", "workers")
        if workers is not None:
            scalability.workers = _clamp(workers, 1, 16)
        max_connections = pick("maxConnections", "max_connections")
        if max_connections is not None:
            scalability.max_connections = _clamp(max_connections, 100, 10000)
        connection_timeout = pick("connectionTimeout", "connection_timeout")
        if connection_timeout is not None:
            scalability.connection_timeout = int(connection_timeout)
        keep_alive_timeout = pick("keepAliveTimeout", "keep_alive_timeout")
        if keep_alive_timeout is not None:
            scalability.keep_alive_timeout = int(keep_alive_timeout)

        await self.save(settings)
        return scalability

    async def merge_public(self, public: Dict[str, Any]) -> ServerSettings:
        """Merge imported non-secret settings into the current ones."""
        settings = await self.load()
        if public.get("scalability"):
            settings.scalability = ScalabilitySettings(**public["scalability"])
        if public.get("logLevel"):
            settings.log_level = public["logLevel"]
        return await self.save(settings)
