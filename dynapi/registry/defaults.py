"""Example endpoints seeded into a fresh registry."""

import logging
import secrets
from typing import List

from dynapi.constants import LogIcons
from dynapi.models import Endpoint

from .store import EndpointStore

logger = logging.getLogger(__name__)


def default_endpoints() -> List[Endpoint]:
    """Starter declarations: a ping, a status clock and a protected echo."""
    return [
        Endpoint(
            path="/ping",
            method="GET",
            description="Health check endpoint",
            responses=[{"condition": None, "data": {"message": "pong"}}],
        ),
        Endpoint(
            path="/status",
            method="GET",
            description="API status endpoint",
            responses=[
                {"condition": None, "data": {"status": "ok", "time": "{{timestamp}}"}}
            ],
        ),
        Endpoint(
            path="/echo",
            method="POST",
            description="Echoes back posted JSON",
            protected=True,
            token=secrets.token_urlsafe(24),
            parameter_source="body",
            responses=[{"condition": None, "data": {"echo": "{{body}}"}}],
        ),
    ]


async def seed_default_endpoints(store: EndpointStore) -> int:
    """Seed the starter declarations once, into an empty registry.

    Returns:
        Number of endpoints created
    """
    if await store.is_seeded():
        return 0
    created = 0
    if not await store.list():
        for endpoint in default_endpoints():
            await store.create(endpoint)
            created += 1
        logger.info(f"{LogIcons.REGISTERED} Seeded {created} default endpoints")
    await store.mark_seeded()
    return created
