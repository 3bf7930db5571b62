"""Versioned, immutable view of the endpoint registry.

A snapshot is reloaded only when the store's version stamp moves. Checking
the stamp costs one small document read per request, which keeps writes
made by any worker process visible to the very next request without
re-reading every declaration each time.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

from dynapi.constants import LogIcons
from dynapi.models import Endpoint

from .store import EndpointStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RegistryView:
    """Endpoint declarations as of one version stamp."""

    stamp: str
    endpoints: Tuple[Endpoint, ...]


class RegistrySnapshot:
    """Read-copy-update holder for the current ``RegistryView``."""

    def __init__(self, store: EndpointStore):
        self.store = store
        self._view: Optional[RegistryView] = None
        store.add_listener(self._on_write)

    def _on_write(self, stamp: str) -> None:
        self._view = None

    def invalidate(self) -> None:
        self._view = None

    async def current(self) -> RegistryView:
        """The view matching the store's latest stamp, reloading if needed."""
        stamp = await self.store.version_stamp()
        view = self._view
        if view is None or view.stamp != stamp:
            endpoints = tuple(await self.store.list())
            view = RegistryView(stamp=stamp, endpoints=endpoints)
            self._view = view
            logger.debug(
                f"{LogIcons.DYNAMIC} Registry snapshot loaded: "
                f"{len(endpoints)} endpoints (stamp {stamp or 'initial'})"
            )
        return view
