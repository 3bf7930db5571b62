"""Registry export and import.

An export bundles endpoint declarations, non-secret settings, asset
records and asset file contents (base64) into one JSON document. Importing
that document into an empty data directory reproduces the same
request/response behaviour for every declared endpoint.
"""

import logging
from typing import Any, Dict

from dynapi.constants import EXPORT_FORMAT_VERSION, ErrorMessages, LogIcons
from dynapi.exceptions import BadRequestError
from dynapi.models import RegistryExport
from dynapi.storage.assets import AssetStore

from .settings import SettingsStore
from .store import EndpointStore

logger = logging.getLogger(__name__)


async def export_registry(
    store: EndpointStore, settings: SettingsStore, assets: AssetStore
) -> Dict[str, Any]:
    """Build a portable export document."""
    endpoints = await store.list()
    current = await settings.load()
    bundle = RegistryExport(
        version=EXPORT_FORMAT_VERSION,
        settings=current.public_dict(),
        endpoints=[endpoint.to_document() for endpoint in endpoints],
        assets=await assets.export_files(),
        asset_records=[asset.to_document() for asset in await assets.list_assets()],
    )
    logger.info(
        f"{LogIcons.DATABASE} Exported {len(endpoints)} endpoints and "
        f"{len(bundle.assets)} asset files"
    )
    return bundle.to_document()


async def import_registry(
    data: Dict[str, Any],
    store: EndpointStore,
    settings: SettingsStore,
    assets: AssetStore,
) -> Dict[str, int]:
    """Apply an export document.

    Endpoints are replaced wholesale, settings are merged (secrets are never
    imported), and asset files and records are restored.

    Raises:
        BadRequestError: If the document carries neither endpoints nor settings
    """
    if not isinstance(data, dict) or (
        data.get("endpoints") is None
        and data.get("settings") is None
        and data.get("config") is None
    ):
        raise BadRequestError(ErrorMessages.INVALID_IMPORT)

    bundle = RegistryExport(**{"version": EXPORT_FORMAT_VERSION, **data})
    public_settings = bundle.settings or data.get("config")
    if public_settings:
        await settings.merge_public(public_settings)

    if bundle.assets:
        await assets.import_files(bundle.assets)
    if bundle.asset_records:
        await assets.import_records(bundle.asset_records)

    imported = 0
    if bundle.endpoints is not None:
        imported = len(await store.replace_all(bundle.endpoints))

    logger.info(
        f"{LogIcons.DATABASE} Imported {imported} endpoints and "
        f"{len(bundle.assets)} asset files"
    )
    return {"endpoints": imported, "assets": len(bundle.assets)}
