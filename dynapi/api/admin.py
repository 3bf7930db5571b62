"""Administrative HTTP surface mounted under ``/api/admin``.

Session routes (setup, login, logout, password change) are public where
they must be; everything else requires an admin session.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, File, Request, Response, UploadFile
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from dynapi.config import ServerConfig
from dynapi.constants import APIRoutes, Collections, ErrorMessages
from dynapi.exceptions import BadRequestError, NotFoundError
from dynapi.models import Endpoint
from dynapi.registry.settings import SettingsStore, estimate_resources
from dynapi.registry.store import EndpointStore
from dynapi.registry.transfer import export_registry, import_registry
from dynapi.storage.assets import AssetStore

from .auth import SESSION_COOKIE, AdminAuthService

logger = logging.getLogger(__name__)

EXPORT_FILENAME = "dynapi-config.json"
# Server-managed fields a client may not set on create
MANAGED_FIELDS = ("id", "position", "createdAt", "created_at", "updatedAt", "updated_at")


class PasswordRequest(BaseModel):
    """Request model for setup and login."""

    password: Optional[str] = None


class ChangePasswordRequest(BaseModel):
    """Request model for a password change."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    current_password: Optional[str] = None
    new_password: Optional[str] = None


@dataclass
class AdminServices:
    """Collaborators the admin routes operate on."""

    config: ServerConfig
    store: EndpointStore
    settings: SettingsStore
    assets: AssetStore
    auth: AdminAuthService
    started_at: float = field(default_factory=time.monotonic)


def create_admin_router(services: AdminServices) -> APIRouter:
    """Build the admin router bound to ``services``."""
    router = APIRouter(prefix=APIRoutes.ADMIN_API, tags=["admin"])
    require_admin = Depends(services.auth.require_admin)
    auth = services.auth

    def set_session(response: Response, token: str) -> None:
        response.set_cookie(
            SESSION_COOKIE,
            token,
            max_age=int(auth.session_ttl.total_seconds()),
            path="/",
            httponly=True,
            secure=services.config.cookie_secure,
            samesite="strict",
        )

    # ===== SESSION =====

    @router.get("/setup-status")
    async def setup_status(request: Request) -> Dict[str, Any]:
        claims = await auth.validate_token(request.cookies.get(SESSION_COOKIE))
        return {
            "setupComplete": await auth.is_setup_complete(),
            "authenticated": claims is not None,
        }

    @router.post("/setup")
    async def setup(payload: PasswordRequest, response: Response) -> Dict[str, Any]:
        set_session(response, await auth.setup(payload.password))
        return {"success": True}

    @router.post("/login")
    async def login(payload: PasswordRequest, response: Response) -> Dict[str, Any]:
        set_session(response, await auth.login(payload.password))
        return {"success": True}

    @router.post("/logout")
    async def logout(response: Response) -> Dict[str, Any]:
        response.delete_cookie(SESSION_COOKIE, path="/")
        return {"success": True}

    @router.post("/change-password", dependencies=[require_admin])
    async def change_password(
        payload: ChangePasswordRequest, response: Response
    ) -> Dict[str, Any]:
        await auth.change_password(payload.current_password, payload.new_password)
        response.delete_cookie(SESSION_COOKIE, path="/")
        return {"success": True, "message": "Password changed. Please login again."}

    # ===== ENDPOINTS =====

    @router.get("/endpoints", dependencies=[require_admin])
    async def list_endpoints() -> Dict[str, Any]:
        endpoints = await services.store.list()
        return {"endpoints": [endpoint.to_document() for endpoint in endpoints]}

    @router.get("/endpoints/{endpoint_id}", dependencies=[require_admin])
    async def get_endpoint(endpoint_id: str) -> Dict[str, Any]:
        endpoint = await services.store.get(endpoint_id)
        if endpoint is None:
            raise NotFoundError(ErrorMessages.ENDPOINT_NOT_FOUND, {"id": endpoint_id})
        return {"endpoint": endpoint.to_document()}

    @router.post("/endpoints", dependencies=[require_admin])
    async def create_endpoint(data: Dict[str, Any] = Body(...)) -> Dict[str, Any]:
        if not data.get("path") or not data.get("method"):
            raise BadRequestError("Path and method are required")
        fields = {key: value for key, value in data.items() if key not in MANAGED_FIELDS}
        endpoint = await services.store.create(Endpoint(**fields))
        return {"endpoint": endpoint.to_document()}

    @router.put("/endpoints/{endpoint_id}", dependencies=[require_admin])
    async def update_endpoint(
        endpoint_id: str, updates: Dict[str, Any] = Body(...)
    ) -> Dict[str, Any]:
        endpoint = await services.store.update(endpoint_id, updates)
        if endpoint is None:
            raise NotFoundError(ErrorMessages.ENDPOINT_NOT_FOUND, {"id": endpoint_id})
        return {"endpoint": endpoint.to_document()}

    @router.delete("/endpoints/{endpoint_id}", dependencies=[require_admin])
    async def delete_endpoint(endpoint_id: str) -> Dict[str, Any]:
        if not await services.store.delete(endpoint_id):
            raise NotFoundError(ErrorMessages.ENDPOINT_NOT_FOUND, {"id": endpoint_id})
        return {"success": True}

    # ===== ASSETS =====

    @router.get("/assets", dependencies=[require_admin])
    async def list_assets() -> Dict[str, Any]:
        assets = await services.assets.list_assets()
        return {"assets": [asset.to_document() for asset in assets]}

    @router.post("/assets", dependencies=[require_admin])
    async def upload_asset(file: UploadFile = File(...)) -> Dict[str, Any]:
        content = await file.read()
        if not file.filename:
            raise BadRequestError("No file uploaded")
        asset = await services.assets.save_asset(file.filename, content, file.content_type)
        return {"asset": asset.to_document()}

    @router.delete("/assets/{asset_id}", dependencies=[require_admin])
    async def delete_asset(asset_id: str) -> Dict[str, Any]:
        if not await services.assets.delete_asset(asset_id):
            raise NotFoundError(ErrorMessages.ASSET_NOT_FOUND, {"id": asset_id})
        return {"success": True}

    # ===== SETTINGS =====

    @router.get("/scalability", dependencies=[require_admin])
    async def get_scalability() -> Dict[str, Any]:
        scalability = (await services.settings.load()).scalability
        return {
            "scalability": scalability.to_document(),
            "resources": estimate_resources(scalability),
        }

    @router.put("/scalability", dependencies=[require_admin])
    async def update_scalability(updates: Dict[str, Any] = Body(...)) -> Dict[str, Any]:
        try:
            scalability = await services.settings.update_scalability(updates)
        except (TypeError, ValueError) as e:
            raise BadRequestError("Scalability values must be integers", {"reason": str(e)})
        return {
            "scalability": scalability.to_document(),
            "resources": estimate_resources(scalability),
        }

    @router.get("/system-info", dependencies=[require_admin])
    async def system_info() -> Dict[str, Any]:
        settings = await services.settings.load()
        database = services.store.database
        return {
            "version": services.config.version,
            "uptime": round(time.monotonic() - services.started_at, 3),
            "port": settings.port or services.config.port,
            "endpoints": {
                "total": await database.count(Collections.ENDPOINTS),
                "enabled": await database.count(Collections.ENDPOINTS, {"enabled": True}),
                "protected": await database.count(
                    Collections.ENDPOINTS, {"protected": True}
                ),
            },
            "assets": await database.count(Collections.ASSETS),
            "scalability": settings.scalability.to_document(),
            "resources": estimate_resources(settings.scalability),
        }

    # ===== EXPORT/IMPORT =====

    @router.get("/export", dependencies=[require_admin])
    async def export_config() -> JSONResponse:
        data = await export_registry(services.store, services.settings, services.assets)
        return JSONResponse(
            data,
            headers={"Content-Disposition": f'attachment; filename="{EXPORT_FILENAME}"'},
        )

    @router.post("/import", dependencies=[require_admin])
    async def import_config(data: Any = Body(...)) -> Dict[str, Any]:
        try:
            counts = await import_registry(
                data, services.store, services.settings, services.assets
            )
        except ValueError as e:
            raise BadRequestError(f"Failed to import configuration: {e}")
        return {
            "success": True,
            "message": "Configuration imported successfully",
            "imported": counts,
        }

    return router


__all__ = ["AdminServices", "create_admin_router"]
