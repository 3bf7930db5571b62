"""Server class wiring the dynamic engine and the admin surface into FastAPI.

Route order matters: ``/health`` and the admin router are registered
first, then a catch-all route hands every other request to the dynamic
engine.
"""

import logging
import os
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional, Union

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import Response
from pydantic import ValidationError
from starlette.exceptions import HTTPException

from dynapi.config import ServerConfig
from dynapi.constants import APIRoutes, HTTPMethods, LogIcons
from dynapi.db import get_database
from dynapi.engine.context import RequestContext, read_body
from dynapi.engine.pipeline import DynamicRequestHandler
from dynapi.exceptions import APIError
from dynapi.models import utc_now_iso
from dynapi.registry.defaults import seed_default_endpoints
from dynapi.registry.settings import SettingsStore
from dynapi.registry.snapshot import RegistrySnapshot
from dynapi.registry.store import EndpointStore
from dynapi.storage.assets import AssetStore

from .admin import AdminServices, create_admin_router
from .auth import AdminAuthService
from .error_handler import APIErrorHandler, request_id_middleware
from .logging_config import LoggingConfigurator

UVICORN_LEVELS = {"warn": "warning", "fatal": "critical"}


class Server:
    """FastAPI server serving runtime-declared endpoints.

    Example:
        ```python
        from dynapi import Server

        server = Server(data_dir="./data", port=4242)

        if __name__ == "__main__":
            server.run()
        ```
    """

    def __init__(
        self,
        config: Optional[Union[ServerConfig, Dict[str, Any]]] = None,
        **kwargs: Any,
    ) -> None:
        """Initialize the Server.

        Args:
            config: Server configuration as ServerConfig or dict
            **kwargs: Additional configuration parameters
        """
        if config is None:
            config_dict: Dict[str, Any] = {}
        elif isinstance(config, ServerConfig):
            config_dict = config.model_dump()
        else:
            config_dict = dict(config)
        config_dict.update(kwargs)
        self.config = ServerConfig(**config_dict)

        self._logger = logging.getLogger(__name__)
        LoggingConfigurator.configure(self.config.log_level)

        self.database = get_database("json", base_path=self.config.data_dir)
        self.store = EndpointStore(self.database)
        self.settings = SettingsStore(self.database)
        self.assets = AssetStore(str(self.config.assets_path), self.database)
        self.snapshot = RegistrySnapshot(self.store)
        self.auth = AdminAuthService(self.settings, self.config.session_ttl_hours)
        self.handler = DynamicRequestHandler(self.snapshot, self.assets)

        self.app: Optional[FastAPI] = None

    @asynccontextmanager
    async def lifespan(self, app: FastAPI) -> AsyncIterator[None]:
        """Load settings and seed default endpoints before serving."""
        await self.settings.load()
        if self.config.seed_defaults:
            await seed_default_endpoints(self.store)
        view = await self.snapshot.current()
        self._logger.info(
            f"{LogIcons.START} {self.config.title} ready with {len(view.endpoints)} endpoints"
        )
        yield
        self._logger.info(f"{LogIcons.STOP} {self.config.title} shutting down")

    def _create_app(self) -> FastAPI:
        app = FastAPI(
            title=self.config.title,
            version=self.config.version,
            debug=self.config.debug,
            docs_url=None,
            redoc_url=None,
            openapi_url=APIRoutes.OPENAPI,
            lifespan=self.lifespan,
        )
        app.middleware("http")(request_id_middleware)

        for exc_class in (
            APIError,
            HTTPException,
            RequestValidationError,
            ValidationError,
            Exception,
        ):
            app.add_exception_handler(exc_class, APIErrorHandler.handle_exception)

        self._register_core_routes(app)
        app.include_router(
            create_admin_router(
                AdminServices(
                    config=self.config,
                    store=self.store,
                    settings=self.settings,
                    assets=self.assets,
                    auth=self.auth,
                )
            )
        )
        self._register_dynamic_route(app)
        return app

    def _register_core_routes(self, app: FastAPI) -> None:
        @app.get(APIRoutes.HEALTH)
        async def health_check() -> Dict[str, Any]:
            """Health check endpoint."""
            return {"status": "ok", "timestamp": utc_now_iso()}

    def _register_dynamic_route(self, app: FastAPI) -> None:
        body_limit = self.config.body_limit

        @app.api_route(
            "/{full_path:path}",
            methods=HTTPMethods.ROUTABLE,
            include_in_schema=False,
        )
        async def dynamic_endpoint(request: Request, full_path: str) -> Response:
            async def load_body() -> Any:
                return await read_body(request, body_limit)

            context = RequestContext.from_request(request)
            return await self.handler.handle(context, load_body)

    def get_app(self) -> FastAPI:
        """Get the FastAPI application instance.

        Returns:
            Configured FastAPI application
        """
        if self.app is None:
            self.app = self._create_app()
        return self.app

    def _export_environment(self) -> None:
        # Worker processes rebuild their config from the environment
        os.environ.update(
            {
                "DYNAPI_DATA_DIR": self.config.data_dir,
                "DYNAPI_ASSETS_DIR": str(self.config.assets_path),
                "DYNAPI_LOG_LEVEL": self.config.log_level,
                "DYNAPI_DEBUG": str(self.config.debug).lower(),
                "DYNAPI_SEED_DEFAULTS": str(self.config.seed_defaults).lower(),
                "DYNAPI_COOKIE_SECURE": str(self.config.cookie_secure).lower(),
            }
        )

    def run(
        self,
        host: Optional[str] = None,
        port: Optional[int] = None,
        workers: Optional[int] = None,
        **uvicorn_kwargs: Any,
    ) -> None:
        """Run the server using uvicorn.

        Args:
            host: Override host address
            port: Override port number
            workers: Override worker process count
            **uvicorn_kwargs: Additional uvicorn parameters
        """
        run_host = host or self.config.host
        run_port = port or self.config.port
        run_workers = workers or self.config.workers
        log_level = self.config.log_level.lower()

        self._logger.info(f"{LogIcons.WORLD} Server starting at http://{run_host}:{run_port}")

        uvicorn_config: Dict[str, Any] = {
            "host": run_host,
            "port": run_port,
            "log_level": UVICORN_LEVELS.get(log_level, log_level),
            **uvicorn_kwargs,
        }

        if run_workers > 1:
            self._export_environment()
            self._logger.info(f"{LogIcons.CONFIG} Starting {run_workers} worker processes")
            uvicorn.run(
                "dynapi.api.server:create_app",
                factory=True,
                workers=run_workers,
                **uvicorn_config,
            )
        else:
            uvicorn.run(self.get_app(), **uvicorn_config)


def create_app(config: Optional[ServerConfig] = None) -> FastAPI:
    """Application factory, configured from ``DYNAPI_*`` variables by default."""
    return Server(config or ServerConfig.from_env()).get_app()


__all__ = ["Server", "create_app"]
