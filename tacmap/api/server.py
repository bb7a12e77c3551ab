"""
FastAPI server for TacMap.
"""

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

import aiohttp
import uvicorn
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse
from fastapi.staticfiles import StaticFiles

from .. import __version__
from ..config import Config, get_config
from ..hub import Hub
from .documents import router as documents_router
from .proxy import router as proxy_router
from .websocket import hub_socket_endpoint

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    config: Config = app.state.config

    # Startup
    app.state.hub = Hub(scoped_delivery=config.hub.scoped_delivery)
    # Raw bytes: the origin's Content-Encoding is passed through untouched
    app.state.http_session = aiohttp.ClientSession(auto_decompress=False)
    logger.info(
        f"TacMap hub started ({'scoped' if config.hub.scoped_delivery else 'global'} delivery)"
    )

    try:
        yield
    finally:
        # Shutdown
        await app.state.http_session.close()
        logger.info("TacMap server stopped.")


def create_app(config: Optional[Config] = None) -> FastAPI:
    """Create the FastAPI application."""
    config = config or get_config()
    public_dir = Path(config.public_dir)

    app = FastAPI(
        title="TacMap",
        description="Mission state and net relay hub",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.config = config

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.server.cors_origins,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_api_websocket_route("/socket", hub_socket_endpoint)
    app.add_api_websocket_route("/socket.io", hub_socket_endpoint)

    app.include_router(proxy_router)
    app.include_router(documents_router)

    @app.get("/health")
    async def health(request: Request):
        return {"status": "ok", **request.app.state.hub.status()}

    @app.get("/stats")
    async def stats(request: Request):
        return request.app.state.hub.stats()

    def page(name: str) -> FileResponse:
        path = public_dir / name
        if not path.is_file():
            raise HTTPException(status_code=404, detail=f"{name} not found")
        return FileResponse(path)

    @app.get("/")
    @app.get("/server")
    async def server_page():
        return page("server.html")

    @app.get("/unit")
    async def unit_page():
        return page("unit.html")

    # Everything else under public/ (scripts, images, stored documents)
    if public_dir.is_dir():
        app.mount("/", StaticFiles(directory=public_dir), name="public")
    else:
        logger.warning(f"Public directory {public_dir} not found; static files disabled")

    return app


def run_server(config: Optional[Config] = None, log_level: str = "info") -> None:
    """Run the server with uvicorn."""
    config = config or get_config()
    server = config.server

    ssl_options = {}
    if server.publicssl:
        ssl_options = {"ssl_certfile": server.certfile, "ssl_keyfile": server.keyfile}

    uvicorn.run(
        create_app(config),
        host=server.bind_host,
        port=server.port,
        log_level=log_level,
        **ssl_options,
    )
