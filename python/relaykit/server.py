"""
FastAPI WebSocket server for RelayKit.

Provides RelayServer, which wires the relay engine to WebSocket
connections and exposes the HTTP upload API.
"""

from __future__ import annotations

import asyncio
import json
import logging
import uuid
from contextlib import asynccontextmanager
from typing import Any, List, Optional, Set, Tuple

import uvicorn
from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.routing import APIRouter
from pydantic import ValidationError

from .api import create_http_router
from .config import Settings
from .protocol import Frame
from .relay import Clock, RelayEngine
from .storage import ChunkSink, DiskChunkSink
from .transport import ConnectionHub

logger = logging.getLogger(__name__)


class RelayServer:
    """
    Signaling relay server.

    Handles:
    - WebSocket connections and frame decoding
    - Connection id assignment and cleanup on disconnect
    - Chunk uploads, health and landing page over HTTP

    Three FastAPI applications are available: ``ws_app`` (signaling only),
    ``http_app`` (HTTP API only) and ``app`` (both on one port).
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        engine: Optional[RelayEngine] = None,
        hub: Optional[ConnectionHub] = None,
        sink: Optional[ChunkSink] = None,
        clock: Optional[Clock] = None,
    ):
        self._settings = settings or Settings()
        self._hub = hub or ConnectionHub()
        self._engine = engine or RelayEngine(self._hub, clock=clock)
        self._sink = sink or DiskChunkSink(
            self._settings.upload_dir, self._settings.max_chunk_bytes
        )
        self._clock = self._engine.now

        self._ws_router = APIRouter()
        self._http_router = create_http_router(
            self._sink, self.signaling_url, clock=self._clock
        )
        self._app: Optional[FastAPI] = None
        self._ws_app: Optional[FastAPI] = None
        self._http_app: Optional[FastAPI] = None
        self._cleanups: Set[asyncio.Task] = set()

        self._setup_routes()

    @property
    def settings(self) -> Settings:
        """Get the server settings."""
        return self._settings

    @property
    def engine(self) -> RelayEngine:
        """Get the relay engine."""
        return self._engine

    @property
    def hub(self) -> ConnectionHub:
        """Get the connection hub."""
        return self._hub

    @property
    def sink(self) -> ChunkSink:
        """Get the upload sink."""
        return self._sink

    @property
    def signaling_url(self) -> str:
        """WebSocket URL advertised to clients."""
        return f"ws://localhost:{self._settings.port}{self._settings.ws_path}"

    @property
    def app(self) -> FastAPI:
        """Get the FastAPI application serving both signaling and HTTP routes."""
        if self._app is None:
            self._app = self._create_app(self._ws_router, self._http_router)
        return self._app

    @property
    def ws_app(self) -> FastAPI:
        """Get the FastAPI application serving only the signaling endpoint."""
        if self._ws_app is None:
            self._ws_app = self._create_app(self._ws_router)
        return self._ws_app

    @property
    def http_app(self) -> FastAPI:
        """Get the FastAPI application serving only the HTTP API."""
        if self._http_app is None:
            self._http_app = self._create_app(self._http_router)
        return self._http_app

    def _create_app(self, *routers: APIRouter) -> FastAPI:
        app = FastAPI(lifespan=self._lifespan)
        app.add_middleware(
            CORSMiddleware,
            allow_origins=[self._settings.allowed_origin],
            allow_methods=["GET", "POST"],
            allow_headers=["*"],
        )
        for router in routers:
            app.include_router(router)
        return app

    @asynccontextmanager
    async def _lifespan(self, app: FastAPI):
        """Lifespan handler for startup/shutdown events."""
        await self._sink.open()

        yield

        await self._sink.close()

    def _setup_routes(self) -> None:
        """Setup WebSocket route."""
        @self._ws_router.websocket(self._settings.ws_path)
        async def websocket_endpoint(websocket: WebSocket):
            await self._handle_connection(websocket)

    def mount(self, app: FastAPI, prefix: str = "") -> None:
        """Mount the signaling endpoint on an existing FastAPI application."""
        app.include_router(self._ws_router, prefix=prefix)

    async def _handle_connection(self, websocket: WebSocket) -> None:
        """Handle a new WebSocket connection."""
        await websocket.accept()

        connection_id = uuid.uuid4().hex
        self._hub.attach(connection_id, websocket)
        await self._engine.connect(connection_id)

        try:
            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    break

                raw = message.get("text")
                if raw is None:
                    logger.debug(f"Dropping binary frame from {connection_id}")
                    continue

                await self._handle_frame(connection_id, raw)

        except WebSocketDisconnect:
            pass
        except Exception:
            logger.exception(f"WebSocket error on connection {connection_id}")
        finally:
            self._hub.detach(connection_id)
            await self._run_cleanup(connection_id)

    async def _run_cleanup(self, connection_id: str) -> None:
        """Run engine disconnect so that it completes even if the caller is cancelled."""
        task = asyncio.ensure_future(self._engine.disconnect(connection_id))
        self._cleanups.add(task)
        task.add_done_callback(self._cleanups.discard)
        await asyncio.shield(task)

    async def _handle_frame(self, connection_id: str, raw: str) -> None:
        """Decode one text frame and pass it to the engine."""
        size = len(raw.encode("utf-8"))
        if size > self._settings.max_message_bytes:
            logger.debug(f"Dropping oversize frame ({size} bytes) from {connection_id}")
            return

        try:
            data: Any = json.loads(raw)
            frame = Frame.model_validate(data)
        except (json.JSONDecodeError, ValidationError):
            logger.debug(f"Dropping undecodable frame from {connection_id}")
            return

        try:
            await self._engine.handle(connection_id, frame.event, frame.data)
        except Exception:
            # Handler failures never close the connection.
            logger.exception(f"Error handling {frame.event!r} from {connection_id}")

    def _server_targets(self) -> List[Tuple[FastAPI, int]]:
        if self._settings.http_port == self._settings.port:
            return [(self.app, self._settings.port)]
        return [
            (self.ws_app, self._settings.port),
            (self.http_app, self._settings.http_port),
        ]

    async def serve(self) -> None:
        """Run the signaling and HTTP servers until they exit."""
        servers = []
        for app, port in self._server_targets():
            config = uvicorn.Config(
                app,
                host=self._settings.host,
                port=port,
                log_config=None,
                log_level=self._settings.log_level.lower(),
            )
            servers.append(uvicorn.Server(config))

        logger.info(f"WebSocket signaling on {self.signaling_url}")
        logger.info(f"HTTP API listening on http://localhost:{self._settings.http_port}")
        await asyncio.gather(*(server.serve() for server in servers))


__all__ = ["RelayServer"]
