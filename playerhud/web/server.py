"""
Web Server Module for PlayerHUD.

This module provides the StatusServer class that creates and manages the
FastAPI application exposing the sync loop's output to a presentation layer
(a browser overlay, an OBS source, a status bar script):

- /health: liveness check
- /api/now-playing: latest published state plus display labels
- /api/artwork: last successfully resolved cover image
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any

import uvicorn
from fastapi import FastAPI, HTTPException, Response
from fastapi.middleware.cors import CORSMiddleware

from playerhud.core.artwork import detect_image_mime
from playerhud.web.view import NowPlayingView

logger = logging.getLogger(__name__)


class StatusServer:
    """
    FastAPI-based status server for PlayerHUD.

    Read-only: it renders nothing, never retries and never reinterprets the
    states it serves.
    """

    def __init__(self, view: NowPlayingView) -> None:
        """
        Initialize the StatusServer.

        Args:
            view: View kept current by the sync loop's events.
        """
        self.view = view

        self.app = FastAPI(
            title="PlayerHUD",
            description="Now-playing state of the active MPRIS player",
            version="0.1.0",
        )

        # Browser overlays are usually served from another origin
        self.app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_methods=["GET"],
            allow_headers=["*"],
        )

        self._server: uvicorn.Server | None = None
        self._serve_task: asyncio.Task[None] | None = None
        self._host = "127.0.0.1"
        self._port = 9550

        self._register_routes()

    def _register_routes(self) -> None:
        """Register all routes with the FastAPI app."""

        @self.app.get("/health")
        async def health_check() -> dict[str, str]:
            """Health check endpoint."""
            return {"status": "ok", "server": "playerhud"}

        @self.app.get("/api/now-playing", tags=["state"])
        async def now_playing() -> dict[str, Any]:
            """Latest published state."""
            return self.view.to_dict()

        @self.app.get("/api/artwork", tags=["artwork"])
        async def artwork() -> Response:
            """Last successfully resolved artwork image."""
            if self.view.artwork_path is None:
                raise HTTPException(status_code=404, detail="No artwork resolved yet")

            path = Path(self.view.artwork_path)
            try:
                data = await asyncio.to_thread(path.read_bytes)
            except OSError as e:
                logger.debug("Artwork %s unreadable: %s", path, e)
                raise HTTPException(status_code=404, detail="Artwork file is gone") from e

            return Response(
                content=data,
                media_type=detect_image_mime(data),
                headers={"Cache-Control": "no-store"},
            )

    async def start(self, host: str = "127.0.0.1", port: int = 9550) -> None:
        """
        Start the web server in the background.

        Args:
            host: Host address to bind to
            port: Port to listen on
        """
        self._host = host
        self._port = port

        config = uvicorn.Config(
            self.app,
            host=host,
            port=port,
            log_level="warning",
            access_log=False,
        )
        self._server = uvicorn.Server(config)
        self._serve_task = asyncio.create_task(self._server.serve())

        logger.info("Status server started on http://%s:%d", host, port)

    async def stop(self) -> None:
        """Stop the web server."""
        if self._server is not None:
            self._server.should_exit = True
            self._server = None

        if self._serve_task is not None:
            try:
                await self._serve_task
            except Exception as e:
                logger.warning("Status server exited with error: %s", e)
            self._serve_task = None

        logger.info("Status server stopped")

    @property
    def port(self) -> int:
        """Get the server port."""
        return self._port

    @property
    def host(self) -> str:
        """Get the server host."""
        return self._host
