"""WebSocket broadcast renderer with a small canvas preview page."""

from __future__ import annotations

import http.server
import json
import logging
import threading
from pathlib import Path
from typing import Any

import websockets
from websockets.asyncio.server import Server, ServerConnection

from avatartrack.models import RigState

logger = logging.getLogger(__name__)

_TEMPLATE_PATH = Path(__file__).parent / "templates" / "preview.html"


def rig_message(state: RigState) -> str:
    """Serialize *state* as a ``{"type": "rig", "state": ...}`` message."""
    return json.dumps({"type": "rig", "state": state.model_dump(mode="json")})


class _HTMLHandler(http.server.BaseHTTPRequestHandler):
    """Serves the preview HTML page."""

    ws_port: int = 8766

    def do_GET(self) -> None:
        if self.path == "/" or self.path.startswith("/?"):
            html = _TEMPLATE_PATH.read_text().replace("{{WS_PORT}}", str(self.ws_port))
            self.send_response(200)
            self.send_header("Content-Type", "text/html; charset=utf-8")
            self.end_headers()
            self.wfile.write(html.encode())
        else:
            self.send_error(404)

    def log_message(self, format: str, *args: Any) -> None:  # noqa: A002
        pass


class WebSocketRenderer:
    """Broadcasts every published rig state to connected WebSocket clients.

    ``publish`` never awaits: it hands the message to ``websockets.broadcast``
    which drops it for clients that cannot keep up.  New clients immediately
    receive the most recent state.
    """

    def __init__(self, host: str = "localhost", port: int = 8766, http_port: int | None = None) -> None:
        self.host = host
        self.port = port
        self.http_port = http_port
        self._clients: set[ServerConnection] = set()
        self._server: Server | None = None
        self._http_server: http.server.HTTPServer | None = None
        self._last: str | None = None

    @property
    def client_count(self) -> int:
        return len(self._clients)

    @property
    def bound_port(self) -> int:
        """Actual WebSocket port (useful when constructed with port 0)."""
        if self._server is None:
            return self.port
        return self._server.sockets[0].getsockname()[1]

    def publish(self, state: RigState) -> None:
        self._last = rig_message(state)
        if self._clients:
            websockets.broadcast(self._clients, self._last)

    async def _ws_handler(self, websocket: ServerConnection) -> None:
        """Handle a single WebSocket connection."""
        self._clients.add(websocket)
        logger.debug("Preview client connected (%d total)", len(self._clients))
        try:
            if self._last is not None:
                await websocket.send(self._last)
            async for _message in websocket:
                pass  # clients only listen
        finally:
            self._clients.discard(websocket)

    def _start_http_server(self) -> None:
        """Start the preview page server in a daemon thread."""
        handler_class = type("_BoundHTMLHandler", (_HTMLHandler,), {"ws_port": self.bound_port})
        self._http_server = http.server.HTTPServer(("", self.http_port or 0), handler_class)
        thread = threading.Thread(target=self._http_server.serve_forever, daemon=True)
        thread.start()

    async def start(self) -> None:
        self._server = await websockets.serve(self._ws_handler, self.host, self.port)
        if self.http_port is not None:
            self._start_http_server()
        logger.info("Broadcasting rig states on ws://%s:%d", self.host, self.bound_port)

    async def stop(self) -> None:
        if self._http_server is not None:
            self._http_server.shutdown()
            self._http_server = None
        if self._server is not None:
            self._server.close()
            await self._server.wait_closed()
            self._server = None

    async def __aenter__(self) -> WebSocketRenderer:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.stop()
