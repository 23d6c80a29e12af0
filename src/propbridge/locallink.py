"""Local WebSocket link between the touch UI and the controller."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Generic, TypeVar

import aiohttp
from aiohttp import web

from propbridge.config import PropConfig
from propbridge.exceptions import ProtocolError
from propbridge.models.messages import UiPushMessage, UiStateMessage, parse_ui_message
from propbridge.state.store import StateStore

_logger = logging.getLogger(__name__)

T = TypeVar("T")


class SessionSlot(Generic[T]):
    """Holds the one tracked UI session.

    Last connect wins: attaching replaces the tracked session without
    touching the previous one, and only the tracked session can release
    the slot, so a late disconnect from a superseded session is ignored.
    """

    def __init__(self) -> None:
        self._current: T | None = None

    @property
    def current(self) -> T | None:
        return self._current

    def attach(self, session: T) -> T | None:
        """Track *session*; returns the session it superseded, if any."""
        previous = self._current
        self._current = session
        return previous

    def release(self, session: T) -> bool:
        """Clear the slot if *session* is still the tracked one."""
        if self._current is not session:
            return False
        self._current = None
        return True


class LocalLink:
    """Single-client WebSocket server for the UI.

    New connections get a full state snapshot right away.  The only
    inbound message acted on is ``{"type": "solved"}``; everything else
    is ignored.
    """

    def __init__(
        self,
        config: PropConfig,
        store: StateStore,
        *,
        on_solved: Callable[[], None],
    ) -> None:
        self._host = config.ws_host
        self._port = config.ws_port
        self._store = store
        self._on_solved = on_solved
        self._slot: SessionSlot[web.WebSocketResponse] = SessionSlot()
        self._sockets: set[web.WebSocketResponse] = set()
        self._send_tasks: set[asyncio.Task[None]] = set()
        self._runner: web.AppRunner | None = None

    @property
    def session(self) -> web.WebSocketResponse | None:
        return self._slot.current

    def build_app(self) -> web.Application:
        app = web.Application()
        app.router.add_get("/", self._handle_ws)
        app.on_shutdown.append(self._close_sockets)
        return app

    async def start(self) -> None:
        runner = web.AppRunner(self.build_app())
        await runner.setup()
        site = web.TCPSite(runner, self._host, self._port)
        try:
            await site.start()
        except BaseException:
            await runner.cleanup()
            raise
        self._runner = runner
        _logger.info("Local server on ws://%s:%s", self._host, self._port)

    async def stop(self) -> None:
        runner = self._runner
        self._runner = None
        if runner is not None:
            await runner.cleanup()

    async def _close_sockets(self, _app: web.Application) -> None:
        for ws in list(self._sockets):
            await ws.close(code=aiohttp.WSCloseCode.GOING_AWAY, message=b"Server shutdown")

    async def _handle_ws(self, request: web.Request) -> web.WebSocketResponse:
        ws = web.WebSocketResponse()
        await ws.prepare(request)
        _logger.info("Browser UI connected")
        self._sockets.add(ws)
        if self._slot.attach(ws) is not None:
            _logger.debug("Previous UI session superseded")

        try:
            try:
                await ws.send_str(UiStateMessage.from_state(self._store.state).to_json())
            except (ConnectionResetError, RuntimeError):
                _logger.debug("UI left before the state snapshot was sent", exc_info=True)
                return ws
            async for msg in ws:
                if msg.type == aiohttp.WSMsgType.TEXT:
                    self.handle_frame(msg.data)
                elif msg.type == aiohttp.WSMsgType.ERROR:
                    _logger.debug("UI socket error: %s", ws.exception())
        finally:
            self._sockets.discard(ws)
            if self._slot.release(ws):
                _logger.info("Browser UI disconnected")
            else:
                _logger.debug("Superseded UI session closed")
        return ws

    def handle_frame(self, data: str) -> None:
        try:
            message = parse_ui_message(data)
        except ProtocolError:
            _logger.debug("Dropping malformed UI frame", exc_info=True)
            return
        if message.type == "solved":
            self._on_solved()

    def push(self, message: UiPushMessage) -> bool:
        """Send *message* to the tracked UI if it is connected.

        The send is scheduled on the loop; returns whether it was.
        """
        ws = self._slot.current
        if ws is None or ws.closed:
            _logger.debug("No UI connected; dropping %s push", message.type)
            return False
        task = asyncio.get_running_loop().create_task(self._send(ws, message.to_json()))
        self._send_tasks.add(task)
        task.add_done_callback(self._send_tasks.discard)
        return True

    async def _send(self, ws: web.WebSocketResponse, text: str) -> None:
        try:
            await ws.send_str(text)
        except (ConnectionResetError, RuntimeError):
            _logger.debug("UI push failed", exc_info=True)
