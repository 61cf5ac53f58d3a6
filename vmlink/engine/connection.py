"""WebSocket connection to the companion service.

The manager owns the only live transport of a page load. Every attempt gets
a generation number; events coming from an attempt that has since been
superseded (manual retry, automatic retry, close) are dropped so that a late
error from an old socket cannot knock a fresh connection back offline.

State changes::

    DISCONNECTED --attempt--> CONNECTING --hello ack--> CONNECTED
         ^                        |                         |
         +------ error/close -----+-------------------------+
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from typing import Any, Callable, List, Optional

import websockets
from websockets.exceptions import WebSocketException

from .config import EngineSettings, load_settings
from .types import Config, ConnectionState, Message

logger = logging.getLogger(__name__)

HANDSHAKE_COMMAND = "hello"
DOWNLOAD_COMMAND = "get"

TRANSPORT_ERRORS = (OSError, asyncio.TimeoutError, WebSocketException)

StateListener = Callable[[ConnectionState], None]
MessageListener = Callable[[Message], None]


class NotConnectedError(RuntimeError):
    """Raised when a command is sent before the handshake completed."""


class ConnectionManager:
    """Connects, authenticates and recovers the companion WebSocket."""

    def __init__(
        self,
        config: Config,
        settings: EngineSettings | None = None,
        *,
        connect: Callable[..., Any] | None = None,
    ) -> None:
        self.config = config
        self.settings = settings or load_settings(None)
        self._connect = connect or websockets.connect
        self.state = ConnectionState.DISCONNECTED
        self.last_error: Optional[BaseException] = None
        self._socket: Any = None
        self._task: Optional[asyncio.Task] = None
        self._generation = 0
        self._retry_handle: Optional[asyncio.TimerHandle] = None
        self._auto_attempts = 0
        self._state_listeners: List[StateListener] = []
        self._message_listeners: List[MessageListener] = []

    @property
    def connected(self) -> bool:
        return self.state is ConnectionState.CONNECTED

    @property
    def failed(self) -> bool:
        return self.state is ConnectionState.DISCONNECTED and self.last_error is not None

    # -- listeners ---------------------------------------------------------

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Call ``listener`` on every state change; returns an unsubscribe function."""

        self._state_listeners.append(listener)
        return lambda: _discard(self._state_listeners, listener)

    def on_message(self, listener: MessageListener) -> Callable[[], None]:
        """Call ``listener`` for each message received after the handshake."""

        self._message_listeners.append(listener)
        return lambda: _discard(self._message_listeners, listener)

    # -- entry points ------------------------------------------------------

    def startup_connect(self) -> None:
        self._attempt_connect("startup-connect")

    def manual_retry(self) -> None:
        self._auto_attempts = 0
        self._attempt_connect("manual-retry")

    def _attempt_connect(self, trigger: str) -> None:
        loop = asyncio.get_running_loop()
        self._cancel_retry()
        self._generation += 1
        generation = self._generation
        if self._task is not None and not self._task.done():
            logger.info("Superseding previous connection attempt")
            self._task.cancel()
        self._socket = None
        if self.state is not ConnectionState.DISCONNECTED:
            self._set_state(ConnectionState.DISCONNECTED)
        logger.info("Connecting to %s (%s)", self.config.socket_url, trigger)
        self._set_state(ConnectionState.CONNECTING)
        self._task = loop.create_task(self._run(generation))

    # -- commands ----------------------------------------------------------

    async def send_command(self, command: str, **fields: Any) -> None:
        if not self.connected or self._socket is None:
            raise NotConnectedError(f"cannot send {command!r}: companion not connected")
        payload = {"Command": command, "Token": self.config.token}
        payload.update(fields)
        await self._socket.send(json.dumps(payload))

    async def request_download(self, resource_id: str) -> None:
        """Ask the companion to fetch torrent ``resource_id`` itself."""

        await self.send_command(DOWNLOAD_COMMAND, ID=resource_id)

    async def wait_for_handshake(self, timeout: float | None = None) -> bool:
        """Wait for the current attempt to settle; ``True`` once connected."""

        if self.connected:
            return True
        if self.state is ConnectionState.DISCONNECTED and self._retry_handle is None:
            return False

        waiter: asyncio.Future = asyncio.get_running_loop().create_future()

        def listener(state: ConnectionState) -> None:
            if waiter.done():
                return
            if state is ConnectionState.CONNECTED:
                waiter.set_result(True)
            elif state is ConnectionState.DISCONNECTED:
                waiter.set_result(False)

        unsubscribe = self.subscribe(listener)
        try:
            return await asyncio.wait_for(waiter, timeout)
        except asyncio.TimeoutError:
            return False
        finally:
            unsubscribe()

    async def close(self) -> None:
        """Drop the transport and any pending retry."""

        self._cancel_retry()
        self._generation += 1
        task, self._task = self._task, None
        self._socket = None
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._set_state(ConnectionState.DISCONNECTED)

    # -- transport ---------------------------------------------------------

    async def _run(self, generation: int) -> None:
        hello = {"Command": HANDSHAKE_COMMAND, "Token": self.config.token}
        try:
            async with self._connect(
                self.config.socket_url,
                open_timeout=self.settings.get("open_timeout"),
            ) as socket:
                if generation != self._generation:
                    return
                self._socket = socket
                logger.info("Connected to the companion service, sending handshake")
                await socket.send(json.dumps(hello))
                async for raw in socket:
                    if generation != self._generation:
                        return
                    self._handle_frame(raw)
        except TRANSPORT_ERRORS as exc:
            self._on_failure(generation, exc)
            return
        self._on_closed(generation)

    def _handle_frame(self, raw: str | bytes) -> None:
        try:
            message = Message.from_wire(raw)
        except ValueError as exc:
            logger.warning("Ignoring malformed message from companion: %s", exc)
            return

        if self.state is ConnectionState.CONNECTING:
            if message.kind == HANDSHAKE_COMMAND and not message.is_error:
                self._auto_attempts = 0
                self.last_error = None
                self._set_state(ConnectionState.CONNECTED)
            elif message.is_error:
                logger.warning("Companion rejected the handshake: %s", message.kind)
            else:
                logger.debug("Ignoring %r received before the handshake", message.kind)
            return

        logger.info("Companion: %s", message.kind)
        for listener in list(self._message_listeners):
            try:
                listener(message)
            except Exception:
                logger.exception("Companion message listener failed")

    def _on_failure(self, generation: int, exc: BaseException) -> None:
        if generation != self._generation:
            logger.debug("Ignoring error from superseded connection: %s", exc)
            return
        self._socket = None
        self.last_error = exc
        logger.warning("Companion connection error: %s", str(exc) or type(exc).__name__)
        self._set_state(ConnectionState.DISCONNECTED)
        self._schedule_retry()

    def _on_closed(self, generation: int) -> None:
        if generation != self._generation:
            return
        self._socket = None
        logger.info("Companion connection closed")
        self._set_state(ConnectionState.DISCONNECTED)
        self._schedule_retry()

    # -- automatic retry ---------------------------------------------------

    def _schedule_retry(self) -> None:
        max_attempts = int(self.settings.retry("max_attempts", 0) or 0)
        if self._auto_attempts >= max_attempts:
            return
        self._auto_attempts += 1
        delay = self.settings.backoff_delay(self._auto_attempts)
        logger.info("Reconnecting in %.1fs (attempt %d of %d)", delay, self._auto_attempts, max_attempts)
        self._retry_handle = asyncio.get_running_loop().call_later(delay, self._auto_retry)

    def _auto_retry(self) -> None:
        self._retry_handle = None
        self._attempt_connect("auto-retry")

    def _cancel_retry(self) -> None:
        if self._retry_handle is not None:
            self._retry_handle.cancel()
            self._retry_handle = None

    def _set_state(self, state: ConnectionState) -> None:
        if state is self.state:
            return
        previous, self.state = self.state, state
        logger.info("Connection state %s -> %s", previous.value, state.value)
        for listener in list(self._state_listeners):
            try:
                listener(state)
            except Exception:
                logger.exception("Connection state listener failed")


def _discard(listeners: List[Any], listener: Any) -> None:
    if listener in listeners:
        listeners.remove(listener)
