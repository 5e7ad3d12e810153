"""
Live server console over the panel's websocket.

A ``ConsoleChannel`` is a long-lived, bidirectional handle for one server.
Opening it is a two-step handshake:

1. A normal Client API call (``GET /servers/{id}/websocket``) issues a
   short-lived token and the daemon's socket URL.
2. The socket is opened and the token is sent as an ``auth`` frame; the
   daemon answers ``auth success``.

Once connected, two pump tasks keep the directions independent: a writer
drains queued command frames, a reader queues inbound events. Sending never
waits for earlier frames to be acknowledged; each direction is FIFO.

    async with api.console("a1b2c3d4") as console:
        console.send_command("say hello")
        async for event in console.events():
            if event.kind is ConsoleEventKind.CONSOLE_OUTPUT:
                print(event.text)

State machine::

    DISCONNECTED -> HANDSHAKING -> CONNECTED -> DISCONNECTED | CLOSED

``token expired`` / ``jwt error`` from the daemon, or the daemon closing the
socket, moves the channel to DISCONNECTED. The channel does not reconnect on
its own; call ``connect()`` again to re-handshake. ``close()`` (or leaving the
``async with`` block) is final.

The socket itself sits behind the ``BidirectionalChannel`` protocol; the
default connector uses the ``websockets`` library, tests inject a stub.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncIterator, Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol

from pydantic import BaseModel
from websockets.asyncio.client import connect
from websockets.exceptions import ConnectionClosed, WebSocketException

from pterodactyl_api.codec import validate_model
from pterodactyl_api.errors import ConsoleAuthError, ConsoleClosedError, TransportError
from pterodactyl_api.models.client import PowerAction, WebsocketCredentials

logger = logging.getLogger(__name__)


# =============================================================================
# CHANNEL PROTOCOL
# =============================================================================


class ChannelClosed(Exception):
    """Raised by a ``BidirectionalChannel`` once the peer has closed it."""


class BidirectionalChannel(Protocol):
    """The narrow socket interface the console needs."""

    async def send(self, message: str) -> None: ...

    async def recv(self) -> str | bytes: ...

    async def close(self) -> None: ...


Connector = Callable[[str, Mapping[str, str]], Awaitable[BidirectionalChannel]]


class WebsocketChannel:
    """Adapts a ``websockets`` client connection to ``BidirectionalChannel``."""

    def __init__(self, connection: Any) -> None:
        self._connection = connection

    async def send(self, message: str) -> None:
        try:
            await self._connection.send(message)
        except ConnectionClosed as e:
            raise ChannelClosed(str(e)) from e

    async def recv(self) -> str | bytes:
        try:
            message: str | bytes = await self._connection.recv()
        except ConnectionClosed as e:
            raise ChannelClosed(str(e)) from e
        return message

    async def close(self) -> None:
        await self._connection.close()


async def websocket_connector(url: str, headers: Mapping[str, str]) -> BidirectionalChannel:
    """
    Open a websocket to the daemon.

    The daemon checks the ``Origin`` header against the panel URL, so it is
    sent as the websocket origin rather than as a plain header.
    """
    extra = {name: value for name, value in headers.items() if name.lower() != "origin"}
    origin = headers.get("Origin")
    try:
        connection = await connect(url, origin=origin, additional_headers=extra or None)  # type: ignore[arg-type]
    except (OSError, TimeoutError, WebSocketException) as e:
        raise TransportError(
            message="Console connection failed",
            detail=f"Cannot open {url}: {e!r}",
            cause=e,
        ) from e
    return WebsocketChannel(connection)


# =============================================================================
# EVENTS
# =============================================================================


class ConsoleEventKind(str, Enum):
    """Event names sent by the daemon."""

    AUTH_SUCCESS = "auth success"
    STATUS = "status"
    CONSOLE_OUTPUT = "console output"
    STATS = "stats"
    TOKEN_EXPIRING = "token expiring"
    TOKEN_EXPIRED = "token expired"
    JWT_ERROR = "jwt error"
    DAEMON_MESSAGE = "daemon message"
    DAEMON_ERROR = "daemon error"
    INSTALL_OUTPUT = "install output"
    INSTALL_STARTED = "install started"
    INSTALL_COMPLETED = "install completed"
    BACKUP_COMPLETED = "backup completed"
    BACKUP_RESTORE_COMPLETED = "backup restore completed"
    TRANSFER_LOGS = "transfer logs"
    TRANSFER_STATUS = "transfer status"


# Events after which the token is no longer valid.
AUTH_EXPIRY_EVENTS = frozenset({ConsoleEventKind.TOKEN_EXPIRED, ConsoleEventKind.JWT_ERROR})


class NetworkSample(BaseModel):
    rx_bytes: int
    tx_bytes: int


class StatsSample(BaseModel):
    """One resource-usage sample carried by a ``stats`` event."""

    memory_bytes: int
    memory_limit_bytes: int
    cpu_absolute: float
    network: NetworkSample
    state: str
    uptime: int = 0
    disk_bytes: int = 0


@dataclass(frozen=True)
class ConsoleEvent:
    """
    One inbound frame.

    Attributes:
        event: Event name as sent by the daemon.
        args: Frame arguments (always strings on the wire).
    """

    event: str
    args: list[str] = field(default_factory=list)

    @property
    def kind(self) -> ConsoleEventKind | None:
        """The known event kind, or None for names this library does not know."""
        try:
            return ConsoleEventKind(self.event)
        except ValueError:
            return None

    @property
    def text(self) -> str:
        """First argument (console line, status name, ...), or ""."""
        return self.args[0] if self.args else ""

    def stats(self) -> StatsSample:
        """
        Decode the payload of a ``stats`` event.

        Raises:
            ValueError: If this is not a stats event.
            ShapeMismatchError: If the payload is not a valid sample.
        """
        if self.kind is not ConsoleEventKind.STATS:
            raise ValueError(f"'{self.event}' is not a stats event")
        try:
            payload = json.loads(self.text)
        except ValueError:
            payload = None
        return validate_model(StatsSample, payload, ("args", 0))


def encode_frame(event: str, *args: str) -> str:
    return json.dumps({"event": event, "args": list(args)})


def parse_frame(raw: str | bytes) -> ConsoleEvent | None:
    """Parse an inbound frame; malformed frames are logged and dropped."""
    try:
        data = json.loads(raw)
    except ValueError:
        logger.warning("Dropping non-JSON console frame")
        return None

    if not isinstance(data, dict) or not isinstance(data.get("event"), str):
        logger.warning("Dropping console frame without an event name")
        return None

    args = data.get("args") or []
    if not isinstance(args, list):
        args = [args]
    return ConsoleEvent(
        event=data["event"],
        args=[arg if isinstance(arg, str) else json.dumps(arg) for arg in args],
    )


# =============================================================================
# CHANNEL
# =============================================================================


class ConsoleState(str, Enum):
    DISCONNECTED = "disconnected"
    HANDSHAKING = "handshaking"
    CONNECTED = "connected"
    CLOSED = "closed"


# Marks the end of the inbound sequence.
_END = object()


class ConsoleChannel:
    """
    A persistent console connection to one server.

    One logical owner should drive both halves: send from any task, and
    consume ``events()`` from one task.

    Attributes:
        server: Identifier of the server this channel belongs to.
    """

    def __init__(
        self,
        server: str,
        credentials: Callable[[], Awaitable[WebsocketCredentials]],
        origin: str,
        connector: Connector = websocket_connector,
    ) -> None:
        """
        Initialise a disconnected channel.

        Args:
            server: Server identifier (for logs).
            credentials: Issues a fresh token and socket URL.
            origin: Panel URL, sent as the websocket origin.
            connector: Opens the socket.
        """
        self.server = server
        self._credentials = credentials
        self._origin = origin
        self._connector = connector
        self._state = ConsoleState.DISCONNECTED
        self._socket: BidirectionalChannel | None = None
        self._reader: asyncio.Task[None] | None = None
        self._writer: asyncio.Task[None] | None = None
        self._inbound: asyncio.Queue[Any] | None = None
        self._outbound: asyncio.Queue[str] | None = None

    @property
    def state(self) -> ConsoleState:
        return self._state

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def connect(self) -> ConsoleChannel:
        """
        Handshake and start the pumps.

        Raises:
            ConsoleClosedError: If the channel was closed.
            ConsoleAuthError: If the daemon rejects the token.
            PterodactylError: If the credentials call fails.
            TransportError: If the socket cannot be opened.
        """
        if self._state is ConsoleState.CLOSED:
            raise ConsoleClosedError(
                message="Console channel closed",
                detail="A closed channel cannot be reopened; create a new one",
            )
        if self._state is ConsoleState.CONNECTED:
            return self
        if self._state is ConsoleState.HANDSHAKING:
            raise RuntimeError("Console handshake already in progress")

        self._state = ConsoleState.HANDSHAKING
        try:
            credentials = await self._credentials()
            socket = await self._connector(credentials.socket, {"Origin": self._origin})
        except BaseException:
            self._state = ConsoleState.DISCONNECTED
            raise

        try:
            early = await self._authenticate(socket, credentials.token)
        except BaseException:
            self._state = ConsoleState.DISCONNECTED
            await socket.close()
            raise

        self._socket = socket
        self._inbound = asyncio.Queue()
        self._outbound = asyncio.Queue()
        for event in early:
            self._inbound.put_nowait(event)
        self._reader = asyncio.create_task(self._read_pump(socket, self._inbound))
        self._writer = asyncio.create_task(self._write_pump(socket, self._outbound))
        self._state = ConsoleState.CONNECTED
        logger.debug("Console connected for server %s", self.server)
        return self

    async def _authenticate(
        self, socket: BidirectionalChannel, token: str
    ) -> list[ConsoleEvent]:
        """Send the token and wait for ``auth success``; return frames seen before it."""
        await socket.send(encode_frame("auth", token))
        early: list[ConsoleEvent] = []
        while True:
            try:
                raw = await socket.recv()
            except ChannelClosed as e:
                raise ConsoleAuthError(
                    message="Console authentication failed",
                    detail="Socket closed during handshake",
                ) from e

            event = parse_frame(raw)
            if event is None:
                continue
            if event.kind is ConsoleEventKind.AUTH_SUCCESS:
                return early
            if event.kind in AUTH_EXPIRY_EVENTS:
                raise ConsoleAuthError(
                    message="Console authentication failed",
                    detail=event.text or event.event,
                )
            early.append(event)

    async def close(self) -> None:
        """Stop the pumps and close the socket. Idempotent and final."""
        if self._state is ConsoleState.CLOSED:
            return
        self._state = ConsoleState.CLOSED
        await self._release()
        logger.debug("Console closed for server %s", self.server)

    async def _release(self) -> None:
        socket, reader, writer = self._socket, self._reader, self._writer
        self._socket = self._reader = self._writer = None

        current = asyncio.current_task()
        tasks = [task for task in (reader, writer) if task is not None and task is not current]
        for task in tasks:
            task.cancel()

        if self._inbound is not None:
            self._inbound.put_nowait(_END)
        if socket is not None:
            await socket.close()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def __aenter__(self) -> ConsoleChannel:
        return await self.connect()

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    # -------------------------------------------------------------------------
    # Pumps
    # -------------------------------------------------------------------------

    async def _read_pump(self, socket: BidirectionalChannel, inbound: asyncio.Queue[Any]) -> None:
        while True:
            try:
                raw = await socket.recv()
            except ChannelClosed:
                logger.debug("Console socket for server %s closed by peer", self.server)
                break
            except Exception:
                logger.exception("Console socket for server %s failed while reading", self.server)
                break

            event = parse_frame(raw)
            if event is None:
                continue
            inbound.put_nowait(event)
            if event.kind in AUTH_EXPIRY_EVENTS:
                logger.warning(
                    "Console token for server %s expired (%s); re-handshake required",
                    self.server,
                    event.event,
                )
                break

        await self._drop()

    async def _write_pump(self, socket: BidirectionalChannel, outbound: asyncio.Queue[str]) -> None:
        while True:
            frame = await outbound.get()
            try:
                await socket.send(frame)
            except ChannelClosed:
                logger.debug("Console socket for server %s closed while sending", self.server)
                break
            except Exception:
                logger.exception("Console socket for server %s failed while sending", self.server)
                break

        await self._drop()

    async def _drop(self) -> None:
        # Reached when a pump stops on its own; cancellation skips this.
        if self._state is ConsoleState.CONNECTED:
            self._state = ConsoleState.DISCONNECTED
        await self._release()

    # -------------------------------------------------------------------------
    # Outbound frames
    # -------------------------------------------------------------------------

    def _enqueue(self, event: str, *args: str) -> None:
        if self._state is not ConsoleState.CONNECTED or self._outbound is None:
            raise ConsoleClosedError(
                message="Console not connected",
                detail=f"Cannot send '{event}' while {self._state.value}",
            )
        self._outbound.put_nowait(encode_frame(event, *args))

    def send_command(self, command: str) -> None:
        """Queue a console command (as typed into the panel console)."""
        self._enqueue("send command", command)

    def set_power_state(self, action: PowerAction | str) -> None:
        """Queue a power action."""
        self._enqueue("set state", PowerAction(action).value)

    def request_logs(self) -> None:
        """Ask the daemon to replay recent console output."""
        self._enqueue("send logs")

    def request_stats(self) -> None:
        """Ask the daemon for an immediate stats sample."""
        self._enqueue("send stats")

    # -------------------------------------------------------------------------
    # Inbound events
    # -------------------------------------------------------------------------

    async def events(self) -> AsyncIterator[ConsoleEvent]:
        """
        Yield inbound events in arrival order.

        The iterator ends when the daemon closes the socket, the token
        expires (the expiry event is yielded first), or the channel is closed.

        Raises:
            ConsoleClosedError: If the channel was never connected.
        """
        inbound = self._inbound
        if inbound is None:
            raise ConsoleClosedError(
                message="Console not connected",
                detail="Call connect() before reading events",
            )
        while True:
            item = await inbound.get()
            if item is _END:
                # Leave the marker for any later iterator.
                inbound.put_nowait(_END)
                return
            yield item
