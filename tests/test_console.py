"""
Tests for the console channel.

The websocket is replaced by ``StubSocket``, an in-memory
``BidirectionalChannel``: frames pushed by a test are received by the
channel, frames sent by the channel are recorded, and closing it is
observable. ``StubConnector`` hands out a fresh socket per connect.
"""

import asyncio
import json
from collections.abc import AsyncGenerator

import pytest
import respx
from httpx import Response

from pterodactyl_api.client_api import ClientAPI
from pterodactyl_api.console import (
    ChannelClosed,
    ConsoleChannel,
    ConsoleEvent,
    ConsoleEventKind,
    ConsoleState,
    encode_frame,
    parse_frame,
)
from pterodactyl_api.errors import ConsoleAuthError, ConsoleClosedError, ShapeMismatchError
from pterodactyl_api.models import PowerAction, WebsocketCredentials
from tests.payloads import CLIENT_BASE, PANEL_URL

SOCKET_URL = "wss://node.test:8080/api/servers/a1b2c3d4/ws"


# =============================================================================
# STUBS
# =============================================================================


class StubSocket:
    """In-memory socket; ``None`` on the incoming queue means the peer closed."""

    def __init__(self) -> None:
        self.incoming: asyncio.Queue[str | Exception | None] = asyncio.Queue()
        self.sent: list[dict] = []
        self.closed = False

    def push(self, event: str, *args: str) -> None:
        self.incoming.put_nowait(encode_frame(event, *args))

    def hang_up(self) -> None:
        self.incoming.put_nowait(None)

    def fail(self, error: Exception) -> None:
        """Make the next receive raise ``error``."""
        self.incoming.put_nowait(error)

    async def send(self, message: str) -> None:
        if self.closed:
            raise ChannelClosed("closed")
        self.sent.append(json.loads(message))

    async def recv(self) -> str:
        item = await self.incoming.get()
        if item is None:
            raise ChannelClosed("peer closed")
        if isinstance(item, Exception):
            raise item
        return item

    async def close(self) -> None:
        self.closed = True
        self.incoming.put_nowait(None)


class StubConnector:
    """Records connect calls; each socket is pre-loaded with ``first_frames``."""

    def __init__(self, *first_frames: tuple[str, ...]) -> None:
        self.first_frames = first_frames or (("auth success",),)
        self.sockets: list[StubSocket] = []
        self.calls: list[tuple[str, dict]] = []

    async def __call__(self, url: str, headers) -> StubSocket:
        self.calls.append((url, dict(headers)))
        socket = StubSocket()
        for event, *args in self.first_frames:
            socket.push(event, *args)
        self.sockets.append(socket)
        return socket

    @property
    def socket(self) -> StubSocket:
        return self.sockets[-1]


class StubCredentials:
    """Issues a new token per call."""

    def __init__(self) -> None:
        self.issued = 0

    async def __call__(self) -> WebsocketCredentials:
        self.issued += 1
        return WebsocketCredentials(token=f"jwt-{self.issued}", socket=SOCKET_URL)


async def _settle() -> None:
    """Let the pump tasks run."""
    for _ in range(5):
        await asyncio.sleep(0)


async def _collect(channel: ConsoleChannel) -> list[ConsoleEvent]:
    return [event async for event in channel.events()]


# =============================================================================
# FIXTURES
# =============================================================================


@pytest.fixture
def connector() -> StubConnector:
    return StubConnector()


@pytest.fixture
def credentials() -> StubCredentials:
    return StubCredentials()


@pytest.fixture
async def channel(
    connector: StubConnector, credentials: StubCredentials
) -> AsyncGenerator[ConsoleChannel, None]:
    """Create a console channel for testing; always closed afterwards."""
    channel = ConsoleChannel("a1b2c3d4", credentials, PANEL_URL, connector)
    yield channel
    await channel.close()


# =============================================================================
# HANDSHAKE TESTS
# =============================================================================


class TestHandshake:
    """Tests for connect()."""

    @pytest.mark.asyncio
    async def test_connect_authenticates(self, channel: ConsoleChannel, connector: StubConnector):
        """Test that the token is sent and the channel becomes connected."""
        assert channel.state is ConsoleState.DISCONNECTED

        await channel.connect()

        assert channel.state is ConsoleState.CONNECTED
        assert connector.socket.sent[0] == {"event": "auth", "args": ["jwt-1"]}
        url, headers = connector.calls[0]
        assert url == SOCKET_URL
        assert headers == {"Origin": PANEL_URL}

    @pytest.mark.asyncio
    async def test_connect_is_idempotent_while_connected(
        self, channel: ConsoleChannel, connector: StubConnector
    ):
        await channel.connect()
        await channel.connect()

        assert len(connector.calls) == 1

    @pytest.mark.asyncio
    async def test_auth_rejected(self, credentials: StubCredentials):
        connector = StubConnector(("jwt error", "signature invalid"))
        channel = ConsoleChannel("a1b2c3d4", credentials, PANEL_URL, connector)

        with pytest.raises(ConsoleAuthError, match="signature invalid"):
            await channel.connect()

        assert channel.state is ConsoleState.DISCONNECTED
        assert connector.socket.closed is True

    @pytest.mark.asyncio
    async def test_socket_closed_during_handshake(self, credentials: StubCredentials):
        connector = StubConnector()
        connector.first_frames = ()
        channel = ConsoleChannel("a1b2c3d4", credentials, PANEL_URL, connector)

        async def hang_up_soon() -> None:
            await _settle()
            connector.socket.hang_up()

        hang_up = asyncio.create_task(hang_up_soon())
        with pytest.raises(ConsoleAuthError):
            await channel.connect()
        await hang_up

        assert channel.state is ConsoleState.DISCONNECTED

    @pytest.mark.asyncio
    async def test_events_before_auth_success_are_kept(self, credentials: StubCredentials):
        connector = StubConnector(("console output", "booting"), ("auth success",))
        async with ConsoleChannel("a1b2c3d4", credentials, PANEL_URL, connector) as channel:
            connector.socket.hang_up()
            events = [event async for event in channel.events()]

        assert [(e.event, e.text) for e in events] == [("console output", "booting")]


# =============================================================================
# SEND AND RECEIVE TESTS
# =============================================================================


class TestSendAndReceive:
    """Tests for outbound frames and the inbound event sequence."""

    @pytest.mark.asyncio
    async def test_sends_are_fifo(self, channel: ConsoleChannel, connector: StubConnector):
        await channel.connect()

        channel.send_command("say one")
        channel.send_command("say two")
        channel.set_power_state(PowerAction.RESTART)
        channel.request_logs()
        channel.request_stats()
        await _settle()

        assert connector.socket.sent[1:] == [
            {"event": "send command", "args": ["say one"]},
            {"event": "send command", "args": ["say two"]},
            {"event": "set state", "args": ["restart"]},
            {"event": "send logs", "args": []},
            {"event": "send stats", "args": []},
        ]

    @pytest.mark.asyncio
    async def test_set_power_state_accepts_string(
        self, channel: ConsoleChannel, connector: StubConnector
    ):
        await channel.connect()

        channel.set_power_state("kill")
        await _settle()

        assert connector.socket.sent[-1] == {"event": "set state", "args": ["kill"]}

    @pytest.mark.asyncio
    async def test_set_power_state_rejects_unknown(self, channel: ConsoleChannel):
        await channel.connect()

        with pytest.raises(ValueError):
            channel.set_power_state("explode")

    @pytest.mark.asyncio
    async def test_events_in_arrival_order(self, channel: ConsoleChannel, connector: StubConnector):
        await channel.connect()
        socket = connector.socket
        socket.push("console output", "line 1")
        socket.push("status", "running")
        socket.push("console output", "line 2")
        socket.hang_up()

        events = [event async for event in channel.events()]

        assert [(e.kind, e.text) for e in events] == [
            (ConsoleEventKind.CONSOLE_OUTPUT, "line 1"),
            (ConsoleEventKind.STATUS, "running"),
            (ConsoleEventKind.CONSOLE_OUTPUT, "line 2"),
        ]

    @pytest.mark.asyncio
    async def test_peer_close_disconnects(self, channel: ConsoleChannel, connector: StubConnector):
        await channel.connect()
        connector.socket.hang_up()

        assert [event async for event in channel.events()] == []
        assert channel.state is ConsoleState.DISCONNECTED
        assert connector.socket.closed is True
        with pytest.raises(ConsoleClosedError):
            channel.send_command("say hi")

    @pytest.mark.asyncio
    async def test_malformed_frames_are_dropped(
        self, channel: ConsoleChannel, connector: StubConnector
    ):
        await channel.connect()
        socket = connector.socket
        socket.incoming.put_nowait("not json")
        socket.incoming.put_nowait(json.dumps({"args": ["no event"]}))
        socket.push("console output", "kept")
        socket.hang_up()

        events = [event async for event in channel.events()]

        assert [e.text for e in events] == ["kept"]

    @pytest.mark.asyncio
    async def test_unknown_event_kind_is_delivered(
        self, channel: ConsoleChannel, connector: StubConnector
    ):
        await channel.connect()
        connector.socket.push("future event", "x")
        connector.socket.hang_up()

        events = [event async for event in channel.events()]

        assert events[0].event == "future event"
        assert events[0].kind is None

    @pytest.mark.asyncio
    async def test_events_before_connect(self, channel: ConsoleChannel):
        with pytest.raises(ConsoleClosedError):
            async for _ in channel.events():
                pass

    @pytest.mark.asyncio
    async def test_send_before_connect(self, channel: ConsoleChannel):
        with pytest.raises(ConsoleClosedError):
            channel.send_command("say hi")


# =============================================================================
# SOCKET FAILURE TESTS
# =============================================================================


class TestSocketFailures:
    """Socket errors other than a clean close must not leave a half-open channel."""

    @pytest.mark.asyncio
    async def test_read_error_disconnects(self, channel: ConsoleChannel, connector: StubConnector):
        await channel.connect()
        socket = connector.socket
        socket.fail(RuntimeError("protocol error"))
        socket.push("console output", "never read")

        events = await asyncio.wait_for(_collect(channel), 1.0)

        assert events == []
        assert channel.state is ConsoleState.DISCONNECTED
        assert socket.closed is True
        with pytest.raises(ConsoleClosedError):
            channel.send_command("say hi")

    @pytest.mark.asyncio
    async def test_send_error_disconnects(self, channel: ConsoleChannel, connector: StubConnector):
        await channel.connect()
        socket = connector.socket

        async def broken_send(message: str) -> None:
            raise OSError("broken pipe")

        socket.send = broken_send
        channel.send_command("say hi")

        events = await asyncio.wait_for(_collect(channel), 1.0)

        assert events == []
        assert channel.state is ConsoleState.DISCONNECTED
        assert socket.closed is True

    @pytest.mark.asyncio
    async def test_reconnect_after_read_error(
        self, channel: ConsoleChannel, connector: StubConnector, credentials: StubCredentials
    ):
        await channel.connect()
        connector.socket.fail(OSError("connection reset"))
        await asyncio.wait_for(_collect(channel), 1.0)

        await channel.connect()

        assert channel.state is ConsoleState.CONNECTED
        assert len(connector.sockets) == 2
        assert connector.socket.sent[0] == {"event": "auth", "args": ["jwt-2"]}


# =============================================================================
# TOKEN EXPIRY TESTS
# =============================================================================


class TestTokenExpiry:
    """Tests for token expiry and re-handshaking."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("event", ["token expired", "jwt error"])
    async def test_expiry_disconnects_after_delivering_event(
        self, channel: ConsoleChannel, connector: StubConnector, event: str
    ):
        await channel.connect()
        connector.socket.push("console output", "before")
        connector.socket.push(event)

        events = [e async for e in channel.events()]

        assert [e.event for e in events] == ["console output", event]
        assert channel.state is ConsoleState.DISCONNECTED
        assert connector.socket.closed is True
        with pytest.raises(ConsoleClosedError):
            channel.send_command("say hi")

    @pytest.mark.asyncio
    async def test_token_expiring_is_just_an_event(
        self, channel: ConsoleChannel, connector: StubConnector
    ):
        await channel.connect()
        connector.socket.push("token expiring")
        await _settle()

        assert channel.state is ConsoleState.CONNECTED

    @pytest.mark.asyncio
    async def test_reconnect_uses_fresh_token(
        self,
        channel: ConsoleChannel,
        connector: StubConnector,
        credentials: StubCredentials,
    ):
        await channel.connect()
        connector.socket.push("token expired")
        _ = [e async for e in channel.events()]

        await channel.connect()

        assert channel.state is ConsoleState.CONNECTED
        assert credentials.issued == 2
        assert connector.socket.sent[0] == {"event": "auth", "args": ["jwt-2"]}


# =============================================================================
# CLOSE TESTS
# =============================================================================


class TestClose:
    """Tests for close() and the async context manager."""

    @pytest.mark.asyncio
    async def test_leaving_context_closes_socket(
        self, connector: StubConnector, credentials: StubCredentials
    ):
        async with ConsoleChannel("a1b2c3d4", credentials, PANEL_URL, connector) as channel:
            assert channel.state is ConsoleState.CONNECTED

        assert connector.socket.closed is True
        assert channel.state is ConsoleState.CLOSED

    @pytest.mark.asyncio
    async def test_closed_channel_rejects_use(
        self, channel: ConsoleChannel, connector: StubConnector
    ):
        await channel.connect()
        await channel.close()

        with pytest.raises(ConsoleClosedError):
            channel.send_command("say hi")
        with pytest.raises(ConsoleClosedError):
            await channel.connect()

    @pytest.mark.asyncio
    async def test_close_ends_pending_events(self, channel: ConsoleChannel):
        await channel.connect()

        async def collect() -> list[ConsoleEvent]:
            return [event async for event in channel.events()]

        reader = asyncio.create_task(collect())
        await _settle()
        await channel.close()

        assert await asyncio.wait_for(reader, timeout=1) == []

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self, channel: ConsoleChannel):
        await channel.connect()

        await channel.close()
        await channel.close()

        assert channel.state is ConsoleState.CLOSED


# =============================================================================
# FRAME AND EVENT TESTS
# =============================================================================


class TestFrames:
    """Tests for frame encoding and event payloads."""

    def test_encode_frame(self):
        assert json.loads(encode_frame("send command", "say hi")) == {
            "event": "send command",
            "args": ["say hi"],
        }

    def test_parse_frame_stringifies_args(self):
        event = parse_frame(json.dumps({"event": "stats", "args": [{"state": "running"}]}))

        assert event is not None
        assert json.loads(event.text) == {"state": "running"}

    def test_stats_decoded(self):
        sample = {
            "memory_bytes": 1048576,
            "memory_limit_bytes": 2097152,
            "cpu_absolute": 33.5,
            "network": {"rx_bytes": 100, "tx_bytes": 200},
            "state": "running",
            "uptime": 60000,
            "disk_bytes": 4096,
        }

        stats = ConsoleEvent("stats", [json.dumps(sample)]).stats()

        assert stats.cpu_absolute == 33.5
        assert stats.network.tx_bytes == 200

    def test_stats_on_other_event(self):
        with pytest.raises(ValueError):
            ConsoleEvent("status", ["running"]).stats()

    def test_bad_stats_payload(self):
        with pytest.raises(ShapeMismatchError):
            ConsoleEvent("stats", ["{}"]).stats()


# =============================================================================
# FACADE INTEGRATION TESTS
# =============================================================================


class TestClientConsole:
    """Tests for consoles created through ClientAPI.console."""

    @pytest.mark.asyncio
    @respx.mock
    async def test_console_fetches_credentials(self, config, connector: StubConnector):
        route = respx.get(f"{CLIENT_BASE}/servers/a1b2c3d4/websocket").mock(
            return_value=Response(200, json={"data": {"token": "jwt-api", "socket": SOCKET_URL}})
        )

        async with ClientAPI(config, console_connector=connector) as api:
            async with api.console("a1b2c3d4") as console:
                console.send_command("list")
                await _settle()

        assert route.called
        assert connector.socket.sent == [
            {"event": "auth", "args": ["jwt-api"]},
            {"event": "send command", "args": ["list"]},
        ]
        assert connector.socket.closed is True
