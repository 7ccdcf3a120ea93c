"""
pytest configuration and fixtures.

Both collaborators are faked: FakeDeviceAccess stands in for libusb and
FakeRedirectHost for the usbredir host, so the server runs over a real
socketpair without any USB hardware.
"""

import socket
import threading
from dataclasses import dataclass
from typing import Callable, Generator, List, Optional

import pytest

from usbredirbridge import BridgeConfig, BridgeServer, DeviceSelector, ShutdownToken
from usbredirbridge.device import DeviceAccess
from usbredirbridge.host import HostFlags, RedirectHost
from usbredirbridge.stream import ClientStream

HELLO = b"HELLO;"
DEVICE_CONNECT = b"DEVICE_CONNECT;"


@dataclass
class FakeDevice:
    bus: int
    address: int
    vendor: int = 0x1234
    product: int = 0xABCD
    present: bool = True


class FakeHandle:
    def __init__(self, device: FakeDevice) -> None:
        self.device = device
        self.closed = False

    def __repr__(self) -> str:
        return f"FakeHandle({self.device.bus}-{self.device.address})"


class FakeDeviceAccess(DeviceAccess):
    """In-memory device layer with scripted events."""

    def __init__(self, devices: Optional[List[FakeDevice]] = None) -> None:
        self.devices = list(devices or [])
        self.calls: List[tuple] = []
        self.events: List[str] = []
        self.initialised = False
        self.init_count = 0
        self.debug_level: Optional[int] = None
        self.pollfds: List[tuple] = []
        self.pollfd_calls = 0
        self.timeout: Optional[float] = None
        self.events_handled = 0
        # one callable is popped and run per handle_events() / reinit() call
        self.on_handle_events: List[Callable[[], None]] = []
        self.on_reinit: List[Callable[[], None]] = []
        self.closed_handles: List[FakeHandle] = []

    def init(self) -> None:
        self.initialised = True
        self.init_count += 1

    def deinit(self) -> None:
        self.initialised = False

    def reinit(self, verbosity: int) -> None:
        super().reinit(verbosity)
        self.calls.append(("reinit",))
        if self.on_reinit:
            self.on_reinit.pop(0)()

    def set_debug(self, level: int) -> None:
        self.debug_level = level

    def open_by_vid_pid(self, vendor: int, product: int) -> Optional[FakeHandle]:
        self.calls.append(("vid_pid", vendor, product))
        for device in self.devices:
            if device.present and device.vendor == vendor and device.product == product:
                return FakeHandle(device)
        return None

    def open_by_bus_addr(self, bus: int, address: int) -> Optional[FakeHandle]:
        self.calls.append(("bus_addr", bus, address))
        for device in self.devices:
            if device.present and device.bus == bus and device.address == address:
                return FakeHandle(device)
        return None

    def close_handle(self, handle: FakeHandle) -> None:
        handle.closed = True
        self.closed_handles.append(handle)

    def pollable_descriptors(self) -> List[tuple]:
        self.pollfd_calls += 1
        return list(self.pollfds)

    def next_timeout(self) -> Optional[float]:
        return self.timeout

    def handle_events(self, timeout: float = 0.0) -> None:
        self.events_handled += 1
        self.events.append("handle_events")
        if self.on_handle_events:
            self.on_handle_events.pop(0)()

    def query_configuration(self, handle: FakeHandle) -> bool:
        self.calls.append(("query_configuration", handle))
        return handle.device.present and not handle.closed


class FakeRedirectHost(RedirectHost):
    """Redirection host that buffers client bytes and queues canned replies."""

    def __init__(self, device_access, handle, log_func, read_func, write_func, version, verbosity, flags):
        self.device_access = device_access
        self.handle = handle
        self.log_func = log_func
        self.read_func = read_func
        self.write_func = write_func
        self.version = version
        self.verbosity = verbosity
        self.flags = flags
        self.events: List[str] = []
        self.received = bytearray()
        self.outbound = bytearray()
        self.caps = (0x0F,)
        self.restored: Optional[tuple] = None
        self.read_error = 0
        self.write_error = 0
        self.disconnected = False
        self.disconnect_calls = 0
        self.closed = False
        if not flags & HostFlags.NO_HELLO:
            self.outbound += HELLO

    def close(self) -> None:
        self.closed = True

    def read_guest_data(self) -> int:
        self.events.append("read")
        if self.read_error:
            return self.read_error
        buf = bytearray(4096)
        while True:
            count = self.read_func(memoryview(buf))
            if count < 0:
                return count
            if count == 0:
                return 0
            self.received += buf[:count]

    def write_guest_data(self) -> int:
        self.events.append("write")
        if self.write_error:
            return self.write_error
        while self.outbound:
            count = self.write_func(bytes(self.outbound))
            if count < 0:
                return count
            if count == 0:
                break
            del self.outbound[:count]
        return 0

    def has_data_to_write(self) -> bool:
        return bool(self.outbound)

    def is_disconnected(self) -> bool:
        return self.disconnected

    def disconnect(self) -> None:
        self.disconnect_calls += 1
        self.disconnected = True

    def save_caps(self) -> tuple:
        return self.caps

    def restore_caps_and_send_device_connect(self, caps: tuple) -> None:
        self.restored = tuple(caps)
        self.caps = tuple(caps)
        self.outbound += DEVICE_CONNECT


class HostRecorder:
    """RedirectHostFactory that keeps every host it creates."""

    def __init__(self) -> None:
        self.hosts: List[FakeRedirectHost] = []
        self.refuse = False

    def __call__(self, *args) -> Optional[FakeRedirectHost]:
        if self.refuse:
            return None
        host = FakeRedirectHost(*args)
        self.hosts.append(host)
        return host


def recv_exact(sock: socket.socket, size: int, timeout: float = 5.0) -> bytes:
    """Read exactly size bytes from a blocking socket."""
    sock.settimeout(timeout)
    data = b""
    while len(data) < size:
        chunk = sock.recv(size - len(data))
        if not chunk:
            break
        data += chunk
    return data


def recv_all(sock: socket.socket, timeout: float = 5.0) -> bytes:
    """Read until the other side closes."""
    sock.settimeout(timeout)
    data = b""
    while True:
        chunk = sock.recv(4096)
        if not chunk:
            return data
        data += chunk


@pytest.fixture
def device() -> FakeDevice:
    return FakeDevice(bus=2, address=5)


@pytest.fixture
def device_access(device: FakeDevice) -> FakeDeviceAccess:
    access = FakeDeviceAccess([device])
    access.init()
    return access


@pytest.fixture
def recorder() -> HostRecorder:
    return HostRecorder()


@pytest.fixture
def token() -> Generator[ShutdownToken, None, None]:
    tok = ShutdownToken()
    yield tok
    tok.close()


@pytest.fixture
def client_pair() -> Generator[tuple, None, None]:
    """(server side, peer side) of a connected socket pair."""
    server_side, peer = socket.socketpair()
    yield server_side, peer
    server_side.close()
    peer.close()


def make_config(**overrides) -> BridgeConfig:
    values = dict(
        selector=DeviceSelector(vendor=0x1234, product=0xABCD),
        host="127.0.0.1",
        port=0,
        wait_timeout=0.01,
    )
    values.update(overrides)
    return BridgeConfig(**values)


@pytest.fixture
def make_server(device_access: FakeDeviceAccess, recorder: HostRecorder, token: ShutdownToken):
    """Build a BridgeServer over the fakes. Servers are closed after the test."""
    servers: List[BridgeServer] = []

    def factory(**overrides) -> BridgeServer:
        server = BridgeServer(make_config(**overrides), device_access, recorder, token)
        servers.append(server)
        return server

    yield factory
    for server in servers:
        server.close()


@pytest.fixture
def attached_server(make_server, client_pair):
    """
    Server with a client stream and an open session, ready for
    run_main_loop(). Returns a factory taking config overrides.
    """

    def factory(**overrides) -> BridgeServer:
        server = make_server(**overrides)
        server.stream = ClientStream(client_pair[0])
        assert server.sessions.find_device() is not None
        server.sessions.open_session(server.stream)
        return server

    return factory


class ServerThread:
    """Runs serve_forever() in a background thread."""

    def __init__(self, server: BridgeServer) -> None:
        self.server = server
        self._thread = threading.Thread(target=server.serve_forever, daemon=True)

    @property
    def port(self) -> int:
        return self.server.address[1]

    def start(self) -> "ServerThread":
        self.server.listen()
        self._thread.start()
        return self

    def stop(self) -> None:
        self.server.shutdown()
        self._thread.join(timeout=5.0)
        assert not self._thread.is_alive(), "server thread did not stop"


@pytest.fixture
def server_thread(make_server):
    threads: List[ServerThread] = []

    def factory(**overrides) -> ServerThread:
        thread = ServerThread(make_server(**overrides)).start()
        threads.append(thread)
        return thread

    yield factory
    for thread in threads:
        if thread._thread.is_alive():
            thread.stop()
