"""
Unit tests for the acceptor and the top-level serve loop.
"""

import errno
import socket
import time

import pytest

from conftest import HELLO, recv_all, recv_exact
from usbredirbridge.errors import AcceptError, StartupError
from usbredirbridge.host import HostFlags


def connect(port: int) -> socket.socket:
    return socket.create_connection(("127.0.0.1", port), timeout=5)


def wait_until(predicate, timeout: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return False


class FailingListener:
    """Wraps a listening socket so that accept() fails with the given error."""

    def __init__(self, listener: socket.socket, exc: OSError):
        self._listener = listener
        self.exc = exc

    def fileno(self) -> int:
        return self._listener.fileno()

    def accept(self):
        raise self.exc

    def getsockname(self):
        return self._listener.getsockname()

    def close(self) -> None:
        self._listener.close()


class TestListen:
    """Tests for BridgeServer.listen."""

    def test_default_is_ipv6_any_address(self, make_server):
        server = make_server(host="::")
        try:
            server.listen()
        except StartupError:
            pytest.skip("IPv6 not available")

        assert server._listener.family == socket.AF_INET6
        assert server.address[0] == "::"

    def test_reuse_address_and_ephemeral_port(self, make_server):
        server = make_server()
        server.listen()

        assert server.address[1] != 0
        assert server._listener.getsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR) != 0

    def test_port_in_use_is_fatal(self, make_server):
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as blocker:
            blocker.bind(("127.0.0.1", 0))
            blocker.listen(1)
            server = make_server(port=blocker.getsockname()[1])

            with pytest.raises(StartupError) as exc_info:
                server.listen()

        assert "Error binding port" in str(exc_info.value)

    def test_socket_creation_failure_is_fatal(self, make_server, monkeypatch):
        def refuse(*args, **kwargs):
            raise OSError(errno.EAFNOSUPPORT, "Address family not supported by protocol")

        server = make_server()
        monkeypatch.setattr(socket, "socket", refuse)

        with pytest.raises(StartupError) as exc_info:
            server.listen()

        assert "Address family not supported" in str(exc_info.value)
        assert server._listener is None

    def test_address_requires_listen(self, make_server):
        with pytest.raises(RuntimeError):
            make_server().address


class TestAccept:
    """Tests for BridgeServer.accept."""

    def test_accepted_socket_is_non_blocking(self, make_server):
        server = make_server()
        server.listen()
        peer = connect(server.address[1])
        try:
            client = server.accept()
            try:
                assert client.getblocking() is False
                assert client.getsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY) != 0
            finally:
                client.close()
        finally:
            peer.close()

    def test_accept_error_is_fatal(self, make_server):
        server = make_server()
        server.listen()
        server._listener = FailingListener(server._listener, OSError(errno.EBADF, "Bad file descriptor"))
        peer = connect(server.address[1])
        try:
            with pytest.raises(AcceptError) as exc_info:
                server.accept()
        finally:
            peer.close()

        assert "Bad file descriptor" in str(exc_info.value)

    def test_interrupted_accept_is_retried(self, make_server, token):
        server = make_server()
        server.listen()
        failing = FailingListener(server._listener, InterruptedError())
        server._listener = failing
        peer = connect(server.address[1])
        calls = []

        def interrupted():
            calls.append(1)
            if len(calls) == 2:
                token.cancel()
            raise InterruptedError()

        failing.accept = interrupted
        try:
            assert server.accept() is None
        finally:
            peer.close()

        assert len(calls) == 2

    def test_shutdown_interrupts_accept(self, make_server, token):
        server = make_server()
        server.listen()
        token.cancel()

        assert server.accept() is None


class TestServeForever:
    """End-to-end tests over real TCP connections."""

    def test_forwards_client_bytes(self, server_thread, recorder):
        thread = server_thread()
        client = connect(thread.port)

        assert recv_exact(client, len(HELLO)) == HELLO
        client.sendall(b"usbredir-packet")
        assert wait_until(lambda: bytes(recorder.hosts[0].received) == b"usbredir-packet")

        thread.stop()
        assert recv_all(client) == b""
        client.close()

    def test_clients_are_served_one_at_a_time(self, server_thread, recorder):
        thread = server_thread()
        first = connect(thread.port)
        assert recv_exact(first, len(HELLO)) == HELLO

        second = connect(thread.port)
        second.settimeout(0.2)
        with pytest.raises(socket.timeout):
            second.recv(16)
        assert len(recorder.hosts) == 1

        first.close()
        assert recv_exact(second, len(HELLO)) == HELLO
        assert len(recorder.hosts) == 2
        assert recorder.hosts[0].closed is True
        assert all(host.flags == HostFlags.NONE for host in recorder.hosts)

        thread.stop()
        second.close()

    def test_missing_device_drops_client(self, server_thread, device, recorder):
        device.present = False
        thread = server_thread()
        client = connect(thread.port)

        assert recv_all(client) == b""
        assert recorder.hosts == []

        thread.stop()
        client.close()

    def test_wait_mode_keeps_client_until_device_appears(self, server_thread, device, recorder):
        device.present = False
        thread = server_thread(wait_mode=True, wait_timeout=0.01)
        client = connect(thread.port)
        time.sleep(0.05)
        assert recorder.hosts == []

        device.present = True

        assert recv_exact(client, len(HELLO)) == HELLO
        assert recorder.hosts[0].flags == HostFlags.NONE

        thread.stop()
        client.close()

    def test_wait_mode_client_leaves_before_device(self, server_thread, device, recorder):
        device.present = False
        thread = server_thread(wait_mode=True, wait_timeout=0.01)
        first = connect(thread.port)
        time.sleep(0.05)
        first.close()
        # let the server notice and go back to accept()
        time.sleep(0.1)

        second = connect(thread.port)
        device.present = True

        assert recv_exact(second, len(HELLO)) == HELLO
        assert len(recorder.hosts) == 1

        thread.stop()
        second.close()

    def test_stop_without_clients(self, server_thread):
        thread = server_thread()

        thread.stop()
