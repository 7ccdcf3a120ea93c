#
# This file is part of the usbredir-bridge project
#
# The MIT License (MIT)
#
# Copyright (c) 2026 Jos Verlinde

# Permission is hereby granted, free of charge, to any person obtaining a copy
# of this software and associated documentation files (the "Software"), to deal
# in the Software without restriction, including without limitation the rights
# to use, copy, modify, merge, publish, distribute, sublicense, and/or sell
# copies of the Software, and to permit persons to whom the Software is
# furnished to do so, subject to the following conditions:
#
# The above copyright notice and this permission notice shall be included in
# all copies or substantial portions of the Software.
#
# THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND, EXPRESS OR
# IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF MERCHANTABILITY,
# FITNESS FOR A PARTICULAR PURPOSE AND NONINFRINGEMENT. IN NO EVENT SHALL THE
# AUTHORS OR COPYRIGHT HOLDERS BE LIABLE FOR ANY CLAIM, DAMAGES OR OTHER
# LIABILITY, WHETHER IN AN ACTION OF CONTRACT, TORT OR OTHERWISE, ARISING FROM,
# OUT OF OR IN CONNECTION WITH THE SOFTWARE OR THE USE OR OTHER DEALINGS IN
# THE SOFTWARE.

"""
Single-client TCP server that forwards a usbredir stream to one USB device.

One client at a time: the next accept() only happens once the previous
session is fully torn down. All I/O runs on one thread, multiplexed by
select() over the client socket, the device layer's descriptors and the
shutdown wakeup descriptor.
"""

from __future__ import annotations

import logging
import select
import socket
from typing import Optional

from .config import BridgeConfig
from .device import DeviceAccess
from .errors import AcceptError, StartupError
from .host import RedirectHostFactory
from .multiplex import wait_for_ready
from .reconnect import Reconnector
from .session import DeviceSessionManager
from .shutdown import ShutdownToken
from .stream import ClientStream

LISTEN_BACKLOG = 1


class BridgeServer:
    """
    Server context: listening socket, client stream, device session and the
    wait-mode state, driven by serve_forever().
    """

    def __init__(
        self,
        config: BridgeConfig,
        device_access: DeviceAccess,
        host_factory: RedirectHostFactory,
        token: Optional[ShutdownToken] = None,
    ) -> None:
        self.config = config
        self.device_access = device_access
        self.token = token if token is not None else ShutdownToken()
        self.sessions = DeviceSessionManager(device_access, host_factory, config.selector, config.verbosity)
        self.reconnector = Reconnector(self)
        self.stream: Optional[ClientStream] = None
        self._listener: Optional[socket.socket] = None
        self.log = logging.getLogger("bridge.server")

    @property
    def address(self) -> tuple:
        """Address the server is listening on."""
        if self._listener is None:
            raise RuntimeError("server is not listening")
        return self._listener.getsockname()

    def listen(self) -> None:
        """Bind the listening socket. Raises StartupError on failure."""
        host = self.config.host or None
        port = self.config.port
        try:
            family, type_, proto, _, sockaddr = socket.getaddrinfo(
                host, port, socket.AF_UNSPEC, socket.SOCK_STREAM, 0, socket.AI_PASSIVE
            )[0]
        except socket.gaierror as e:
            raise StartupError(f"Could not resolve {host}: {e}") from e

        try:
            srv = socket.socket(family, type_, proto)
        except OSError as e:
            raise StartupError(f"Could not create a socket for {host or '*'}: {e.strerror or e}") from e
        try:
            srv.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            srv.bind(sockaddr)
            srv.listen(LISTEN_BACKLOG)
        except OSError as e:
            srv.close()
            raise StartupError(f"Error binding port {port}: {e.strerror or e}") from e
        srv.setblocking(False)
        self._listener = srv
        self.log.info(f"Listening on {self.config.host or '*'} port {srv.getsockname()[1]}")

    def accept(self) -> Optional[socket.socket]:
        """Wait for the next client. Returns None when shutdown was requested."""
        if self._listener is None:
            raise RuntimeError("server is not listening")
        self.log.info("Waiting for connection...")
        while self.token.running:
            wait_for_ready([self._listener.fileno(), self.token.fileno()], [], None)
            if not self.token.running:
                break
            try:
                client, addr = self._listener.accept()
            except (BlockingIOError, InterruptedError):
                continue
            except OSError as e:
                raise AcceptError(f"accept: {e}") from e
            client.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
            client.setblocking(False)
            self.log.info(f"Connected by {addr[0]}:{addr[1]}")
            return client
        return None

    def serve_forever(self) -> None:
        """Accept clients and run sessions until shutdown is requested."""
        wait_mode = self.config.wait_mode
        while self.token.running:
            self.log.debug(f"Looping in main (client = {self._client_fd()}, device = {self.sessions.handle!r})")
            if self.stream is None or not self.stream.valid or not wait_mode:
                client = self.accept()
                if client is None:
                    break
                self.stream = ClientStream(client)
            else:
                # wait mode, client still connected but the device was missing
                if not self.token.sleep(self.config.wait_timeout):
                    break
                if self.stream.peer_closed():
                    continue

            if self.sessions.find_device() is None:
                if not wait_mode:
                    self.stream.close()
                else:
                    self.log.info(f"Waiting for {self.sessions.selector} ...")
                continue

            self.sessions.open_session(self.stream)
            try:
                self.run_main_loop()
            finally:
                self.sessions.close_session()
        if self.stream is not None:
            self.stream.close()

    def run_main_loop(self) -> None:
        """Shuttle data between client and device until one side goes away."""
        stream = self.stream
        device_access = self.device_access
        wait_mode = self.config.wait_mode
        self.reconnector.reset()
        self.log.info("Starting main loop...")
        try:
            while self.token.running and stream.valid:
                host = self.sessions.host
                client_fd = stream.fileno()

                read_fds = [client_fd, self.token.fileno()]
                write_fds = [client_fd] if host.has_data_to_write() else []
                pollfds = device_access.pollable_descriptors()
                for fd, events in pollfds:
                    if events & select.POLLIN:
                        read_fds.append(fd)
                    if events & select.POLLOUT:
                        write_fds.append(fd)

                timeout = device_access.next_timeout()
                if timeout is None and wait_mode:
                    timeout = self.config.wait_timeout

                try:
                    ready = wait_for_ready(read_fds, write_fds, timeout)
                except (OSError, ValueError) as e:
                    # ValueError: a descriptor at or above FD_SETSIZE
                    self.log.error(f"select: {e}")
                    break

                if ready.timed_out:
                    device_access.handle_events(0)
                    if not wait_mode:
                        continue

                if client_fd in ready.readable:
                    error = host.read_guest_data()
                    if error:
                        self.log.debug(f"read_guest_data: error = {error}")
                        break
                # read_guest_data may have seen the client disconnect
                if not stream.valid:
                    break

                if client_fd in ready.writable:
                    error = host.write_guest_data()
                    if error:
                        self.log.debug(f"write_guest_data: error = {error}")
                        break

                if any(ready.is_ready(fd) for fd, _ in pollfds):
                    device_access.handle_events(0)

                if wait_mode:
                    self.reconnector.step(ready.timed_out)
        finally:
            self.log.info(f"Leaving main loop, client = {self._client_fd()}")
            stream.close()

    def _client_fd(self) -> int:
        return self.stream.fileno() if self.stream is not None else -1

    def shutdown(self) -> None:
        self.token.cancel()

    def close(self) -> None:
        self.sessions.close_session()
        if self.stream is not None:
            self.stream.close()
        if self._listener is not None:
            self._listener.close()
            self._listener = None
