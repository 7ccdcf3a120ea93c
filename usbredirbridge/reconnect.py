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

"""Wait mode: keep the client while the device goes away and comes back."""

from __future__ import annotations

import enum
import logging
from typing import TYPE_CHECKING

from .host import HostFlags

if TYPE_CHECKING:
    from .server import BridgeServer


class WaitState(enum.Enum):
    NOT_WAITING = 0
    DEVICE_CONNECTED = 1
    DEVICE_DISCONNECTED = 2


class Reconnector:
    """
    Wait-mode state machine, stepped once per main loop iteration.

    While the device is gone the main loop is stalled inside step(): there is
    nothing else a single client session could do meanwhile.
    """

    def __init__(self, server: "BridgeServer") -> None:
        self.server = server
        self.state = WaitState.NOT_WAITING
        self._log = logging.getLogger("bridge.server")

    def reset(self) -> None:
        self._set_state(WaitState.NOT_WAITING)

    def _set_state(self, state: WaitState) -> None:
        if state is not self.state:
            self._log.debug(f"wait state {self.state.name} -> {state.name}")
        self.state = state

    def step(self, timed_out: bool) -> None:
        """Advance the state machine.

        Args:
            timed_out: The readiness wait of this iteration returned on timeout
        """
        server = self.server
        host = server.sessions.host
        disconnected = host.is_disconnected()
        self._log.debug(f"disconnected = {disconnected}, wait state = {self.state.name}")

        if not disconnected and self.state is WaitState.NOT_WAITING:
            self._set_state(WaitState.DEVICE_CONNECTED)
            return
        if self.state is not WaitState.DEVICE_CONNECTED or not server.stream.valid:
            return

        if timed_out and not disconnected:
            # Heuristic: the host may not have noticed the unplug yet
            if not server.device_access.query_configuration(server.sessions.handle):
                self._log.info("Device stopped answering, forcing disconnect")
                host.disconnect()
                disconnected = True

        if disconnected:
            self._set_state(WaitState.DEVICE_DISCONNECTED)
            self._reacquire()
            self._set_state(WaitState.NOT_WAITING)

    def _reacquire(self) -> bool:
        """Poll for the device and swap a fresh session in. True on success."""
        server = self.server
        sessions = server.sessions
        stream = server.stream
        token = server.token
        wait_timeout = server.config.wait_timeout

        # Flush what the old session still has for the client, then drain input
        sessions.host.write_guest_data()
        token.sleep(wait_timeout)
        sessions.host.read_guest_data()

        caps = sessions.snapshot_capabilities()
        sessions.close_session()

        while stream.valid and token.running:
            server.device_access.reinit(server.config.verbosity)
            if sessions.find_device() is None:
                self._log.info(f"Waiting for {sessions.selector} ...")
                token.sleep(wait_timeout)
                stream.peer_closed()
                continue
            self._log.info(f"Device {sessions.selector} is back")
            sessions.open_session(stream, HostFlags.NO_HELLO)
            sessions.restore_capabilities(caps)
            sessions.host.write_guest_data()
            return True
        return False
