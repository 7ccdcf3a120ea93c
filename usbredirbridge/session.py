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

"""Device handle and redirection session lifecycle."""

from __future__ import annotations

import logging
from typing import Optional

from . import __version__
from .device import DeviceAccess, DeviceHandle
from .errors import SessionOpenError
from .host import CAPS_SIZE, CapabilitySnapshot, HostFlags, RedirectHost, RedirectHostFactory, make_host_log
from .selector import DeviceSelector
from .stream import ClientStream

SERVER_VERSION = f"usbredirserver {__version__}"


class DeviceSessionManager:
    """
    Owns the open device handle and the redirection session bound to it.

    At most one of each exists at a time, and they are created and destroyed
    as a pair: closing the session also closes the handle.
    """

    def __init__(
        self,
        device_access: DeviceAccess,
        host_factory: RedirectHostFactory,
        selector: DeviceSelector,
        verbosity: int,
    ) -> None:
        self.device_access = device_access
        self.selector = selector
        self.verbosity = verbosity
        self._host_factory = host_factory
        self._host_log = make_host_log(verbosity)
        self._log = logging.getLogger("bridge.session")
        self.handle: Optional[DeviceHandle] = None
        self.host: Optional[RedirectHost] = None

    def find_device(self) -> Optional[DeviceHandle]:
        """Try to open the selected device. A miss is logged, not raised."""
        sel = self.selector
        if sel.by_vid_pid:
            handle = self.device_access.open_by_vid_pid(sel.vendor, sel.product)
            if handle is None:
                self._log.info(f"Could not open an usb-device with vid:pid {sel.vendor:04x}:{sel.product:04x}")
        else:
            handle = self.device_access.open_by_bus_addr(sel.bus, sel.address)
            if handle is None:
                self._log.info(f"Could not find or open usb-device at bus-addr {sel.bus}-{sel.address}")
        self.handle = handle
        return handle

    def open_session(self, stream: ClientStream, flags: HostFlags = HostFlags.NONE) -> RedirectHost:
        """Bind a new redirection session to the open handle and the client stream."""
        if self.handle is None:
            raise SessionOpenError("No device handle to open a session on")
        host = self._host_factory(
            self.device_access,
            self.handle,
            self._host_log,
            stream.read,
            stream.write,
            SERVER_VERSION,
            self.verbosity,
            flags,
        )
        if host is None:
            self.device_access.close_handle(self.handle)
            self.handle = None
            raise SessionOpenError(f"Could not open a redirection session for {self.selector}")
        self._log.info(f"Opened session for {self.selector} (flags {flags!r})")
        self.host = host
        return host

    def close_session(self) -> None:
        """Close the session and its device handle. Leaves the client alone."""
        if self.host is not None:
            self.host.close()
            self.host = None
        if self.handle is not None:
            self.device_access.close_handle(self.handle)
            self.handle = None

    def snapshot_capabilities(self) -> CapabilitySnapshot:
        """Save the negotiated caps. Call before the session is closed."""
        if self.host is None:
            raise RuntimeError("no session to take capabilities from")
        caps = tuple(self.host.save_caps())
        if len(caps) != CAPS_SIZE:
            raise ValueError(f"capability vector has {len(caps)} words, expected {CAPS_SIZE}")
        return caps

    def restore_capabilities(self, caps: CapabilitySnapshot) -> None:
        """Inject caps into a freshly opened session, before it does any I/O."""
        if self.host is None:
            raise RuntimeError("no session to restore capabilities into")
        self.host.restore_caps_and_send_device_connect(caps)
