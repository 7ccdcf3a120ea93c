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

"""Device-access abstraction.

The bridge never talks to USB directly. It asks a DeviceAccess for device
handles, for the descriptors the device layer wants polled, and for the next
time-based event, and hands control back to it when any of those fire.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, List, Optional, Tuple

# Opaque device handle as returned by a DeviceAccess implementation
DeviceHandle = Any

# (fd, events) where events is a mask of select.POLLIN / select.POLLOUT
PollDescriptor = Tuple[int, int]


class DeviceAccess(ABC):
    """Abstract base class for the device-access layer."""

    @abstractmethod
    def init(self) -> None:
        """Create the device context. Raises StartupError on failure."""
        pass

    @abstractmethod
    def deinit(self) -> None:
        """Release the device context. Safe to call twice."""
        pass

    def reinit(self, verbosity: int) -> None:
        """Throw away the device context and build a fresh one."""
        self.deinit()
        self.init()
        self.set_debug(verbosity)

    @abstractmethod
    def set_debug(self, level: int) -> None:
        """Set the device layer's own log level (usbredir 0-5 scale)."""
        pass

    @abstractmethod
    def open_by_vid_pid(self, vendor: int, product: int) -> Optional[DeviceHandle]:
        """Open the first device matching vendor/product, None on a miss."""
        pass

    @abstractmethod
    def open_by_bus_addr(self, bus: int, address: int) -> Optional[DeviceHandle]:
        """Open the device at exactly bus/address, None on a miss."""
        pass

    @abstractmethod
    def close_handle(self, handle: DeviceHandle) -> None:
        pass

    @abstractmethod
    def pollable_descriptors(self) -> List[PollDescriptor]:
        """Descriptors the device layer needs watched right now."""
        pass

    @abstractmethod
    def next_timeout(self) -> Optional[float]:
        """Seconds until the next device-layer timer, None if nothing is pending."""
        pass

    @abstractmethod
    def handle_events(self, timeout: float = 0.0) -> None:
        """Service ready descriptors and expired timers."""
        pass

    @abstractmethod
    def query_configuration(self, handle: DeviceHandle) -> bool:
        """Cheap liveness check. False when the device no longer answers."""
        pass
