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

"""DeviceAccess on top of libusb, through the python-libusb1 bindings."""

from __future__ import annotations

import logging
from typing import Callable, List, Optional

import usb1

from .device import DeviceAccess, PollDescriptor
from .errors import StartupError

# libusb only knows levels 0 (none) to 4 (debug)
LIBUSB_MAX_LOG_LEVEL = 4


class LibusbDeviceAccess(DeviceAccess):
    """Device access backed by a usb1.USBContext."""

    def __init__(self, context_factory: Callable[[], usb1.USBContext] = usb1.USBContext) -> None:
        self._context_factory = context_factory
        self._context: Optional[usb1.USBContext] = None
        self._log = logging.getLogger("bridge.device")

    @property
    def context(self) -> usb1.USBContext:
        if self._context is None:
            raise RuntimeError("device context is not initialised")
        return self._context

    def init(self) -> None:
        try:
            context = self._context_factory()
            context.open()
        except usb1.USBError as e:
            raise StartupError(f"Could not init libusb: {e}") from e
        self._context = context
        self._log.debug("libusb context initialised")

    def deinit(self) -> None:
        if self._context is None:
            return
        self._context.close()
        self._context = None
        self._log.debug("libusb context released")

    def set_debug(self, level: int) -> None:
        self.context.setDebug(max(0, min(level, LIBUSB_MAX_LOG_LEVEL)))

    def open_by_vid_pid(self, vendor: int, product: int) -> Optional[usb1.USBDeviceHandle]:
        try:
            return self.context.openByVendorIDAndProductID(vendor, product)
        except usb1.USBError as e:
            self._log.debug(f"open {vendor:04x}:{product:04x} failed: {e}")
            return None

    def open_by_bus_addr(self, bus: int, address: int) -> Optional[usb1.USBDeviceHandle]:
        for device in self.context.getDeviceIterator(skip_on_error=True):
            if device.getBusNumber() != bus or device.getDeviceAddress() != address:
                continue
            try:
                return device.open()
            except usb1.USBError as e:
                self._log.debug(f"Could not open usb-device at bus-addr {bus}-{address}: {e}")
                return None
        self._log.debug(f"No usb-device at bus-addr {bus}-{address}")
        return None

    def close_handle(self, handle: usb1.USBDeviceHandle) -> None:
        handle.close()

    def pollable_descriptors(self) -> List[PollDescriptor]:
        return list(self.context.getPollFDList())

    def next_timeout(self) -> Optional[float]:
        return self.context.getNextTimeout()

    def handle_events(self, timeout: float = 0.0) -> None:
        self.context.handleEventsTimeout(tv=timeout)

    def query_configuration(self, handle: usb1.USBDeviceHandle) -> bool:
        try:
            handle.getConfiguration()
        except usb1.USBError as e:
            self._log.debug(f"getConfiguration failed: {e}")
            return False
        return True
