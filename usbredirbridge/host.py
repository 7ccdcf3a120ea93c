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

"""Redirection host abstraction.

A RedirectHost turns device I/O into usbredir protocol traffic and back. The
bridge only feeds it bytes through the read/write callbacks it is constructed
with, and asks it whether it has anything queued for the client.

Back ends are installed separately and found through the ``usbredirbridge.hosts``
entry point group. Each entry point names a RedirectHostFactory.
"""

from __future__ import annotations

import enum
import logging
from abc import ABC, abstractmethod
from importlib.metadata import entry_points
from typing import Callable, Optional, Sequence, Tuple

from .device import DeviceAccess, DeviceHandle
from .errors import BackendNotFound

HOST_ENTRY_POINT_GROUP = "usbredirbridge.hosts"

# Number of 32-bit words in a usbredir capability vector
CAPS_SIZE = 1

# usbredir parser log levels
LOG_NONE = 0
LOG_ERROR = 1
LOG_WARNING = 2
LOG_INFO = 3
LOG_DEBUG = 4
LOG_DEBUG_DATA = 5

# logging level for LOG_DEBUG_DATA, below DEBUG
DEBUG_DATA = 5
logging.addLevelName(DEBUG_DATA, "DEBUG_DATA")

LOGGING_LEVELS = {
    LOG_NONE: logging.CRITICAL + 10,
    LOG_ERROR: logging.ERROR,
    LOG_WARNING: logging.WARNING,
    LOG_INFO: logging.INFO,
    LOG_DEBUG: logging.DEBUG,
    LOG_DEBUG_DATA: DEBUG_DATA,
}


class HostFlags(enum.IntFlag):
    NONE = 0
    NO_HELLO = 0x04  # don't send a hello packet, the client already has one


# Negotiated capabilities, saved across a device handle swap
CapabilitySnapshot = Tuple[int, ...]

# read_func(buffer) -> bytes read into buffer, 0 if nothing, <0 on error
ReadFunc = Callable[[memoryview], int]
# write_func(data) -> bytes written, 0 if nothing, <0 on error
WriteFunc = Callable[[bytes], int]
LogFunc = Callable[[int, str], None]


class RedirectHost(ABC):
    """One redirection session, bound to one open device handle."""

    @abstractmethod
    def close(self) -> None:
        """Release host-side resources. Must not close the device handle."""
        pass

    @abstractmethod
    def read_guest_data(self) -> int:
        """Pull client bytes through read_func. Non-zero means protocol fault."""
        pass

    @abstractmethod
    def write_guest_data(self) -> int:
        """Push queued bytes through write_func. Non-zero means protocol fault."""
        pass

    @abstractmethod
    def has_data_to_write(self) -> bool:
        pass

    @abstractmethod
    def is_disconnected(self) -> bool:
        """True once the host has noticed the device is gone."""
        pass

    @abstractmethod
    def disconnect(self) -> None:
        """Treat the device as gone from now on."""
        pass

    @abstractmethod
    def save_caps(self) -> Sequence[int]:
        pass

    @abstractmethod
    def restore_caps_and_send_device_connect(self, caps: CapabilitySnapshot) -> None:
        """Adopt caps negotiated by a previous session and announce the device."""
        pass


RedirectHostFactory = Callable[
    [DeviceAccess, DeviceHandle, LogFunc, ReadFunc, WriteFunc, str, int, HostFlags],
    Optional[RedirectHost],
]


def make_host_log(verbosity: int) -> LogFunc:
    """Build the log sink handed to the redirection host."""
    log = logging.getLogger("usbredirhost")

    def host_log(level: int, msg: str) -> None:
        if level <= verbosity:
            log.log(LOGGING_LEVELS.get(level, DEBUG_DATA), msg)

    return host_log


def load_host_factory(name: Optional[str] = None) -> RedirectHostFactory:
    """Resolve a redirection host back end from the installed entry points.

    Args:
        name: Entry point name. When None, the only installed back end is used.
    """
    available = {ep.name: ep for ep in entry_points(group=HOST_ENTRY_POINT_GROUP)}
    if name is None:
        if not available:
            raise BackendNotFound(
                f"No redirection host back end installed (entry point group '{HOST_ENTRY_POINT_GROUP}')"
            )
        if len(available) > 1:
            raise BackendNotFound(
                f"Several redirection host back ends installed, pick one with --backend: "
                f"{', '.join(sorted(available))}"
            )
        (entry,) = available.values()
    else:
        try:
            entry = available[name]
        except KeyError:
            raise BackendNotFound(f"Unknown redirection host back end: {name}") from None
    logging.getLogger("bridge.session").info(f"Using redirection host back end '{entry.name}'")
    return entry.load()
