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
usbredir bridge

Exposes one local USB device to a remote usbredir client over TCP. Only one
client can be connected at a time. In wait mode the client stays connected
while the device is unplugged, and the session resumes when it comes back.

Usage:
    usbredirserver [options] <usbbus-usbaddr|vendorid:prodid>

Example:
    usbredirserver 1234:abcd
    usbredirserver --port 4001 --wait --wait-timeout 5 2-5
"""

__version__ = "0.9.0"

from .config import BridgeConfig
from .device import DeviceAccess
from .errors import (
    AcceptError,
    BackendNotFound,
    BridgeError,
    InvalidDeviceSelector,
    SessionOpenError,
    StartupError,
)
from .host import CAPS_SIZE, HostFlags, RedirectHost, RedirectHostFactory
from .reconnect import WaitState
from .selector import DeviceSelector
from .server import BridgeServer
from .session import SERVER_VERSION, DeviceSessionManager
from .shutdown import ShutdownToken
from .stream import ClientStream

__all__ = [
    "__version__",
    "AcceptError",
    "BackendNotFound",
    "BridgeConfig",
    "BridgeError",
    "BridgeServer",
    "CAPS_SIZE",
    "ClientStream",
    "DeviceAccess",
    "DeviceSelector",
    "DeviceSessionManager",
    "HostFlags",
    "InvalidDeviceSelector",
    "RedirectHost",
    "RedirectHostFactory",
    "SERVER_VERSION",
    "SessionOpenError",
    "ShutdownToken",
    "StartupError",
    "WaitState",
]
