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

"""Runtime configuration of the bridge."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .selector import DeviceSelector

# Defaults (ports and timeouts in seconds)
DEFAULT_PORT = 4000
DEFAULT_HOST = "::"  # any-address, IPv6 dual stack
DEFAULT_WAIT_TIMEOUT = 3  # device presence poll interval in wait mode
DEFAULT_VERBOSITY = 3  # usbredir "info"


@dataclass
class BridgeConfig:
    """Settings collected from the command line.

    Attributes:
        selector: Device to export
        port: TCP port to listen on
        host: Local address to bind to
        verbosity: usbredir log level, 0 (none) to 5 (data debug)
        wait_mode: Keep the client connected while the device is absent
        wait_timeout: Seconds between device presence checks in wait mode
        backend: Name of the redirection host entry point, None for the default
    """

    selector: DeviceSelector
    port: int = DEFAULT_PORT
    host: str = DEFAULT_HOST
    verbosity: int = DEFAULT_VERBOSITY
    wait_mode: bool = False
    wait_timeout: float = DEFAULT_WAIT_TIMEOUT
    backend: Optional[str] = None
