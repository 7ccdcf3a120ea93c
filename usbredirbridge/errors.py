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

"""Exceptions raised by the bridge.

Everything derived from BridgeError ends the process with exit status 1 when it
reaches ``main()``. Transient socket conditions and orderly peer disconnects
never surface as exceptions; the stream adapter absorbs them.
"""

from __future__ import annotations


class BridgeError(Exception):
    """Base class for fatal bridge errors."""


class StartupError(BridgeError):
    """Socket, bind, listen or device-context initialisation failed."""


class BackendNotFound(StartupError):
    """No usable redirection host back end is installed."""


class AcceptError(BridgeError):
    """accept() on the listening socket failed for a reason other than EINTR."""


class SessionOpenError(BridgeError):
    """The redirection host refused to create a session."""


class InvalidDeviceSelector(BridgeError, ValueError):
    """The positional device argument is neither ``bus-addr`` nor ``vid:pid``."""

    def __init__(self, text: str) -> None:
        super().__init__(f"Invalid usb device identifier: {text}")
        self.text = text
