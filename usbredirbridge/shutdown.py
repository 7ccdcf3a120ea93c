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

"""Cooperative shutdown: a running flag plus a wakeup descriptor."""

from __future__ import annotations

import logging
import select
import signal
import socket
from typing import Any, Dict

# Signals that request a clean shutdown, where the platform has them
SHUTDOWN_SIGNALS = ("SIGINT", "SIGHUP", "SIGTERM", "SIGQUIT")


class ShutdownToken:
    """
    Carries the process-wide running flag.

    cancel() is safe to call from a signal handler. It also makes the wakeup
    descriptor readable, so any readiness wait that includes fileno() returns
    and the loop can look at ``running``.
    """

    def __init__(self) -> None:
        self._running = True
        self._wakeup_r, self._wakeup_w = socket.socketpair()
        self._wakeup_r.setblocking(False)
        self._wakeup_w.setblocking(False)

    @property
    def running(self) -> bool:
        return self._running

    def fileno(self) -> int:
        return self._wakeup_r.fileno()

    def cancel(self) -> None:
        self._running = False
        try:
            self._wakeup_w.send(b"\0")
        except BlockingIOError:
            pass  # a wakeup byte is already pending

    def sleep(self, seconds: float) -> bool:
        """Sleep for seconds or until cancelled. Returns ``running``."""
        if self._running:
            select.select([self._wakeup_r], [], [], seconds)
        return self._running

    def close(self) -> None:
        self._wakeup_r.close()
        self._wakeup_w.close()


def install_signal_handlers(token: ShutdownToken) -> Dict[int, Any]:
    """Route the shutdown signals to token.cancel(). Returns the old handlers."""
    log = logging.getLogger("bridge.server")

    def quit_handler(signum: int, frame: Any) -> None:
        log.info(f"Received {signal.Signals(signum).name}, shutting down")
        token.cancel()

    previous = {}
    for name in SHUTDOWN_SIGNALS:
        signum = getattr(signal, name, None)
        if signum is None:
            continue
        previous[signum] = signal.signal(signum, quit_handler)
    return previous


def restore_signal_handlers(previous: Dict[int, Any]) -> None:
    for signum, handler in previous.items():
        signal.signal(signum, handler)
