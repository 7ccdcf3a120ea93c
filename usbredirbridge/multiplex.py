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

"""Readiness wait over the client socket and the device-layer descriptors."""

from __future__ import annotations

import select
from dataclasses import dataclass, field
from typing import Iterable, Optional, Set


@dataclass
class Readiness:
    """Result of one readiness wait."""

    readable: Set[int] = field(default_factory=set)
    writable: Set[int] = field(default_factory=set)

    @property
    def timed_out(self) -> bool:
        return not self.readable and not self.writable

    def is_ready(self, fd: int) -> bool:
        return fd in self.readable or fd in self.writable


def wait_for_ready(
    read_fds: Iterable[int], write_fds: Iterable[int], timeout: Optional[float]
) -> Readiness:
    """Block until any descriptor is ready or timeout seconds pass.

    A timeout of None waits forever. select() is retried by Python itself
    when a signal interrupts it; other failures raise OSError.
    """
    readable, writable, _ = select.select(list(read_fds), list(write_fds), [], timeout)
    return Readiness(set(readable), set(writable))
