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

"""Device selector parsing: ``bus-addr`` (decimal) or ``vendorid:prodid`` (hex)."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

from .errors import InvalidDeviceSelector

_DECIMAL = re.compile(r"[0-9]+")
_HEX = re.compile(r"(0[xX])?[0-9a-fA-F]+")


@dataclass(frozen=True)
class DeviceSelector:
    """Identifies the one USB device the bridge exports.

    Exactly one of the (vendor, product) and (bus, address) pairs is set.
    """

    vendor: Optional[int] = None
    product: Optional[int] = None
    bus: Optional[int] = None
    address: Optional[int] = None

    @property
    def by_vid_pid(self) -> bool:
        return self.vendor is not None

    @classmethod
    def parse(cls, text: str) -> "DeviceSelector":
        """Parse the positional device argument.

        A ``-`` followed by at least one character selects the bus-addr form,
        otherwise a ``:`` followed by at least one character is required.
        """
        dash = text.find("-")
        if dash != -1 and dash + 1 < len(text):
            bus, addr = text[:dash], text[dash + 1 :]
            if not (_DECIMAL.fullmatch(bus) and _DECIMAL.fullmatch(addr)):
                raise InvalidDeviceSelector(text)
            return cls(bus=int(bus), address=int(addr))

        colon = text.find(":")
        if colon == -1 or colon + 1 == len(text):
            raise InvalidDeviceSelector(text)
        vendor, product = text[:colon], text[colon + 1 :]
        if not (_HEX.fullmatch(vendor) and _HEX.fullmatch(product)):
            raise InvalidDeviceSelector(text)
        return cls(vendor=int(vendor, 16), product=int(product, 16))

    def __str__(self) -> str:
        if self.by_vid_pid:
            return f"vid:pid {self.vendor:04x}:{self.product:04x}"
        return f"bus-addr {self.bus}-{self.address}"
