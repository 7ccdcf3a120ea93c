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

"""Non-blocking byte stream between the client socket and the redirection host."""

from __future__ import annotations

import logging
import socket
from typing import Optional


class ClientStream:
    """
    Read/write callbacks over the client socket, in the shape the redirection
    host expects: would-block is 0, a hard error is -1, and an orderly peer
    disconnect closes the socket and also returns 0.
    """

    def __init__(self, sock: socket.socket) -> None:
        self._sock: Optional[socket.socket] = sock
        self._log = logging.getLogger("bridge.stream")
        sock.setblocking(False)

    @property
    def valid(self) -> bool:
        return self._sock is not None

    def fileno(self) -> int:
        """Return the socket's descriptor, -1 once the stream is invalidated."""
        if self._sock is None:
            return -1
        return self._sock.fileno()

    def read(self, buffer: memoryview) -> int:
        """Read into buffer. Returns the number of bytes read, 0 or -1."""
        if self._sock is None:
            return 0
        try:
            count = self._sock.recv_into(buffer)
        except BlockingIOError:
            return 0
        except OSError as e:
            self._log.debug(f"read error on fd {self.fileno()}: {e}")
            return -1
        self._log.debug(f"read : fd = {self.fileno()}, read bytes = {count}/{len(buffer)}")
        if count == 0:
            self._log.info("Client disconnected")
            self.close()
        return count

    def write(self, data: bytes) -> int:
        """Write data. Returns the number of bytes written, 0 or -1."""
        if self._sock is None:
            return 0
        try:
            count = self._sock.send(data)
        except BlockingIOError:
            return 0
        except (BrokenPipeError, ConnectionResetError):
            self._log.info("Client disconnected (broken pipe or reset)")
            self.close()
            return 0
        except OSError as e:
            self._log.debug(f"write error on fd {self.fileno()}: {e}")
            return -1
        self._log.debug(f"write : fd = {self.fileno()}, write bytes = {count}/{len(data)}")
        return count

    def peer_closed(self) -> bool:
        """Check for end-of-stream without consuming data.

        Used while no redirection session is reading the socket. Closes the
        stream when the peer has gone.
        """
        if self._sock is None:
            return True
        try:
            data = self._sock.recv(1, socket.MSG_PEEK)
        except BlockingIOError:
            return False
        except OSError as e:
            self._log.info(f"Client connection lost: {e}")
            self.close()
            return True
        if not data:
            self._log.info("Client disconnected")
            self.close()
            return True
        return False

    def close(self) -> None:
        if self._sock is None:
            return
        try:
            self._sock.close()
        finally:
            self._sock = None
