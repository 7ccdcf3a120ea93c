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

"""Command line entry point: ``usbredirserver``."""

from __future__ import annotations

import argparse
import logging
import sys
from typing import List, NoReturn, Optional

from . import __version__
from .config import DEFAULT_HOST, DEFAULT_PORT, DEFAULT_VERBOSITY, DEFAULT_WAIT_TIMEOUT, BridgeConfig
from .errors import BridgeError, InvalidDeviceSelector
from .host import LOG_DEBUG_DATA, LOG_NONE, LOGGING_LEVELS, load_host_factory
from .selector import DeviceSelector
from .server import BridgeServer
from .shutdown import ShutdownToken, install_signal_handlers, restore_signal_handlers

# Loggers owned by the bridge, set to the requested level explicitly
BRIDGE_LOGGERS = ("bridge.server", "bridge.stream", "bridge.session", "bridge.device", "usbredirhost")


class BridgeArgumentParser(argparse.ArgumentParser):
    """ArgumentParser that exits with status 1 on usage errors."""

    def error(self, message: str) -> NoReturn:
        self.print_usage(sys.stderr)
        self.exit(1, f"{self.prog}: error: {message}\n")


def build_parser() -> argparse.ArgumentParser:
    parser = BridgeArgumentParser(
        prog="usbredirserver",
        description="usbredir bridge - export one USB device to a usbredir client over TCP.",
        epilog="""\
NOTE: No security measures are implemented. Anyone can remotely connect
to this service over the network.

Only one connection at once is supported. When the connection is terminated,
it waits for the next connect.

The device is selected either by bus and address (decimal) or by vendor and
product id (hexadecimal).

Examples:
  %(prog)s 1234:abcd                 # Export by vendor:product id
  %(prog)s -p 4001 2-5               # Export bus 2, address 5 on port 4001
  %(prog)s --wait -t 5 1234:abcd     # Keep the client while the device is unplugged
""",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "device",
        nargs="*",
        metavar="usbbus-usbaddr|vendorid:prodid",
        help="USB device to export",
    )

    parser.add_argument(
        "-p",
        "--port",
        type=int,
        default=DEFAULT_PORT,
        metavar="PORT",
        help="TCP port to listen on (default: %(default)s)",
    )

    parser.add_argument(
        "-H",
        "--host",
        default=DEFAULT_HOST,
        metavar="HOST",
        help="Local address to bind to (default: all interfaces)",
    )

    parser.add_argument(
        "-v",
        "--verbose",
        dest="verbosity",
        type=int,
        default=DEFAULT_VERBOSITY,
        metavar="0-5",
        help="Verbosity: 0 none, 1 error, 2 warning, 3 info, 4 debug, 5 data (default: %(default)s)",
    )

    parser.add_argument(
        "-w",
        "--wait",
        dest="wait_mode",
        action="store_true",
        help="Keep the client connected and wait when the device goes away",
    )

    parser.add_argument(
        "-t",
        "--wait-timeout",
        type=int,
        default=DEFAULT_WAIT_TIMEOUT,
        metavar="SECONDS",
        help="Device presence poll interval in wait mode (default: %(default)s)",
    )

    parser.add_argument(
        "--backend",
        default=None,
        metavar="NAME",
        help="Redirection host back end (default: the only one installed)",
    )

    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    return parser


def parse_arguments(argv: Optional[List[str]] = None) -> BridgeConfig:
    """Parse the command line into a BridgeConfig, exit 1 on error."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.device:
        parser.error("Missing usb device identifier argument")
    if len(args.device) > 1:
        parser.error("Excess non option arguments")
    if not LOG_NONE <= args.verbosity <= LOG_DEBUG_DATA:
        parser.error(f"Invalid value for --verbose: '{args.verbosity}'")
    if not 0 <= args.port <= 65535:
        parser.error(f"Invalid value for --port: '{args.port}'")
    if args.wait_timeout < 0:
        parser.error(f"Invalid value for --wait-timeout: '{args.wait_timeout}'")

    try:
        selector = DeviceSelector.parse(args.device[0])
    except InvalidDeviceSelector as e:
        parser.error(str(e))

    return BridgeConfig(
        selector=selector,
        port=args.port,
        host=args.host,
        verbosity=args.verbosity,
        wait_mode=args.wait_mode,
        wait_timeout=args.wait_timeout,
        backend=args.backend,
    )


def setup_logging(verbosity: int) -> None:
    """Configure logging based on the usbredir verbosity level."""
    level = LOGGING_LEVELS[verbosity]
    logging.basicConfig(level=level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    for name in BRIDGE_LOGGERS:
        logging.getLogger(name).setLevel(level)


def main(argv: Optional[List[str]] = None) -> int:
    """Run the bridge. Returns the process exit status."""
    config = parse_arguments(argv)
    setup_logging(config.verbosity)
    log = logging.getLogger("bridge.server")

    # Imported here so that --help works without libusb installed
    from .libusb import LibusbDeviceAccess

    token = ShutdownToken()
    previous_handlers = install_signal_handlers(token)
    device_access = LibusbDeviceAccess()
    server: Optional[BridgeServer] = None
    try:
        host_factory = load_host_factory(config.backend)
        device_access.init()
        device_access.set_debug(config.verbosity)
        server = BridgeServer(config, device_access, host_factory, token)
        server.listen()
        log.info(f"usbredir bridge {__version__} serving {config.selector} - send SIGINT to quit")
        server.serve_forever()
    except BridgeError as e:
        log.error(str(e))
        return 1
    finally:
        log.info("Shutting down bridge...")
        if server is not None:
            server.close()
        device_access.deinit()
        restore_signal_handlers(previous_handlers)
        token.close()
    log.info("--- exit ---")
    return 0


def run() -> None:
    sys.exit(main())
