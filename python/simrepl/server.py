"""TCP transport: one console session per accepted connection.

Wire protocol (newline terminated lines): the server sends a greeting, then a
line containing only the marker ``>`` whenever it is ready for input. Each
client turn is one command line or a raw block framed by delimiter lines; the
reply is zero or more output lines followed by the next marker.
"""

from __future__ import annotations

import logging
import socketserver
from typing import TYPE_CHECKING, Tuple

from .session import Session, StreamLineSource

if TYPE_CHECKING:  # pragma: no cover
    from .console import Console

LOGGER = logging.getLogger("simrepl.server")


def parse_address(address: str) -> Tuple[str, int]:
    """Split ``host:port`` or ``:port`` into a bind address."""
    text = str(address).strip()
    host, sep, port_text = text.rpartition(":")
    if not sep:
        host, port_text = "", text
    try:
        port = int(port_text)
    except ValueError:
        raise ValueError(f"invalid address {address!r}; expected 'host:port' or ':port'") from None
    if not 0 <= port <= 65535:
        raise ValueError(f"port out of range in {address!r}")
    return host.strip("[]"), port


class _WireWriter:
    """Text adapter over the handler's binary socket file."""

    def __init__(self, wfile) -> None:
        self._wfile = wfile

    def write(self, text: str) -> int:
        self._wfile.write(text.encode("utf-8"))
        return len(text)

    def flush(self) -> None:
        self._wfile.flush()


class _ConsoleHandler(socketserver.StreamRequestHandler):
    def handle(self) -> None:
        console: Console = self.server.console
        peer = "%s:%s" % tuple(self.client_address[:2])
        LOGGER.info("client connected: %s", peer)
        writer = _WireWriter(self.wfile)
        source = StreamLineSource(
            self.rfile,
            writer=writer,
            marker=f"{console.config.marker}\n",
            delimiter=console.config.block_delimiter,
        )
        session = Session(console, source, writer, name=peer)
        session.run(greeting=console.config.greeting)
        LOGGER.info("client disconnected: %s", peer)


class ConsoleServer(socketserver.ThreadingTCPServer):
    allow_reuse_address = True
    daemon_threads = True

    def __init__(self, server_address, console: "Console") -> None:
        super().__init__(server_address, _ConsoleHandler)
        self.console = console

    @property
    def port(self) -> int:
        return int(self.server_address[1])

    def handle_error(self, request, client_address) -> None:
        LOGGER.exception("unhandled error serving %s", client_address)


__all__ = ["ConsoleServer", "parse_address"]
