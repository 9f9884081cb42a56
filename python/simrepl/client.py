"""Line-protocol client for a remote simrepl console."""

from __future__ import annotations

import json
import logging
import socket
import threading
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from prompt_toolkit import PromptSession
from prompt_toolkit.history import InMemoryHistory

from .errors import TransportError
from .parser import DEFAULT_DELIMITER

LOGGER = logging.getLogger("simrepl.client")

DEFAULT_ADDRESS = "localhost:9000"


def normalize_address(address: str) -> Tuple[str, int]:
    """Resolve ``host:port`` or ``:port`` (meaning localhost) to a dial target."""
    text = str(address).strip()
    if text.startswith(":"):
        text = "localhost" + text
    host, sep, port_text = text.rpartition(":")
    if not sep or not host:
        raise ValueError(f"invalid address {address!r}; expected 'host:port' or ':port'")
    try:
        port = int(port_text)
    except ValueError:
        raise ValueError(f"invalid port in address {address!r}") from None
    return host.strip("[]"), port


class RemoteClient:
    """Synchronous request/response client.

    Every reply is the run of lines the server sends before its next ``>``
    marker line. One request may be in flight at a time.
    """

    def __init__(
        self,
        host: str = "localhost",
        port: int = 9000,
        *,
        marker: str = ">",
        delimiter: str = DEFAULT_DELIMITER,
        timeout: Optional[float] = 5.0,
        read_timeout: Optional[float] = None,
    ) -> None:
        self.host = host
        self.port = port
        self.marker = marker
        self.delimiter = delimiter
        self.timeout = timeout
        self.read_timeout = read_timeout
        self.greeting: List[str] = []
        self._sock: Optional[socket.socket] = None
        self._rfile = None
        self._lock = threading.Lock()

    @classmethod
    def from_address(cls, address: str, **kwargs: Any) -> "RemoteClient":
        host, port = normalize_address(address)
        return cls(host, port, **kwargs)

    @property
    def connected(self) -> bool:
        return self._sock is not None

    def connect(self) -> List[str]:
        """Open the connection and return the greeting lines."""
        if self._sock is not None:
            return self.greeting
        try:
            sock = socket.create_connection((self.host, self.port), timeout=self.timeout)
        except OSError as exc:
            raise TransportError(f"failed to connect to {self.host}:{self.port}: {exc}", cause=exc) from exc
        sock.settimeout(self.read_timeout)
        self._sock = sock
        self._rfile = sock.makefile("rb")
        LOGGER.debug("connected to %s:%s", self.host, self.port)
        self.greeting = self._read_reply()
        return self.greeting

    def close(self) -> None:
        sock, self._sock = self._sock, None
        rfile, self._rfile = self._rfile, None
        if rfile is not None:
            rfile.close()
        if sock is not None:
            try:
                sock.close()
            except OSError:
                LOGGER.debug("socket close failed", exc_info=True)

    def __enter__(self) -> "RemoteClient":
        self.connect()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def request(self, line: str) -> List[str]:
        """Send one command line and return the reply lines."""
        if "\n" in line:
            raise ValueError("request() takes a single line; use request_block() for blocks")
        return self._exchange(line)

    def request_block(self, lines: Iterable[str]) -> List[str]:
        """Send a raw block; delimiter lines are added around ``lines``."""
        body = list(lines)
        return self._exchange("\n".join([self.delimiter, *body, self.delimiter]))

    def stats(self) -> Dict[str, Any]:
        reply = self.request("stats-json")
        text = "\n".join(reply).strip()
        try:
            payload = json.loads(text)
        except json.JSONDecodeError as exc:
            raise TransportError(f"malformed stats reply: {text!r}", cause=exc) from exc
        if not isinstance(payload, dict):
            raise TransportError(f"malformed stats reply: {text!r}")
        return payload

    def _exchange(self, payload: str) -> List[str]:
        with self._lock:
            if self._sock is None:
                raise TransportError("not connected")
            try:
                self._sock.sendall(f"{payload}\n".encode("utf-8"))
            except OSError as exc:
                self.close()
                raise TransportError(f"send failed: {exc}", cause=exc) from exc
            return self._read_reply()

    def _read_reply(self) -> List[str]:
        """Lines up to the next marker; all remaining lines if the server hangs up."""
        lines: List[str] = []
        while True:
            try:
                raw = self._rfile.readline() if self._rfile is not None else b""
            except OSError as exc:
                self.close()
                raise TransportError(f"receive failed: {exc}", cause=exc) from exc
            if not raw:
                # Server ended the session (exit, stop or shutdown).
                self.close()
                return lines
            line = raw.decode("utf-8", errors="replace").rstrip("\r\n")
            if line.strip() == self.marker:
                return lines
            lines.append(line)


def _read_block(session: PromptSession, delimiter: str) -> Optional[List[str]]:
    lines: List[str] = []
    while True:
        try:
            line = session.prompt("")
        except (EOFError, KeyboardInterrupt):
            return None
        if line.strip() == delimiter:
            return lines
        lines.append(line)


def run_client(address: str = DEFAULT_ADDRESS, run: Sequence[str] = (), *, session: Optional[PromptSession] = None) -> int:
    """Interactive remote console; returns a process exit code."""
    try:
        client = RemoteClient.from_address(address)
        greeting = client.connect()
    except (ValueError, TransportError) as exc:
        print(f"Failed to connect: {exc}")
        return 1
    print("Connected to REPL.")
    for line in greeting:
        print(line)
    prompt = session or PromptSession(history=InMemoryHistory())
    pending = list(run)
    try:
        while True:
            if pending:
                text = pending.pop(0)
                print(f"> {text}")
            else:
                try:
                    text = prompt.prompt("> ")
                except (EOFError, KeyboardInterrupt):
                    print()
                    break
            if text.strip() == client.delimiter:
                block = _read_block(prompt, client.delimiter)
                if block is None:
                    print("Unexpected end of input during block.")
                    return 1
                reply = client.request_block(block)
            else:
                reply = client.request(text)
            for line in reply:
                print(line)
            if not client.connected:
                print("Connection closed.")
                break
    except TransportError:
        print("Connection closed.")
    finally:
        client.close()
    return 0


__all__ = ["DEFAULT_ADDRESS", "RemoteClient", "normalize_address", "run_client"]
