"""A FAST market-data feed read from a multicast group or a recorded file."""

from __future__ import annotations

import os
import socket
import sys
from dataclasses import dataclass, field
from typing import Optional

from tradeproto.fast_field import FastGarbled, FastMessage
from tradeproto.fast_session import FastSession

_INADDR_NONE = b"\xff\xff\xff\xff"

if sys.platform.startswith("linux"):
    _SOURCE_MEMBERSHIP_DEFAULT = 39
else:
    _SOURCE_MEMBERSHIP_DEFAULT = 70

_IP_ADD_SOURCE_MEMBERSHIP = getattr(
    socket, "IP_ADD_SOURCE_MEMBERSHIP", _SOURCE_MEMBERSHIP_DEFAULT
)


class FeedError(Exception):
    """The feed cannot be opened, closed or read in its current state."""


def _inet_addr(text: str) -> bytes:
    """The four address bytes of ``text``, or all ones when it is not an address."""
    try:
        return socket.inet_aton(text)
    except (OSError, ValueError):
        return _INADDR_NONE


def _source_request(group: bytes, source: bytes, interface: bytes) -> bytes:
    if sys.platform.startswith("linux"):
        return group + interface + source
    return group + source + interface


def _close_source(source) -> None:
    if isinstance(source, socket.socket):
        try:
            source.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass
        source.close()
    else:
        os.close(source)


@dataclass(eq=False)
class FastFeed:
    """One FAST channel: a recorded ``file`` if given, else the multicast group ``ip``."""

    xml: str
    file: str = ""
    ip: str = ""
    sip: str = ""
    lip: str = ""
    port: int = 0
    preamble_bytes: int = 0
    reset: bool = False
    session: Optional[FastSession] = field(default=None, repr=False)
    active: bool = False
    recv_num: int = 0

    def __enter__(self) -> "FastFeed":
        if not self.active:
            self.open()
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _socket(self) -> socket.socket:
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        try:
            sock.setblocking(False)
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind(("", self.port))
            group = _inet_addr(self.ip)
            interface = _inet_addr(self.lip)
            source = _inet_addr(self.sip)
            if source == _INADDR_NONE:
                sock.setsockopt(
                    socket.IPPROTO_IP, socket.IP_ADD_MEMBERSHIP, group + interface
                )
            else:
                sock.setsockopt(
                    socket.IPPROTO_IP,
                    _IP_ADD_SOURCE_MEMBERSHIP,
                    _source_request(group, source, interface),
                )
        except OSError:
            sock.close()
            raise
        return sock

    def open(self) -> None:
        """Open the input and load the templates into a new session."""
        if self.active:
            raise FeedError("feed is already open")
        self.session = None
        try:
            source = os.open(self.file, os.O_RDONLY) if self.file else self._socket()
        except OSError as exc:
            raise FeedError(f"cannot open feed input: {exc}") from exc
        try:
            session = FastSession(source, self.preamble_bytes, self.reset)
            session.load_templates(self.xml)
        except ValueError as exc:
            _close_source(source)
            raise FeedError(f"cannot start feed session: {exc}") from exc
        self.session = session
        self.active = True

    def close(self) -> None:
        """Close the session and its input; closing a closed feed does nothing."""
        session = self.session
        if not self.active or session is None:
            return
        source = session.source
        session.close()
        try:
            _close_source(source)
        except OSError as exc:
            raise FeedError(f"cannot close feed input: {exc}") from exc
        self.session = None
        self.active = False

    def recv(self) -> Optional[FastMessage]:
        """The next message, or None when none is complete or it is garbled."""
        if not self.active or self.session is None:
            raise FeedError("feed is not open")
        try:
            return self.session.recv()
        except FastGarbled:
            return None