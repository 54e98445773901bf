"""A FAST session: template registry, receive buffer and message framing."""

from __future__ import annotations

import os
import socket
from os import PathLike
from typing import Optional, Union

from tradeproto.buffer import Buffer
from tradeproto.fast_decode_group import decode_field
from tradeproto.fast_encode import encode_message
from tradeproto.fast_field import (
    FastGarbled,
    FastMessage,
    FastPartial,
    FastPmap,
    FastType,
    parse_pmap,
    parse_uint,
)
from tradeproto.fast_template import TEMPLATE_MAX_NUMBER, TemplateError, parse_template

MESSAGE_MAX_SIZE = 4096
RECV_BUFFER_SIZE = 4 * MESSAGE_MAX_SIZE
TX_BUFFER_SIZE = MESSAGE_MAX_SIZE
PREAMBLE_MAX_BYTES = 4

Source = Union[socket.socket, int]


class FastSession:
    """Decodes FAST messages arriving on a socket or file descriptor and sends encoded ones.

    A plain file descriptor is read and written with ``os.read`` and
    ``os.write``; a socket object with ``recv`` and ``sendmsg``.
    """

    def __init__(self, source: Source, preamble_bytes: int = 0, reset: bool = False):
        if not 0 <= preamble_bytes <= PREAMBLE_MAX_BYTES:
            raise ValueError(
                f"preamble of {preamble_bytes} bytes exceeds {PREAMBLE_MAX_BYTES}"
            )
        self.source = source
        self.preamble_bytes = preamble_bytes
        self.reset_enabled = reset
        self.preamble = b""
        self.rx_buffer = Buffer(RECV_BUFFER_SIZE)
        self.tx_message_buffer = Buffer(TX_BUFFER_SIZE)
        self.tx_pmap_buffer = Buffer(TX_BUFFER_SIZE)
        self.messages: list[FastMessage] = []
        self.rx_message: Optional[FastMessage] = None
        self.last_tid = 0
        self.pmap = FastPmap()
        self._pmap_valid = False
        self._preamble_valid = False

    def __enter__(self) -> "FastSession":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    @property
    def is_socket(self) -> bool:
        return isinstance(self.source, socket.socket)

    def load_templates(self, path: Union[str, "PathLike[str]"]) -> None:
        """Add the templates described in the XML file at ``path``."""
        loaded = parse_template(path)
        if len(self.messages) + len(loaded) > TEMPLATE_MAX_NUMBER:
            raise TemplateError(
                f"more than {TEMPLATE_MAX_NUMBER} templates in one session"
            )
        self.messages.extend(loaded)

    def _template(self, tid: int) -> FastMessage:
        for message in self.messages:
            if message.tid == tid:
                return message
        raise FastGarbled(f"no template with id {tid}")

    def _abandon(self) -> None:
        message = self.rx_message
        if message is not None:
            message.decoded = 0
            for item in message.fields:
                if item.type is FastType.SEQUENCE:
                    item.value.decoded = 0
                    item.value.elements[0].decoded = 0
                    item.value.pmap.is_valid = False
        self.rx_message = None
        self._pmap_valid = False
        self._preamble_valid = False

    def decode(self) -> Optional[FastMessage]:
        """Decode the next message from the receive buffer.

        Returns None when the buffer holds only part of a message; decoding
        resumes where it stopped on the next call. Raises FastGarbled on
        invalid input, after dropping the message in progress.
        """
        buffer = self.rx_buffer

        if self.preamble_bytes and not self._preamble_valid:
            if buffer.size() < self.preamble_bytes:
                return None
            self.preamble = buffer.get(self.preamble_bytes)
            self._preamble_valid = True

        try:
            if not self._pmap_valid:
                start = buffer.start
                try:
                    pmap = parse_pmap(buffer)
                except FastPartial:
                    buffer.advance(start - buffer.start)
                    return None
                pmap.pmap_bit = 0
                self.pmap = pmap
                self._pmap_valid = True

            if self.rx_message is None:
                start = buffer.start
                if self.pmap.is_set(0):
                    try:
                        tid = parse_uint(buffer)
                    except FastPartial:
                        buffer.advance(start - buffer.start)
                        return None
                else:
                    tid = self.last_tid
                self.rx_message = self._template(tid)

            message = self.rx_message
            while message.decoded < len(message.fields):
                try:
                    decode_field(buffer, self.pmap, message.fields[message.decoded])
                except FastPartial:
                    return None
                message.decoded += 1
        except FastGarbled:
            self._abandon()
            raise

        self.last_tid = message.tid
        self.rx_message = None
        self._preamble_valid = False
        self._pmap_valid = False
        message.decoded = 0
        return message

    def _read(self, size: int) -> int:
        if self.is_socket:
            return self.rx_buffer.recv(self.source, size)
        return self.rx_buffer.read(self.source, size)

    def recv(self) -> Optional[FastMessage]:
        """Decode a buffered message, or read more input once and try again.

        Returns None when no complete message is available yet.
        """
        message = self.decode()
        if message is not None:
            return message
        if self.rx_buffer.remaining() <= MESSAGE_MAX_SIZE:
            self.rx_buffer.compact()
        try:
            count = self._read(MESSAGE_MAX_SIZE)
        except (BlockingIOError, InterruptedError):
            return None
        if count <= 0:
            return None
        return self.decode()

    def send(self, message: FastMessage) -> int:
        """Encode ``message`` and send it; returns the number of bytes sent."""
        self.tx_pmap_buffer.reset()
        self.tx_message_buffer.reset()
        encode_message(message, self.tx_pmap_buffer, self.tx_message_buffer)
        parts = [self.tx_pmap_buffer.data(), self.tx_message_buffer.data()]
        if self.is_socket:
            return self.source.sendmsg(parts)
        data = b"".join(parts)
        total = 0
        while total < len(data):
            total += os.write(self.source, data[total:])
        return total

    def reset(self) -> None:
        """Return every template's fields to their initial values."""
        for message in self.messages:
            message.reset()

    def close(self) -> None:
        """Drop the templates and buffered data; the source stays open."""
        self._abandon()
        self.messages.clear()
        self.rx_buffer.reset()
        self.tx_message_buffer.reset()
        self.tx_pmap_buffer.reset()