"""FAST message model and the primitive stop-bit encodings."""

from __future__ import annotations

import copy
import enum
from dataclasses import dataclass, field
from typing import Any, Optional

from tradeproto.buffer import Buffer, BufferFullError

PMAP_MAX_BYTES = 16
STRING_MAX_BYTES = 256
SEQUENCE_MAX_ELEMENTS = 64
VALUE_MAX_BYTES = 9


class FastType(enum.Enum):
    INT = enum.auto()
    UINT = enum.auto()
    STRING = enum.auto()
    VECTOR = enum.auto()
    DECIMAL = enum.auto()
    SEQUENCE = enum.auto()


class FastOp(enum.Enum):
    NONE = enum.auto()
    COPY = enum.auto()
    INCR = enum.auto()
    DELTA = enum.auto()
    DEFAULT = enum.auto()
    CONSTANT = enum.auto()


class FastPresence(enum.Enum):
    MANDATORY = enum.auto()
    OPTIONAL = enum.auto()


class FastState(enum.Enum):
    UNDEFINED = enum.auto()
    ASSIGNED = enum.auto()
    EMPTY = enum.auto()


class FastPartial(Exception):
    """More input is needed to finish decoding."""


class FastGarbled(ValueError):
    """The input is not a valid FAST encoding."""


@dataclass
class FastDecimal:
    exp: int = 0
    mnt: int = 0
    # Exponent and mantissa fields when they are encoded individually.
    fields: Optional[list] = None


def _initial(kind: FastType) -> Any:
    if kind in (FastType.INT, FastType.UINT):
        return 0
    if kind is FastType.STRING:
        return ""
    if kind is FastType.VECTOR:
        return b""
    if kind is FastType.DECIMAL:
        return FastDecimal()
    return None


@dataclass(eq=False)
class FastField:
    name: str = ""
    type: FastType = FastType.UINT
    op: FastOp = FastOp.NONE
    presence: FastPresence = FastPresence.MANDATORY
    id: int = 0
    value: Any = None
    previous: Any = None
    reset_value: Any = None
    state: FastState = FastState.UNDEFINED
    state_previous: FastState = FastState.UNDEFINED
    unicode: bool = False
    individual: bool = False
    pmap_required: bool = False

    def __post_init__(self) -> None:
        if self.value is None:
            self.value = self._start_value()
        if self.previous is None:
            self.previous = self._start_value()
            if isinstance(self.previous, FastDecimal):
                self.previous.fields = None

    def _start_value(self) -> Any:
        if self.reset_value is None:
            return _initial(self.type)
        if isinstance(self.reset_value, FastDecimal):
            return FastDecimal(self.reset_value.exp, self.reset_value.mnt)
        return self.reset_value

    @property
    def has_reset(self) -> bool:
        return self.reset_value is not None

    def is_mandatory(self) -> bool:
        return self.presence is FastPresence.MANDATORY

    def reset(self) -> None:
        """Return the value and previous value to the initial value."""
        if self.type is FastType.SEQUENCE:
            self.value.elements[0].reset()
            return
        if self.type is FastType.DECIMAL:
            source = self.reset_value if self.has_reset else FastDecimal()
            self.value.exp = source.exp
            self.value.mnt = source.mnt
            self.previous = FastDecimal(source.exp, source.mnt)
            return
        base = self.reset_value if self.has_reset else _initial(self.type)
        self.value = base
        self.previous = base


@dataclass(eq=False)
class FastPmap:
    data: bytearray = field(default_factory=bytearray)
    pmap_bit: int = 0
    is_valid: bool = False

    def is_set(self, bit: int) -> bool:
        """Whether presence bit ``bit`` is set; bits past the map are clear."""
        if bit < 0:
            return False
        index, offset = divmod(bit, 7)
        if index >= len(self.data):
            return False
        return bool(self.data[index] & (0x40 >> offset))

    def set(self, bit: int) -> None:
        """Set presence bit ``bit``, growing the map as needed."""
        if bit < 0:
            raise ValueError("presence bit cannot be negative")
        index, offset = divmod(bit, 7)
        if index >= PMAP_MAX_BYTES:
            raise ValueError(f"presence bit {bit} exceeds the map")
        if index >= len(self.data):
            self.data.extend(bytes(index + 1 - len(self.data)))
        self.data[index] |= 0x40 >> offset


@dataclass(eq=False)
class FastMessage:
    tid: int = 0
    name: str = ""
    fields: list = field(default_factory=list)
    resets_session: bool = False
    decoded: int = 0

    def get_field(self, name: str) -> Optional[FastField]:
        """The field called ``name``; the last one wins on duplicates."""
        if not name:
            return None
        for candidate in reversed(self.fields):
            if candidate.name == name:
                return candidate
        return None

    def reset(self) -> None:
        for item in self.fields:
            item.reset()

    def copy(self) -> "FastMessage":
        """An independent deep copy."""
        return copy.deepcopy(self)


@dataclass(eq=False)
class FastSequence:
    """A repeating group; ``elements[0]`` is the template and decode state."""

    length: FastField
    template: FastMessage
    pmap: FastPmap = field(default_factory=FastPmap)
    decoded: int = 0
    elements: list = field(init=False)

    def __post_init__(self) -> None:
        self.elements = [self.template] + [
            self.template.copy() for _ in range(SEQUENCE_MAX_ELEMENTS - 1)
        ]


def parse_uint(buffer: Buffer) -> int:
    """Read a stop-bit encoded unsigned integer."""
    result = 0
    for _ in range(VALUE_MAX_BYTES):
        if not buffer.size():
            raise FastPartial("unsigned integer is incomplete")
        byte = buffer.get_8()
        result = ((result << 7) | (byte & 0x7F)) & 0xFFFFFFFFFFFFFFFF
        if byte & 0x80:
            return result
    raise FastGarbled("unsigned integer is too long")


def parse_int(buffer: Buffer) -> int:
    """Read a stop-bit encoded signed integer."""
    if not buffer.size():
        raise FastPartial("integer is incomplete")
    result = -1 if buffer.peek_8() & 0x40 else 0
    for _ in range(VALUE_MAX_BYTES):
        if not buffer.size():
            raise FastPartial("integer is incomplete")
        byte = buffer.get_8()
        result = (result << 7) | (byte & 0x7F)
        if byte & 0x80:
            return result
    raise FastGarbled("integer is too long")


def parse_string(buffer: Buffer, size: int = STRING_MAX_BYTES) -> str:
    """Read a stop-bit terminated ASCII string of fewer than ``size`` bytes.

    The text is returned as read; a lone "\\x00" marks a null value.
    """
    chars = bytearray()
    while len(chars) < size - 1:
        if not buffer.size():
            raise FastPartial("string is incomplete")
        byte = buffer.get_8()
        if byte & 0x80:
            chars.append(byte & 0x7F)
            return chars.decode("latin-1")
        chars.append(byte)
    raise FastGarbled("string is too long")


def parse_bytes(buffer: Buffer, length: int) -> bytes:
    """Read exactly ``length`` raw bytes."""
    if buffer.size() < length:
        raise FastPartial("byte field is incomplete")
    return buffer.get(length)


def parse_pmap(buffer: Buffer) -> FastPmap:
    """Read a presence map up to and including its stop byte."""
    data = bytearray()
    while len(data) < PMAP_MAX_BYTES:
        if not buffer.size():
            raise FastPartial("presence map is incomplete")
        byte = buffer.get_8()
        data.append(byte)
        if byte & 0x80:
            return FastPmap(data)
    raise FastGarbled("presence map is too long")


def _size_int(value: int) -> int:
    for count in range(1, VALUE_MAX_BYTES + 1):
        limit = 1 << (7 * count - 1)
        if -limit <= value < limit:
            return count
    raise ValueError(f"{value} does not fit into {VALUE_MAX_BYTES} bytes")


def _size_uint(value: int) -> int:
    if value < 0:
        raise ValueError("unsigned value cannot be negative")
    for count in range(1, VALUE_MAX_BYTES + 1):
        if value < 1 << (7 * count):
            return count
    raise ValueError(f"{value} does not fit into {VALUE_MAX_BYTES} bytes")


def _transfer(buffer: Buffer, value: int, count: int) -> None:
    if buffer.remaining() < count:
        raise BufferFullError("no room for the encoded value")
    for shift in range(count - 1, 0, -1):
        buffer.put((value >> (7 * shift)) & 0x7F)
    buffer.put((value & 0x7F) | 0x80)


def transfer_int(buffer: Buffer, value: int) -> None:
    """Write a signed integer in stop-bit encoding."""
    _transfer(buffer, value, _size_int(value))


def transfer_uint(buffer: Buffer, value: int) -> None:
    """Write an unsigned integer in stop-bit encoding."""
    _transfer(buffer, value, _size_uint(value))


def transfer_string(buffer: Buffer, value: Optional[str]) -> None:
    """Write a string followed by a stop byte; None writes only the stop byte."""
    if value is not None:
        raw = value.encode("latin-1") or b"\x00"
        if buffer.remaining() < len(raw):
            raise BufferFullError("no room for the string")
        buffer.extend(raw)
    if buffer.remaining() < 1:
        raise BufferFullError("no room for the string terminator")
    buffer.put(0x80)