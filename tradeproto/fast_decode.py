"""Decoding FAST integer and string fields according to their operators."""

from __future__ import annotations

from typing import Callable, Optional

from tradeproto.buffer import Buffer
from tradeproto.fast_field import (
    STRING_MAX_BYTES,
    FastField,
    FastGarbled,
    FastOp,
    FastPmap,
    FastState,
    FastType,
    parse_bytes,
    parse_int,
    parse_string,
    parse_uint,
)

U64_MASK = 0xFFFFFFFFFFFFFFFF
DELTA_MAX_BYTES = 32

_ZERO = {
    FastType.INT: 0,
    FastType.UINT: 0,
    FastType.STRING: "",
    FastType.VECTOR: b"",
}


def _next_bit_set(pmap: FastPmap) -> bool:
    """Take the next presence bit and report whether it is set."""
    pmap.pmap_bit += 1
    return pmap.is_set(pmap.pmap_bit)


def _load_reset(field: FastField) -> None:
    """Give the field its initial value from the template."""
    reset = field.reset_value
    if field.type is FastType.DECIMAL:
        field.value.exp = reset.exp if reset is not None else 0
        field.value.mnt = reset.mnt if reset is not None else 0
    elif reset is not None:
        field.value = reset
    else:
        field.value = _ZERO[field.type]


def _absent(field: FastField, increment: Optional[Callable] = None) -> None:
    """Apply the operator to a field whose presence bit is clear."""
    if field.op is FastOp.DEFAULT or field.state is FastState.UNDEFINED:
        if field.has_reset:
            field.state = FastState.ASSIGNED
            _load_reset(field)
        elif field.is_mandatory():
            raise FastGarbled(f"mandatory field {field.name!r} has no value")
        else:
            field.state = FastState.EMPTY
    elif field.state is FastState.ASSIGNED:
        if increment is not None:
            field.value = increment(field.value)
    elif field.is_mandatory():
        raise FastGarbled(f"mandatory field {field.name!r} is empty")


def _constant(pmap: FastPmap, field: FastField) -> None:
    if field.state is not FastState.ASSIGNED:
        _load_reset(field)
    field.state = FastState.ASSIGNED
    if not field.is_mandatory() and not _next_bit_set(pmap):
        field.state = FastState.EMPTY


def _present_uint(field: FastField, raw: int) -> None:
    field.state = FastState.ASSIGNED
    field.value = raw
    if field.is_mandatory():
        return
    if raw == 0:
        field.state = FastState.EMPTY
    else:
        field.value = raw - 1


def _present_int(field: FastField, raw: int) -> None:
    field.state = FastState.ASSIGNED
    field.value = raw
    if field.is_mandatory():
        return
    if raw == 0:
        field.state = FastState.EMPTY
    elif raw > 0:
        field.value = raw - 1


def decode_uint(buffer: Buffer, pmap: FastPmap, field: FastField) -> None:
    """Decode an unsigned integer field according to its operator."""
    op = field.op
    if op is FastOp.NONE:
        _present_uint(field, parse_uint(buffer))
    elif op in (FastOp.COPY, FastOp.INCR, FastOp.DEFAULT):
        if _next_bit_set(pmap):
            _present_uint(field, parse_uint(buffer))
        elif op is FastOp.INCR:
            _absent(field, lambda value: (value + 1) & U64_MASK)
        else:
            _absent(field)
    elif op is FastOp.DELTA:
        delta = parse_int(buffer)
        field.state = FastState.ASSIGNED
        value = field.value + delta
        if not field.is_mandatory():
            if delta == 0:
                field.state = FastState.EMPTY
            elif delta > 0:
                value -= 1
        field.value = value & U64_MASK
    elif op is FastOp.CONSTANT:
        _constant(pmap, field)
    else:
        raise FastGarbled(f"unknown operator {op!r}")


def decode_int(buffer: Buffer, pmap: FastPmap, field: FastField) -> None:
    """Decode a signed integer field according to its operator."""
    op = field.op
    if op is FastOp.NONE:
        _present_int(field, parse_int(buffer))
    elif op in (FastOp.COPY, FastOp.INCR, FastOp.DEFAULT):
        if _next_bit_set(pmap):
            _present_int(field, parse_int(buffer))
        elif op is FastOp.INCR:
            _absent(field, lambda value: value + 1)
        else:
            _absent(field)
    elif op is FastOp.DELTA:
        delta = parse_int(buffer)
        field.state = FastState.ASSIGNED
        field.value += delta
        if not field.is_mandatory():
            if delta == 0:
                field.state = FastState.EMPTY
            elif delta > 0:
                field.value -= 1
    elif op is FastOp.CONSTANT:
        _constant(pmap, field)
    else:
        raise FastGarbled(f"unknown operator {op!r}")


def _length_prefixed(buffer: Buffer, field: FastField) -> Optional[bytes]:
    """Read a length and that many bytes; None when the optional value is null."""
    length = parse_uint(buffer)
    field.state = FastState.ASSIGNED
    if not field.is_mandatory():
        if not length:
            field.state = FastState.EMPTY
            return None
        length -= 1
    return parse_bytes(buffer, length)


def _present_unicode(buffer: Buffer, field: FastField) -> None:
    raw = _length_prefixed(buffer, field)
    if raw is not None:
        field.value = raw.decode("utf-8", errors="replace").partition("\x00")[0]


def _present_ascii(buffer: Buffer, field: FastField) -> None:
    text = parse_string(buffer, STRING_MAX_BYTES)
    field.state = FastState.ASSIGNED
    field.value = text.partition("\x00")[0]
    if not field.is_mandatory() and text == "\x00":
        field.state = FastState.EMPTY


def _ascii_delta(buffer: Buffer, field: FastField) -> None:
    length = parse_int(buffer)
    if not field.is_mandatory():
        if length == 0:
            field.state = FastState.EMPTY
            return
        if length > 0:
            length -= 1
    delta = parse_string(buffer, DELTA_MAX_BYTES).partition("\x00")[0]
    base = field.value
    if length >= 0:
        if len(base) < length:
            raise FastGarbled("string delta removes more than the base holds")
        if len(base) + len(delta) - length + 1 > STRING_MAX_BYTES:
            raise FastGarbled("string delta makes the value too long")
        value = base[: len(base) - length] + delta
    else:
        length = -(length + 1)
        if len(base) < length:
            raise FastGarbled("string delta removes more than the base holds")
        if len(base) + len(delta) - length + 1 > STRING_MAX_BYTES:
            raise FastGarbled("string delta makes the value too long")
        value = delta + base[length:]
    field.state = FastState.ASSIGNED
    field.value = value


def decode_string(buffer: Buffer, pmap: FastPmap, field: FastField) -> None:
    """Decode an ASCII or unicode string field according to its operator."""
    op = field.op
    present = _present_unicode if field.unicode else _present_ascii
    if op is FastOp.NONE:
        present(buffer, field)
    elif op in (FastOp.COPY, FastOp.DEFAULT):
        if _next_bit_set(pmap):
            present(buffer, field)
        else:
            _absent(field)
    elif op is FastOp.INCR:
        raise FastGarbled("increment does not apply to strings")
    elif op is FastOp.DELTA:
        if field.unicode:
            raise FastGarbled("delta does not apply to unicode strings")
        _ascii_delta(buffer, field)
    elif op is FastOp.CONSTANT:
        _constant(pmap, field)
    else:
        raise FastGarbled(f"unknown operator {op!r}")