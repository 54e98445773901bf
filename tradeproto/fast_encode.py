"""Encoding FAST messages: field operators, presence map and stop-bit values."""

from __future__ import annotations

from typing import Callable

from tradeproto.buffer import Buffer, BufferFullError
from tradeproto.fast_field import (
    FastDecimal,
    FastField,
    FastGarbled,
    FastMessage,
    FastOp,
    FastPmap,
    FastState,
    FastType,
    transfer_int,
    transfer_string,
    transfer_uint,
)


def _nullable(value: int) -> int:
    return value + 1 if value >= 0 else value


def _advance(pmap: FastPmap, op: FastOp) -> bool:
    """Take a presence bit for operators that use one; returns whether it does."""
    if op in (FastOp.COPY, FastOp.INCR, FastOp.DEFAULT):
        pmap.pmap_bit += 1
        return True
    if op in (FastOp.NONE, FastOp.DELTA):
        return False
    raise FastGarbled(f"operator {op.name} cannot be encoded here")


def _encode_constant(pmap: FastPmap, field: FastField) -> None:
    if not field.is_mandatory():
        pmap.pmap_bit += 1
        if field.state is FastState.EMPTY:
            return
        pmap.set(pmap.pmap_bit)
    field.state = FastState.ASSIGNED


def _must_send(field: FastField, unchanged: bool) -> bool:
    """Decide from the field's state whether its value goes on the wire."""
    if field.op in (FastOp.NONE, FastOp.DELTA):
        field.state = FastState.ASSIGNED
        return True
    if field.state is FastState.EMPTY:
        raise FastGarbled(f"mandatory field {field.name!r} is empty")
    if field.op is FastOp.DEFAULT or field.state is FastState.UNDEFINED:
        field.state = FastState.ASSIGNED
        return True
    if field.state_previous is FastState.EMPTY:
        return True
    return not unchanged


def _finish(
    buffer: Buffer,
    pmap: FastPmap,
    field: FastField,
    writer: Callable,
    wire,
    set_bit: bool,
) -> None:
    field.previous = field.value
    field.state_previous = field.state
    writer(buffer, wire)
    if set_bit:
        pmap.set(pmap.pmap_bit)


def _encode_integer(
    buffer: Buffer, pmap: FastPmap, field: FastField, unsigned: bool
) -> None:
    op = field.op
    if op is FastOp.CONSTANT:
        _encode_constant(pmap, field)
        return
    delta = op is FastOp.DELTA
    wire = field.value - field.previous if delta else field.value
    writer = transfer_uint if unsigned and not delta else transfer_int
    set_bit = _advance(pmap, op)

    if not field.is_mandatory():
        wire = wire + 1 if unsigned and not delta else _nullable(wire)
        if field.state is FastState.EMPTY:
            field.value = field.previous
            _finish(buffer, pmap, field, writer, 0, set_bit)
            return

    if op is FastOp.INCR:
        unchanged = field.value == field.previous + 1
    else:
        unchanged = op is FastOp.COPY and field.value == field.previous

    if not _must_send(field, unchanged):
        if op is FastOp.INCR:
            field.previous += 1
        return
    _finish(buffer, pmap, field, writer, wire, set_bit)


def encode_int(buffer: Buffer, pmap: FastPmap, field: FastField) -> None:
    """Encode a signed integer field according to its operator."""
    _encode_integer(buffer, pmap, field, unsigned=False)


def encode_uint(buffer: Buffer, pmap: FastPmap, field: FastField) -> None:
    """Encode an unsigned integer field according to its operator."""
    _encode_integer(buffer, pmap, field, unsigned=True)


def encode_string(buffer: Buffer, pmap: FastPmap, field: FastField) -> None:
    """Encode an ASCII string field according to its operator."""
    op = field.op
    if op is FastOp.CONSTANT:
        _encode_constant(pmap, field)
        return
    if op in (FastOp.INCR, FastOp.DELTA):
        raise FastGarbled(f"operator {op.name} is not supported for strings")
    set_bit = _advance(pmap, op)

    if not field.is_mandatory() and field.state is FastState.EMPTY:
        field.value = field.previous
        _finish(buffer, pmap, field, transfer_string, None, set_bit)
        return

    unchanged = op is FastOp.COPY and field.value == field.previous
    if not _must_send(field, unchanged):
        return
    _finish(buffer, pmap, field, transfer_string, field.value, set_bit)


def _encode_decimal_atomic(buffer: Buffer, pmap: FastPmap, field: FastField) -> None:
    op = field.op
    if op is FastOp.CONSTANT:
        _encode_constant(pmap, field)
        return
    if op is FastOp.INCR:
        return
    value: FastDecimal = field.value
    previous: FastDecimal = field.previous
    if op is FastOp.DELTA:
        exp = value.exp - previous.exp
        mnt = value.mnt - previous.mnt
    else:
        exp, mnt = value.exp, value.mnt
    set_bit = _advance(pmap, op)

    if not field.is_mandatory():
        exp = _nullable(exp)
        if field.state is FastState.EMPTY:
            field.state_previous = field.state
            transfer_int(buffer, 0)
            if set_bit:
                pmap.set(pmap.pmap_bit)
            return

    unchanged = op is FastOp.COPY and (value.exp, value.mnt) == (
        previous.exp,
        previous.mnt,
    )
    if not _must_send(field, unchanged):
        return
    field.previous = FastDecimal(value.exp, value.mnt)
    field.state_previous = field.state
    transfer_int(buffer, exp)
    transfer_int(buffer, mnt)
    if set_bit:
        pmap.set(pmap.pmap_bit)


def _encode_decimal_individual(
    buffer: Buffer, pmap: FastPmap, field: FastField
) -> None:
    decimal: FastDecimal = field.value
    exponent, mantissa = decimal.fields
    if field.state is not FastState.EMPTY:
        exponent.value = decimal.exp
        mantissa.value = decimal.mnt
    exponent.state = field.state
    mantissa.state = field.state

    encode_int(buffer, pmap, exponent)
    if exponent.state is FastState.EMPTY:
        return
    field.state = FastState.ASSIGNED
    encode_int(buffer, pmap, mantissa)


def encode_decimal(buffer: Buffer, pmap: FastPmap, field: FastField) -> None:
    """Encode a decimal field, whole or as separate exponent and mantissa."""
    if field.individual:
        _encode_decimal_individual(buffer, pmap, field)
    else:
        _encode_decimal_atomic(buffer, pmap, field)


_ENCODERS = {
    FastType.INT: encode_int,
    FastType.UINT: encode_uint,
    FastType.STRING: encode_string,
    FastType.DECIMAL: encode_decimal,
}


def encode_message(
    message: FastMessage, pmap_buffer: Buffer, message_buffer: Buffer
) -> None:
    """Encode the template id and fields, then the presence map that leads them."""
    pmap = FastPmap()
    pmap.set(0)
    pmap.pmap_bit = 0

    transfer_uint(message_buffer, message.tid)
    for item in message.fields:
        encoder = _ENCODERS.get(item.type)
        if encoder is None:
            raise FastGarbled(f"cannot encode a {item.type.name} field")
        encoder(message_buffer, pmap, item)

    data = bytes(pmap.data).rstrip(b"\x00")
    if pmap_buffer.remaining() < len(data):
        raise BufferFullError("no room for the presence map")
    pmap_buffer.extend(bytes(byte & 0x7F for byte in data[:-1]) + bytes([data[-1] | 0x80]))