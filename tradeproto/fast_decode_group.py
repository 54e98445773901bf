"""Decoding FAST decimals, byte vectors, sequences, and dispatching by type."""

from __future__ import annotations

from tradeproto.buffer import Buffer
from tradeproto.fast_decode import (
    _absent,
    _constant,
    _length_prefixed,
    _next_bit_set,
    decode_int,
    decode_string,
    decode_uint,
)
from tradeproto.fast_field import (
    SEQUENCE_MAX_ELEMENTS,
    FastDecimal,
    FastField,
    FastGarbled,
    FastOp,
    FastPartial,
    FastPmap,
    FastSequence,
    FastState,
    FastType,
    parse_int,
    parse_pmap,
)

EXPONENT_LIMIT = 63


def _present_decimal(buffer: Buffer, field: FastField, delta: bool = False) -> None:
    exp = parse_int(buffer)
    field.state = FastState.ASSIGNED
    if not field.is_mandatory():
        if exp == 0:
            field.state = FastState.EMPTY
            return
        if exp > 0:
            exp -= 1
    value: FastDecimal = field.value
    resulting = value.exp + exp if delta else exp
    if not -EXPONENT_LIMIT <= resulting <= EXPONENT_LIMIT:
        raise FastGarbled(f"decimal exponent {resulting} is out of range")
    mnt = parse_int(buffer)
    if delta:
        value.exp += exp
        value.mnt += mnt
    else:
        value.exp = exp
        value.mnt = mnt


def _decode_decimal_atomic(buffer: Buffer, pmap: FastPmap, field: FastField) -> None:
    op = field.op
    if op is FastOp.NONE:
        _present_decimal(buffer, field)
    elif op in (FastOp.COPY, FastOp.DEFAULT):
        if _next_bit_set(pmap):
            _present_decimal(buffer, field)
        else:
            _absent(field)
    elif op is FastOp.INCR:
        raise FastGarbled("increment does not apply to decimals")
    elif op is FastOp.DELTA:
        _present_decimal(buffer, field, delta=True)
    elif op is FastOp.CONSTANT:
        _constant(pmap, field)
    else:
        raise FastGarbled(f"unknown operator {op!r}")


def _decode_decimal_individual(
    buffer: Buffer, pmap: FastPmap, field: FastField
) -> None:
    decimal: FastDecimal = field.value
    exponent, mantissa = decimal.fields
    decode_int(buffer, pmap, exponent)
    if exponent.state is FastState.EMPTY:
        field.state = FastState.EMPTY
        if field.is_mandatory():
            raise FastGarbled(f"mandatory decimal {field.name!r} is empty")
        return
    if not -EXPONENT_LIMIT <= exponent.value <= EXPONENT_LIMIT:
        raise FastGarbled(f"decimal exponent {exponent.value} is out of range")
    decode_int(buffer, pmap, mantissa)
    field.state = FastState.ASSIGNED
    decimal.exp = exponent.value
    decimal.mnt = mantissa.value


def decode_decimal(buffer: Buffer, pmap: FastPmap, field: FastField) -> None:
    """Decode a decimal field, whole or as separate exponent and mantissa."""
    if field.individual:
        _decode_decimal_individual(buffer, pmap, field)
    else:
        _decode_decimal_atomic(buffer, pmap, field)


def _present_vector(buffer: Buffer, field: FastField) -> None:
    raw = _length_prefixed(buffer, field)
    if raw is not None:
        field.value = raw


def decode_vector(buffer: Buffer, pmap: FastPmap, field: FastField) -> None:
    """Decode a byte vector field according to its operator."""
    op = field.op
    if op is FastOp.NONE:
        _present_vector(buffer, field)
    elif op in (FastOp.COPY, FastOp.DEFAULT):
        if _next_bit_set(pmap):
            _present_vector(buffer, field)
        else:
            _absent(field)
    elif op in (FastOp.INCR, FastOp.DELTA):
        raise FastGarbled(f"{op.name.lower()} does not apply to byte vectors")
    elif op is FastOp.CONSTANT:
        _constant(pmap, field)
    else:
        raise FastGarbled(f"unknown operator {op!r}")


def _store_element(target: FastField, source: FastField) -> None:
    target.state = source.state
    if source.type is FastType.DECIMAL:
        target.value.exp = source.value.exp
        target.value.mnt = source.value.mnt
    else:
        target.value = source.value


def _rewind(buffer: Buffer, start: int) -> None:
    buffer.advance(start - buffer.start)


def decode_sequence(buffer: Buffer, pmap: FastPmap, field: FastField) -> None:
    """Decode a sequence into ``elements[1..length]``.

    Decoding can resume after FastPartial: the sequence remembers how far
    it got, and the input is rewound to the start of the unfinished item.
    """
    seq: FastSequence = field.value
    if not seq.decoded:
        start, bit = buffer.start, pmap.pmap_bit
        try:
            decode_uint(buffer, pmap, seq.length)
        except FastPartial:
            _rewind(buffer, start)
            pmap.pmap_bit = bit
            raise
        if seq.length.state is FastState.EMPTY:
            field.state = FastState.EMPTY
            if field.is_mandatory():
                raise FastGarbled(f"mandatory sequence {field.name!r} is empty")
            return
        if seq.length.value >= SEQUENCE_MAX_ELEMENTS:
            raise FastGarbled(f"sequence of {seq.length.value} elements is too long")
        field.state = FastState.ASSIGNED
        seq.decoded = 1

    template = seq.elements[0]
    spmap = seq.pmap
    while seq.decoded <= seq.length.value:
        if field.pmap_required and not spmap.is_valid:
            start = buffer.start
            try:
                parsed = parse_pmap(buffer)
            except FastPartial:
                _rewind(buffer, start)
                raise
            spmap.data = parsed.data
            spmap.is_valid = True
            spmap.pmap_bit = -1

        target = seq.elements[seq.decoded]
        while template.decoded < len(template.fields):
            source = template.fields[template.decoded]
            decoder = _ELEMENT_DECODERS.get(source.type)
            if decoder is None:
                raise FastGarbled("nested sequences are not supported")
            start, bit = buffer.start, spmap.pmap_bit
            try:
                decoder(buffer, spmap, source)
            except FastPartial:
                _rewind(buffer, start)
                spmap.pmap_bit = bit
                raise
            _store_element(target.fields[template.decoded], source)
            template.decoded += 1

        spmap.is_valid = False
        template.decoded = 0
        seq.decoded += 1

    seq.decoded = 0


_ELEMENT_DECODERS = {
    FastType.INT: decode_int,
    FastType.UINT: decode_uint,
    FastType.STRING: decode_string,
    FastType.VECTOR: decode_vector,
    FastType.DECIMAL: decode_decimal,
}


def decode_field(buffer: Buffer, pmap: FastPmap, field: FastField) -> None:
    """Decode one field of any type.

    On FastPartial the input and the presence-map position are put back
    so that the same field can be decoded again once more input arrives.
    """
    if field.type is FastType.SEQUENCE:
        decode_sequence(buffer, pmap, field)
        return
    decoder = _ELEMENT_DECODERS.get(field.type)
    if decoder is None:
        raise FastGarbled(f"cannot decode a {field.type!r} field")
    start, bit = buffer.start, pmap.pmap_bit
    try:
        decoder(buffer, pmap, field)
    except FastPartial:
        _rewind(buffer, start)
        pmap.pmap_bit = bit
        raise