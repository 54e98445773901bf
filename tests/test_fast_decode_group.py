import pytest

from tradeproto.buffer import Buffer
from tradeproto.fast_decode_group import (
    decode_decimal,
    decode_field,
    decode_sequence,
    decode_vector,
)
from tradeproto.fast_encode import encode_decimal
from tradeproto.fast_field import (
    SEQUENCE_MAX_ELEMENTS,
    FastDecimal,
    FastField,
    FastGarbled,
    FastMessage,
    FastOp,
    FastPartial,
    FastPmap,
    FastPresence,
    FastSequence,
    FastState,
    FastType,
    transfer_int,
    transfer_string,
    transfer_uint,
)


def make_pmap(*bits):
    pmap = FastPmap()
    for bit in bits:
        pmap.set(bit)
    pmap.pmap_bit = 0
    return pmap


def make_sequence(fields, optional=False, pmap_required=False):
    length = FastField(name="NoEntries", type=FastType.UINT)
    presence = FastPresence.MANDATORY
    if optional:
        length.presence = FastPresence.OPTIONAL
        presence = FastPresence.OPTIONAL
    seq = FastSequence(length=length, template=FastMessage(fields=fields))
    return FastField(
        name="Entries", type=FastType.SEQUENCE, presence=presence,
        value=seq, pmap_required=pmap_required,
    )


@pytest.mark.parametrize("exp,mnt", [(-2, 12345), (0, 0), (3, -7), (-63, 1)])
def test_atomic_decimal_round_trip(exp, mnt):
    buf = Buffer(64)
    transfer_int(buf, exp)
    transfer_int(buf, mnt)
    field = FastField(type=FastType.DECIMAL)
    decode_decimal(buf, FastPmap(), field)
    assert (field.value.exp, field.value.mnt) == (exp, mnt)
    assert field.state is FastState.ASSIGNED


def test_optional_decimal_round_trip_with_encoder():
    buf = Buffer(64)
    out = FastField(
        type=FastType.DECIMAL, presence=FastPresence.OPTIONAL,
        value=FastDecimal(-4, 98765),
    )
    encode_decimal(buf, FastPmap(), out)
    field = FastField(type=FastType.DECIMAL, presence=FastPresence.OPTIONAL)
    decode_decimal(buf, FastPmap(), field)
    assert (field.value.exp, field.value.mnt) == (-4, 98765)


@pytest.mark.parametrize("exp", [64, -64])
def test_decimal_exponent_out_of_range(exp):
    buf = Buffer(64)
    transfer_int(buf, exp)
    transfer_int(buf, 1)
    with pytest.raises(FastGarbled):
        decode_decimal(buf, FastPmap(), FastField(type=FastType.DECIMAL))


def test_optional_decimal_null():
    buf = Buffer(8)
    buf.put(0x80)
    field = FastField(type=FastType.DECIMAL, presence=FastPresence.OPTIONAL)
    decode_decimal(buf, FastPmap(), field)
    assert field.state is FastState.EMPTY
    assert buf.size() == 0


def test_decimal_delta():
    buf = Buffer(64)
    transfer_int(buf, 1)
    transfer_int(buf, 5)
    field = FastField(type=FastType.DECIMAL, op=FastOp.DELTA, value=FastDecimal(-2, 100))
    decode_decimal(buf, FastPmap(), field)
    assert (field.value.exp, field.value.mnt) == (-2 + 1, 100 + 5)


def test_decimal_copy_absent_keeps_and_increment_is_garbled():
    field = FastField(
        type=FastType.DECIMAL, op=FastOp.COPY,
        value=FastDecimal(-1, 42), state=FastState.ASSIGNED,
    )
    decode_decimal(Buffer(8), make_pmap(), field)
    assert (field.value.exp, field.value.mnt) == (-1, 42)
    with pytest.raises(FastGarbled):
        decode_decimal(Buffer(8), make_pmap(1), FastField(type=FastType.DECIMAL, op=FastOp.INCR))


def test_individual_decimal():
    buf = Buffer(64)
    transfer_int(buf, -2)
    transfer_int(buf, 150)
    parts = [FastField(type=FastType.INT), FastField(type=FastType.INT)]
    field = FastField(type=FastType.DECIMAL, individual=True, value=FastDecimal(fields=parts))
    decode_decimal(buf, FastPmap(), field)
    assert (field.value.exp, field.value.mnt) == (-2, 150)
    assert field.state is FastState.ASSIGNED


def test_individual_decimal_exponent_out_of_range():
    buf = Buffer(64)
    transfer_int(buf, 70)
    transfer_int(buf, 1)
    parts = [FastField(type=FastType.INT), FastField(type=FastType.INT)]
    field = FastField(type=FastType.DECIMAL, individual=True, value=FastDecimal(fields=parts))
    with pytest.raises(FastGarbled):
        decode_decimal(buf, FastPmap(), field)


def test_vector_round_trip():
    payload = b"\x01\x00\xff"
    buf = Buffer(64)
    transfer_uint(buf, len(payload))
    buf.extend(payload)
    field = FastField(type=FastType.VECTOR)
    decode_vector(buf, FastPmap(), field)
    assert field.value == payload
    assert buf.size() == 0


def test_vector_optional_null_and_delta_garbled():
    buf = Buffer(8)
    buf.put(0x80)
    field = FastField(type=FastType.VECTOR, presence=FastPresence.OPTIONAL)
    decode_vector(buf, FastPmap(), field)
    assert field.state is FastState.EMPTY
    with pytest.raises(FastGarbled):
        decode_vector(Buffer(8), FastPmap(), FastField(type=FastType.VECTOR, op=FastOp.DELTA))


def _sequence_wire():
    buf = Buffer(128)
    transfer_uint(buf, 2)
    transfer_int(buf, 5)
    transfer_string(buf, "AB")
    transfer_int(buf, 6)
    transfer_string(buf, "CD")
    return buf.data()


def _price_symbol_sequence():
    return make_sequence([
        FastField(name="Px", type=FastType.INT),
        FastField(name="Sym", type=FastType.STRING),
    ])


def test_sequence_decodes_elements():
    field = _price_symbol_sequence()
    buf = Buffer(128)
    buf.extend(_sequence_wire())
    decode_sequence(buf, FastPmap(), field)
    seq = field.value
    assert seq.length.value == 2
    assert [f.value for f in seq.elements[1].fields] == [5, "AB"]
    assert [f.value for f in seq.elements[2].fields] == [6, "CD"]
    assert buf.size() == 0
    assert seq.decoded == 0


def test_sequence_resumes_after_partial():
    wire = _sequence_wire()
    field = _price_symbol_sequence()
    buf = Buffer(128)
    buf.extend(wire[:-1])
    with pytest.raises(FastPartial):
        decode_sequence(buf, FastPmap(), field)
    buf.extend(wire[-1:])
    decode_sequence(buf, FastPmap(), field)
    seq = field.value
    assert [f.value for f in seq.elements[1].fields] == [5, "AB"]
    assert [f.value for f in seq.elements[2].fields] == [6, "CD"]
    assert buf.size() == 0


def test_sequence_too_long_is_garbled():
    buf = Buffer(16)
    transfer_uint(buf, SEQUENCE_MAX_ELEMENTS)
    with pytest.raises(FastGarbled):
        decode_sequence(buf, FastPmap(), _price_symbol_sequence())


def test_optional_sequence_null():
    buf = Buffer(8)
    buf.put(0x80)
    field = make_sequence([FastField(name="Px", type=FastType.INT)], optional=True)
    decode_sequence(buf, FastPmap(), field)
    assert field.value.length.state is FastState.EMPTY
    assert field.state is FastState.EMPTY


def test_sequence_with_presence_maps_copies_previous_value():
    buf = Buffer(32)
    transfer_uint(buf, 2)
    buf.put(0xC0)
    transfer_int(buf, 11)
    buf.put(0x80)
    field = make_sequence(
        [FastField(name="Px", type=FastType.INT, op=FastOp.COPY)], pmap_required=True
    )
    decode_sequence(buf, FastPmap(), field)
    seq = field.value
    assert seq.elements[1].fields[0].value == 11
    assert seq.elements[2].fields[0].value == 11
    assert buf.size() == 0


def test_nested_sequence_is_garbled():
    inner = make_sequence([FastField(name="Px", type=FastType.INT)])
    outer = make_sequence([inner])
    buf = Buffer(16)
    transfer_uint(buf, 1)
    with pytest.raises(FastGarbled):
        decode_sequence(buf, FastPmap(), outer)


def test_decode_field_rolls_back_on_partial():
    buf = Buffer(8)
    buf.put(0x01)
    pmap = make_pmap(1)
    field = FastField(type=FastType.INT, op=FastOp.COPY)
    with pytest.raises(FastPartial):
        decode_field(buf, pmap, field)
    assert pmap.pmap_bit == 0
    assert buf.start == 0
    buf.put(0x82)
    decode_field(buf, pmap, field)
    assert field.state is FastState.ASSIGNED
    assert pmap.pmap_bit == 1


def test_decode_field_dispatches_by_type():
    buf = Buffer(64)
    transfer_string(buf, "XYZ")
    transfer_uint(buf, 77)
    text = FastField(type=FastType.STRING)
    number = FastField(type=FastType.UINT)
    pmap = FastPmap()
    decode_field(buf, pmap, text)
    decode_field(buf, pmap, number)
    assert text.value == "XYZ"
    assert number.value == 77