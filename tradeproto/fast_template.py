"""Loading FAST message templates from their XML description."""

from __future__ import annotations

import re
import xml.etree.ElementTree as ET
from typing import Optional, Union
from os import PathLike

from tradeproto.fast_field import (
    FastDecimal,
    FastField,
    FastMessage,
    FastOp,
    FastPresence,
    FastSequence,
    FastType,
)

TEMPLATE_MAX_NUMBER = 128

_U64_MASK = 0xFFFFFFFFFFFFFFFF

_TYPES = {
    "int32": FastType.INT,
    "int64": FastType.INT,
    "uInt32": FastType.UINT,
    "uInt64": FastType.UINT,
    "length": FastType.UINT,
    "Length": FastType.UINT,
    "string": FastType.STRING,
    "String": FastType.STRING,
    "decimal": FastType.DECIMAL,
    "Decimal": FastType.DECIMAL,
    "sequence": FastType.SEQUENCE,
    "Sequence": FastType.SEQUENCE,
    "exponent": FastType.INT,
    "Exponent": FastType.INT,
    "mantissa": FastType.INT,
    "Mantissa": FastType.INT,
    "bytevector": FastType.VECTOR,
    "byteVector": FastType.VECTOR,
}

_OPS = {
    "copy": FastOp.COPY,
    "delta": FastOp.DELTA,
    "default": FastOp.DEFAULT,
    "constant": FastOp.CONSTANT,
    "increment": FastOp.INCR,
}

_NUMBER = re.compile(r"\s*[+-]?\d+")


class TemplateError(ValueError):
    """The template description is missing, malformed or unsupported."""


def _local(tag) -> str:
    return tag.rpartition("}")[2] if isinstance(tag, str) else ""


def _elements(node: ET.Element) -> list:
    return [child for child in node if isinstance(child.tag, str)]


def _number(text: Optional[str]) -> int:
    if text is None:
        return 0
    match = _NUMBER.match(text)
    return int(match.group()) if match else 0


def _hex_bytes(text: str) -> bytes:
    compact = "".join(char for char in text if char not in " \t")
    try:
        return bytes.fromhex(compact)
    except ValueError:
        raise TemplateError(f"invalid byte vector value {text!r}") from None


def _parse_op(node: Optional[ET.Element]) -> FastOp:
    if node is None:
        return FastOp.NONE
    name = _local(node.tag)
    try:
        return _OPS[name]
    except KeyError:
        raise TemplateError(f"unknown operator <{name}>") from None


def _parse_reset(node: Optional[ET.Element], kind: FastType):
    if node is None:
        return None
    text = node.get("value")
    if text is None:
        return None
    if kind is FastType.INT:
        return _number(text)
    if kind is FastType.UINT:
        return _number(text) & _U64_MASK
    if kind is FastType.STRING:
        return text
    return _hex_bytes(text)


def _parse_presence(node: ET.Element) -> FastPresence:
    text = node.get("presence")
    if text is None or text == "mandatory":
        return FastPresence.MANDATORY
    if text == "optional":
        return FastPresence.OPTIONAL
    raise TemplateError(f"unknown presence {text!r}")


def _needs_pmap(item: FastField) -> bool:
    if item.individual:
        return any(_needs_pmap(part) for part in item.value.fields)
    if item.op in (FastOp.COPY, FastOp.INCR, FastOp.DEFAULT):
        return True
    return item.op is FastOp.CONSTANT and not item.is_mandatory()


def _individual_decimal(children: list, common: dict) -> FastField:
    parts: dict = {"exponent": None, "mantissa": None}
    for child in children:
        name = _local(child.tag)
        if name not in parts:
            raise TemplateError(f"unexpected <{name}> inside a decimal")
        parts[name] = _field_from_node(child)
    exponent = parts["exponent"] or FastField(type=FastType.INT)
    mantissa = parts["mantissa"] or FastField(type=FastType.INT)
    exponent.presence = common["presence"]
    return FastField(
        individual=True,
        value=FastDecimal(fields=[exponent, mantissa]),
        **common,
    )


def _sequence(children: list, common: dict) -> FastField:
    if not children or _local(children[0].tag) != "length":
        raise TemplateError("a sequence must start with <length>")
    length = _field_from_node(children[0])
    if common["presence"] is FastPresence.OPTIONAL:
        length.presence = FastPresence.OPTIONAL
    fields = [_field_from_node(child) for child in children[1:]]
    sequence = FastSequence(length=length, template=FastMessage(fields=fields))
    return FastField(
        value=sequence,
        pmap_required=any(_needs_pmap(item) for item in fields),
        **common,
    )


def _field_from_node(node: ET.Element) -> FastField:
    tag = _local(node.tag)
    kind = _TYPES.get(tag)
    if kind is None:
        raise TemplateError(f"unknown field type <{tag}>")
    common = {
        "name": node.get("name", ""),
        "type": kind,
        "presence": _parse_presence(node),
        "id": _number(node.get("id")),
        "unicode": node.get("charset") == "unicode",
    }
    children = _elements(node)
    first = children[0] if children else None

    if kind is FastType.SEQUENCE:
        return _sequence(children, common)
    if kind is FastType.DECIMAL:
        if first is None or _local(first.tag) in _OPS:
            return FastField(op=_parse_op(first), **common)
        return _individual_decimal(children, common)
    return FastField(
        op=_parse_op(first),
        reset_value=_parse_reset(first, kind),
        **common,
    )


def _message_from_node(node: ET.Element) -> FastMessage:
    tag = _local(node.tag)
    if tag != "template":
        raise TemplateError(f"expected <template>, found <{tag}>")
    return FastMessage(
        tid=_number(node.get("id")),
        name=node.get("name", ""),
        fields=[_field_from_node(child) for child in _elements(node)],
        resets_session=node.get("reset") == "T",
    )


def _messages_from_root(root: ET.Element) -> list:
    if _local(root.tag) != "templates":
        raise TemplateError("the root element must be <templates>")
    children = _elements(root)
    if len(children) > TEMPLATE_MAX_NUMBER:
        raise TemplateError(
            f"{len(children)} templates exceed the limit of {TEMPLATE_MAX_NUMBER}"
        )
    return [_message_from_node(child) for child in children]


def parse_template_string(text: Union[str, bytes]) -> list:
    """Build the messages described by the XML ``text``."""
    try:
        root = ET.fromstring(text)
    except ET.ParseError as exc:
        raise TemplateError(f"malformed template XML: {exc}") from None
    return _messages_from_root(root)


def parse_template(path: Union[str, "PathLike[str]"]) -> list:
    """Build the messages described by the XML file at ``path``."""
    try:
        root = ET.parse(path).getroot()
    except (OSError, ET.ParseError) as exc:
        raise TemplateError(f"cannot load templates from {path}: {exc}") from None
    return _messages_from_root(root)