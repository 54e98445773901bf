"""Decimal formatting of integers for wire messages."""

from __future__ import annotations

_U32_MAX = 0xFFFFFFFF
_I32_MIN = -(1 << 31)
_I32_MAX = (1 << 31) - 1
_I64_MIN = -(1 << 63)
_I64_MAX = (1 << 63) - 1


def uitoa(n: int) -> str:
    """Format an unsigned 32-bit integer."""
    if not 0 <= n <= _U32_MAX:
        raise ValueError(f"{n} is not an unsigned 32-bit integer")
    return str(n)


def itoa(n: int) -> str:
    """Format a signed 32-bit integer."""
    if not _I32_MIN <= n <= _I32_MAX:
        raise ValueError(f"{n} is not a signed 32-bit integer")
    return ("-" + uitoa(-n)) if n < 0 else uitoa(n)


def i64toa(n: int) -> str:
    """Format a signed 64-bit integer."""
    if not _I64_MIN <= n <= _I64_MAX:
        raise ValueError(f"{n} is not a signed 64-bit integer")
    if n > _I32_MAX or n < _I32_MIN:
        return str(n)
    return itoa(n)


def checksumtoa(n: int) -> str:
    """Format a checksum: at least three digits, zero-padded."""
    if n < 0:
        raise ValueError("checksum cannot be negative")
    if n < 100:
        return "0" + f"{n:02d}"
    return uitoa(n)


def litoa10_zpad(value: int, zpad: int) -> str:
    """Format ``value`` zero-padded so that the text, sign included, is ``zpad`` long."""
    digits = str(abs(value))
    negative = value < 0
    padding = zpad - len(digits) - (1 if negative else 0)
    if padding > 0:
        digits = "0" * padding + digits
    return ("-" if negative else "") + digits