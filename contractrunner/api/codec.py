"""
Typed argument codec for contract calls.

Clients describe contract arguments as (index, format, value) triples where value
is always a string. This module turns those into the raw byte arguments a
contract receives, and turns raw contract storage and read results back into
client values.

Supported formats: byte, int8, uint64, int64, string, bigint, hex, dna. Any other
format name is treated as hex.
"""

import re
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Protocol

from contractrunner.core.errors import FormatError
from contractrunner.core.utils import convert_to_float, convert_to_int, from_hex, to_hex

_UNSIGNED = re.compile(r"[0-9]+")
_SIGNED = re.compile(r"[+-]?[0-9]+")

# Significant digits of the largest bounded value, 2 ** 64 - 1
_MAX_BOUNDED_DIGITS = 20
# Largest power of ten a dna amount may reach, so that its base units fit the
# amount precision
_MAX_DNA_EXPONENT = 60

UINT8_MAX = 2 ** 8 - 1
UINT64_MAX = 2 ** 64 - 1
INT8_RANGE = (-2 ** 7, 2 ** 7 - 1)
INT64_RANGE = (-2 ** 63, 2 ** 63 - 1)

FORMATS = ("byte", "int8", "uint64", "int64", "string", "bigint", "hex", "dna")


class TypedValue(Protocol):
    index: int
    format: str
    value: str


def _significant_digits(raw: str) -> int:
    return len(raw.lstrip("+-").lstrip("0"))


def _parse_unsigned(format_name: str, raw: str, maximum: int) -> int:
    if not _UNSIGNED.fullmatch(raw) or _significant_digits(raw) > _MAX_BOUNDED_DIGITS:
        raise FormatError(format_name, raw)
    value = int(Decimal(raw))
    if value > maximum:
        raise FormatError(format_name, raw)
    return value


def _parse_signed(format_name: str, raw: str, bounds: tuple[int, int]) -> int:
    if not _SIGNED.fullmatch(raw) or _significant_digits(raw) > _MAX_BOUNDED_DIGITS:
        raise FormatError(format_name, raw)
    value = int(Decimal(raw))
    if not bounds[0] <= value <= bounds[1]:
        raise FormatError(format_name, raw)
    return value


def _minimal_unsigned(value: int) -> bytes:
    return value.to_bytes(max(1, (value.bit_length() + 7) // 8), "big")


def _minimal_signed(value: int) -> bytes:
    magnitude_bits = (value if value >= 0 else ~value).bit_length()
    return value.to_bytes(magnitude_bits // 8 + 1, "big", signed=True)


def _magnitude(value: int) -> bytes:
    """Big-endian magnitude, empty for zero"""
    value = abs(value)
    return value.to_bytes((value.bit_length() + 7) // 8, "big")


def _hex(raw: str) -> bytes:
    try:
        return from_hex(raw)
    except ValueError:
        raise FormatError("hex", raw) from None


def dna_string(amount: int) -> str:
    """Render base units as a plain decimal DNA amount."""
    return format(convert_to_float(amount).normalize(), "f")


def encode(format_name: str, raw: str) -> bytes:
    """
    Encode a typed value into contract argument bytes.

    Args:
        format_name: Name of the value format
        raw: Value in its string form

    Returns:
        Encoded argument bytes

    Raises:
        FormatError: if raw is not a valid value of the format
    """
    if format_name == "byte":
        return bytes([_parse_unsigned(format_name, raw, UINT8_MAX)])
    if format_name == "int8":
        return _minimal_signed(_parse_signed(format_name, raw, INT8_RANGE))
    if format_name == "uint64":
        return _minimal_unsigned(_parse_unsigned(format_name, raw, UINT64_MAX))
    if format_name == "int64":
        return _minimal_signed(_parse_signed(format_name, raw, INT64_RANGE))
    if format_name == "string":
        return raw.encode("utf-8")
    if format_name == "bigint":
        if not _SIGNED.fullmatch(raw):
            raise FormatError(format_name, raw)
        # Decimal converts without the int/str digit limit
        return _magnitude(int(Decimal(raw)))
    if format_name == "dna":
        try:
            amount = Decimal(raw)
        except InvalidOperation:
            raise FormatError(format_name, raw) from None
        if not amount.is_finite() or amount.adjusted() > _MAX_DNA_EXPONENT:
            raise FormatError(format_name, raw)
        return _magnitude(convert_to_int(amount))
    return _hex(raw)


def decode(format_name: str, data: bytes) -> Any:
    """
    Decode contract bytes into a client value.

    Raises:
        FormatError: if data is too short or malformed for the format
    """
    if format_name in ("byte", "int8", "uint64", "int64") and not data:
        raise FormatError(format_name, to_hex(data))

    if format_name == "byte":
        return data[0]
    if format_name == "int8":
        return int.from_bytes(data[:1], "big", signed=True)
    if format_name == "uint64":
        return int.from_bytes(data[:8], "big")
    if format_name == "int64":
        return int.from_bytes(data[:8], "big", signed=True)
    if format_name == "string":
        try:
            return data.decode("utf-8")
        except UnicodeDecodeError:
            raise FormatError(format_name, to_hex(data)) from None
    if format_name == "bigint":
        return str(Decimal(int.from_bytes(data, "big")))
    if format_name == "dna":
        return dna_string(int.from_bytes(data, "big"))
    return to_hex(data)


def to_slice(args: Iterable[TypedValue] | None) -> list[bytes | None]:
    """
    Build the positional argument vector from typed values.

    The vector is as long as the highest index plus one. Indices nobody set stay
    None, and for repeated indices the last value wins. Values are encoded in
    ascending index order and the first encoding error is raised.
    """
    by_index: dict[int, TypedValue] = {}
    for arg in args or []:
        by_index[arg.index] = arg

    max_index = max(by_index, default=-1)
    vector: list[bytes | None] = []
    for i in range(max_index + 1):
        arg = by_index.get(i)
        vector.append(encode(arg.format, arg.value) if arg is not None else None)
    return vector
