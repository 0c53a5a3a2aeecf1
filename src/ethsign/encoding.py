"""Hex and big-integer codecs.

All public output of this package goes through `normalize_hex`, which
guarantees a `0x` prefix, lowercase digits and an even number of digits.
Backends, on the other hand, often want the prefix stripped; use
`to_even_hex` / `strip_prefix` for those.
"""

import re
from decimal import Decimal
from typing import Union

from eth_utils import is_address, to_checksum_address

from ethsign.errors import InvalidEncoding

HEX_PREFIX = "0x"

_HEX_DIGITS = re.compile(r"^[0-9a-fA-F]*$")
_DECIMAL_DIGITS = re.compile(r"^[0-9]+$")

HexLike = Union[int, bytes, bytearray, str]


def _has_prefix(value: str) -> bool:
    return value[:2] in ("0x", "0X")


def _check_hex(digits: str) -> str:
    if not _HEX_DIGITS.match(digits):
        raise InvalidEncoding(f"Not a hex sequence: {digits!r}")
    return digits


def strip_prefix(value: str) -> str:
    """Remove the `0x` prefix from a hex string (no-op if absent)."""
    if not isinstance(value, str):
        raise InvalidEncoding(f"Expected a hex string, got {type(value).__name__}")
    digits = value[2:] if _has_prefix(value) else value
    return _check_hex(digits)


def with_prefix(value: str) -> str:
    """Add the `0x` prefix to a hex string (no-op if present)."""
    return HEX_PREFIX + strip_prefix(value)


def to_even_hex(value: HexLike) -> str:
    """Encode an integer, byte sequence or hex string as even-length hex.

    The result has no prefix and is lowercase. Odd-length input gets a
    leading zero nibble, so `"3"` becomes `"03"` and `"12c"` becomes
    `"012c"`. Feeding the output back in returns it unchanged.

    Raises:
        InvalidEncoding: On negative integers or non-hex characters
    """
    if isinstance(value, bool):
        raise InvalidEncoding("Booleans cannot be hex encoded")
    if isinstance(value, int):
        if value < 0:
            raise InvalidEncoding(f"Negative integers cannot be hex encoded: {value}")
        digits = format(value, "x")
    elif isinstance(value, (bytes, bytearray)):
        digits = bytes(value).hex()
    elif isinstance(value, str):
        digits = strip_prefix(value).lower()
    else:
        raise InvalidEncoding(f"Cannot hex encode {type(value).__name__}")

    if len(digits) % 2:
        digits = "0" + digits
    return digits


def normalize_hex(value: HexLike) -> str:
    """Canonical public form: `0x` prefixed, lowercase, even length."""
    return HEX_PREFIX + to_even_hex(value)


def hex_to_bytes(value: HexLike) -> bytes:
    """Decode a hex string (prefixed or not) or pass bytes through."""
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    return bytes.fromhex(to_even_hex(value))


def to_big_int(value: Union[int, str, bytes, bytearray, Decimal]) -> int:
    """Convert a numeric-like value to a Python integer.

    Accepts ints, integral Decimals, `0x` hex strings, decimal strings and
    big-endian byte sequences. Floats are refused because they cannot
    carry wei amounts without precision loss.

    Raises:
        InvalidEncoding: If the value is not an unambiguous non-negative integer
    """
    if isinstance(value, bool) or isinstance(value, float):
        raise InvalidEncoding(f"Unsupported numeric type: {type(value).__name__}")

    if isinstance(value, int):
        result = value
    elif isinstance(value, Decimal):
        if value != value.to_integral_value():
            raise InvalidEncoding(f"Not an integral value: {value}")
        result = int(value)
    elif isinstance(value, (bytes, bytearray)):
        result = int.from_bytes(bytes(value), "big") if value else 0
    elif isinstance(value, str):
        text = value.strip()
        if _has_prefix(text):
            digits = strip_prefix(text)
            result = int(digits, 16) if digits else 0
        elif _DECIMAL_DIGITS.match(text):
            result = int(text, 10)
        else:
            raise InvalidEncoding(f"Not a numeric string: {value!r}")
    else:
        raise InvalidEncoding(f"Unsupported numeric type: {type(value).__name__}")

    if result < 0:
        raise InvalidEncoding(f"Negative values are not allowed: {result}")
    return result


def parse_hex_component(value: Union[int, str]) -> int:
    """Decode a signature component returned by a backend.

    Backends hand back `r`, `s` and `v` either as integers or as hex
    strings, prefixed or not. Unprefixed strings are always hex here.
    """
    if isinstance(value, bool):
        raise InvalidEncoding("Booleans are not signature components")
    if isinstance(value, int):
        if value < 0:
            raise InvalidEncoding(f"Negative signature component: {value}")
        return value
    digits = strip_prefix(value)
    if not digits:
        raise InvalidEncoding("Empty signature component")
    return int(digits, 16)


def normalize_address(address: str, prefix: bool = True) -> str:
    """Checksum an address, optionally stripping the `0x` prefix.

    Raises:
        InvalidEncoding: If the value is not a 20 byte hex address
    """
    if not isinstance(address, str) or not is_address(with_prefix(address)):
        raise InvalidEncoding(f"Not a valid address: {address!r}")
    checksummed = to_checksum_address(with_prefix(address))
    return checksummed if prefix else strip_prefix(checksummed)
