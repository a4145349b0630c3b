"""Canonical serial number keys.

Serials are compared by numeric value. Different encoders emit the same
serial with different case and leading zeros, so both sides of every
comparison go through an arbitrary precision ``int``.
"""

import string

_HEX_DIGITS = frozenset(string.hexdigits)


class SerialParseError(ValueError):
    """Raised when a serial number string is not valid hexadecimal."""


def serial_key(value: int) -> str:
    """Return the canonical key for an already decoded integer serial."""
    if value < 0:
        # Negative serials are invalid per RFC 5280 but do occur; keep them distinct.
        return "-" + format(-value, "x")
    return format(value, "x")


def normalize_serial(value: str) -> str:
    """
    Normalize a hexadecimal serial string into its canonical key.

    Args:
        value: Hex digits, optionally prefixed with ``0x`` and surrounded by whitespace

    Returns:
        Lowercase hex without leading zeros (``"0"`` for zero)

    Raises:
        SerialParseError: If the string is empty or contains non-hex characters
    """
    text = value.strip()
    if text[:2].lower() == "0x":
        text = text[2:]
    if not text or not _HEX_DIGITS.issuperset(text):
        raise SerialParseError(f"not a hexadecimal serial number: {value!r}")
    return serial_key(int(text, 16))
