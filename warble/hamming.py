"""
Hamming(12,8) single error correcting code for Warble words.
"""

from enum import Enum
from typing import NamedTuple


class CorrectResultCode(Enum):
    """Outcome of decoding one 12-bit code word."""

    OK = 0
    CORRECTED_ERROR = 1
    FAIL_CORRECTION = 2


class CorrectResult(NamedTuple):
    """Decoded byte with the outcome of the correction."""

    value: int
    result: CorrectResultCode


# Positions are 1-based, position 1 is the least significant bit of the code.
# Parity bits sit on powers of two, data bits (LSB first) fill the rest.
PARITY_POSITIONS = (1, 2, 4, 8)
DATA_POSITIONS = (3, 5, 6, 7, 9, 10, 11, 12)
CODE_BITS = 12


def _syndrome(code: int) -> int:
    """XOR of the positions of every set bit; 0 for a valid code word."""
    syndrome = 0
    for position in range(1, CODE_BITS + 1):
        if (code >> (position - 1)) & 1:
            syndrome ^= position
    return syndrome


def _extract(code: int) -> int:
    value = 0
    for bit, position in enumerate(DATA_POSITIONS):
        if (code >> (position - 1)) & 1:
            value |= 1 << bit
    return value


def encode(value: int) -> int:
    """
    Encode one byte.

    Args:
        value: Byte to encode (0 to 255)

    Returns:
        12-bit code word
    """
    if not 0 <= value <= 0xFF:
        raise ValueError("value must be an unsigned byte")

    code = 0
    for bit, position in enumerate(DATA_POSITIONS):
        if (value >> bit) & 1:
            code |= 1 << (position - 1)

    # Each parity bit makes its syndrome bit even
    syndrome = _syndrome(code)
    for position in PARITY_POSITIONS:
        if syndrome & position:
            code |= 1 << (position - 1)

    return code


def decode(code: int) -> CorrectResult:
    """
    Decode a 12-bit code word, correcting at most one flipped bit.

    Args:
        code: 12-bit code word

    Returns:
        CorrectResult. On FAIL_CORRECTION the value holds the raw data bits.
    """
    code &= (1 << CODE_BITS) - 1
    syndrome = _syndrome(code)

    if syndrome == 0:
        return CorrectResult(_extract(code), CorrectResultCode.OK)

    if syndrome > CODE_BITS:
        return CorrectResult(_extract(code), CorrectResultCode.FAIL_CORRECTION)

    corrected = code ^ (1 << (syndrome - 1))
    return CorrectResult(_extract(corrected), CorrectResultCode.CORRECTED_ERROR)
