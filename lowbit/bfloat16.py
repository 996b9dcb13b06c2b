"""
bfloat16 ("brain float") codec.

bfloat16 keeps the sign and 8-bit exponent of binary32 and the top 7
mantissa bits, i.e. the upper half of a float32 bit pattern.
"""

import numpy as np

from .bits import to_bits, from_bits, is_nan_bits, F32_EXP_MASK


BF16_QUIET_BIT = 0x0040
BF16_SIGN_MASK = 0x8000
BF16_MASK = 0xFFFF


def encode(value) -> int:
    """
    Convert a float32 value to a bfloat16 bit pattern.

    Rounds to nearest even on the discarded 16 bits. NaN stays NaN
    (forced quiet), zero and subnormal inputs flush to signed zero.
    """
    bits = to_bits(value)

    if is_nan_bits(bits):
        return ((bits >> 16) | BF16_QUIET_BIT) & BF16_MASK

    if (bits & F32_EXP_MASK) == 0:
        return (bits >> 16) & BF16_SIGN_MASK

    # Carry may run into the exponent; for the largest finite values
    # that yields Inf, which is the correctly rounded result.
    low = bits & 0xFFFF
    round_up = low > 0x8000 or (low == 0x8000 and (bits & 0x10000) != 0)
    if round_up:
        bits += 0x10000
    return (bits >> 16) & BF16_MASK


def decode(value: int) -> np.float32:
    """Convert a bfloat16 bit pattern to float32 (exact)."""
    return from_bits((int(value) & BF16_MASK) << 16)
