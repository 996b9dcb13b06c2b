"""
IEEE-754 binary16 (half precision) codec.

Layout: 1 sign bit, 5 exponent bits (bias 15), 10 mantissa bits.
Encoding truncates the discarded mantissa bits; it does not round.
"""

import numpy as np

from .bits import to_bits, from_bits, F32_EXP_BIAS, F32_MANT_BITS


# ============================================================================
# Constants - binary16 field layout
# ============================================================================

F16_EXP_BIAS = 15
F16_MANT_BITS = 10
F16_EXP_MAX = 0x1F           # all ones: Inf / NaN
F16_EXP_MAX_FINITE = 30

F16_SIGN_MASK = 0x8000
F16_EXP_MASK = 0x7C00
F16_MANT_MASK = 0x03FF
F16_HIDDEN_BIT = 0x0400
F16_QUIET_BIT = 0x0200

F16_POS_INF = 0x7C00
F16_NEG_INF = 0xFC00
F16_MAX_FINITE = 0x7BFF      # 65504.0

_MANT_SHIFT = F32_MANT_BITS - F16_MANT_BITS  # 13
_REBIAS = F32_EXP_BIAS - F16_EXP_BIAS        # 112


def encode(value) -> int:
    """Convert a float32 value to a binary16 bit pattern."""
    f = to_bits(value)

    sign = (f >> 16) & F16_SIGN_MASK
    f32_exponent = (f >> F32_MANT_BITS) & 0xFF
    exponent = f32_exponent - _REBIAS
    mantissa = (f >> _MANT_SHIFT) & F16_MANT_MASK

    if exponent <= 0:
        if exponent < -10:
            # Below the smallest subnormal half
            return sign
        return sign | ((mantissa | F16_HIDDEN_BIT) >> (1 - exponent))

    if f32_exponent == 0xFF:
        if (f & 0x007FFFFF) == 0:
            return sign | F16_POS_INF
        # Keep the payload's top bits; a payload living only in the
        # discarded low bits still has to come out as NaN.
        return sign | F16_POS_INF | (mantissa or F16_QUIET_BIT)

    if exponent > F16_EXP_MAX_FINITE:
        return sign | F16_POS_INF

    return sign | (exponent << F16_MANT_BITS) | mantissa


def decode(value: int) -> np.float32:
    """Convert a binary16 bit pattern to float32 (exact)."""
    value = int(value) & 0xFFFF
    sign = (value >> 15) & 0x1
    exponent = (value >> F16_MANT_BITS) & F16_EXP_MAX
    mantissa = value & F16_MANT_MASK

    if exponent == 0:
        if mantissa == 0:
            f = sign << 31
        else:
            # Subnormal: shift until the hidden bit appears
            unbiased = 1 - F16_EXP_BIAS
            while (mantissa & F16_HIDDEN_BIT) == 0:
                mantissa <<= 1
                unbiased -= 1
            mantissa &= F16_MANT_MASK
            f = (sign << 31) | ((unbiased + F32_EXP_BIAS) << F32_MANT_BITS) | (mantissa << _MANT_SHIFT)
    elif exponent == F16_EXP_MAX:
        f = (sign << 31) | 0x7F800000 | (mantissa << _MANT_SHIFT)
    else:
        f = (sign << 31) | ((exponent + _REBIAS) << F32_MANT_BITS) | (mantissa << _MANT_SHIFT)

    return from_bits(f)


def is_nan(value: int) -> bool:
    return (value & F16_EXP_MASK) == F16_EXP_MASK and (value & F16_MANT_MASK) != 0


def is_inf(value: int) -> bool:
    return (value & 0x7FFF) == F16_POS_INF
