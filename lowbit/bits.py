"""
Raw bit views of IEEE-754 binary32 values.

Reinterpretation goes through a size-checked numpy view, so the bit
pattern is carried over verbatim (NaN payloads included).
"""

import numpy as np


# ============================================================================
# Constants - binary32 field layout
# ============================================================================

F32_SIGN_MASK = 0x80000000
F32_EXP_MASK = 0x7F800000
F32_MANT_MASK = 0x007FFFFF
F32_ABS_MASK = 0x7FFFFFFF
F32_EXP_BIAS = 127
F32_MANT_BITS = 23

BITS32_MASK = 0xFFFFFFFF


def _transmute(value: np.ndarray, dtype) -> np.ndarray:
    """View a 0-d array as another dtype of identical width."""
    target = np.dtype(dtype)
    if value.dtype.itemsize != target.itemsize:
        raise TypeError(
            f"Cannot reinterpret {value.dtype} as {target}: width mismatch"
        )
    return value.view(target)


def to_bits(value) -> int:
    """Return the binary32 encoding of `value` as an unsigned int."""
    f32 = np.asarray(value, dtype=np.float32).reshape(())
    return int(_transmute(f32, np.uint32))


def from_bits(bits: int) -> np.float32:
    """Return the float32 whose binary32 encoding is `bits`."""
    u32 = np.asarray(int(bits) & BITS32_MASK, dtype=np.uint32).reshape(())
    return _transmute(u32, np.float32)[()]


def is_nan_bits(bits: int) -> bool:
    """True if `bits` encodes a NaN (exponent all ones, mantissa nonzero)."""
    return (bits & F32_ABS_MASK) > F32_EXP_MASK
