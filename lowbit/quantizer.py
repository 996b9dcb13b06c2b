"""
Block quantization of float32 arrays.

A block stores one shared float16 scale ("delta") and one small integer
code per element:

    Q8: signed int8 codes,   scale = max|v| / 127, v ~ code * delta
    Q4: unsigned nibbles,    scale = max|v| / 7,   v ~ (code - 8) * delta
"""

import logging
from dataclasses import dataclass, field
from typing import ClassVar, Optional, Sequence, Union

import numpy as np

from . import float16
from .errors import InvalidSizeError, AllocationFailureError, BlockReleasedError


logger = logging.getLogger(__name__)

ArrayLike = Union[np.ndarray, Sequence[float]]


# ============================================================================
# Blocks
# ============================================================================

@dataclass(eq=False)
class QuantBlock:
    """Quantized block that owns its code buffer until destroyed."""
    scale: int                   # float16 bit pattern
    length: int
    _codes: Optional[np.ndarray] = field(default=None, repr=False)

    bits: ClassVar[int] = 0
    code_dtype: ClassVar[type] = np.int8
    code_min: ClassVar[int] = 0
    code_max: ClassVar[int] = 0
    code_offset: ClassVar[int] = 0
    code_range: ClassVar[int] = 1  # largest magnitude code

    def __post_init__(self):
        if self._codes is None or len(self._codes) != self.length:
            raise InvalidSizeError(
                f"Block length {self.length} does not match its code buffer"
            )

    @property
    def released(self) -> bool:
        return self._codes is None

    @property
    def codes(self) -> np.ndarray:
        """Copy of the stored codes."""
        return self._buffer().copy()

    @property
    def delta(self) -> float:
        """Decoded float value of the shared scale."""
        return float(float16.decode(self.scale))

    @property
    def nbytes(self) -> int:
        """Storage size with codes packed at `bits` per element."""
        return 2 + (self.length * self.bits + 7) // 8

    @property
    def compression_ratio(self) -> float:
        return (self.length * 4) / self.nbytes

    def _buffer(self) -> np.ndarray:
        if self._codes is None:
            raise BlockReleasedError(f"{type(self).__name__} buffer already released")
        return self._codes

    def move(self) -> 'QuantBlock':
        """Transfer the buffer to a new block; this block is left released."""
        codes = self._buffer()
        self._codes = None
        return type(self)(scale=self.scale, length=self.length, _codes=codes)

    def dequantize(self) -> np.ndarray:
        """Reconstruct float32 values from the codes."""
        codes = self._buffer()
        out = _allocate(self.length, np.float32)
        delta = np.float32(float16.decode(self.scale))
        np.multiply(codes.astype(np.float32) - np.float32(self.code_offset), delta, out=out)
        return out

    def destroy(self) -> None:
        """Release the code buffer. Releasing twice is an error."""
        self._buffer()
        self._codes = None

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        if not self.released:
            self.destroy()
        return False


class QuantBlock8(QuantBlock):
    """Signed 8-bit codes."""
    bits = 8
    code_dtype = np.int8
    code_min = -128
    code_max = 127
    code_offset = 0
    code_range = 127


class QuantBlock4(QuantBlock):
    """4-bit codes (0..15, zero at 8), stored one per byte."""
    bits = 4
    code_dtype = np.uint8
    code_min = 0
    code_max = 15
    code_offset = 8
    code_range = 7


# ============================================================================
# Encode / decode
# ============================================================================

def _allocate(n: int, dtype) -> np.ndarray:
    try:
        return np.zeros(n, dtype=dtype)
    except MemoryError as e:
        raise AllocationFailureError(
            f"Could not allocate {n} elements of {np.dtype(dtype)}"
        ) from e


def _take(values: ArrayLike, size: int) -> np.ndarray:
    if size <= 0:
        raise InvalidSizeError(f"Block size must be at least 1, got {size}")
    flat = np.asarray(values, dtype=np.float32).ravel()
    if size > flat.size:
        raise InvalidSizeError(
            f"Block size {size} exceeds the {flat.size} values supplied"
        )
    return flat[:size]


def compute_scale(values: np.ndarray, code_range: int) -> int:
    """
    Shared float16 scale for a block: max(|values|) / code_range.

    Non-finite values are ignored. A scale beyond float16's range is
    saturated to the largest finite half so decoding stays finite.
    """
    finite = values[np.isfinite(values)]
    amax = np.float32(np.max(np.abs(finite))) if finite.size else np.float32(0.0)
    if amax == 0:
        return 0

    scale = float16.encode(amax / np.float32(code_range))
    if float16.is_inf(scale):
        logger.debug("Scale for max %g saturated to float16 max", amax)
        scale = float16.F16_MAX_FINITE
    return scale


def _quantize(block_cls, values: ArrayLike, size: int) -> QuantBlock:
    values = _take(values, size)
    scale = compute_scale(values, block_cls.code_range)
    codes = _allocate(size, block_cls.code_dtype)

    delta = float(float16.decode(scale))
    if delta == 0:
        if scale != 0:
            logger.debug("Scale underflowed float16; block stored as zeros")
        codes[:] = block_cls.code_offset
        return block_cls(scale=scale, length=size, _codes=codes)

    with np.errstate(invalid='ignore', over='ignore'):
        ratio = values.astype(np.float64) / delta
    ratio = np.nan_to_num(ratio, nan=0.0, posinf=block_cls.code_range, neginf=-block_cls.code_range)
    codes[:] = np.clip(
        np.round(ratio) + block_cls.code_offset,
        block_cls.code_min, block_cls.code_max
    ).astype(block_cls.code_dtype)

    return block_cls(scale=scale, length=size, _codes=codes)


def quantize_q8(values: ArrayLike, size: int) -> QuantBlock8:
    """Quantize the first `size` values into a signed 8-bit block."""
    return _quantize(QuantBlock8, values, size)


def quantize_q4(values: ArrayLike, size: int) -> QuantBlock4:
    """Quantize the first `size` values into a 4-bit block."""
    return _quantize(QuantBlock4, values, size)


def dequantize(block: QuantBlock) -> np.ndarray:
    return block.dequantize()


def destroy(block: QuantBlock) -> None:
    block.destroy()


class BlockQuantizer8:
    """8-bit block codec."""
    block_type = QuantBlock8

    def encode(self, values: ArrayLike, size: int) -> QuantBlock8:
        return quantize_q8(values, size)

    def decode(self, block: QuantBlock8) -> np.ndarray:
        return block.dequantize()

    def destroy(self, block: QuantBlock8) -> None:
        block.destroy()


class BlockQuantizer4:
    """4-bit block codec."""
    block_type = QuantBlock4

    def encode(self, values: ArrayLike, size: int) -> QuantBlock4:
        return quantize_q4(values, size)

    def decode(self, block: QuantBlock4) -> np.ndarray:
        return block.dequantize()

    def destroy(self, block: QuantBlock4) -> None:
        block.destroy()


# ============================================================================
# Nibble packing
# ============================================================================

def pack_nibbles(codes: np.ndarray) -> np.ndarray:
    """
    Pack 4-bit codes two per byte, first code in the low nibble.
    An odd trailing code is padded with zero.
    """
    codes = np.asarray(codes, dtype=np.uint8) & 0x0F
    if codes.size % 2:
        codes = np.concatenate([codes, np.zeros(1, dtype=np.uint8)])
    return (codes[0::2] | (codes[1::2] << 4)).astype(np.uint8)


def unpack_nibbles(packed: np.ndarray, n_codes: int) -> np.ndarray:
    """Inverse of pack_nibbles; returns `n_codes` codes."""
    packed = np.asarray(packed, dtype=np.uint8)
    codes = np.empty(packed.size * 2, dtype=np.uint8)
    codes[0::2] = packed & 0x0F
    codes[1::2] = packed >> 4
    return codes[:n_codes]


# ============================================================================
# Error metrics
# ============================================================================

def compute_sqnr(original: np.ndarray, reconstructed: np.ndarray) -> float:
    """
    Compute Signal-to-Quantization-Noise Ratio in dB.

    SQNR = 10 * log10(signal_power / noise_power)
    """
    original = np.asarray(original, dtype=np.float64)
    reconstructed = np.asarray(reconstructed, dtype=np.float64)
    signal_power = np.mean(original ** 2)
    noise_power = np.mean((original - reconstructed) ** 2)

    if noise_power == 0:
        return float('inf')

    return float(10 * np.log10(signal_power / noise_power))


def max_abs_error(original: np.ndarray, reconstructed: np.ndarray) -> float:
    original = np.asarray(original, dtype=np.float64)
    reconstructed = np.asarray(reconstructed, dtype=np.float64)
    return float(np.max(np.abs(original - reconstructed)))
