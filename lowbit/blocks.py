"""
Tensor-level helpers on top of the scalar and block codecs.

Splits a weight tensor into fixed-size blocks (QK8_0 / QK4_0 elements by
default) and quantizes each one with its own scale.
"""

import numpy as np
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from . import bfloat16, float16
from .dtypes import DataType
from .quantizer import QuantBlock, quantize_q8, quantize_q4, _allocate


@dataclass
class QuantizationConfig:
    """Configuration for tensor quantization."""
    dtype: DataType = DataType.Q8
    block_size: Optional[int] = None

    def __post_init__(self):
        if isinstance(self.dtype, str):
            self.dtype = DataType.parse(self.dtype)
        if not self.dtype.is_quantized:
            raise ValueError(f"{self.dtype.value} is not a block-quantized type")
        if self.block_size is None:
            self.block_size = self.dtype.block_size
        if self.block_size <= 0:
            raise ValueError(f"block_size must be positive, got {self.block_size}")


@dataclass
class QuantizedTensor:
    """Quantized tensor: a list of blocks plus the original shape."""
    blocks: List[QuantBlock]
    shape: Tuple[int, ...]
    dtype: DataType
    block_size: int = field(default=0)

    @property
    def numel(self) -> int:
        return int(np.prod(self.shape))

    @property
    def nbytes(self) -> int:
        return sum(b.nbytes for b in self.blocks)

    @property
    def compression_ratio(self) -> float:
        return (self.numel * 4) / self.nbytes if self.nbytes > 0 else float('inf')

    def dequantize(self) -> np.ndarray:
        """Reconstruct float tensor from quantized representation."""
        out = _allocate(self.numel, np.float32)
        offset = 0
        for block in self.blocks:
            out[offset:offset + block.length] = block.dequantize()
            offset += block.length
        return out.reshape(self.shape)

    def release(self) -> None:
        """Destroy every block that still owns its buffer."""
        for block in self.blocks:
            if not block.released:
                block.destroy()


def quantize_tensor(
    weights: np.ndarray,
    config: Optional[QuantizationConfig] = None,
) -> QuantizedTensor:
    """
    Block quantization of a whole tensor.

    Args:
        weights: Float tensor to quantize (any shape, at least one element)
        config: Target type and block size (default Q8, 32 per block)

    Returns:
        QuantizedTensor holding one block per `block_size` elements;
        the last block may be shorter.
    """
    config = config or QuantizationConfig()
    weights = np.asarray(weights, dtype=np.float32)
    flat = weights.ravel()

    quantize = quantize_q8 if config.dtype is DataType.Q8 else quantize_q4
    n = config.block_size
    # An empty tensor still goes through quantize so it is rejected there
    blocks = []
    for start in range(0, max(flat.size, 1), n):
        chunk = flat[start:start + n]
        blocks.append(quantize(chunk, chunk.size))

    return QuantizedTensor(
        blocks=blocks,
        shape=weights.shape,
        dtype=config.dtype,
        block_size=n,
    )


def convert(values: np.ndarray, dtype: DataType) -> np.ndarray:
    """
    Encode each element with the scalar F16 or BF16 codec.

    Returns the bit patterns as a uint16 array of the input's shape.
    """
    dtype = DataType.parse(dtype) if isinstance(dtype, str) else dtype
    values = np.asarray(values, dtype=np.float32)
    if dtype is DataType.F16:
        encode = float16.encode
    elif dtype is DataType.BF16:
        encode = bfloat16.encode
    else:
        raise ValueError(f"convert() handles f16 and bf16, not {dtype.value}")

    out = np.empty(values.shape, dtype=np.uint16)
    for idx, v in np.ndenumerate(values):
        out[idx] = encode(v)
    return out


def restore(codes: np.ndarray, dtype: DataType) -> np.ndarray:
    """Decode uint16 F16/BF16 bit patterns back to float32."""
    dtype = DataType.parse(dtype) if isinstance(dtype, str) else dtype
    codes = np.asarray(codes, dtype=np.uint16)
    if dtype is DataType.F16:
        decode = float16.decode
    elif dtype is DataType.BF16:
        decode = bfloat16.decode
    else:
        raise ValueError(f"restore() handles f16 and bf16, not {dtype.value}")

    out = np.empty(codes.shape, dtype=np.float32)
    for idx, c in np.ndenumerate(codes):
        out[idx] = decode(int(c))
    return out
