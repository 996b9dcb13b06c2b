"""
Reduced-precision codecs for float32 weights.

bfloat16 and IEEE float16 scalar codecs, plus 8-bit and 4-bit block
quantization with a shared float16 scale per block.
"""

__version__ = "0.1.0"

from .bits import to_bits, from_bits
from .dtypes import DataType, QK8_0, QK4_0
from .errors import PrecisionError, InvalidSizeError, AllocationFailureError, BlockReleasedError
from .quantizer import (
    QuantBlock, QuantBlock8, QuantBlock4,
    BlockQuantizer8, BlockQuantizer4,
    quantize_q8, quantize_q4, dequantize, destroy,
)
from .blocks import QuantizationConfig, QuantizedTensor, quantize_tensor, convert, restore
