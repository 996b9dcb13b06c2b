"""
Storage data types handled by lowbit.
"""

from enum import Enum


QK8_0 = 32  # elements per 8-bit block
QK4_0 = 16  # elements per 4-bit block

SCALE_NBYTES = 2  # float16 scale stored with every block


class DataType(Enum):
    F32 = "f32"
    F16 = "f16"
    BF16 = "bf16"
    Q8 = "q8_0"
    Q4 = "q4_0"

    @property
    def block_size(self) -> int:
        """Elements covered by one stored block."""
        return {
            DataType.Q8: QK8_0,
            DataType.Q4: QK4_0,
        }.get(self, 1)

    @property
    def block_nbytes(self) -> int:
        """Bytes needed to store one block (4-bit codes packed two per byte)."""
        return {
            DataType.F32: 4,
            DataType.F16: 2,
            DataType.BF16: 2,
            DataType.Q8: SCALE_NBYTES + QK8_0,
            DataType.Q4: SCALE_NBYTES + QK4_0 // 2,
        }[self]

    @property
    def bits_per_element(self) -> float:
        return self.block_nbytes * 8 / self.block_size

    @property
    def is_quantized(self) -> bool:
        return self in (DataType.Q8, DataType.Q4)

    @classmethod
    def parse(cls, name: str) -> 'DataType':
        """Look up a type by name: 'f16', 'BF16', 'q8', 'q8_0', ..."""
        key = name.strip().lower()
        aliases = {
            "float32": "f32", "fp32": "f32",
            "float16": "f16", "fp16": "f16", "half": "f16",
            "bfloat16": "bf16",
            "q8": "q8_0", "int8": "q8_0",
            "q4": "q4_0", "int4": "q4_0",
        }
        key = aliases.get(key, key)
        for dtype in cls:
            if dtype.value == key:
                return dtype
        raise ValueError(f"Unknown data type '{name}' (expected one of {[d.value for d in cls]})")
