#!/usr/bin/env python3
"""
Unit tests for 8-bit and 4-bit block quantization.
"""

import sys
from pathlib import Path
from unittest import mock
import numpy as np
import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from lowbit import float16
from lowbit import quantizer
from lowbit.errors import InvalidSizeError, AllocationFailureError, BlockReleasedError
from lowbit.quantizer import (
    QuantBlock8, QuantBlock4, BlockQuantizer8, BlockQuantizer4,
    quantize_q8, quantize_q4, dequantize, destroy,
    pack_nibbles, unpack_nibbles, compute_sqnr, max_abs_error,
)


def _within_half_step(values, decoded, delta):
    # float32 multiply in dequantize adds a relative error far below 1e-4
    return np.all(np.abs(decoded - values) <= 0.5 * delta * (1 + 1e-4))


def test_end_to_end_q8():
    """Test the reference four-element block."""
    values = np.array([1.0, -1.0, 0.5, -0.5], dtype=np.float32)
    block = quantize_q8(values, 4)

    assert isinstance(block, QuantBlock8)
    assert block.length == 4
    assert block.scale == float16.encode(np.float32(1.0) / np.float32(127))
    assert abs(block.delta - 1.0 / 127) <= (1.0 / 127) * 2.0 ** -10

    decoded = dequantize(block)
    assert decoded.dtype == np.float32
    assert len(decoded) == 4
    assert _within_half_step(values, decoded, block.delta)
    assert block.codes.tolist() == [127, -127, 64, -64]

    destroy(block)
    print("✓ End-to-end Q8")


def test_error_bound_gaussian():
    """Test per-element error stays within half a quantization step."""
    np.random.seed(42)
    weights = np.random.randn(256).astype(np.float32) * 0.02

    for quantize in (quantize_q8, quantize_q4):
        block = quantize(weights, len(weights))
        decoded = block.dequantize()
        assert _within_half_step(weights, decoded, block.delta), quantize.__name__
        block.destroy()

    print("✓ Error bound (Gaussian weights)")


def test_q4_codes():
    """Test 4-bit codes stay in nibble range with zero at 8."""
    values = np.array([-1.0, -0.5, 0.0, 0.5, 1.0], dtype=np.float32)
    block = quantize_q4(values, 5)

    assert isinstance(block, QuantBlock4)
    codes = block.codes
    assert codes.dtype == np.uint8
    assert codes.min() >= 0 and codes.max() <= 15
    assert codes[2] == 8
    assert codes[0] == 1 and codes[4] == 15
    assert block.scale == float16.encode(np.float32(1.0) / np.float32(7))
    assert _within_half_step(values, block.dequantize(), block.delta)

    print("✓ Q4 codes")


def test_zero_block():
    """Test an all-zero block stores a zero scale and decodes to zeros."""
    block = quantize_q8([0.0, 0.0, 0.0], 3)
    assert block.scale == 0
    assert block.codes.tolist() == [0, 0, 0]
    assert block.dequantize().tolist() == [0.0, 0.0, 0.0]

    block4 = quantize_q4([0.0, -0.0], 2)
    assert block4.scale == 0
    assert block4.dequantize().tolist() == [0.0, 0.0]

    print("✓ Zero block")


def test_invalid_size():
    """Test zero-length and oversized requests are rejected."""
    with pytest.raises(InvalidSizeError):
        quantize_q8([], 0)
    with pytest.raises(InvalidSizeError):
        quantize_q4([], 0)
    with pytest.raises(InvalidSizeError):
        quantize_q8([1.0, 2.0], 3)
    with pytest.raises(ValueError):
        quantize_q8([1.0], -1)

    print("✓ Invalid size")


def test_size_uses_prefix():
    """Test only the first `size` values are quantized."""
    block = quantize_q8([1.0, 0.5, 100.0], 2)
    assert block.length == 2
    assert block.scale == float16.encode(np.float32(1.0) / np.float32(127))

    print("✓ Size prefix")


def test_allocation_failure():
    """Test a failed buffer allocation surfaces as AllocationFailureError."""
    with mock.patch.object(quantizer.np, "zeros", side_effect=MemoryError):
        with pytest.raises(AllocationFailureError):
            quantize_q8([1.0, 2.0], 2)

    block = quantize_q8([1.0, 2.0], 2)
    with mock.patch.object(quantizer.np, "zeros", side_effect=MemoryError):
        with pytest.raises(MemoryError):
            block.dequantize()

    print("✓ Allocation failure")


def test_destroy_once():
    """Test a block is released exactly once."""
    block = quantize_q8([1.0, 2.0, 3.0], 3)
    assert not block.released

    block.destroy()
    assert block.released

    with pytest.raises(BlockReleasedError):
        block.destroy()
    with pytest.raises(BlockReleasedError):
        block.dequantize()
    with pytest.raises(BlockReleasedError):
        block.codes

    print("✓ Destroy once")


def test_context_manager_and_move():
    """Test scoped release and ownership transfer."""
    with quantize_q4([0.25, -0.75], 2) as block:
        expected = block.dequantize()
    assert block.released

    first = quantize_q8([0.25, -0.75], 2)
    second = first.move()
    assert first.released
    assert not second.released
    assert np.array_equal(second.dequantize(), quantize_q8([0.25, -0.75], 2).dequantize())
    with pytest.raises(BlockReleasedError):
        first.move()

    assert len(expected) == 2
    print("✓ Context manager and move")


def test_codes_are_copies():
    """Test callers cannot alias the block's buffer through `codes`."""
    block = quantize_q8([1.0, -1.0], 2)
    codes = block.codes
    codes[:] = 0
    assert block.codes.tolist() == [127, -127]

    print("✓ Codes are copies")


def test_non_finite_inputs():
    """Test NaN and infinities do not poison the scale."""
    block = quantize_q8([1.0, float('nan'), -1.0], 3)
    assert block.scale == float16.encode(np.float32(1.0) / np.float32(127))
    assert block.codes.tolist() == [127, 0, -127]

    block = quantize_q8([float('inf'), 0.5, float('-inf')], 3)
    assert block.codes.tolist() == [127, 127, -127]

    print("✓ Non-finite inputs")


def test_scale_limits():
    """Test scale saturation and underflow."""
    big = quantize_q8([1.0e9, -1.0e9], 2)
    assert big.scale == float16.F16_MAX_FINITE
    assert np.all(np.isfinite(big.dequantize()))

    tiny = quantize_q8([1.0e-9], 1)
    assert tiny.scale == 0
    assert tiny.dequantize().tolist() == [0.0]

    print("✓ Scale limits")


def test_block_quantizer_classes():
    """Test the codec objects."""
    values = np.linspace(-1, 1, 32, dtype=np.float32)
    for codec in (BlockQuantizer8(), BlockQuantizer4()):
        block = codec.encode(values, 32)
        assert isinstance(block, codec.block_type)
        decoded = codec.decode(block)
        assert _within_half_step(values, decoded, block.delta)
        codec.destroy(block)
        assert block.released

    print("✓ BlockQuantizer classes")


def test_storage_size():
    """Test packed storage sizes."""
    values = np.ones(32, dtype=np.float32)
    assert quantize_q8(values, 32).nbytes == 34
    assert quantize_q4(values, 16).nbytes == 10
    assert quantize_q4(values, 5).nbytes == 5
    assert quantize_q8(values, 32).compression_ratio == 128 / 34

    print("✓ Storage size")


def test_nibble_packing():
    """Test two-codes-per-byte packing."""
    packed = pack_nibbles(np.array([1, 2, 3], dtype=np.uint8))
    assert packed.tolist() == [0x21, 0x03]
    assert unpack_nibbles(packed, 3).tolist() == [1, 2, 3]

    block = quantize_q4(np.random.randn(16).astype(np.float32), 16)
    packed = pack_nibbles(block.codes)
    assert len(packed) == 8
    assert np.array_equal(unpack_nibbles(packed, 16), block.codes)

    print("✓ Nibble packing")


def test_error_metrics():
    """Test SQNR and max error helpers."""
    x = np.array([1.0, -2.0, 3.0])
    assert compute_sqnr(x, x) == float('inf')
    assert max_abs_error(x, x + [0.0, 0.5, -0.25]) == 0.5

    np.random.seed(0)
    weights = np.random.randn(1024).astype(np.float32)
    q8 = quantize_q8(weights, 1024)
    q4 = quantize_q4(weights, 1024)
    assert compute_sqnr(weights, q8.dequantize()) > compute_sqnr(weights, q4.dequantize())

    print("✓ Error metrics")


def run_all_tests():
    """Run all tests."""
    print("=" * 60)
    print(" Block Quantizer Tests")
    print("=" * 60)

    test_end_to_end_q8()
    test_error_bound_gaussian()
    test_q4_codes()
    test_zero_block()
    test_invalid_size()
    test_size_uses_prefix()
    test_allocation_failure()
    test_destroy_once()
    test_context_manager_and_move()
    test_codes_are_copies()
    test_non_finite_inputs()
    test_scale_limits()
    test_block_quantizer_classes()
    test_storage_size()
    test_nibble_packing()
    test_error_metrics()

    print("\n" + "=" * 60)
    print(" All tests passed!")
    print("=" * 60)


if __name__ == "__main__":
    run_all_tests()
