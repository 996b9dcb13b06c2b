#!/usr/bin/env python3
"""
Precision Validation
====================
Round-trips synthetic weights through every reduced-precision format and
reports reconstruction error against the float32 original.

Measures:
1. Max absolute error
2. SQNR (dB)
3. Storage ratio vs float32
"""

import sys
from pathlib import Path
import time
import numpy as np

sys.path.insert(0, str(Path(__file__).parent))

from lowbit.blocks import QuantizationConfig, quantize_tensor, convert, restore
from lowbit.dtypes import DataType
from lowbit.quantizer import compute_sqnr, max_abs_error


def generate_weights(n_elements: int, distribution: str = 'gaussian', seed: int = 42) -> np.ndarray:
    """Synthetic weights shaped like typical LLM layers."""
    np.random.seed(seed)

    if distribution == 'gaussian':
        return np.random.randn(n_elements).astype(np.float32) * 0.02
    elif distribution == 'laplacian':
        return np.random.laplace(0, 0.01, n_elements).astype(np.float32)
    elif distribution == 'uniform':
        return np.random.uniform(-0.1, 0.1, n_elements).astype(np.float32)
    else:
        raise ValueError(f"Unknown distribution: {distribution}")


def validate_format(weights: np.ndarray, dtype: DataType) -> dict:
    """Encode and decode `weights` in one format."""
    t0 = time.perf_counter()
    if dtype.is_quantized:
        qt = quantize_tensor(weights, QuantizationConfig(dtype=dtype))
        reconstructed = qt.dequantize()
        ratio = qt.compression_ratio
        qt.release()
    else:
        reconstructed = restore(convert(weights, dtype), dtype)
        ratio = 32 / dtype.bits_per_element
    elapsed = time.perf_counter() - t0

    return {
        'dtype': dtype.value,
        'max_abs_error': max_abs_error(weights, reconstructed),
        'sqnr_db': compute_sqnr(weights, reconstructed),
        'compression_ratio': ratio,
        'time_ms': elapsed * 1000,
    }


def run_validation(n_elements: int, distribution: str, seed: int) -> list:
    weights = generate_weights(n_elements, distribution, seed)

    print("=" * 70)
    print(f" Precision Validation ({n_elements:,} {distribution} weights)")
    print("=" * 70)
    print(f"{'Format':<8} {'Max error':>12} {'SQNR':>10} {'Ratio':>8} {'Time':>12}")
    print("-" * 70)

    results = []
    for dtype in (DataType.BF16, DataType.F16, DataType.Q8, DataType.Q4):
        r = validate_format(weights, dtype)
        results.append(r)
        print(f"{r['dtype']:<8} {r['max_abs_error']:>12.3e} "
              f"{r['sqnr_db']:>8.1f}dB "
              f"{r['compression_ratio']:>7.2f}x "
              f"{r['time_ms']:>9.1f} ms")

    return results


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Validate reduced-precision codecs")
    parser.add_argument("--size", type=int, default=4096,
                        help="Number of weights")
    parser.add_argument("--seed", type=int, default=42,
                        help="Random seed")
    parser.add_argument("--distribution", choices=['gaussian', 'laplacian', 'uniform'],
                        default='gaussian', help="Weight distribution")

    args = parser.parse_args()

    run_validation(args.size, args.distribution, args.seed)
