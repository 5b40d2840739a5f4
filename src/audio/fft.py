"""
src/audio/fft.py
=================
Iterative Radix-2 FFT — VoiceSentinel Audio Layer

Responsibility:
    - Compute the discrete Fourier transform of a power-of-two window
    - Use an in-place iterative Cooley–Tukey butterfly over a single
      pre-allocated complex buffer (no recursion, no array splitting)
    - Cache bit-reversal permutations and twiddle factors per window size

This module does NOT:
    - Window, pad or normalize the input
    - Interpret the spectrum (see features.py)
"""

from functools import lru_cache

import numpy as np


def is_power_of_two(n: int) -> bool:
    return n > 0 and (n & (n - 1)) == 0


def largest_power_of_two(n: int) -> int:
    """Largest power of two <= n (0 for n < 1)."""
    if n < 1:
        return 0
    return 1 << (int(n).bit_length() - 1)


@lru_cache(maxsize=16)
def _bit_reversal(n: int) -> np.ndarray:
    bits = n.bit_length() - 1
    indices = np.arange(n)
    reversed_indices = np.zeros(n, dtype=np.int64)
    for _ in range(bits):
        reversed_indices = (reversed_indices << 1) | (indices & 1)
        indices = indices >> 1
    reversed_indices.setflags(write=False)
    return reversed_indices


@lru_cache(maxsize=16)
def _twiddles(n: int) -> tuple:
    stages = []
    size = 2
    while size <= n:
        half = size // 2
        factors = np.exp(-2j * np.pi * np.arange(half) / size)
        factors.setflags(write=False)
        stages.append(factors)
        size *= 2
    return tuple(stages)


def fft_radix2(signal: np.ndarray) -> np.ndarray:
    """
    Transform a real or complex window whose length is a power of two.

    Args:
        signal: 1-D array, length a power of two.

    Returns:
        Complex spectrum of the same length.

    Raises:
        ValueError: If the length is not a power of two.
    """
    n = int(len(signal))
    if not is_power_of_two(n):
        raise ValueError(f"FFT window length must be a power of two, got {n}")

    buffer = np.asarray(signal, dtype=np.complex128)[_bit_reversal(n)]
    if n == 1:
        return buffer

    scratch = np.empty(n // 2, dtype=np.complex128)
    size = 2
    for factors in _twiddles(n):
        half = size // 2
        blocks = buffer.reshape(-1, size)
        lower = scratch[: n // 2].reshape(-1, half)
        np.multiply(blocks[:, half:], factors, out=lower)
        blocks[:, half:] = blocks[:, :half] - lower
        blocks[:, :half] += lower
        size *= 2

    return buffer
