"""
Radix-2 Fast Fourier Transform

Iterative Cooley-Tukey transform used for cepstral analysis.

Technical assumptions:
- Transform size is fixed per instance and must be a power of two
- Twiddle factors are precomputed once: exp(-i*pi*k/N) for k in [0, N)
- All arithmetic is float64 / complex128
- Inputs are never modified, results are new arrays
"""

from typing import Optional, Tuple

import numpy as np


def is_power_of_two(n: int) -> bool:
    """True for 1, 2, 4, 8, ..."""
    return n >= 1 and (n & (n - 1)) == 0


def next_power_of_two(n: int) -> int:
    """Smallest power of two >= n (at least 1)."""
    if n <= 1:
        return 1
    return 1 << (int(n) - 1).bit_length()


class FFT:
    """
    Forward/inverse discrete Fourier transform of fixed size.

    Usage:
        fft = FFT(1024)
        re, im = fft.forward(signal)
        restored, _ = fft.inverse(re, im)

    A new instance is needed for every transform size because the
    twiddle table and bit-reversal permutation are built at construction.
    """

    def __init__(self, size: int):
        if not is_power_of_two(int(size)):
            raise ValueError(f"FFT size must be a power of two, got: {size}")

        self.size = int(size)
        self.bits = self.size.bit_length() - 1

        angles = -np.pi * np.arange(self.size) / self.size
        self._table = np.cos(angles) + 1j * np.sin(angles)
        self._bit_reversed = self._make_bit_reversal(self.size, self.bits)

    @staticmethod
    def _make_bit_reversal(size: int, bits: int) -> np.ndarray:
        indices = np.arange(size)
        reversed_indices = np.zeros(size, dtype=np.int64)
        for _ in range(bits):
            reversed_indices = (reversed_indices << 1) | (indices & 1)
            indices = indices >> 1
        return reversed_indices

    def _check_length(self, data: np.ndarray, name: str) -> None:
        if data.ndim != 1 or data.shape[0] != self.size:
            raise ValueError(
                f"{name} must be 1D with {self.size} samples, got shape {data.shape}"
            )

    def _transform(self, data: np.ndarray) -> np.ndarray:
        """Bit-reversal copy followed by in-place butterflies."""
        n = self.size
        # out[rev(i)] = x[i]; rev is an involution so indexing works both ways
        out = np.asarray(data, dtype=np.complex128)[self._bit_reversed]

        m = 2
        while m <= n:
            half = m // 2
            # exp(-2*pi*i*j/m) == table[j * 2n/m]
            twiddle = self._table[np.arange(half) * (2 * n // m)]
            blocks = out.reshape(-1, m)
            upper = blocks[:, :half].copy()
            lower = blocks[:, half:] * twiddle
            blocks[:, :half] = upper + lower
            blocks[:, half:] = upper - lower
            m *= 2

        return out

    def forward(self, real: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """
        Transform a real-valued signal.

        Args:
            real: Input samples, length == size

        Returns:
            Tuple of (real part, imaginary part)
        """
        real = np.asarray(real, dtype=np.float64)
        self._check_length(real, "Input")

        spectrum = self._transform(real)
        return spectrum.real.copy(), spectrum.imag.copy()

    def inverse(
        self,
        re: np.ndarray,
        im: Optional[np.ndarray] = None,
    ) -> Tuple[np.ndarray, np.ndarray]:
        """
        Inverse transform.

        Forward-transforms the conjugated input, then conjugates and
        scales the result by 1/N.

        Args:
            re: Real part of the spectrum
            im: Imaginary part of the spectrum (zeros if omitted)

        Returns:
            Tuple of (real part, imaginary part) of the time signal
        """
        re = np.asarray(re, dtype=np.float64)
        im = np.zeros_like(re) if im is None else np.asarray(im, dtype=np.float64)
        self._check_length(re, "Real part")
        self._check_length(im, "Imaginary part")

        result = np.conj(self._transform(re - 1j * im)) / self.size
        return result.real.copy(), result.imag.copy()

    def magnitude(self, real: np.ndarray) -> np.ndarray:
        """Magnitude of the forward transform."""
        re, im = self.forward(real)
        return np.hypot(re, im)
