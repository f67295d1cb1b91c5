import numpy as np
from functools import lru_cache

from landmark.config import is_power_of_two


@lru_cache(maxsize=8)
def _tables(n):
    """Bit reversal permutation and trigonometric tables for size n."""
    levels = n.bit_length() - 1

    # Reverse the lowest `levels` bits of every index
    indices = np.arange(n)
    reversed_indices = np.zeros(n, dtype=np.int64)
    for _ in range(levels):
        reversed_indices = (reversed_indices << 1) | (indices & 1)
        indices = indices >> 1

    angles = 2 * np.pi * np.arange(n // 2) / n
    cos_table = np.cos(angles)
    sin_table = np.sin(angles)

    for table in (reversed_indices, cos_table, sin_table):
        table.flags.writeable = False
    return reversed_indices, cos_table, sin_table


class FFT:
    """
    Discrete Fourier transform of a fixed power of 2 size.

    Uses the Cooley-Tukey decimation-in-time radix-2 algorithm: a bit
    reversed addressing permutation followed by log2(n) butterfly stages.
    Each stage is computed for all butterflies at once with numpy.

    Attributes:
        n: Transform size
        spectrum: Magnitudes of the first n/2 bins after forward()
    """

    def __init__(self, n):
        if not is_power_of_two(n):
            raise ValueError(f"Length is not a power of 2: {n}")

        self.n = int(n)
        self.levels = self.n.bit_length() - 1
        self.reversed_indices, self.cos_table, self.sin_table = _tables(self.n)
        self.spectrum = np.zeros(n // 2)

    def forward(self, real, imag):
        """
        Compute the DFT of (real, imag) in place.

        Args:
            real: float64 array of length n, overwritten with the real part
            imag: float64 array of length n, overwritten with the imaginary part

        Returns:
            spectrum: magnitudes of the first n/2 bins
        """
        if len(real) != self.n or len(imag) != self.n:
            raise ValueError(f"Expected arrays of length {self.n}")

        real[:] = real[self.reversed_indices]
        imag[:] = imag[self.reversed_indices]

        size = 2
        while size <= self.n:
            halfsize = size // 2
            tablestep = self.n // size
            cos = self.cos_table[::tablestep]
            sin = self.sin_table[::tablestep]

            # One row per butterfly group
            re = real.reshape(-1, size)
            im = imag.reshape(-1, size)
            re_lo, re_hi = re[:, :halfsize], re[:, halfsize:]
            im_lo, im_hi = im[:, :halfsize], im[:, halfsize:]

            tpre = re_hi * cos + im_hi * sin
            tpim = -re_hi * sin + im_hi * cos
            re_hi[:] = re_lo - tpre
            im_hi[:] = im_lo - tpim
            re_lo += tpre
            im_lo += tpim

            size *= 2

        half = self.n // 2
        self.spectrum = np.hypot(real[:half], imag[:half])
        return self.spectrum
