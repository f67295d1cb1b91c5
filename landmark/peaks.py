from typing import List, NamedTuple

import numpy as np

from landmark.config import PeakConfig


class Peak(NamedTuple):
    """A spectral local maximum: FFT bin and boosted magnitude."""

    bin: int
    magnitude: float

    @property
    def log_magnitude(self):
        return float(np.log(self.magnitude))


def boost_spectrum(spectrum, if_min, if_max):
    """
    Rescale |spectrum[i]| by sqrt(i + 16) inside [if_min, if_max).

    The lower part of the spectrum is damped and the higher part boosted,
    so that high bins compete with naturally louder low bins.
    """
    boosted = np.abs(np.asarray(spectrum, dtype=np.float64))
    bins = np.arange(if_min, if_max)
    boosted[if_min:if_max] *= np.sqrt(bins + PeakConfig.BOOST_OFFSET)
    return boosted


def log_spectrum(spectrum):
    """Natural log of the magnitudes, floored to avoid log(0)."""
    return np.log(np.maximum(spectrum, PeakConfig.LOG_FLOOR))


def find_local_maxima(spectrum, threshold, if_min, if_max, mnlm):
    """
    Find at most `mnlm` local maxima of the spectrum above the threshold.

    A bin qualifies when the positive part of (log spectrum - threshold)
    is strictly greater than at both neighbours. Qualifying bins are kept
    in an insertion sorted list, strongest first; a new bin has to beat the
    weakest retained one once the list is full, so ties favour lower bins.

    Args:
        spectrum: Boosted magnitude spectrum (n/2 bins)
        threshold: Current log-domain threshold (n/2 bins)
        if_min, if_max: Frequency band [if_min, if_max)
        mnlm: Max number of maxima

    Returns:
        peaks: List[Peak], descending magnitude
    """
    band = slice(if_min, if_max)
    diff = np.maximum(log_spectrum(spectrum[band]) - threshold[band], 0)

    # Candidates over bins if_min+1 .. if_max-2
    center = diff[1:-1]
    is_max = (center > diff[:-2]) & (center > diff[2:])
    candidates = np.flatnonzero(is_max) + if_min + 1

    peaks: List[Peak] = []
    for i in candidates:
        magnitude = float(spectrum[i])
        if len(peaks) == mnlm and magnitude <= peaks[-1].magnitude:
            continue

        position = len(peaks)
        while position > 0 and magnitude > peaks[position - 1].magnitude:
            position -= 1
        peaks.insert(position, Peak(int(i), magnitude))
        del peaks[mnlm:]

    return peaks


class PeakDetector:
    """Boosts each frame's spectrum and extracts its strongest local maxima."""

    def __init__(self, config):
        self.if_min = config.if_min
        self.if_max = config.if_max
        self.mnlm = config.mnlm

    def detect(self, spectrum, threshold):
        """
        Args:
            spectrum: Raw FFT magnitudes for the first n/2 bins
            threshold: Current log-domain threshold

        Returns:
            peaks: List[Peak] read from the boosted spectrum, descending magnitude
        """
        boosted = boost_spectrum(spectrum, self.if_min, self.if_max)
        return find_local_maxima(boosted, threshold, self.if_min, self.if_max, self.mnlm)
