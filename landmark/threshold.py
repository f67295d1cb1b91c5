import numpy as np

from landmark.config import PeakConfig


class AdaptiveThreshold:
    """
    Per-bin log-domain detection floor.

    Each detected peak raises the floor around its bin with a gaussian
    mask (eww row of the peak bin), and the whole curve decays by
    mask_decay_log once per frame. Peaks therefore suppress nearby peaks
    in the following frames, less and less as time goes by.
    """

    def __init__(self, config):
        self.if_min = config.if_min
        self.if_max = config.if_max
        self.eww = config.eww
        self.decay_log = config.mask_decay_log
        self.values = np.full(config.n_bins, PeakConfig.INITIAL_THRESHOLD)

    def raise_around(self, peaks):
        """Raise the floor around every peak in `peaks`."""
        band = slice(self.if_min, self.if_max)
        for peak in peaks:
            mask = peak.log_magnitude + self.eww[peak.bin, band]
            np.maximum(self.values[band], mask, out=self.values[band])

    def decay(self):
        self.values += self.decay_log

    def dominates(self, peak, frames_ago):
        """
        True when `peak`, found `frames_ago` frames back, is now below the floor.

        The floor has decayed frames_ago times since that frame, which is
        compensated for before comparing.
        """
        floor = self.values[peak.bin] + self.decay_log * frames_ago
        return peak.log_magnitude < floor
