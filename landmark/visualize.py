import logging

import numpy as np
import matplotlib.pyplot as plt

from landmark.fingerprint import decode_hash
from landmark.logging_config import setup_logger

logger = setup_logger(__name__, level=logging.INFO)


def _finish(fig, save_path):
    plt.tight_layout()
    if save_path:
        fig.savefig(save_path, dpi=150, bbox_inches="tight")
        logger.info(f"✓ Visualization saved to: {save_path}")
    else:
        plt.show()
    plt.close(fig)


def plot_constellation(fingerprinter, save_path=None):
    """
    Plot the adaptive threshold and the detected peaks of a recorded run.

    The threshold is drawn as an image (frames x bins). Peaks are the ones
    detected in each frame, before pruning.

    Args:
        fingerprinter: Fingerprinter created with record=True
        save_path: Optional path to save figure
    """
    if not fingerprinter.record:
        raise ValueError("fingerprinter was not created with record=True")

    config = fingerprinter.config
    thresholds = np.array(fingerprinter.recorded_thresholds)
    fig, ax = plt.subplots(figsize=(14, 6))

    if len(thresholds):
        times = np.arange(1, len(thresholds) + 1) * config.dt
        freqs = np.arange(config.n_bins) * config.sampling_rate / config.nfft
        im = ax.pcolormesh(times, freqs, thresholds.T, shading="auto", cmap="viridis")
        plt.colorbar(im, ax=ax, label="Threshold (log)")

    peak_times = [t * config.dt for t, peaks in fingerprinter.recorded_peaks for _ in peaks]
    peak_freqs = [
        peak.bin * config.sampling_rate / config.nfft
        for _, peaks in fingerprinter.recorded_peaks
        for peak in peaks
    ]
    if peak_times:
        ax.scatter(peak_times, peak_freqs, c="red", s=5, label=f"{len(peak_times)} peaks")
        ax.legend()

    ax.set_xlabel("Time (s)")
    ax.set_ylabel("Frequency (Hz)")
    ax.set_title("Adaptive threshold and detected peaks")
    _finish(fig, save_path)


def visualize_landmarks(batch, config, num_examples=5, save_path=None):
    """
    Draw landmark pairs as segments from the earlier peak to the anchor peak.

    Args:
        batch: FingerprintBatch
        config: FingerprintConfig used to produce the batch
        num_examples: Number of landmarks to highlight
        save_path: Optional path to save figure
    """
    fig, ax = plt.subplots(figsize=(14, 6))
    df = config.sampling_rate / config.nfft

    segments = []
    for t, h in batch:
        bin_earlier, bin_later, frame_delta = decode_hash(h, config.nfft)
        segments.append(
            ((t - frame_delta) * config.dt, bin_earlier * df, t * config.dt, bin_later * df)
        )

    highlighted = set()
    if segments and num_examples > 0:
        highlighted = set(np.linspace(0, len(segments) - 1, num_examples).astype(int))

    for i, (x0, y0, x1, y1) in enumerate(segments):
        highlight = i in highlighted
        ax.plot(
            [x0, x1],
            [y0, y1],
            color="red" if highlight else "gray",
            linewidth=1.2 if highlight else 0.3,
            alpha=0.9 if highlight else 0.3,
        )
        ax.scatter([x1], [y1], c="black" if highlight else "gray", s=4)

    ax.set_xlabel("Time (s)")
    ax.set_ylabel("Frequency (Hz)")
    ax.set_title(f"Landmarks ({len(segments)} fingerprints)")
    ax.grid(True, alpha=0.3)
    _finish(fig, save_path)
