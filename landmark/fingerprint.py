"""
Online landmark audio fingerprinting.

Landmarks are pairs of spectral peaks close in time and frequency
(Wang 2003, Ellis 2009). The Fingerprinter consumes an unbounded stream of
16 bit mono PCM in chunks of any size and returns, for each chunk, the
fingerprints of the frames that became final while processing it.
"""

import logging
import itertools
import dataclasses
from collections import defaultdict
from typing import List

from landmark.config import build_config
from landmark.fft import FFT
from landmark.audio_utils import FrameReader
from landmark.peaks import PeakDetector
from landmark.threshold import AdaptiveThreshold
from landmark.history import PeakHistory
from landmark.logging_config import setup_logger

# setting up logger
logger = setup_logger(__name__, level=logging.INFO)


@dataclasses.dataclass
class FingerprintBatch:
    """Fingerprints emitted by one write: parallel timestamps and hashes."""

    tcodes: List[int] = dataclasses.field(default_factory=list)
    hcodes: List[int] = dataclasses.field(default_factory=list)

    def __len__(self):
        return len(self.hcodes)

    def __iter__(self):
        return iter(zip(self.tcodes, self.hcodes))

    def append(self, tcode, hcode):
        self.tcodes.append(tcode)
        self.hcodes.append(hcode)

    def extend(self, other):
        self.tcodes.extend(other.tcodes)
        self.hcodes.extend(other.hcodes)

    def seconds(self, dt):
        """Timestamps converted to seconds."""
        return [t * dt for t in self.tcodes]

    def to_dict(self):
        return {"tcodes": list(self.tcodes), "hcodes": list(self.hcodes)}


def create_hash(bin_earlier, bin_later, frame_delta, nfft):
    """
    Pack a landmark into one integer.

    hash = bin_earlier + (nfft/2) * (bin_later + (nfft/2) * frame_delta)

    Args:
        bin_earlier: Bin of the peak in the earlier frame
        bin_later: Bin of the anchor peak
        frame_delta: Frames between the two peaks
        nfft: FFT size

    Returns:
        hash_int: packed landmark
    """
    half = nfft // 2
    return bin_earlier + half * (bin_later + half * frame_delta)


def decode_hash(hash_int, nfft):
    """Inverse of create_hash: (bin_earlier, bin_later, frame_delta)"""
    half = nfft // 2
    return hash_int % half, (hash_int // half) % half, hash_int // (half * half)


def landmark_pairs(history, t0, window_dt, window_df, mppp):
    """
    Pair each peak of frame t0 with peaks of the frames before it.

    Frames are scanned from t0 backwards to t0 - window_dt, peaks in
    magnitude order within a frame. An anchor pairs with peaks at a
    different bin less than window_df bins away, at most mppp times.

    Yields:
        (anchor, other, frame_delta) tuples
    """
    first = max(0, t0 - window_dt)

    def targets(anchor):
        for j in range(t0, first - 1, -1):
            for other in history[j].peaks:
                if other.bin == anchor.bin:
                    continue
                if abs(other.bin - anchor.bin) < window_df:
                    yield other, t0 - j

    for anchor in history[t0].peaks:
        for other, frame_delta in itertools.islice(targets(anchor), mppp):
            yield anchor, other, frame_delta


def generate_hashes(history, t0, config):
    """
    Generate the landmark hashes of the final frame t0.

    Args:
        history: PeakHistory
        t0: Index of the final frame in the history
        config: FingerprintConfig

    Returns:
        batch: FingerprintBatch, all stamped with the timestamp of frame t0
    """
    batch = FingerprintBatch()
    t = history[t0].t
    for anchor, other, frame_delta in landmark_pairs(
        history, t0, config.window_dt, config.window_df, config.mppp
    ):
        batch.append(t, create_hash(other.bin, anchor.bin, frame_delta, config.nfft))
    return batch


class Fingerprinter:
    """
    Streaming landmark fingerprinter for one audio stream.

    Not thread safe: use one instance per stream. Instances with the same
    configuration share only read-only tables.

    Args:
        config: FingerprintConfig. Built from `overrides` when omitted.
        record: Keep detected peaks and threshold curves of every frame,
            for plotting. Memory grows with the input, bounded inputs only.
        **overrides: build_config() keyword arguments
    """

    def __init__(self, config=None, record=False, **overrides):
        self.config = config if config is not None else build_config(**overrides)

        self.reader = FrameReader(self.config)
        self.fft = FFT(self.config.nfft)
        self.detector = PeakDetector(self.config)
        self.threshold = AdaptiveThreshold(self.config)
        self.history = PeakHistory(self.config)

        self.frames_processed = 0
        self.record = record
        self.recorded_peaks = []
        self.recorded_thresholds = []

    @property
    def frame_index(self):
        return self.reader.frame_index

    def write(self, chunk):
        """
        Consume a chunk of PCM bytes and process every complete frame.

        Args:
            chunk: bytes, bytearray or memoryview of 16 bit LE samples

        Returns:
            batch: FingerprintBatch, empty (falsy) if no fingerprint was produced
        """
        if not isinstance(chunk, (bytes, bytearray, memoryview)):
            raise TypeError(f"expected a bytes-like chunk, got {type(chunk).__name__}")

        if self.config.verbose:
            logger.info(f"t={self.reader.timestamp} received {len(chunk)} bytes")

        self.reader.write(chunk)
        batch = FingerprintBatch()
        for real, imag in self.reader.frames():
            batch.extend(self._process_frame(real, imag))

        dropped = self.reader.buffer.compact()
        if dropped and self.config.verbose:
            logger.info(f"buffer drop {dropped} bytes")

        return batch

    def stream(self, chunks):
        """Write every chunk of an iterable, yielding the non-empty batches."""
        for chunk in chunks:
            batch = self.write(chunk)
            if batch:
                yield batch

    def flush(self):
        """
        End of stream. A trailing partial frame is never processed.

        Returns:
            pending: buffered bytes that were not consumed by any frame
        """
        pending = self.reader.pending_bytes
        if pending and self.config.verbose:
            logger.info(f"{pending} trailing bytes left unprocessed")
        return pending

    def _process_frame(self, real, imag):
        spectrum = self.fft.forward(real, imag)
        peaks = self.detector.detect(spectrum, self.threshold.values)

        # Only major peaks are taken into account in the next frames
        self.threshold.raise_around(peaks)

        self.history.append(self.reader.timestamp, peaks)
        if self.record:
            self.recorded_peaks.append((self.reader.timestamp, list(peaks)))
            self.recorded_thresholds.append(self.threshold.values.copy())

        # Remove previous maxima that are too close and/or too low
        self.history.prune(self.threshold)

        batch = FingerprintBatch()
        t0 = self.history.final_index
        if t0 >= 0:
            batch = generate_hashes(self.history, t0, self.config)
            if batch and self.config.verbose:
                logger.info(f"t={self.reader.timestamp} generated {len(batch)} fingerprints")

        self.history.trim()
        self.threshold.decay()
        self.frames_processed += 1
        return batch


def fingerprint_pcm(data, chunk_size=None, config=None, visualize=False, save_plot=None, **overrides):
    """
    Fingerprint a whole PCM byte string.

    Args:
        data: 16 bit LE mono PCM bytes
        chunk_size: Feed the data in chunks of this many bytes (one write if None)
        config: FingerprintConfig (built from overrides if None)
        visualize: Plot the constellation and landmarks
        save_plot: Path prefix to save the plots to

    Returns:
        batch: FingerprintBatch with every fingerprint
        metadata: Dict with additional info
    """
    fingerprinter = Fingerprinter(config=config, record=visualize, **overrides)
    config = fingerprinter.config

    chunk_size = chunk_size or max(len(data), 1)
    batch = FingerprintBatch()
    for start in range(0, len(data), chunk_size):
        batch.extend(fingerprinter.write(data[start:start + chunk_size]))
    fingerprinter.flush()

    duration = len(data) / config.bps / config.sampling_rate
    metadata = {
        "num_frames": fingerprinter.frames_processed,
        "num_hashes": len(batch),
        "duration": duration,
        "hashes_per_second": len(batch) / duration if duration > 0 else 0.0,
    }

    if visualize:
        from landmark.visualize import plot_constellation, visualize_landmarks

        logger.info("[Visualizing] Generating constellation and landmark plots...")
        plot_constellation(
            fingerprinter, save_path=f"{save_plot}_constellation.png" if save_plot else None
        )
        visualize_landmarks(
            batch, config, save_path=f"{save_plot}_landmarks.png" if save_plot else None
        )

    logger.info(
        f"✓ Fingerprinted {duration:.2f}s: {metadata['num_frames']} frames, "
        f"{metadata['num_hashes']} hashes ({metadata['hashes_per_second']:.1f}/s)"
    )
    return batch, metadata


def analyze_hash_distribution(batch, dt=None):
    """
    Analyze the hash distribution to check for good entropy.

    Args:
        batch: FingerprintBatch
        dt: Seconds per frame, to report time coverage in seconds

    Returns:
        stats: Dict with totals, uniqueness and collision figures
    """
    total_hashes = len(batch)
    if total_hashes == 0:
        logger.warning("No hashes to analyze")
        return {"total_hashes": 0, "unique_hashes": 0, "uniqueness": 0.0, "collisions": 0}

    hash_counts = defaultdict(int)
    for hash_val in batch.hcodes:
        hash_counts[hash_val] += 1

    unique_hashes = len(hash_counts)
    duplicates = {h: c for h, c in hash_counts.items() if c > 1}
    uniqueness = unique_hashes / total_hashes

    times = batch.seconds(dt) if dt else batch.tcodes
    unit = "s" if dt else " frames"
    stats = {
        "total_hashes": total_hashes,
        "unique_hashes": unique_hashes,
        "uniqueness": uniqueness,
        "collisions": len(duplicates),
        "max_collision": max(duplicates.values()) if duplicates else 1,
        "start": min(times),
        "end": max(times),
    }

    logger.info(f"Total hashes:    {total_hashes}")
    logger.info(f"Unique hashes:   {unique_hashes}")
    logger.info(f"Uniqueness:      {uniqueness * 100:.1f}%")
    logger.info(f"Collisions:      {len(duplicates)}")
    if duplicates:
        logger.info(f"Max collision:   {stats['max_collision']}")
    logger.info(f"Time coverage:   {stats['start']:.2f}{unit} to {stats['end']:.2f}{unit}")

    if uniqueness > 0.85:
        logger.info(f"  ✓ GOOD ({uniqueness * 100:.1f}% unique)")
    elif uniqueness > 0.70:
        logger.info(f"  ⚠ MODERATE ({uniqueness * 100:.1f}% unique)")
    else:
        logger.info(f"  ✗ LOW ({uniqueness * 100:.1f}% unique), consider raising mnlm or mppp")

    return stats
