import logging
from pathlib import Path

import numpy as np
from scipy.io import wavfile

from landmark.logging_config import setup_logger

logger = setup_logger(__name__, level=logging.INFO)

PCM_DTYPE = np.dtype("<i2")


class PCMBuffer:
    """
    Growable byte buffer over an unbounded 16 bit PCM stream.

    Bytes are addressed by absolute position in the stream. `offset` counts
    the bytes dropped from the front by compaction; byte_index() is the only
    place that translates absolute positions into buffer positions.
    """

    def __init__(self, bps=2, max_bytes=1000000, keep_bytes=20000):
        self.bps = bps
        self.max_bytes = max_bytes
        self.keep_bytes = keep_bytes
        self.data = bytearray()
        self.offset = 0

    def __len__(self):
        return len(self.data)

    @property
    def end(self):
        """Absolute byte position one past the last buffered byte."""
        return self.offset + len(self.data)

    def append(self, chunk):
        self.data += chunk

    def byte_index(self, sample_index):
        """Absolute sample index -> position in self.data"""
        position = sample_index * self.bps - self.offset
        if position < 0:
            raise IndexError(
                f"sample {sample_index} was dropped by compaction (offset={self.offset})"
            )
        return position

    def has_samples(self, start, count):
        """
        True when samples [start, start + count) can be read.

        Strict comparison: one byte past the frame must already be buffered.
        """
        return (start + count) * self.bps < self.end

    def read_samples(self, start, count):
        """Read `count` samples from absolute sample index `start`, scaled to [-1, 1)."""
        position = self.byte_index(start)
        # Slicing copies, so no numpy view keeps the bytearray from resizing
        raw = bytes(self.data[position:position + count * self.bps])
        samples = np.frombuffer(raw, dtype=PCM_DTYPE)
        return samples / float(2 ** (8 * self.bps - 1))

    def compact(self):
        """
        Drop all but the most recent keep_bytes once the buffer exceeds max_bytes.

        Returns:
            dropped: number of bytes dropped (0 if the buffer was small enough)
        """
        if len(self.data) <= self.max_bytes:
            return 0

        dropped = len(self.data) - self.keep_bytes
        del self.data[:dropped]
        self.offset += dropped
        return dropped


class FrameReader:
    """
    Cuts Hann windowed, overlapping frames out of a PCMBuffer.

    Frames start every `step` samples. frame_index is the absolute sample
    index of the next frame to read.
    """

    def __init__(self, config):
        self.nfft = config.nfft
        self.step = config.step
        self.hwin = config.hwin
        self.buffer = PCMBuffer(
            bps=config.bps,
            max_bytes=config.max_buffer_bytes,
            keep_bytes=config.keep_buffer_bytes,
        )
        self.frame_index = 0

    def write(self, chunk):
        self.buffer.append(chunk)

    def frames(self):
        """
        Yield (real, imag) frame arrays while a full frame is buffered.

        frame_index is advanced by `step` before each frame is yielded.
        """
        while self.buffer.has_samples(self.frame_index, self.nfft):
            real = self.hwin * self.buffer.read_samples(self.frame_index, self.nfft)
            imag = np.zeros(self.nfft)
            self.frame_index += self.step
            yield real, imag

    @property
    def timestamp(self):
        """Timestamp of the last frame read, in frames."""
        return self.frame_index // self.step

    @property
    def pending_bytes(self):
        """Buffered bytes not consumed by any frame read so far."""
        return max(self.buffer.end - self.frame_index * self.buffer.bps, 0)


def load_pcm(path, sampling_rate=22050):
    """
    Load 16 bit mono PCM bytes from a file.

    Raw files are returned as-is. WAV files are only unwrapped: they must
    already hold single channel 16 bit PCM at `sampling_rate`.

    Args:
        path: Path to a .wav or raw .pcm/.raw file
        sampling_rate: Expected rate for WAV files

    Returns:
        data: little endian 16 bit PCM bytes
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"No such audio file: {path}")

    if path.suffix.lower() != ".wav":
        data = path.read_bytes()
        logger.info(f"✓ Loaded raw PCM: {path} ({len(data)} bytes)")
        return data

    sr, audio = wavfile.read(path)
    if audio.ndim != 1:
        raise ValueError(f"{path}: expected a single channel, got {audio.shape[1]}")
    if audio.dtype != np.int16:
        raise ValueError(f"{path}: expected 16 bit PCM, got {audio.dtype}")
    if sr != sampling_rate:
        raise ValueError(f"{path}: sample rate is {sr}, expected {sampling_rate}")

    logger.info(f"✓ Loaded WAV: {path}")
    logger.info(f"  Duration: {len(audio) / sr:.2f} seconds")
    return audio.astype(PCM_DTYPE).tobytes()
