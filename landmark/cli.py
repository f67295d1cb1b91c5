"""
Stream raw PCM into the fingerprinter and print the fingerprints.

Usage:
    ffmpeg -i song.mp3 -acodec pcm_s16le -ar 22050 -ac 1 -f s16le - | landmark-fp
    landmark-fp recording.wav --seconds --stats
"""

import sys
import logging
import argparse

from landmark.audio_utils import load_pcm
from landmark.config import AudioConfig, build_config
from landmark.fingerprint import Fingerprinter, FingerprintBatch, analyze_hash_distribution
from landmark.logging_config import setup_logger

logger = setup_logger(__name__, level=logging.INFO)

DEFAULT_CHUNK_SIZE = 4096


def read_chunks(args):
    if args.input in (None, "-"):
        stdin = sys.stdin.buffer
        while True:
            chunk = stdin.read(args.chunk_size)
            if not chunk:
                return
            yield chunk
    else:
        data = load_pcm(args.input, sampling_rate=args.sampling_rate)
        for start in range(0, len(data), args.chunk_size):
            yield data[start:start + args.chunk_size]


def build_parser():
    parser = argparse.ArgumentParser(
        description="Landmark audio fingerprints of a 16 bit mono PCM stream"
    )
    parser.add_argument("input", nargs="?", default=None,
                        help="Raw PCM or WAV file (default: stdin)")
    parser.add_argument("--chunk-size", type=int, default=DEFAULT_CHUNK_SIZE,
                        help="Bytes read per write")
    parser.add_argument("--sampling-rate", type=int, default=AudioConfig.SAMPLE_RATE,
                        help="Sampling rate of the input in Hz")
    parser.add_argument("--nfft", type=int, default=AudioConfig.FFT_WINDOW_SIZE,
                        help="FFT size, a power of 2")
    parser.add_argument("--seconds", action="store_true",
                        help="Print timestamps in seconds instead of frames")
    parser.add_argument("--stats", action="store_true",
                        help="Log the hash distribution at the end of the stream")
    parser.add_argument("--verbose", "-v", action="store_true",
                        help="Log every write")
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)

    if args.chunk_size <= 0:
        logger.error(f"--chunk-size must be positive, got {args.chunk_size}")
        return 1

    try:
        config = build_config(
            sampling_rate=args.sampling_rate, nfft=args.nfft, verbose=args.verbose
        )
    except ValueError as e:
        logger.error(f"Invalid configuration: {e}")
        return 1

    fingerprinter = Fingerprinter(config)
    total = FingerprintBatch()
    try:
        for batch in fingerprinter.stream(read_chunks(args)):
            for t, h in batch:
                time = f"{t * config.dt:.3f}" if args.seconds else t
                print(f"time={time} fingerprint={h}")
            if args.stats:
                total.extend(batch)
    except (OSError, ValueError) as e:
        logger.error(f"Failed to read input: {e}")
        return 1

    pending = fingerprinter.flush()
    logger.info(
        f"fingerprints stream ended after {fingerprinter.frames_processed} frames "
        f"({pending} trailing bytes)"
    )
    if args.stats:
        analyze_hash_distribution(total, dt=config.dt)
    return 0


if __name__ == "__main__":
    sys.exit(main())
