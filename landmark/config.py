import math
import dataclasses
from functools import lru_cache

import numpy as np
from scipy.signal import windows


class AudioConfig:
    """Input signal parameters"""

    # 16 bit, single channel PCM
    SAMPLE_RATE = 22050
    BYTES_PER_SAMPLE = 2

    # Spectrogram parameters. spectra have FFT_WINDOW_SIZE / 2 points
    FFT_WINDOW_SIZE = 512
    OVERLAP_RATIO = 0.5


class PeakConfig:
    """Configuration for peak detection and the adaptive threshold"""

    # Max local maxima kept for each spectrum
    MAX_LOCAL_MAXIMA = 5

    # Threshold decay factor between frames
    MASK_DECAY = 0.995

    # Mask decay scale in bins, widened by sqrt(i + 3) at higher bins
    MASK_DF = 3

    # Initial value of the log-domain threshold
    INITIAL_THRESHOLD = -3.0

    # Floor applied before taking the log of a magnitude
    LOG_FLOOR = 1e-6

    # Offset of the sqrt(i + offset) frequency boost
    BOOST_OFFSET = 16


class HashConfig:
    """Configuration for landmark pair generation"""

    # Max hashes each peak can lead to
    FAN_OUT = 3

    # Frequency window to pair peaks, in bins
    WINDOW_DF = 60

    # Time window to pair peaks, in frames. A little more than 1 sec
    WINDOW_DT = 96

    # About 250 ms. Controls the latency of the pipeline
    PRUNING_DT = 24


class BufferConfig:
    """Configuration for the PCM byte buffer"""

    # Compact the buffer once it grows past this size
    MAX_BUFFER_BYTES = 1000000

    # Most recent bytes kept by a compaction
    KEEP_BUFFER_BYTES = 20000


def is_power_of_two(n):
    return isinstance(n, (int, np.integer)) and n > 0 and n & (n - 1) == 0


@lru_cache(maxsize=8)
def hann_window(nfft):
    """Symmetric Hann window, shared read-only between fingerprinters."""
    hwin = windows.hann(nfft, sym=True)
    hwin.flags.writeable = False
    return hwin


@lru_cache(maxsize=8)
def decay_mask(nfft, mask_df):
    """
    Log-domain gaussian masks, one row per peak bin.

    A gaussian mask is a polynomial on the log-spectrum. Row i is wider
    for larger i so that peaks at higher frequencies suppress a wider band.

    Args:
        nfft: FFT size
        mask_df: Mask decay scale in bins

    Returns:
        eww: (nfft/2, nfft/2) read-only array
    """
    half = nfft // 2
    i = np.arange(half, dtype=np.float64)[:, np.newaxis]
    j = np.arange(half, dtype=np.float64)[np.newaxis, :]
    eww = -0.5 * ((j - i) / mask_df / np.sqrt(i + 3)) ** 2
    eww.flags.writeable = False
    return eww


@dataclasses.dataclass(frozen=True, eq=False)
class FingerprintConfig:
    """
    Immutable fingerprinting parameters.

    Build instances with build_config(), which derives the dependent
    fields and validates everything once.
    """

    verbose: bool = False
    sampling_rate: int = AudioConfig.SAMPLE_RATE
    bps: int = AudioConfig.BYTES_PER_SAMPLE
    mnlm: int = PeakConfig.MAX_LOCAL_MAXIMA
    mppp: int = HashConfig.FAN_OUT
    nfft: int = AudioConfig.FFT_WINDOW_SIZE
    step: int = None
    dt: float = None
    hwin: np.ndarray = None
    mask_decay_log: float = math.log(PeakConfig.MASK_DECAY)
    if_min: int = 0
    if_max: int = None
    window_df: int = HashConfig.WINDOW_DF
    window_dt: int = HashConfig.WINDOW_DT
    pruning_dt: int = HashConfig.PRUNING_DT
    mask_df: float = PeakConfig.MASK_DF
    eww: np.ndarray = None
    max_buffer_bytes: int = BufferConfig.MAX_BUFFER_BYTES
    keep_buffer_bytes: int = BufferConfig.KEEP_BUFFER_BYTES

    @property
    def n_bins(self):
        return self.nfft // 2

    @property
    def max_history(self):
        return self.window_dt + self.pruning_dt + 1

    def summary(self):
        """Scalar fields only, for logs and JSON responses."""
        return {
            field.name: getattr(self, field.name)
            for field in dataclasses.fields(self)
            if field.name not in ("hwin", "eww")
        }


def build_config(**overrides):
    """
    Build a validated FingerprintConfig.

    Args:
        **overrides: Any FingerprintConfig field. Fields left out (or None)
            get their documented default, derived ones from nfft.

    Returns:
        config: FingerprintConfig

    Raises:
        TypeError: Unknown field name
        ValueError: Inconsistent or out of range values
    """
    overrides = {k: v for k, v in overrides.items() if v is not None}
    config = FingerprintConfig(**overrides)

    nfft = config.nfft
    if not is_power_of_two(nfft) or nfft < 4:
        raise ValueError(f"nfft must be a power of 2 (>= 4), got {nfft}")

    step = config.step if config.step is not None else int(nfft * (1 - AudioConfig.OVERLAP_RATIO))
    if_max = config.if_max if config.if_max is not None else nfft // 2
    derived = {
        "step": step,
        "if_max": if_max,
        "dt": config.dt if config.dt is not None else step / config.sampling_rate,
        "hwin": hann_window(nfft) if config.hwin is None else _frozen(config.hwin),
        "eww": (
            decay_mask(nfft, config.mask_df)
            if config.eww is None
            else _frozen(config.eww)
        ),
    }
    config = dataclasses.replace(config, **derived)
    _validate(config)
    return config


def _frozen(values):
    arr = np.array(values, dtype=np.float64)
    arr.flags.writeable = False
    return arr


INTEGER_FIELDS = (
    "sampling_rate",
    "bps",
    "mnlm",
    "mppp",
    "step",
    "if_min",
    "if_max",
    "window_df",
    "window_dt",
    "pruning_dt",
    "max_buffer_bytes",
    "keep_buffer_bytes",
)


def is_integer(value):
    return isinstance(value, (int, np.integer)) and not isinstance(value, bool)


def _validate(config):
    for name in INTEGER_FIELDS:
        if not is_integer(getattr(config, name)):
            raise ValueError(f"{name} must be an integer, got {getattr(config, name)!r}")

    half = config.nfft // 2

    if config.bps != 2:
        raise ValueError(f"only 16 bit PCM is supported, got bps={config.bps}")
    if config.sampling_rate <= 0:
        raise ValueError(f"sampling_rate must be positive, got {config.sampling_rate}")
    if not 1 <= config.step <= config.nfft:
        raise ValueError(f"step must be in [1, {config.nfft}], got {config.step}")
    if not 0 <= config.if_min < config.if_max <= half:
        raise ValueError(
            f"need 0 <= if_min < if_max <= {half}, got [{config.if_min}, {config.if_max})"
        )
    if config.if_max - config.if_min < 3:
        raise ValueError("frequency band must span at least 3 bins")
    for name in ("mnlm", "mppp", "window_df", "window_dt"):
        if getattr(config, name) < 1:
            raise ValueError(f"{name} must be >= 1, got {getattr(config, name)}")
    if config.pruning_dt < 0:
        raise ValueError(f"pruning_dt must be >= 0, got {config.pruning_dt}")
    if not config.mask_decay_log < 0:
        raise ValueError(f"mask_decay_log must be negative, got {config.mask_decay_log}")
    if config.hwin.shape != (config.nfft,):
        raise ValueError(f"hwin must have {config.nfft} coefficients")
    if config.eww.shape != (half, half):
        raise ValueError(f"eww must be a {half}x{half} matrix")
    if not config.nfft * config.bps <= config.keep_buffer_bytes < config.max_buffer_bytes:
        raise ValueError(
            "need nfft * bps <= keep_buffer_bytes < max_buffer_bytes, got "
            f"{config.keep_buffer_bytes} / {config.max_buffer_bytes}"
        )
