import sys
from pathlib import Path

import matplotlib
import pytest

# Plots are saved to files, never shown
matplotlib.use("Agg")

# Ensure repository root is importable for `landmark` and `main`.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from signals import two_tone_pcm  # noqa: E402


@pytest.fixture(scope="session")
def two_tone_bytes():
    """4 seconds of 1 kHz + 3 kHz tones over low level noise, as PCM bytes."""
    return two_tone_pcm(duration_sec=4.0)


@pytest.fixture(scope="session")
def two_tone_short():
    return two_tone_pcm(duration_sec=1.5)
