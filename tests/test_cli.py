import io
import sys

import numpy as np
from scipy.io import wavfile

from landmark import cli
from landmark.fingerprint import Fingerprinter


def printed_fingerprints(output):
    return [line for line in output.splitlines() if line.startswith("time=")]


def test_raw_file(tmp_path, capsys, two_tone_short):
    path = tmp_path / "tones.pcm"
    path.write_bytes(two_tone_short)

    assert cli.main([str(path), "--chunk-size", "1000"]) == 0

    lines = printed_fingerprints(capsys.readouterr().out)
    expected = Fingerprinter().write(two_tone_short)
    assert len(lines) == len(expected)
    t, h = next(iter(expected))
    assert lines[0] == f"time={t} fingerprint={h}"


def test_wav_file_in_seconds(tmp_path, capsys, two_tone_short):
    path = tmp_path / "tones.wav"
    wavfile.write(path, 22050, np.frombuffer(two_tone_short, dtype="<i2"))

    assert cli.main([str(path), "--seconds", "--stats"]) == 0

    lines = printed_fingerprints(capsys.readouterr().out)
    assert lines
    t = Fingerprinter().write(two_tone_short).tcodes[0]
    assert lines[0].startswith(f"time={t * 256 / 22050:.3f} ")


def test_stdin(monkeypatch, capsys, two_tone_short):
    stdin = io.TextIOWrapper(io.BytesIO(two_tone_short))
    monkeypatch.setattr(sys, "stdin", stdin)

    assert cli.main([]) == 0
    assert len(printed_fingerprints(capsys.readouterr().out)) == len(
        Fingerprinter().write(two_tone_short)
    )


def test_invalid_fft_size(capsys):
    assert cli.main(["--nfft", "500"]) == 1


def test_invalid_chunk_size():
    assert cli.main(["--chunk-size", "0"]) == 1


def test_missing_file(tmp_path):
    assert cli.main([str(tmp_path / "missing.pcm")]) == 1


def test_wav_at_wrong_rate(tmp_path):
    path = tmp_path / "tones.wav"
    wavfile.write(path, 44100, np.zeros(1000, dtype=np.int16))
    assert cli.main([str(path)]) == 1
