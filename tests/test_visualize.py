import pytest

from landmark.config import build_config
from landmark.fingerprint import FingerprintBatch, Fingerprinter, create_hash, fingerprint_pcm
from landmark.visualize import plot_constellation, visualize_landmarks


def test_fingerprint_pcm_saves_plots(tmp_path, two_tone_short):
    prefix = tmp_path / "tones"
    batch, _ = fingerprint_pcm(two_tone_short, visualize=True, save_plot=str(prefix))
    assert len(batch) > 0
    assert (tmp_path / "tones_constellation.png").stat().st_size > 0
    assert (tmp_path / "tones_landmarks.png").stat().st_size > 0


def test_constellation_needs_recording(tmp_path):
    with pytest.raises(ValueError):
        plot_constellation(Fingerprinter(), save_path=tmp_path / "out.png")


def test_recording_tracks_every_frame(two_tone_short):
    fingerprinter = Fingerprinter(record=True)
    fingerprinter.write(two_tone_short)
    assert len(fingerprinter.recorded_peaks) == fingerprinter.frames_processed
    assert len(fingerprinter.recorded_thresholds) == fingerprinter.frames_processed
    assert fingerprinter.recorded_thresholds[0].shape == (256,)


def test_landmarks_plot(tmp_path):
    config = build_config()
    batch = FingerprintBatch(
        [10, 11, 12], [create_hash(20, 30, 2, 512), create_hash(25, 40, 0, 512), create_hash(5, 9, 90, 512)]
    )
    path = tmp_path / "landmarks.png"
    visualize_landmarks(batch, config, num_examples=2, save_path=path)
    assert path.exists()


def test_empty_landmarks_plot(tmp_path):
    path = tmp_path / "empty.png"
    visualize_landmarks(FingerprintBatch(), build_config(), save_path=path)
    assert path.exists()
